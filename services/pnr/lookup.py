"""
services/pnr/lookup.py
PNR status via the RapidAPI IRCTC provider, with a local table of
known PNRs used whenever the provider is unavailable.
"""

import logging
from typing import Any, Optional

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import settings
from shared.exceptions import NotFoundError, UpstreamError
from shared.schemas.schemas import PNRResponse
from shared.utils.resilience import circuit_breaker_manager

logger = logging.getLogger(__name__)

FALLBACK_PNRS = {
    "1234567890": {"train_no": "12109", "coach_no": "B2", "train_name": "Mumbai LTT Exp"},
    "9876543210": {"train_no": "16022", "coach_no": "S1", "train_name": "Kaveri Express"},
    "1122334455": {"train_no": "22690", "coach_no": "A1", "train_name": "Dehradun Exp"},
}


def _first(data: dict, *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return ""


def parse_provider_payload(pnr: str, payload: Any) -> PNRResponse:
    """Provider field names vary between plans; take the first one present."""
    if not isinstance(payload, dict):
        raise UpstreamError("PNR provider returned an unexpected body")
    if not payload.get("success") or not isinstance(payload.get("data"), dict):
        raise UpstreamError("PNR provider returned no data")

    data = payload["data"]
    passengers = data.get("passengerList") or data.get("passengers")
    if not isinstance(passengers, list) or not passengers:
        passengers = [{}]
    first_passenger = passengers[0] if isinstance(passengers[0], dict) else {}

    return PNRResponse(
        pnr=pnr,
        train_no=_first(data, "trainNumber", "train_number"),
        train_name=_first(data, "trainName", "train_name"),
        coach_no=_first(first_passenger, "currentCoachId", "coach", "currentCoach"),
        boarding_station=_first(data, "boardingPoint", "from_station"),
        boarding_station_code=_first(data, "from", "boardingStationCode"),
        destination_station=_first(data, "destinationStation", "to_station"),
        destination_station_code=_first(data, "to", "destinationStationCode"),
        date_of_journey=_first(data, "dateOfJourney", "doj"),
        arrival_time=_first(data, "arrivalTime", "arrival_time"),
        source="live",
    )


class PNRLookup:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.client = client
        self.breaker = breaker or circuit_breaker_manager.get_breaker("pnr_provider")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _request(self, client: httpx.AsyncClient, pnr: str) -> dict:
        response = await client.get(
            f"{settings.PNR_API_URL.rstrip('/')}/{pnr}",
            headers={
                "X-RapidAPI-Key": settings.PNR_API_KEY,
                "X-RapidAPI-Host": settings.PNR_API_HOST,
            },
        )
        response.raise_for_status()
        return response.json()

    async def fetch_live(self, pnr: str) -> PNRResponse:
        """Raises UpstreamError on any provider failure."""
        if not settings.PNR_API_KEY:
            raise UpstreamError("PNR provider is not configured")

        try:
            with self.breaker.calling():
                if self.client is not None:
                    payload = await self._request(self.client, pnr)
                else:
                    async with httpx.AsyncClient(timeout=settings.PNR_API_TIMEOUT_SECONDS) as client:
                        payload = await self._request(client, pnr)
        except CircuitBreakerError:
            raise UpstreamError("PNR provider circuit is open")
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"PNR provider request failed: {e}")

        return parse_provider_payload(pnr, payload)

    async def lookup(self, pnr: str) -> PNRResponse:
        try:
            return await self.fetch_live(pnr)
        except UpstreamError as e:
            logger.warning(f"PNR {pnr[-4:]}: falling back to local table ({e.detail})")

        known = FALLBACK_PNRS.get(pnr)
        if not known:
            raise NotFoundError("PNR not found. Please enter journey details manually.")
        return PNRResponse(pnr=pnr, source="fallback", **known)
