"""
client/watchers.py
Client-side polling for booking decisions.

PollingBookingWatcher: the passenger waits for the porter to accept
or decline, giving up after a timeout without touching the booking.
PorterBookingPoller: the porter dashboard's view of assigned bookings.
"""

import abc
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx

from client.api import CoolieMateAPI
from client.polling import PeriodicPoller, invoke_callback

logger = logging.getLogger(__name__)

CLIENT_POLL_INTERVAL_SECONDS = 2.0
CLIENT_POLL_TIMEOUT_SECONDS = 300.0
PORTER_POLL_INTERVAL_SECONDS = 5.0


class DecisionOutcome(str, Enum):
    ACCEPTED = "accepted"
    DECLINED = "declined"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class WatchResult:
    outcome: DecisionOutcome
    booking: Optional[dict]  # last booking seen; includes porterPhone once accepted
    elapsed: float
    polls: int


# ── Passenger side ────────────────────────────────────────────

class BookingStatusWatcher(abc.ABC):
    """Waits for the porter's decision on a booking."""

    @abc.abstractmethod
    async def wait_for_decision(self, booking_id: str) -> WatchResult:
        ...


class PollingBookingWatcher(BookingStatusWatcher):
    def __init__(
        self,
        api: CoolieMateAPI,
        interval: float = CLIENT_POLL_INTERVAL_SECONDS,
        timeout: float = CLIENT_POLL_TIMEOUT_SECONDS,
    ):
        self.api = api
        self.interval = interval
        self.timeout = timeout
        self._task: Optional[asyncio.Task] = None

    async def wait_for_decision(self, booking_id: str) -> WatchResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.timeout
        last_seen: Optional[dict] = None
        polls = 0

        while True:
            polls += 1
            try:
                booking = await self.api.get_booking(booking_id)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Polling booking {booking_id} failed: {e}")
            else:
                status = booking.get("status") if isinstance(booking, dict) else None
                if status is not None:
                    last_seen = booking
                # A completed booking was accepted at some point
                if status in ("accepted", "completed"):
                    return WatchResult(DecisionOutcome.ACCEPTED, booking, loop.time() - started, polls)
                if status == "declined":
                    return WatchResult(DecisionOutcome.DECLINED, booking, loop.time() - started, polls)

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"Booking {booking_id}: no decision after {self.timeout:g}s")
                return WatchResult(DecisionOutcome.TIMEOUT, last_seen, loop.time() - started, polls)
            await asyncio.sleep(min(self.interval, remaining))

    def start(self, booking_id: str) -> asyncio.Task:
        """Watch in the background; await the returned task for the result."""
        self._task = asyncio.create_task(self.wait_for_decision(booking_id))
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


# ── Porter side ───────────────────────────────────────────────

BUCKETS = ("pending", "accepted", "completed")


class PorterBookingPoller(PeriodicPoller):
    """
    Keeps pending/accepted/completed buckets of the porter's bookings.
    Declined bookings are dropped. on_new_request fires once per
    pending booking id this poller has not seen before.
    """

    def __init__(
        self,
        api: CoolieMateAPI,
        porter_id: str,
        interval: float = PORTER_POLL_INTERVAL_SECONDS,
        on_new_request: Optional[Callable[[dict], None]] = None,
    ):
        super().__init__(interval)
        self.api = api
        self.porter_id = porter_id
        self.on_new_request = on_new_request
        self.buckets: Dict[str, List[dict]] = {name: [] for name in BUCKETS}
        self._seen_pending: set = set()

    async def poll_once(self) -> bool:
        try:
            bookings = await self.api.list_porter_bookings(self.porter_id)
        except (httpx.HTTPError, ValueError) as e:
            # Keep showing the last good buckets
            logger.warning(f"Porter {self.porter_id} booking poll failed: {e}")
            return False
        if not isinstance(bookings, list):
            logger.warning(f"Porter {self.porter_id} booking poll returned {type(bookings).__name__}")
            return False

        buckets: Dict[str, List[dict]] = {name: [] for name in BUCKETS}
        for booking in bookings:
            if not isinstance(booking, dict) or "id" not in booking:
                continue
            status = booking.get("status")
            if status in buckets:
                buckets[status].append(booking)

        new_requests = [b for b in buckets["pending"] if b["id"] not in self._seen_pending]
        self._seen_pending.update(b["id"] for b in new_requests)
        self.buckets = buckets

        for booking in new_requests:
            await invoke_callback(self.on_new_request, booking)
        return True

    @property
    def pending(self) -> List[dict]:
        return self.buckets["pending"]

    @property
    def accepted(self) -> List[dict]:
        return self.buckets["accepted"]

    @property
    def completed(self) -> List[dict]:
        return self.buckets["completed"]

    async def accept(self, booking_id: str) -> dict:
        return await self.api.update_booking_status(booking_id, "accepted")

    async def decline(self, booking_id: str) -> dict:
        return await self.api.update_booking_status(booking_id, "declined")

    async def complete(self, booking_id: str) -> dict:
        return await self.api.update_booking_status(booking_id, "completed")
