"""
client/api.py
Thin async HTTP client for the CoolieMate API, used by the pollers.
Responses are returned as the decoded camelCase JSON.
"""

from typing import Any, Optional

import httpx


class CoolieMateAPI:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: Optional[str] = None,
        timeout: float = 10.0,
        http: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.token = token

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self.http.request(method, url, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response.json()

    # ── Bookings ──────────────────────────────────────────────

    async def get_booking(self, booking_id: str) -> dict:
        return await self._request("GET", f"/api/bookings/{booking_id}")

    async def update_booking_status(self, booking_id: str, status: str) -> dict:
        return await self._request(
            "PATCH", f"/api/bookings/{booking_id}/status", json={"status": status}
        )

    async def list_porter_bookings(self, porter_id: str, status: Optional[str] = None) -> list:
        params = {"status": status} if status else None
        return await self._request("GET", f"/api/porter/{porter_id}/bookings", params=params)

    # ── Notifications ─────────────────────────────────────────

    async def list_notifications(self, user_id: str, user_type: Optional[str] = None) -> dict:
        params = {"userType": user_type} if user_type else None
        return await self._request("GET", f"/api/notifications/{user_id}", params=params)

    async def mark_notification_read(self, notification_id: str) -> dict:
        return await self._request("PATCH", f"/api/notifications/{notification_id}/read")

    async def mark_all_notifications_read(self, user_id: str) -> dict:
        return await self._request("PATCH", f"/api/notifications/{user_id}/read-all")

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "CoolieMateAPI":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
