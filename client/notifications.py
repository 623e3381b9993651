"""
client/notifications.py
Notification feed poller. The server tracks only is_read; whether an
alert was already played is remembered per poller instance.
"""

import logging
from typing import Callable, List, Optional

import httpx

from client.api import CoolieMateAPI
from client.polling import PeriodicPoller, invoke_callback

logger = logging.getLogger(__name__)

NOTIFICATION_POLL_INTERVAL_SECONDS = 5.0


class NotificationPoller(PeriodicPoller):
    def __init__(
        self,
        api: CoolieMateAPI,
        user_id: str,
        user_type: Optional[str] = None,
        interval: float = NOTIFICATION_POLL_INTERVAL_SECONDS,
        on_alert: Optional[Callable[[dict], None]] = None,
    ):
        super().__init__(interval)
        self.api = api
        self.user_id = user_id
        self.user_type = user_type
        self.on_alert = on_alert
        self.notifications: List[dict] = []
        self.unread_count = 0
        self._alerted: set = set()

    async def poll_once(self) -> bool:
        try:
            payload = await self.api.list_notifications(self.user_id, self.user_type)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Notification poll for {self.user_id} failed: {e}")
            return False
        if not isinstance(payload, dict) or not isinstance(payload.get("notifications"), list):
            logger.warning(f"Notification poll for {self.user_id} returned an unexpected body")
            return False

        self.notifications = [
            n for n in payload["notifications"] if isinstance(n, dict) and "id" in n
        ]
        self.unread_count = payload.get("unreadCount", 0)

        # Feed is newest first; alert oldest first
        fresh = [
            n for n in reversed(self.notifications)
            if not n.get("isRead") and n["id"] not in self._alerted
        ]
        for notification in fresh:
            self._alerted.add(notification["id"])
            await invoke_callback(self.on_alert, notification)
        return True

    async def mark_read(self, notification_id: str) -> None:
        await self.api.mark_notification_read(notification_id)
        for notification in self.notifications:
            if notification["id"] == notification_id and not notification.get("isRead"):
                notification["isRead"] = True
                self.unread_count = max(0, self.unread_count - 1)

    async def mark_all_read(self) -> None:
        await self.api.mark_all_notifications_read(self.user_id)
        for notification in self.notifications:
            notification["isRead"] = True
        self.unread_count = 0
