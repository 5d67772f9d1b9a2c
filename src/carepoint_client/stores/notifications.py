from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime

from pydantic import ValidationError

from carepoint_client.api import CarePointAPIError, CarePointClient
from carepoint_client.feedback import Feedback, MutationResult
from carepoint_client.schemas import Notification, Pagination

logger = logging.getLogger(__name__)


def format_time_ago(moment: datetime, now: datetime | None = None) -> str:
    current = now or datetime.now(UTC if moment.tzinfo else None)
    seconds = (current - moment).total_seconds()
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        count = int(seconds // size)
        if count > 0:
            return f"{count} {unit}{'s' if count > 1 else ''} ago"
    return "Just now"


class NotificationStore:
    """Admin notifications and the unread badge count."""

    def __init__(self, client: CarePointClient, *, feedback: Feedback | None = None) -> None:
        self._client = client
        self._feedback = feedback or Feedback()
        self.notifications: list[Notification] = []
        self.pagination = Pagination()
        self.unread_count = 0
        self.is_loading = False
        self.is_updating = False

    async def fetch_unread_count(self) -> int:
        # Polled in the background, so failures stay out of the notices.
        try:
            payload = await self._client.unread_notification_count()
            count = int(payload.get("unreadCount") or 0) if isinstance(payload, Mapping) else 0
        except (CarePointAPIError, TypeError, ValueError) as exc:
            logger.warning("Failed to fetch unread count: %s", exc)
            return 0
        self.unread_count = count
        return count

    async def fetch_notifications(
        self, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> list[Notification]:
        self.is_loading = True
        try:
            payload = await self._client.list_notifications(
                page=page, limit=limit, unread_only=unread_only
            )
            if not isinstance(payload, Mapping):
                raise CarePointAPIError("unexpected notifications payload")
            notifications = [
                Notification.model_validate(item) for item in payload.get("notifications") or []
            ]
            pagination = Pagination.model_validate(payload.get("pagination") or {})
            unread_count = int(payload.get("unreadCount") or 0)
        except (CarePointAPIError, ValidationError, TypeError, ValueError) as exc:
            logger.warning("Notification fetch failed: %s", exc)
            self._feedback.error("Failed to fetch notifications")
            return []
        finally:
            self.is_loading = False
        self.notifications = notifications
        self.pagination = pagination
        self.unread_count = unread_count
        return notifications

    async def mark_as_read(self, notification_id: str) -> MutationResult:
        self.is_updating = True
        try:
            await self._client.mark_notification_read(notification_id)
        except CarePointAPIError as exc:
            self._feedback.error("Failed to mark notification as read")
            return MutationResult(success=False, error=str(exc))
        finally:
            self.is_updating = False

        read_at = datetime.now(UTC)
        self.notifications = [
            item.model_copy(update={"is_read": True, "read_at": read_at})
            if item.id == notification_id
            else item
            for item in self.notifications
        ]
        self.unread_count = max(0, self.unread_count - 1)
        return MutationResult(success=True)

    async def mark_all_as_read(self) -> MutationResult:
        self.is_updating = True
        try:
            await self._client.mark_all_notifications_read()
        except CarePointAPIError as exc:
            self._feedback.error("Failed to mark all notifications as read")
            return MutationResult(success=False, error=str(exc))
        finally:
            self.is_updating = False

        read_at = datetime.now(UTC)
        self.notifications = [
            item.model_copy(update={"is_read": True, "read_at": read_at})
            for item in self.notifications
        ]
        self.unread_count = 0
        self._feedback.success("All notifications marked as read")
        return MutationResult(success=True)

    async def refresh(self) -> int:
        return await self.fetch_unread_count()

    def clear(self) -> None:
        self.notifications = []
        self.unread_count = 0


__all__ = ["NotificationStore", "format_time_ago"]
