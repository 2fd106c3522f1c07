"""Repository for in-app notification inbox entries."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, cast

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.notification import NOTIFICATION_TYPES, Notification
from .base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Data access for notification inbox entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db, Notification)

    def _validate_type(self, type: str) -> None:
        if type not in NOTIFICATION_TYPES:
            raise RepositoryException(f"Invalid notification type: {type}")

    def create_notification(
        self,
        user_id: str,
        message: str,
        type: str,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        type_value = getattr(type, "value", type)
        self._validate_type(type_value)
        notification = Notification(
            user_id=user_id,
            message=message,
            type=type_value,
            data=data,
            is_read=False,
        )
        self.db.add(notification)
        self.db.flush()
        self.db.refresh(notification)
        return notification

    def get_user_notifications(
        self,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        query = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return cast(List[Notification], query.all())

    def get_unread_count(self, user_id: str) -> int:
        count = (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )
        return int(count or 0)

    def count_for_user(self, user_id: str, type: str | None = None) -> int:
        query = self.db.query(func.count(Notification.id)).filter(Notification.user_id == user_id)
        if type is not None:
            query = query.filter(Notification.type == getattr(type, "value", type))
        return int(query.scalar() or 0)

    def mark_as_read_for_user(self, user_id: str, notification_id: str) -> bool:
        """
        Mark one of the user's notifications as read.

        Returns False when the notification does not exist or belongs to
        another user. Marking an already-read notification is a success.
        """
        now = datetime.now(timezone.utc)
        updated = (
            self.db.query(Notification)
            .filter(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
            .update(
                {
                    Notification.is_read: True,
                    Notification.read_at: func.coalesce(Notification.read_at, now),
                },
                synchronize_session="fetch",
            )
        )
        return bool(updated)

    def mark_all_as_read(self, user_id: str) -> int:
        now = datetime.now(timezone.utc)
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True, Notification.read_at: now}, synchronize_session="fetch")
        )
        return int(updated or 0)


__all__ = ["NotificationRepository"]
