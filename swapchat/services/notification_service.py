"""
Notification sink for swap, message and rating events.

notify() is best-effort: callers have already committed their primary write,
so a failure here is logged and reported as None, never raised.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from swapchat.models.notification import Notification
from swapchat.schemas.notification import NotificationType

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        related_id: Optional[UUID] = None,
    ) -> Optional[Notification]:
        """Create a notification for user_id. Returns None if it could not be stored."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=NotificationType(type).value,
            related_id=related_id,
        )
        try:
            self.db.add(notification)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Failed to store %s notification for user %s: %s", type, user_id, e
            )
            return None
        self.db.refresh(notification)
        return notification

    def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        return (
            self.db.query(Notification)
            .filter(Notification.id == notification_id)
            .first()
        )

    def get_notifications(
        self,
        user_id: UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Notification]:
        """Notifications for a user, newest first."""
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return (
            query.order_by(Notification.created_at.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def get_unread_count(self, user_id: UUID) -> int:
        return (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .count()
        )

    def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        """Mark one of the user's notifications read. None if it is not theirs."""
        notification = self.get_notification(notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: UUID) -> int:
        updated = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .update({Notification.is_read: True}, synchronize_session="fetch")
        )
        self.db.commit()
        return updated
