"""Notifications API: the caller's inbox."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from swapchat.db import get_db
from swapchat.routers.utils.dependencies import get_current_user_id
from swapchat.schemas.notification import NotificationRead
from swapchat.services.notification_service import NotificationService

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=dict)
def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> dict:
    """List the caller's notifications, newest first, with the unread count."""
    svc = NotificationService(db)
    notifications = svc.get_notifications(
        user_id, unread_only=unread_only, skip=skip, limit=limit
    )
    items = [NotificationRead.model_validate(n) for n in notifications]
    return {"items": items, "unread_count": svc.get_unread_count(user_id)}


@router.post("/read-all", response_model=dict)
def mark_all_notifications_read(
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> dict:
    updated = NotificationService(db).mark_all_as_read(user_id)
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_read(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> NotificationRead:
    notification = NotificationService(db).mark_as_read(notification_id, user_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
