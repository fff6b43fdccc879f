"""Notification router: listing, counters, read state and cleanup."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from socialapp.core.database import get_db
from socialapp.modules.notifications.service import NotificationService
from socialapp.modules.users.models import User

from .. import oauth2, schemas

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """Provide a NotificationService instance via FastAPI DI."""
    return NotificationService(db)


@router.get("", response_model=schemas.NotificationListOut)
def get_notifications(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1),
    is_read: Optional[bool] = Query(None),
    type: Optional[int] = Query(None, ge=1, le=8),
    from_date: Optional[datetime] = Query(None),
    to_date: Optional[datetime] = Query(None),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """
    Retrieve the caller's notifications, newest first.

    Parameters:
      - page / page_size: 1-based paging.
      - is_read: Filter on read state.
      - type: Filter on notification type (1-8).
      - from_date / to_date: Inclusive creation-time window.
    """
    return service.list_notifications(
        current_user=current_user,
        page=page,
        page_size=page_size,
        is_read=is_read,
        notification_type=type,
        from_date=from_date,
        to_date=to_date,
    )


@router.get("/unread-count")
def get_unread_count(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return {"unread_count": service.unread_count(current_user=current_user)}


@router.get("/stats", response_model=schemas.NotificationStats)
def get_notification_stats(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return service.get_stats(current_user=current_user)


@router.put("/read")
def mark_notifications_read(
    payload: schemas.NotificationMarkRead,
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    """Mark notifications read. Already-read ids are skipped, not rejected."""
    updated = service.mark_as_read(
        current_user=current_user, notification_ids=payload.notification_ids
    )
    return {"updated": updated}


@router.put("/read-all")
def mark_all_notifications_read(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return {"updated": service.mark_all_as_read(current_user=current_user)}


@router.delete("/read")
def delete_read_notifications(
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    return {"deleted": service.delete_read(current_user=current_user)}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int = Path(..., gt=0),
    service: NotificationService = Depends(get_notification_service),
    current_user: User = Depends(oauth2.get_current_user),
):
    service.delete_notification(
        current_user=current_user, notification_id=notification_id
    )
