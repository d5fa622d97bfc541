# backend/pantry_rewards/api/notifications.py
"""
Pantry notifications, derived on every request from current food state
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from pantry_rewards.models.database import get_db, User
from pantry_rewards.schemas.notifications import NotificationListResponse
from pantry_rewards.services.notification_service import NotificationService
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def get_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Unread expiring, expired and low-stock notifications"""
    notifications = NotificationService(db).get_notifications(current_user.id)
    return {
        "notifications": [n.to_dict() for n in notifications],
        "count": len(notifications)
    }


@router.get("/expiring", response_model=NotificationListResponse)
def get_expiring_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notifications = NotificationService(db).get_expiring_notifications(current_user.id)
    return {
        "notifications": [n.to_dict() for n in notifications],
        "count": len(notifications)
    }


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
def mark_as_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    NotificationService(db).mark_as_read(current_user.id, notification_id)
