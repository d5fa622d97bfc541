# backend/pantry_rewards/services/notification_service.py
"""
Pantry notifications derived on demand from current food state.

Nothing is persisted except which notification ids a user has read. Ids
embed the remaining days for expiring items, so a notification read at
"3 days left" shows up again once the item reaches "1 day left".
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set
from datetime import datetime, timedelta
from enum import Enum
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pantry_rewards.core.config import settings
from pantry_rewards.models.database import FoodItem, NotificationRead

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    LOW_STOCK = "low_stock"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class PantryNotification:
    id: str
    type: NotificationType
    title: str
    message: str
    food_id: uuid.UUID
    food_name: str
    quantity: float
    unit: str
    severity: NotificationSeverity
    expiry_date: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "food_id": str(self.food_id),
            "food_name": self.food_name,
            "quantity": self.quantity,
            "unit": self.unit,
            "severity": self.severity.value,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "days_until_expiry": self.days_until_expiry,
            "created_at": self.created_at.isoformat(),
        }


def expiring_message(food_name: str, days: int) -> str:
    if days == 0:
        return f"{food_name} expires today!"
    if days == 1:
        return f"{food_name} expires tomorrow!"
    return f"{food_name} expires in {days} days"


def expired_message(food_name: str) -> str:
    return f"{food_name} has expired. Please check or discard it."


def low_stock_message(food_name: str, quantity: float, unit: str) -> str:
    return f"{food_name} is running low. Only {quantity:.1f} {unit} left"


class NotificationService:
    """Expiry and low-stock notifications for a user's pantry"""

    def __init__(
        self,
        db: Session,
        lookahead_days: Optional[int] = None,
        low_stock_threshold: Optional[float] = None,
    ):
        self.db = db
        self.lookahead_days = lookahead_days if lookahead_days is not None else settings.expiry_lookahead_days
        self.low_stock_threshold = (
            low_stock_threshold if low_stock_threshold is not None
            else settings.low_stock_threshold_percent
        )

    def _read_ids(self, user_id: uuid.UUID) -> Set[str]:
        rows = self.db.query(NotificationRead.notification_id).filter(
            NotificationRead.user_id == user_id
        ).all()
        return {row[0] for row in rows}

    def _stocked_foods(self, user_id: uuid.UUID) -> List[FoodItem]:
        return self.db.query(FoodItem).filter(
            FoodItem.user_id == user_id,
            FoodItem.quantity > 0
        ).order_by(FoodItem.expiry_date.asc()).all()

    def _expiring(self, food: FoodItem, days: int, now: datetime) -> PantryNotification:
        if days <= 1:
            bucket = "1day"
            severity = NotificationSeverity.CRITICAL
            title = "Food Expiring Today!" if days == 0 else "Food Expiring Tomorrow!"
        elif days <= 3:
            bucket = "3days"
            severity = NotificationSeverity.CRITICAL
            title = "Food Expiring in 3 Days!"
        elif days <= 7:
            bucket = "1week"
            severity = NotificationSeverity.WARNING
            title = "Food Expiring This Week"
        else:
            bucket = "1month"
            severity = NotificationSeverity.INFO
            title = "Food Expiring This Month"

        return PantryNotification(
            id=f"expiring_{bucket}_{food.id}_{days}",
            type=NotificationType.EXPIRING_SOON,
            title=title,
            message=expiring_message(food.name, days),
            food_id=food.id,
            food_name=food.name,
            quantity=food.quantity,
            unit=food.unit,
            severity=severity,
            expiry_date=food.expiry_date,
            days_until_expiry=days,
            created_at=now,
        )

    def _expired(self, food: FoodItem, now: datetime) -> PantryNotification:
        return PantryNotification(
            id=f"expired_{food.id}",
            type=NotificationType.EXPIRED,
            title="Food Expired",
            message=expired_message(food.name),
            food_id=food.id,
            food_name=food.name,
            quantity=food.quantity,
            unit=food.unit,
            severity=NotificationSeverity.CRITICAL,
            expiry_date=food.expiry_date,
            created_at=now,
        )

    def _low_stock(self, food: FoodItem, now: datetime) -> Optional[PantryNotification]:
        if not food.initial_quantity or food.initial_quantity <= 0 or food.quantity <= 0:
            return None
        percentage = food.quantity / food.initial_quantity * 100
        if percentage > self.low_stock_threshold:
            return None
        return PantryNotification(
            id=f"lowstock_{food.id}",
            type=NotificationType.LOW_STOCK,
            title="Low Stock",
            message=low_stock_message(food.name, food.quantity, food.unit),
            food_id=food.id,
            food_name=food.name,
            quantity=food.quantity,
            unit=food.unit,
            severity=NotificationSeverity.INFO,
            created_at=now,
        )

    def get_notifications(
        self,
        user_id: uuid.UUID,
        now: Optional[datetime] = None,
        include_low_stock: bool = True,
    ) -> List[PantryNotification]:
        """All unread notifications: expiring, then expired, then low stock"""
        now = now or datetime.utcnow()
        read_ids = self._read_ids(user_id)
        foods = self._stocked_foods(user_id)

        expiring, expired, low_stock = [], [], []
        for food in foods:
            if food.expiry_date is not None:
                if food.is_expired(now):
                    expired.append(self._expired(food, now))
                elif food.expiry_date <= now + timedelta(days=self.lookahead_days):
                    days = food.days_until_expiry(now)
                    expiring.append(self._expiring(food, days, now))

            if include_low_stock:
                notification = self._low_stock(food, now)
                if notification:
                    low_stock.append(notification)

        notifications = [n for n in expiring + expired + low_stock if n.id not in read_ids]
        logger.debug(f"Derived {len(notifications)} unread notifications for user {user_id}")
        return notifications

    def get_expiring_notifications(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> List[PantryNotification]:
        return self.get_notifications(user_id, now=now, include_low_stock=False)

    def mark_as_read(self, user_id: uuid.UUID, notification_id: str) -> NotificationRead:
        """Idempotent: marking the same id twice keeps a single row"""
        existing = self.db.query(NotificationRead).filter(
            NotificationRead.user_id == user_id,
            NotificationRead.notification_id == notification_id
        ).first()
        if existing:
            return existing

        read = NotificationRead(user_id=user_id, notification_id=notification_id, read_at=datetime.utcnow())
        self.db.add(read)
        try:
            self.db.commit()
        except IntegrityError:
            # Same id marked by a parallel request
            self.db.rollback()
            return self.db.query(NotificationRead).filter(
                NotificationRead.user_id == user_id,
                NotificationRead.notification_id == notification_id
            ).one()

        self.db.refresh(read)
        return read
