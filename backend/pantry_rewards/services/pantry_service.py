#/backend/pantry_rewards/services/pantry_service.py
"""
Pantry (food storage) operations.

Saving food is an earning event: creating an item or restocking one credits
`points_per_food_save` points inside the same transaction as the food write.
"""

from typing import Dict, List, Optional, Tuple
from datetime import datetime, timedelta
import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import (
    AppError, FoodItemNotFoundError, FoodOwnershipError, TransactionConflictError, ValidationError
)
from pantry_rewards.models.database import FoodItem
from pantry_rewards.services.points_ledger import PointsLedger, POINTS_SOURCE_FOOD_SAVE

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def stock_percentage(food: FoodItem) -> float:
    """Remaining stock as a percentage of the initial quantity"""
    if not food.initial_quantity:
        return 100.0
    return food.quantity / food.initial_quantity * 100


class PantryService:
    """Food storage for a single user"""

    def __init__(self, db: Session, points_per_save: Optional[int] = None):
        self.db = db
        self.ledger = PointsLedger(db)
        self.points_per_save = points_per_save if points_per_save is not None else settings.points_per_food_save

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}")
            raise TransactionConflictError() from e

    def _award_food_save(self, user_id: uuid.UUID, food: FoodItem, description: str):
        if self.points_per_save > 0:
            self.ledger._apply_earn(
                user_id,
                self.points_per_save,
                POINTS_SOURCE_FOOD_SAVE,
                reference_id=food.id,
                reference_type="food",
                description=description,
            )

    # ========================================================================
    # WRITES
    # ========================================================================

    def add_food(
        self,
        user_id: uuid.UUID,
        name: str,
        category: str,
        quantity: float,
        unit: str = "pcs",
        purchase_date: Optional[datetime] = None,
        expiry_date: Optional[datetime] = None,
        location: Optional[str] = None,
        is_halal: bool = True,
        add_method: str = "manual",
    ) -> FoodItem:
        """Add a food item and credit the food-save points"""
        if quantity is None or quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        food = FoodItem(
            user_id=user_id,
            name=name.strip(),
            category=category,
            quantity=quantity,
            initial_quantity=quantity,
            unit=unit,
            purchase_date=purchase_date,
            expiry_date=expiry_date,
            location=location,
            is_halal=is_halal,
            add_method=add_method,
        )

        try:
            self.db.add(food)
            self.db.flush()
            self._award_food_save(user_id, food, f"Earned {self.points_per_save} points for saving {food.name}")
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to add food for user {user_id}: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(food)
        logger.info(f"User {user_id} added {food.quantity} {food.unit} of {food.name}")
        return food

    def add_stock(self, food_id: uuid.UUID, user_id: uuid.UUID, amount: float) -> FoodItem:
        """Restock: quantity and initial quantity both grow, food-save points credited"""
        if amount is None or amount <= 0:
            raise ValidationError("Additional quantity must be greater than 0")

        try:
            food = self._owned(food_id, user_id, lock=True)
            food.quantity += amount
            food.initial_quantity += amount
            self._award_food_save(user_id, food, f"Earned {self.points_per_save} points for restocking {food.name}")
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to restock food {food_id}: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(food)
        return food

    def reduce_stock(self, food_id: uuid.UUID, user_id: uuid.UUID, portion: float) -> FoodItem:
        """Consume part of an item; quantity never drops below zero"""
        if portion is None or portion <= 0:
            raise ValidationError("Portion must be greater than 0")

        food = self._owned(food_id, user_id, lock=True)
        food.quantity = max(food.quantity - portion, 0)
        self._commit(f"reduce stock of food {food_id}")
        self.db.refresh(food)
        logger.info(f"Food {food_id} reduced by {portion}, {food.quantity} {food.unit} left")
        return food

    def delete_food(self, food_id: uuid.UUID, user_id: uuid.UUID) -> None:
        food = self._owned(food_id, user_id)
        self.db.delete(food)
        self._commit(f"delete food {food_id}")
        logger.info(f"Deleted food {food_id} for user {user_id}")

    # ========================================================================
    # READS
    # ========================================================================

    def _owned(self, food_id: uuid.UUID, user_id: uuid.UUID, lock: bool = False) -> FoodItem:
        query = self.db.query(FoodItem).filter(FoodItem.id == food_id)
        if lock:
            query = query.with_for_update()
        food = query.first()
        if not food:
            raise FoodItemNotFoundError(f"Food {food_id} not found")
        if food.user_id != user_id:
            raise FoodOwnershipError()
        return food

    def get_food(self, food_id: uuid.UUID, user_id: uuid.UUID) -> FoodItem:
        return self._owned(food_id, user_id)

    def list_foods(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        category: Optional[str] = None,
        location: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[FoodItem], int]:
        page = max(page, 1)
        limit = limit if limit >= 1 else DEFAULT_PAGE_SIZE

        query = self.db.query(FoodItem).filter(FoodItem.user_id == user_id)
        if category:
            query = query.filter(FoodItem.category == category)
        if location:
            query = query.filter(FoodItem.location == location)
        if search:
            query = query.filter(FoodItem.name.ilike(f"%{search}%"))

        total = query.count()
        foods = (
            query.order_by(FoodItem.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return foods, total

    def expiring_soon(self, user_id: uuid.UUID, days: int = 3, now: Optional[datetime] = None) -> List[FoodItem]:
        """Stocked items expiring between now and now + days, soonest first"""
        now = now or datetime.utcnow()
        return self.db.query(FoodItem).filter(
            FoodItem.user_id == user_id,
            FoodItem.quantity > 0,
            FoodItem.expiry_date.isnot(None),
            FoodItem.expiry_date >= now,
            FoodItem.expiry_date <= now + timedelta(days=days),
        ).order_by(FoodItem.expiry_date.asc()).all()

    def expired(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> List[FoodItem]:
        now = now or datetime.utcnow()
        return self.db.query(FoodItem).filter(
            FoodItem.user_id == user_id,
            FoodItem.quantity > 0,
            FoodItem.expiry_date.isnot(None),
            FoodItem.expiry_date < now,
        ).order_by(FoodItem.expiry_date.asc()).all()

    def statistics(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> Dict:
        now = now or datetime.utcnow()
        foods = self.db.query(FoodItem).filter(FoodItem.user_id == user_id).all()

        by_category = {}
        for food in foods:
            by_category[food.category] = by_category.get(food.category, 0) + 1

        return {
            "total_items": len(foods),
            "in_stock": sum(1 for food in foods if food.quantity > 0),
            "expired": sum(1 for food in foods if food.quantity > 0 and food.is_expired(now)),
            "expiring_soon": len(self.expiring_soon(user_id, now=now)),
            "by_category": by_category,
        }
