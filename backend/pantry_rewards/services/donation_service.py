#/backend/pantry_rewards/services/donation_service.py
"""
Food donations to partner markets.

A donation moves stock out of the user's pantry and credits
`points_per_donated_unit` points per unit, all in one transaction.
"""

from typing import Dict, List, Optional
import logging
import uuid

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import (
    AppError, DonationMarketNotFoundError, DonationNotFoundError, FoodItemNotFoundError,
    FoodOwnershipError, InactiveMarketError, InsufficientFoodQuantityError,
    InvalidStatusError, TransactionConflictError, ValidationError
)
from pantry_rewards.models.database import Donation, DonationMarket, DonationStatus, FoodItem
from pantry_rewards.services.points_ledger import PointsLedger, POINTS_SOURCE_DONATION

logger = logging.getLogger(__name__)


class DonationService:
    def __init__(self, db: Session, points_per_unit: Optional[int] = None):
        self.db = db
        self.ledger = PointsLedger(db)
        self.points_per_unit = points_per_unit if points_per_unit is not None else settings.points_per_donated_unit

    def list_markets(self) -> List[DonationMarket]:
        return self.db.query(DonationMarket).filter(
            DonationMarket.is_active.is_(True)
        ).order_by(DonationMarket.name.asc()).all()

    def get_market(self, market_id: int) -> DonationMarket:
        market = self.db.query(DonationMarket).filter(DonationMarket.id == market_id).first()
        if not market:
            raise DonationMarketNotFoundError(f"Market {market_id} not found")
        return market

    def donate(
        self,
        user_id: uuid.UUID,
        food_id: uuid.UUID,
        market_id: int,
        quantity: int,
        notes: Optional[str] = None,
    ) -> Donation:
        """
        Donate `quantity` units of a food item.

        Checks, in order: positive quantity, food exists, food is owned by
        the user, enough stock, market exists, market is active.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError("Donation quantity must be a positive integer")

        try:
            food = self.db.query(FoodItem).filter(FoodItem.id == food_id).with_for_update().first()
            if not food:
                raise FoodItemNotFoundError(f"Food {food_id} not found")
            if food.user_id != user_id:
                raise FoodOwnershipError("You don't own this food item")
            if food.quantity < quantity:
                raise InsufficientFoodQuantityError(
                    f"Only {food.quantity:g} {food.unit} of {food.name} left, cannot donate {quantity}"
                )

            market = self.get_market(market_id)
            if not market.is_active:
                raise InactiveMarketError(f"Market {market.name} is not active")

            points = quantity * self.points_per_unit
            donation = Donation(
                user_id=user_id,
                food_id=food.id,
                market_id=market.id,
                quantity=quantity,
                points_earned=points,
                status=DonationStatus.CONFIRMED,
                notes=notes,
            )
            self.db.add(donation)
            food.quantity -= quantity
            self.db.flush()

            if points > 0:
                self.ledger._apply_earn(
                    user_id,
                    points,
                    POINTS_SOURCE_DONATION,
                    reference_id=donation.id,
                    reference_type="donation",
                    description=f"Donated {quantity} {food.unit} of {food.name} to {market.name}",
                )

            self.db.commit()

        except AppError as e:
            self.db.rollback()
            logger.info(f"Donation of food {food_id} by user {user_id} rejected: {e.detail}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Donation of food {food_id} by user {user_id} rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(donation)
        logger.info(f"User {user_id} donated {quantity} of food {food_id} to market {market_id}, earned {points} points")
        return donation

    def user_donations(self, user_id: uuid.UUID) -> List[Donation]:
        return (
            self.db.query(Donation)
            .options(joinedload(Donation.market), joinedload(Donation.food))
            .filter(Donation.user_id == user_id)
            .order_by(Donation.created_at.desc())
            .all()
        )

    def stats(self, user_id: uuid.UUID) -> Dict:
        count, items, points = self.db.query(
            func.count(Donation.id),
            func.coalesce(func.sum(Donation.quantity), 0),
            func.coalesce(func.sum(Donation.points_earned), 0),
        ).filter(
            Donation.user_id == user_id,
            Donation.status != DonationStatus.CANCELLED,
        ).one()

        return {
            "total_donations": count,
            "total_items": int(items),
            "total_points": int(points),
        }

    def update_status(self, donation_id: int, status: str) -> Donation:
        try:
            new_status = DonationStatus(status)
        except ValueError:
            raise InvalidStatusError(f"Invalid donation status: {status}")

        donation = self.db.query(Donation).filter(Donation.id == donation_id).first()
        if not donation:
            raise DonationNotFoundError(f"Donation {donation_id} not found")

        donation.status = new_status
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update donation {donation_id}: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(donation)
        logger.info(f"Donation {donation_id} is now {new_status.value}")
        return donation
