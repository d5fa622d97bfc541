#/backend/pantry_rewards/services/voucher_service.py
"""
Voucher Redemption Engine
=========================

Exchanges points for vouchers. A redemption is one unit of work:

    1. points spend (ledger)
    2. voucher stock decrement by exactly one
    3. redemption row with a unique code

If any step fails the whole unit is rolled back, so there is never a stock
decrement or redemption without the matching points spend, or the reverse.

Redemption lifecycle: the stored status only moves active -> used through
mark_used(). "Expired" is never written; it is derived by comparing now with
expires_at wherever validity matters.
"""

from typing import List, Optional, Tuple
from datetime import datetime, timedelta
import logging
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import (
    AppError, InactiveVoucherError, InsufficientPointsError, InvalidRedemptionStateError,
    OutOfStockError, RedemptionNotFoundError, TransactionConflictError,
    VoucherExpiredError, VoucherNotFoundError, VoucherNotYetValidError
)
from pantry_rewards.models.database import RedemptionStatus, Voucher, VoucherRedemption
from pantry_rewards.services.points_ledger import PointsLedger, POINTS_SOURCE_VOUCHER_REDEEM

logger = logging.getLogger(__name__)

EXPIRY_POLICY_VOUCHER_VALID_UNTIL = "voucher_valid_until"
EXPIRY_POLICY_FIXED_WINDOW = "fixed_window"

DEFAULT_PAGE_SIZE = 20


def generate_redemption_code() -> str:
    """Random code, unique without any cross-instance counter"""
    return f"RDM-{uuid.uuid4().hex[:12].upper()}"


class VoucherService:
    """Voucher browsing, redemption and usage"""

    def __init__(
        self,
        db: Session,
        expiry_policy: Optional[str] = None,
        window_days: Optional[int] = None,
    ):
        self.db = db
        self.ledger = PointsLedger(db)
        self.expiry_policy = expiry_policy or settings.redemption_expiry_policy
        self.window_days = window_days if window_days is not None else settings.redemption_window_days

        if self.expiry_policy not in (EXPIRY_POLICY_VOUCHER_VALID_UNTIL, EXPIRY_POLICY_FIXED_WINDOW):
            raise ValueError(f"Unknown redemption expiry policy: {self.expiry_policy}")

    # ========================================================================
    # VOUCHERS
    # ========================================================================

    def get_voucher(self, voucher_id: uuid.UUID) -> Voucher:
        voucher = self.db.query(Voucher).filter(Voucher.id == voucher_id).first()
        if not voucher:
            raise VoucherNotFoundError(f"Voucher {voucher_id} not found")
        return voucher

    def list_available_vouchers(
        self,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        store_name: Optional[str] = None,
        store_category: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Tuple[List[Voucher], int]:
        """Active, in-stock, unexpired vouchers, cheapest first"""
        now = now or datetime.utcnow()
        page = max(page, 1)
        limit = limit if limit >= 1 else DEFAULT_PAGE_SIZE

        query = self.db.query(Voucher).filter(
            Voucher.is_active.is_(True),
            Voucher.remaining_stock > 0,
            Voucher.valid_until >= now,
        )
        if store_name:
            query = query.filter(Voucher.store_name.ilike(f"%{store_name}%"))
        if store_category:
            query = query.filter(Voucher.store_category == store_category)

        total = query.count()
        vouchers = (
            query.order_by(Voucher.points_required.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return vouchers, total

    # ========================================================================
    # REDEMPTION
    # ========================================================================

    def _validate_voucher(self, voucher: Optional[Voucher], voucher_id: uuid.UUID, now: datetime) -> Voucher:
        if voucher is None:
            raise VoucherNotFoundError(f"Voucher {voucher_id} not found")
        if not voucher.is_active:
            raise InactiveVoucherError()
        if voucher.remaining_stock <= 0:
            raise OutOfStockError()
        if now < voucher.valid_from:
            raise VoucherNotYetValidError()
        if now > voucher.valid_until:
            raise VoucherExpiredError()
        return voucher

    def _expires_at(self, voucher: Voucher, now: datetime) -> datetime:
        if self.expiry_policy == EXPIRY_POLICY_FIXED_WINDOW:
            return now + timedelta(days=self.window_days)
        return voucher.valid_until

    def redeem(
        self,
        user_id: uuid.UUID,
        voucher_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> VoucherRedemption:
        """
        Redeem a voucher for the user.

        Validation order: exists, active, in stock, inside validity window,
        enough points. The first failure is raised and nothing is written.
        """
        now = now or datetime.utcnow()

        try:
            voucher = (
                self.db.query(Voucher)
                .filter(Voucher.id == voucher_id)
                .with_for_update()
                .first()
            )
            self._validate_voucher(voucher, voucher_id, now)

            account = self.ledger.find_account(user_id, lock=True)
            available = account.available_points if account else 0
            if available < voucher.points_required:
                raise InsufficientPointsError(required=voucher.points_required, available=available)

            self.ledger._apply_spend(
                user_id,
                voucher.points_required,
                POINTS_SOURCE_VOUCHER_REDEEM,
                reference_id=voucher.id,
                reference_type="voucher",
                description=f"Redeemed voucher: {voucher.title}",
            )

            # One redemption always takes exactly one unit of stock
            stock_update = self.db.execute(
                update(Voucher)
                .where(Voucher.id == voucher.id, Voucher.remaining_stock > 0)
                .values(remaining_stock=Voucher.remaining_stock - 1, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if stock_update.rowcount != 1:
                raise OutOfStockError()

            redemption = VoucherRedemption(
                user_id=user_id,
                voucher_id=voucher.id,
                points_spent=voucher.points_required,
                redemption_code=generate_redemption_code(),
                status=RedemptionStatus.ACTIVE,
                redeemed_at=now,
                expires_at=self._expires_at(voucher, now),
            )
            self.db.add(redemption)
            self.db.flush()

            self.db.commit()

        except AppError as e:
            self.db.rollback()
            logger.info(f"Redemption of voucher {voucher_id} by user {user_id} rejected: {e.detail}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Redemption of voucher {voucher_id} by user {user_id} rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(redemption)
        logger.info(
            f"User {user_id} redeemed voucher {voucher_id} for {redemption.points_spent} points "
            f"(code {redemption.redemption_code})"
        )
        return redemption

    def _apply_use(
        self,
        redemption_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        now: datetime,
    ) -> VoucherRedemption:
        """active -> used inside the caller's transaction, no commit"""
        query = self.db.query(VoucherRedemption).filter(VoucherRedemption.id == redemption_id)
        if user_id is not None:
            query = query.filter(VoucherRedemption.user_id == user_id)
        redemption = query.with_for_update().first()

        if not redemption:
            raise RedemptionNotFoundError(f"Redemption {redemption_id} not found")
        if redemption.status != RedemptionStatus.ACTIVE:
            raise InvalidRedemptionStateError(f"Redemption is {redemption.status.value}, not active")
        if now > redemption.expires_at:
            raise InvalidRedemptionStateError("Redemption has expired")

        result = self.db.execute(
            update(VoucherRedemption)
            .where(
                VoucherRedemption.id == redemption.id,
                VoucherRedemption.status == RedemptionStatus.ACTIVE,
            )
            .values(status=RedemptionStatus.USED, used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidRedemptionStateError("Redemption was used concurrently")
        return redemption

    def mark_used(
        self,
        redemption_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> VoucherRedemption:
        """active -> used; rejected when already used or past expires_at"""
        now = now or datetime.utcnow()

        try:
            redemption = self._apply_use(redemption_id, user_id, now)
            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Marking redemption {redemption_id} as used failed: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(redemption)
        logger.info(f"Redemption {redemption_id} marked as used")
        return redemption

    # ========================================================================
    # REDEMPTION QUERIES
    # ========================================================================

    def get_redemption_by_code(self, code: str) -> VoucherRedemption:
        redemption = (
            self.db.query(VoucherRedemption)
            .options(joinedload(VoucherRedemption.voucher))
            .filter(VoucherRedemption.redemption_code == code)
            .first()
        )
        if not redemption:
            raise RedemptionNotFoundError(f"Redemption code {code} not found")
        return redemption

    def user_redemptions(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Tuple[List[VoucherRedemption], int]:
        page = max(page, 1)
        limit = limit if limit >= 1 else DEFAULT_PAGE_SIZE

        query = self.db.query(VoucherRedemption).filter(VoucherRedemption.user_id == user_id)
        total = query.count()
        redemptions = (
            query.options(joinedload(VoucherRedemption.voucher))
            .order_by(VoucherRedemption.redeemed_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return redemptions, total

    def active_redemptions(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> List[VoucherRedemption]:
        """Redemptions still usable right now, soonest expiry first"""
        now = now or datetime.utcnow()
        return (
            self.db.query(VoucherRedemption)
            .options(joinedload(VoucherRedemption.voucher))
            .filter(
                VoucherRedemption.user_id == user_id,
                VoucherRedemption.status == RedemptionStatus.ACTIVE,
                VoucherRedemption.expires_at >= now,
            )
            .order_by(VoucherRedemption.expires_at.asc())
            .all()
        )
