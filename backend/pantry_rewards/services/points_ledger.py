#/backend/pantry_rewards/services/points_ledger.py
"""
Points Ledger
=============

Per-user points balance plus an append-only transaction log.

Balance invariant, enforced on every write:
    available_points >= 0, used_points >= 0
    total_points == available_points + used_points

Writes lock the account row (SELECT ... FOR UPDATE) and apply the balance
change as a conditional UPDATE, so two concurrent spends can never both pass
against the same stale balance. The `_apply_*` methods do not commit; callers
that need a bigger unit of work (voucher redemption, donations) compose them
inside their own transaction.
"""

from typing import List, Optional, Tuple, Union
from datetime import datetime
import logging
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pantry_rewards.core.exceptions import (
    AppError, InvalidAmountError, InsufficientPointsError,
    PointsAccountNotFoundError, TransactionConflictError
)
from pantry_rewards.models.database import PointsAccount, PointsTransaction, TransactionType

logger = logging.getLogger(__name__)

# Earning rules
POINTS_SOURCE_FOOD_SAVE = "food_save"
POINTS_SOURCE_DONATION = "donation"
POINTS_SOURCE_VOUCHER_REDEEM = "voucher_redeem"

DEFAULT_PAGE_SIZE = 20

ReferenceId = Optional[Union[str, int, uuid.UUID]]


def validate_amount(amount) -> int:
    # bool is an int subclass, reject it explicitly
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount)
    return amount


class PointsLedger:
    """Earn/spend operations over a user's points account"""

    def __init__(self, db: Session):
        self.db = db

    # ========================================================================
    # READS
    # ========================================================================

    def find_account(self, user_id: uuid.UUID, lock: bool = False) -> Optional[PointsAccount]:
        query = self.db.query(PointsAccount).filter(PointsAccount.user_id == user_id)
        if lock:
            query = query.with_for_update()
        return query.first()

    def get_account(self, user_id: uuid.UUID) -> PointsAccount:
        """Get the user's account, creating an empty one on first access"""
        account = self.find_account(user_id)
        if account:
            return account
        try:
            account = self._create_account(user_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create points account for user {user_id}: {e}")
            raise TransactionConflictError() from e
        self.db.refresh(account)
        return account

    def history(
        self,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Tuple[List[PointsTransaction], int]:
        """Transactions newest first, plus the total count"""
        page = max(page, 1)
        limit = limit if limit >= 1 else DEFAULT_PAGE_SIZE

        account = self.find_account(user_id)
        if not account:
            return [], 0

        query = self.db.query(PointsTransaction).filter(PointsTransaction.account_id == account.id)
        total = query.count()
        transactions = (
            query.order_by(PointsTransaction.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return transactions, total

    # ========================================================================
    # WRITES (committing)
    # ========================================================================

    def earn(
        self,
        user_id: uuid.UUID,
        amount: int,
        source: str,
        reference_id: ReferenceId = None,
        reference_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PointsTransaction:
        """Credit points; creates the account on the first earning event"""
        validate_amount(amount)
        return self._in_transaction(
            self._apply_earn, user_id, amount, source, reference_id, reference_type, description
        )

    def spend(
        self,
        user_id: uuid.UUID,
        amount: int,
        source: str,
        reference_id: ReferenceId = None,
        reference_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PointsTransaction:
        """Debit points; all-or-nothing, raises InsufficientPointsError"""
        validate_amount(amount)
        return self._in_transaction(
            self._apply_spend, user_id, amount, source, reference_id, reference_type, description
        )

    def _in_transaction(self, operation, *args) -> PointsTransaction:
        try:
            transaction = operation(*args)
            self.db.commit()
        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Points transaction failed and was rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(transaction)
        return transaction

    # ========================================================================
    # WRITES (caller commits)
    # ========================================================================

    def _create_account(self, user_id: uuid.UUID) -> PointsAccount:
        """
        Insert an all-zero account. A concurrent insert for the same user hits
        the unique user_id index and surfaces as TransactionConflictError.
        """
        account = PointsAccount(user_id=user_id, total_points=0, available_points=0, used_points=0)
        self.db.add(account)
        self.db.flush()
        logger.info(f"Created points account for user {user_id}")
        return account

    def _apply_earn(
        self,
        user_id: uuid.UUID,
        amount: int,
        source: str,
        reference_id: ReferenceId = None,
        reference_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PointsTransaction:
        validate_amount(amount)

        account = self.find_account(user_id, lock=True) or self._create_account(user_id)

        self.db.execute(
            update(PointsAccount)
            .where(PointsAccount.id == account.id)
            .values(
                available_points=PointsAccount.available_points + amount,
                total_points=PointsAccount.total_points + amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

        transaction = self._append(
            account, TransactionType.EARN, amount, source,
            reference_id, reference_type,
            description or f"Earned {amount} points ({source})",
        )
        self.db.refresh(account)

        logger.info(
            f"User {user_id} earned {amount} points from {source} "
            f"(available={account.available_points}, total={account.total_points})"
        )
        return transaction

    def _apply_spend(
        self,
        user_id: uuid.UUID,
        amount: int,
        source: str,
        reference_id: ReferenceId = None,
        reference_type: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PointsTransaction:
        validate_amount(amount)

        account = self.find_account(user_id, lock=True)
        if not account:
            raise PointsAccountNotFoundError(f"User {user_id} has no points account")

        if account.available_points < amount:
            logger.info(f"User {user_id} cannot spend {amount} points, has {account.available_points}")
            raise InsufficientPointsError(required=amount, available=account.available_points)

        # The WHERE clause re-checks the balance inside the UPDATE itself
        result = self.db.execute(
            update(PointsAccount)
            .where(
                PointsAccount.id == account.id,
                PointsAccount.available_points >= amount,
            )
            .values(
                available_points=PointsAccount.available_points - amount,
                used_points=PointsAccount.used_points + amount,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(account)

        if result.rowcount != 1:
            logger.warning(f"Concurrent spend detected for user {user_id}, balance now {account.available_points}")
            raise InsufficientPointsError(required=amount, available=account.available_points)

        transaction = self._append(
            account, TransactionType.SPEND, amount, source,
            reference_id, reference_type,
            description or f"Spent {amount} points ({source})",
        )

        logger.info(
            f"User {user_id} spent {amount} points on {source} "
            f"(available={account.available_points}, used={account.used_points})"
        )
        return transaction

    def _append(
        self,
        account: PointsAccount,
        type_: TransactionType,
        amount: int,
        source: str,
        reference_id: ReferenceId,
        reference_type: Optional[str],
        description: str,
    ) -> PointsTransaction:
        transaction = PointsTransaction(
            account_id=account.id,
            type=type_,
            amount=amount,
            source=source,
            description=description,
            reference_id=str(reference_id) if reference_id is not None else None,
            reference_type=reference_type,
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction
