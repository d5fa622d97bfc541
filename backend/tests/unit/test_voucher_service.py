"""
Test voucher browsing, redemption and the redemption lifecycle
"""

import pytest
import uuid
from datetime import datetime, timedelta
from sqlalchemy import update

from pantry_rewards.core.exceptions import (
    InactiveVoucherError, InsufficientPointsError, InvalidRedemptionStateError,
    OutOfStockError, RedemptionNotFoundError, VoucherExpiredError,
    VoucherNotFoundError, VoucherNotYetValidError
)
from pantry_rewards.models.database import (
    PointsTransaction, RedemptionStatus, TransactionType, Voucher, VoucherRedemption
)
from pantry_rewards.services.points_ledger import PointsLedger, POINTS_SOURCE_FOOD_SAVE
from pantry_rewards.services.voucher_service import (
    EXPIRY_POLICY_FIXED_WINDOW, VoucherService, generate_redemption_code
)

pytestmark = pytest.mark.unit


@pytest.fixture
def service(test_db):
    return VoucherService(test_db)


@pytest.fixture
def fund(test_db):
    ledger = PointsLedger(test_db)

    def _fund(user, amount):
        ledger.earn(user.id, amount, POINTS_SOURCE_FOOD_SAVE)
    return _fund


def available(test_db, user):
    return PointsLedger(test_db).get_account(user.id).available_points


# ============================================================================
# REDEEM
# ============================================================================

def test_redeem_last_unit(service, test_db, test_user, second_test_user, voucher_factory, fund):
    voucher = voucher_factory(total_stock=1, remaining_stock=1, points_required=100)
    fund(test_user, 150)
    fund(second_test_user, 500)

    redemption = service.redeem(test_user.id, voucher.id)

    assert redemption.status == RedemptionStatus.ACTIVE
    assert redemption.points_spent == 100
    assert redemption.redemption_code.startswith("RDM-")
    assert redemption.expires_at == voucher.valid_until
    assert test_db.get(Voucher, voucher.id).remaining_stock == 0
    assert available(test_db, test_user) == 50

    with pytest.raises(OutOfStockError):
        service.redeem(second_test_user.id, voucher.id)
    assert available(test_db, second_test_user) == 500


def test_redeem_records_spend_transaction(service, test_db, test_user, test_voucher, fund):
    fund(test_user, 100)
    service.redeem(test_user.id, test_voucher.id)

    spend = test_db.query(PointsTransaction).filter(PointsTransaction.type == TransactionType.SPEND).one()
    assert spend.amount == test_voucher.points_required
    assert spend.source == "voucher_redeem"
    assert spend.reference_type == "voucher"
    assert spend.reference_id == str(test_voucher.id)


def test_redeem_without_points_account(service, test_db, test_user, test_voucher):
    with pytest.raises(InsufficientPointsError) as exc_info:
        service.redeem(test_user.id, test_voucher.id)

    assert exc_info.value.available == 0
    assert exc_info.value.required == test_voucher.points_required
    assert test_db.get(Voucher, test_voucher.id).remaining_stock == test_voucher.total_stock


def test_redeem_insufficient_points_changes_nothing(service, test_db, test_user, test_voucher, fund):
    fund(test_user, 99)

    with pytest.raises(InsufficientPointsError):
        service.redeem(test_user.id, test_voucher.id)

    assert available(test_db, test_user) == 99
    assert test_db.get(Voucher, test_voucher.id).remaining_stock == 10
    assert test_db.query(VoucherRedemption).count() == 0


def test_redeem_unknown_voucher(service, test_user):
    with pytest.raises(VoucherNotFoundError):
        service.redeem(test_user.id, uuid.uuid4())


def test_validation_order_inactive_before_stock_and_dates(service, test_user, voucher_factory, fund):
    fund(test_user, 1000)
    voucher = voucher_factory(
        is_active=False,
        remaining_stock=0,
        valid_until=datetime.utcnow() - timedelta(days=1),
    )
    with pytest.raises(InactiveVoucherError):
        service.redeem(test_user.id, voucher.id)


def test_validation_order_stock_before_dates(service, test_user, voucher_factory, fund):
    fund(test_user, 1000)
    voucher = voucher_factory(remaining_stock=0, valid_until=datetime.utcnow() - timedelta(days=1))
    with pytest.raises(OutOfStockError):
        service.redeem(test_user.id, voucher.id)


def test_validation_order_dates_before_points(service, test_user, voucher_factory):
    expired = voucher_factory(valid_until=datetime.utcnow() - timedelta(days=1))
    upcoming = voucher_factory(valid_from=datetime.utcnow() + timedelta(days=2))

    with pytest.raises(VoucherExpiredError):
        service.redeem(test_user.id, expired.id)
    with pytest.raises(VoucherNotYetValidError):
        service.redeem(test_user.id, upcoming.id)


def test_stock_taken_by_concurrent_redeem_rolls_back_points(service, test_db, test_user, voucher_factory, fund, monkeypatch):
    """Stock disappears after validation; the spend must be undone with it"""
    voucher = voucher_factory(total_stock=1, remaining_stock=1)
    fund(test_user, 300)

    original_validate = VoucherService._validate_voucher

    def validate_then_sell_out(self, found, voucher_id, now):
        result = original_validate(self, found, voucher_id, now)
        self.db.execute(
            update(Voucher)
            .where(Voucher.id == voucher_id)
            .values(remaining_stock=0)
            .execution_options(synchronize_session=False)
        )
        return result

    monkeypatch.setattr(VoucherService, "_validate_voucher", validate_then_sell_out)

    with pytest.raises(OutOfStockError):
        service.redeem(test_user.id, voucher.id)

    assert available(test_db, test_user) == 300
    assert test_db.query(VoucherRedemption).count() == 0
    assert test_db.query(PointsTransaction).filter(
        PointsTransaction.type == TransactionType.SPEND
    ).count() == 0


def test_two_sessions_race_for_last_unit(session_factory, test_db, test_user, second_test_user, voucher_factory, fund):
    """The slower session still sees stock 1 when it redeems; the guarded decrement must reject it"""
    voucher = voucher_factory(total_stock=1, remaining_stock=1, points_required=100)
    fund(test_user, 100)
    fund(second_test_user, 100)

    first_db = session_factory()
    second_db = session_factory()
    try:
        assert second_db.get(Voucher, voucher.id).remaining_stock == 1

        VoucherService(first_db).redeem(test_user.id, voucher.id)
        with pytest.raises(OutOfStockError):
            VoucherService(second_db).redeem(second_test_user.id, voucher.id)
    finally:
        first_db.close()
        second_db.close()

    test_db.expire_all()
    assert test_db.get(Voucher, voucher.id).remaining_stock == 0
    assert test_db.query(VoucherRedemption).count() == 1
    assert available(test_db, test_user) == 0
    assert available(test_db, second_test_user) == 100


def test_repeated_redemptions_never_oversell(service, test_db, test_user, voucher_factory, fund):
    voucher = voucher_factory(total_stock=3, remaining_stock=3, points_required=10)
    fund(test_user, 100)

    outcomes = []
    for _ in range(5):
        try:
            service.redeem(test_user.id, voucher.id)
            outcomes.append("ok")
        except OutOfStockError:
            outcomes.append("out")

    assert outcomes == ["ok", "ok", "ok", "out", "out"]
    assert test_db.get(Voucher, voucher.id).remaining_stock == 0
    assert available(test_db, test_user) == 70


def test_redemption_codes_are_unique(service, test_db, test_user, voucher_factory, fund):
    voucher = voucher_factory(points_required=10)
    fund(test_user, 100)

    codes = {service.redeem(test_user.id, voucher.id).redemption_code for _ in range(5)}
    assert len(codes) == 5
    assert len({generate_redemption_code() for _ in range(1000)}) == 1000


def test_fixed_window_expiry_policy(test_db, test_user, test_voucher, fund):
    fund(test_user, 100)
    now = datetime.utcnow()

    redemption = VoucherService(test_db, expiry_policy=EXPIRY_POLICY_FIXED_WINDOW, window_days=7).redeem(
        test_user.id, test_voucher.id, now=now
    )
    assert redemption.expires_at == now + timedelta(days=7)


def test_unknown_expiry_policy(test_db):
    with pytest.raises(ValueError):
        VoucherService(test_db, expiry_policy="forever")


# ============================================================================
# LIFECYCLE
# ============================================================================

def test_mark_used_once(service, test_user, test_voucher, fund):
    fund(test_user, 100)
    redemption = service.redeem(test_user.id, test_voucher.id)

    used = service.mark_used(redemption.id, user_id=test_user.id)
    assert used.status == RedemptionStatus.USED
    assert used.used_at is not None

    with pytest.raises(InvalidRedemptionStateError):
        service.mark_used(redemption.id, user_id=test_user.id)


def test_mark_used_after_expiry(service, test_user, test_voucher, fund):
    fund(test_user, 100)
    redemption = service.redeem(test_user.id, test_voucher.id)
    later = redemption.expires_at + timedelta(minutes=1)

    assert redemption.effective_status(later) == RedemptionStatus.EXPIRED
    with pytest.raises(InvalidRedemptionStateError):
        service.mark_used(redemption.id, now=later)


def test_mark_used_by_other_user(service, test_user, second_test_user, test_voucher, fund):
    fund(test_user, 100)
    redemption = service.redeem(test_user.id, test_voucher.id)

    with pytest.raises(RedemptionNotFoundError):
        service.mark_used(redemption.id, user_id=second_test_user.id)


def test_active_redemptions_excludes_used_and_expired(service, test_user, voucher_factory, fund):
    fund(test_user, 300)
    short = voucher_factory(valid_until=datetime.utcnow() + timedelta(days=2))
    long = voucher_factory(valid_until=datetime.utcnow() + timedelta(days=20))
    used_one = voucher_factory()

    first = service.redeem(test_user.id, short.id)
    second = service.redeem(test_user.id, long.id)
    service.mark_used(service.redeem(test_user.id, used_one.id).id)

    active = service.active_redemptions(test_user.id)
    assert [r.id for r in active] == [first.id, second.id]

    in_a_week = datetime.utcnow() + timedelta(days=7)
    assert [r.id for r in service.active_redemptions(test_user.id, now=in_a_week)] == [second.id]


def test_redemption_active_at_its_expiry_instant(service, test_user, test_voucher, fund):
    fund(test_user, 100)
    redemption = service.redeem(test_user.id, test_voucher.id)
    boundary = redemption.expires_at

    assert redemption.effective_status(boundary) == RedemptionStatus.ACTIVE
    assert [r.id for r in service.active_redemptions(test_user.id, now=boundary)] == [redemption.id]
    assert service.mark_used(redemption.id, now=boundary).status == RedemptionStatus.USED


def test_lookup_by_code_and_history(service, test_user, test_voucher, fund):
    fund(test_user, 200)
    first = service.redeem(test_user.id, test_voucher.id)
    service.redeem(test_user.id, test_voucher.id)

    assert service.get_redemption_by_code(first.redemption_code).id == first.id
    with pytest.raises(RedemptionNotFoundError):
        service.get_redemption_by_code("RDM-NOPE")

    redemptions, total = service.user_redemptions(test_user.id)
    assert total == 2
    assert all(r.voucher.id == test_voucher.id for r in redemptions)


# ============================================================================
# CATALOGUE
# ============================================================================

def test_list_available_vouchers(service, voucher_factory):
    cheap = voucher_factory(points_required=50, store_name="Toko Sayur")
    pricey = voucher_factory(points_required=500, store_name="Supermarket Besar", store_category="supermarket")
    voucher_factory(is_active=False)
    voucher_factory(remaining_stock=0)
    voucher_factory(valid_until=datetime.utcnow() - timedelta(days=1))

    vouchers, total = service.list_available_vouchers()
    assert total == 2
    assert [v.id for v in vouchers] == [cheap.id, pricey.id]

    vouchers, total = service.list_available_vouchers(store_category="supermarket")
    assert [v.id for v in vouchers] == [pricey.id]

    vouchers, total = service.list_available_vouchers(store_name="sayur")
    assert [v.id for v in vouchers] == [cheap.id]
