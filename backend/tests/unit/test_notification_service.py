"""
Test pantry notifications derived from food state
"""

import pytest
from datetime import datetime, timedelta

from pantry_rewards.models.database import NotificationRead
from pantry_rewards.services.notification_service import (
    NotificationService, NotificationSeverity, NotificationType,
    expired_message, expiring_message, low_stock_message
)

pytestmark = pytest.mark.unit

NOW = datetime(2025, 3, 10, 9, 0, 0)


@pytest.fixture
def service(test_db):
    return NotificationService(test_db, lookahead_days=30, low_stock_threshold=20)


def ids(notifications):
    return [n.id for n in notifications]


# ============================================================================
# MESSAGES
# ============================================================================

def test_messages():
    assert expiring_message("Susu", 0) == "Susu expires today!"
    assert expiring_message("Susu", 1) == "Susu expires tomorrow!"
    assert expiring_message("Susu", 5) == "Susu expires in 5 days"
    assert expired_message("Tahu") == "Tahu has expired. Please check or discard it."
    assert low_stock_message("Beras", 0.5, "kg") == "Beras is running low. Only 0.5 kg left"


# ============================================================================
# EXPIRING
# ============================================================================

@pytest.mark.parametrize("delta, bucket, days, severity", [
    (timedelta(hours=5), "1day", 0, NotificationSeverity.CRITICAL),
    (timedelta(days=1, hours=2), "1day", 1, NotificationSeverity.CRITICAL),
    (timedelta(days=3, hours=1), "3days", 3, NotificationSeverity.CRITICAL),
    (timedelta(days=6), "1week", 6, NotificationSeverity.WARNING),
    (timedelta(days=20), "1month", 20, NotificationSeverity.INFO),
])
def test_expiring_buckets(service, test_user, food_factory, delta, bucket, days, severity):
    food = food_factory("Susu", expiry_date=NOW + delta)

    notifications = service.get_notifications(test_user.id, now=NOW)

    assert len(notifications) == 1
    notification = notifications[0]
    assert notification.id == f"expiring_{bucket}_{food.id}_{days}"
    assert notification.type == NotificationType.EXPIRING_SOON
    assert notification.severity == severity
    assert notification.days_until_expiry == days
    assert notification.message == expiring_message("Susu", days)


def test_expiring_titles(service, test_user, food_factory):
    food_factory("Roti", expiry_date=NOW + timedelta(hours=3))
    food_factory("Keju", expiry_date=NOW + timedelta(days=1, hours=3))

    titles = sorted(n.title for n in service.get_notifications(test_user.id, now=NOW))
    assert titles == ["Food Expiring Today!", "Food Expiring Tomorrow!"]


def test_items_beyond_lookahead_are_ignored(service, test_user, food_factory):
    food_factory("Beras", expiry_date=NOW + timedelta(days=45))
    food_factory("Garam", expiry_date=None)

    assert service.get_notifications(test_user.id, now=NOW) == []


def test_out_of_stock_items_are_ignored(service, test_user, food_factory):
    food_factory("Susu", quantity=0, expiry_date=NOW + timedelta(days=1))
    food_factory("Tahu", quantity=0, expiry_date=NOW - timedelta(days=1))

    assert service.get_notifications(test_user.id, now=NOW) == []


# ============================================================================
# EXPIRED / LOW STOCK
# ============================================================================

def test_expired_notification(service, test_user, food_factory):
    food = food_factory("Tahu", expiry_date=NOW - timedelta(days=2))

    notifications = service.get_notifications(test_user.id, now=NOW)

    assert ids(notifications) == [f"expired_{food.id}"]
    assert notifications[0].type == NotificationType.EXPIRED
    assert notifications[0].severity == NotificationSeverity.CRITICAL


def test_low_stock_notification(service, test_user, food_factory):
    low = food_factory("Beras", quantity=1, initial_quantity=10, unit="kg")
    food_factory("Minyak", quantity=5, initial_quantity=10)

    notifications = service.get_notifications(test_user.id, now=NOW)

    assert ids(notifications) == [f"lowstock_{low.id}"]
    assert notifications[0].message == "Beras is running low. Only 1.0 kg left"
    assert notifications[0].severity == NotificationSeverity.INFO


def test_low_stock_at_threshold(service, test_user, food_factory):
    food = food_factory("Gula", quantity=2, initial_quantity=10)
    assert ids(service.get_notifications(test_user.id, now=NOW)) == [f"lowstock_{food.id}"]


def test_low_stock_can_be_left_out(service, test_user, food_factory):
    food_factory("Beras", quantity=1, initial_quantity=10)
    assert service.get_expiring_notifications(test_user.id, now=NOW) == []


def test_order_is_expiring_then_expired_then_low_stock(service, test_user, food_factory):
    low = food_factory("Beras", quantity=1, initial_quantity=10)
    expired = food_factory("Tahu", expiry_date=NOW - timedelta(days=1))
    expiring = food_factory("Susu", expiry_date=NOW + timedelta(days=2, hours=1))

    notifications = service.get_notifications(test_user.id, now=NOW)

    assert [n.type for n in notifications] == [
        NotificationType.EXPIRING_SOON, NotificationType.EXPIRED, NotificationType.LOW_STOCK
    ]
    assert [n.food_id for n in notifications] == [expiring.id, expired.id, low.id]


def test_other_users_food_is_not_included(service, test_user, second_test_user, food_factory):
    food_factory("Susu", user=second_test_user, expiry_date=NOW + timedelta(days=1))
    assert service.get_notifications(test_user.id, now=NOW) == []


# ============================================================================
# READ STATE
# ============================================================================

def test_read_notifications_are_hidden(service, test_db, test_user, food_factory):
    food_factory("Susu", expiry_date=NOW + timedelta(days=3, hours=1))
    food_factory("Tahu", expiry_date=NOW - timedelta(days=1))
    first = service.get_notifications(test_user.id, now=NOW)[0]

    service.mark_as_read(test_user.id, first.id)
    service.mark_as_read(test_user.id, first.id)

    remaining = service.get_notifications(test_user.id, now=NOW)
    assert first.id not in ids(remaining)
    assert len(remaining) == 1
    assert test_db.query(NotificationRead).count() == 1


def test_expiring_notification_returns_when_days_change(service, test_user, food_factory):
    food_factory("Susu", expiry_date=NOW + timedelta(days=3, hours=1))
    first = service.get_notifications(test_user.id, now=NOW)[0]
    service.mark_as_read(test_user.id, first.id)

    two_days_later = service.get_notifications(test_user.id, now=NOW + timedelta(days=2))

    assert len(two_days_later) == 1
    assert two_days_later[0].id != first.id
    assert two_days_later[0].days_until_expiry == 1


def test_to_dict(service, test_user, food_factory):
    food = food_factory("Susu", expiry_date=NOW + timedelta(days=1, hours=1))
    payload = service.get_notifications(test_user.id, now=NOW)[0].to_dict()

    assert payload["type"] == "expiring_soon"
    assert payload["severity"] == "critical"
    assert payload["food_id"] == str(food.id)
    assert payload["expiry_date"] == food.expiry_date.isoformat()
    assert payload["created_at"] == NOW.isoformat()
