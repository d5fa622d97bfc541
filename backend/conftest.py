# backend/conftest.py
"""
Pytest configuration and fixtures for the pantry rewards tests
Provides reusable fixtures for database, users, vouchers, foods, supermarkets, API client
"""

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from pantry_rewards.models.database import (
    Base, User, Voucher, FoodItem, DonationMarket, DiscountType, Supermarket, SupermarketProduct
)
from pantry_rewards.models.database import get_db
from pantry_rewards.main import app
from pantry_rewards.services.auth import create_access_token, get_password_hash

# ===== DATABASE FIXTURES =====

@pytest.fixture(scope="function")
def test_engine():
    """In-memory SQLite shared by every session of one test"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """
    Provide a clean test database for each test
    Uses in-memory SQLite for speed
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session(test_db):
    """Alias for test_db for clearer test code"""
    return test_db


# ===== USER FIXTURES =====

def make_user(db: Session, email: str) -> User:
    user = User(
        email=email,
        name=email.split("@")[0],
        hashed_password=get_password_hash("TestPass123"),
        is_active=True,
        created_at=datetime.utcnow()
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(test_db: Session):
    """Create a basic test user"""
    return make_user(test_db, "testuser@example.com")


@pytest.fixture
def second_test_user(test_db: Session):
    """Create a second test user for multi-user tests"""
    return make_user(test_db, "testuser2@example.com")


# ===== VOUCHER FIXTURES =====

def make_voucher(db: Session, **overrides) -> Voucher:
    now = datetime.utcnow()
    values = dict(
        code=f"VCH-{len(db.query(Voucher).all()) + 1:03d}",
        title="Diskon 10% Sayur Segar",
        description="10% off fresh vegetables",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=10,
        min_purchase=50000,
        max_discount=20000,
        points_required=100,
        store_name="Pasar Segar",
        store_category="grocery",
        total_stock=10,
        remaining_stock=10,
        valid_from=now - timedelta(days=1),
        valid_until=now + timedelta(days=30),
        is_active=True,
    )
    values.update(overrides)
    voucher = Voucher(**values)
    db.add(voucher)
    db.commit()
    db.refresh(voucher)
    return voucher


@pytest.fixture
def voucher_factory(test_db: Session):
    def _make(**overrides):
        return make_voucher(test_db, **overrides)
    return _make


@pytest.fixture
def test_voucher(voucher_factory):
    return voucher_factory()


# ===== PANTRY FIXTURES =====

def make_food(db: Session, user: User, name: str, **overrides) -> FoodItem:
    now = datetime.utcnow()
    values = dict(
        user_id=user.id,
        name=name,
        category="vegetable",
        quantity=1,
        initial_quantity=1,
        unit="pcs",
        purchase_date=now,
        expiry_date=now + timedelta(days=60),
        location="middle",
    )
    values.update(overrides)
    food = FoodItem(**values)
    db.add(food)
    db.commit()
    db.refresh(food)
    return food


@pytest.fixture
def food_factory(test_db: Session, test_user: User):
    def _make(name: str, user: User = None, **overrides):
        return make_food(test_db, user or test_user, name, **overrides)
    return _make


@pytest.fixture
def test_market(test_db: Session):
    market = DonationMarket(
        name="Bank Pangan Jakarta",
        description="Community food bank",
        address="Jl. Sudirman 1",
        is_active=True
    )
    test_db.add(market)
    test_db.commit()
    test_db.refresh(market)
    return market


# ===== SUPERMARKET FIXTURES =====

def make_supermarket(db: Session, name: str) -> Supermarket:
    supermarket = Supermarket(
        name=name,
        location="Jakarta Selatan",
        address="Jl. Fatmawati 10",
        open_time="08:00",
        close_time="22:00",
        rating=4.5
    )
    db.add(supermarket)
    db.commit()
    db.refresh(supermarket)
    return supermarket


@pytest.fixture
def test_supermarket(test_db: Session):
    return make_supermarket(test_db, "Pasar Segar")


@pytest.fixture
def supermarket_factory(test_db: Session):
    def _make(name: str):
        return make_supermarket(test_db, name)
    return _make


@pytest.fixture
def product_factory(test_db: Session, test_supermarket: Supermarket):
    def _make(name: str, price: float, supermarket: Supermarket = None, **overrides):
        values = dict(
            supermarket_id=(supermarket or test_supermarket).id,
            name=name,
            category="vegetable",
            price=price,
            unit="pcs",
            stock=10,
            expiry_days=5,
        )
        values.update(overrides)
        product = SupermarketProduct(**values)
        test_db.add(product)
        test_db.commit()
        test_db.refresh(product)
        return product
    return _make


# ===== AUTHENTICATION FIXTURES =====

@pytest.fixture
def auth_token(test_user: User):
    """Create a valid JWT token for test user"""
    return create_access_token(data={"sub": str(test_user.id)})


@pytest.fixture
def auth_headers(auth_token: str):
    """Create authentication headers"""
    return {"Authorization": f"Bearer {auth_token}"}


# ===== API CLIENT FIXTURES =====

@pytest.fixture
def client(session_factory):
    """Test client with get_db bound to the in-memory database"""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(client: TestClient, auth_headers: dict):
    """Create authenticated test client"""
    client.headers.update(auth_headers)
    return client


# ===== MOCK FIXTURES =====

@pytest.fixture
def mock_redis():
    """Redis stand-in that always misses and accepts writes"""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.setex.return_value = True
    return redis_client


# ===== PYTEST CONFIGURATION =====

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (services working together)"
    )
