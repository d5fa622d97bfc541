#/backend/pantry_rewards/models/database.py
from sqlalchemy import (
    create_engine, Column, Integer, String, Float, JSON, DateTime, ForeignKey,
    Text, Boolean, Enum, Uuid, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from datetime import datetime
import enum
import uuid
from pantry_rewards.core.config import settings


Base = declarative_base()


def _engine_kwargs(url: str) -> dict:
    """Per-dialect connection options; PostgreSQL gets a statement timeout"""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "connect_args": {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"},
    }


# Create engine
engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Enums
class TransactionType(str, enum.Enum):
    EARN = "earn"
    SPEND = "spend"

class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class RedemptionStatus(str, enum.Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"

class DonationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class OrderStatus(str, enum.Enum):
    PENDING_PICKUP = "pending_pickup"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# User Tables
class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)

    # Relationships
    foods = relationship("FoodItem", back_populates="user", cascade="all, delete-orphan")
    points_account = relationship("PointsAccount", back_populates="user", uselist=False, cascade="all, delete-orphan")
    redemptions = relationship("VoucherRedemption", back_populates="user", cascade="all, delete-orphan")
    donations = relationship("Donation", back_populates="user", cascade="all, delete-orphan")
    notification_reads = relationship("NotificationRead", back_populates="user", cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="user", cascade="all, delete-orphan")

# Pantry Tables
class FoodItem(Base):
    """A food item in a user's storage"""
    __tablename__ = "food_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False)  # fruit, vegetable, meat, dairy, ...
    quantity = Column(Float, nullable=False, default=1)  # remaining
    initial_quantity = Column(Float, nullable=False, default=1)
    unit = Column(String(20), nullable=False, default="pcs")
    purchase_date = Column(DateTime, nullable=True)
    expiry_date = Column(DateTime, nullable=True, index=True)
    location = Column(String(20), nullable=True)  # upper, middle, lower, freezer
    is_halal = Column(Boolean, default=True)
    add_method = Column(String(20), default="manual")  # manual, scan, barcode
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="foods")

    def days_until_expiry(self, now: datetime = None):
        """Whole days left before expiry (truncated), None without expiry date"""
        if self.expiry_date is None:
            return None
        now = now or datetime.utcnow()
        return int((self.expiry_date - now).total_seconds() / 86400)

    def is_expired(self, now: datetime = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (now or datetime.utcnow())

# Recipe Tables
class Recipe(Base):
    """Recipe imported from the external provider"""
    __tablename__ = "recipes"
    __table_args__ = (UniqueConstraint("external_id", "source", name="uq_recipe_external"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), index=True, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    cook_time_min = Column(Integer, nullable=True)
    servings = Column(Integer, default=1)
    difficulty = Column(String(20), nullable=True)
    category = Column(String(50), nullable=True)
    cuisine = Column(String(50), nullable=True)
    ingredients = Column(JSON, default=dict)  # {"section name": ["ingredient", ...]}
    instructions = Column(JSON, default=list)  # List of steps
    external_id = Column(String(255), nullable=True, index=True)
    source = Column(String(50), nullable=True)
    source_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

# Rewards Tables
class PointsAccount(Base):
    __tablename__ = "points_accounts"
    __table_args__ = (
        CheckConstraint("available_points >= 0", name="ck_points_available_non_negative"),
        CheckConstraint("used_points >= 0", name="ck_points_used_non_negative"),
        CheckConstraint("total_points = available_points + used_points", name="ck_points_balanced"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), unique=True, nullable=False, index=True)
    total_points = Column(Integer, nullable=False, default=0)
    available_points = Column(Integer, nullable=False, default=0)
    used_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="points_account")
    transactions = relationship("PointsTransaction", back_populates="account")

class PointsTransaction(Base):
    """Append-only points history row"""
    __tablename__ = "points_transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_points_transaction_amount_positive"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    account_id = Column(Uuid, ForeignKey("points_accounts.id"), nullable=False, index=True)
    type = Column(Enum(TransactionType), nullable=False)
    amount = Column(Integer, nullable=False)
    source = Column(String(100), nullable=False)  # food_save, donation, voucher_redeem
    description = Column(Text, nullable=True)
    reference_id = Column(String(64), nullable=True)  # food id, voucher id, donation id
    reference_type = Column(String(50), nullable=True)  # food, voucher, donation
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    account = relationship("PointsAccount", back_populates="transactions")

class Voucher(Base):
    __tablename__ = "vouchers"
    __table_args__ = (
        CheckConstraint("remaining_stock >= 0", name="ck_voucher_stock_non_negative"),
        CheckConstraint("remaining_stock <= total_stock", name="ck_voucher_stock_bounded"),
        CheckConstraint("points_required > 0", name="ck_voucher_points_positive"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), unique=True, index=True, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Float, nullable=False)
    min_purchase = Column(Float, default=0)
    max_discount = Column(Float, nullable=True)  # cap for percentage vouchers
    points_required = Column(Integer, nullable=False)
    store_name = Column(String(200), nullable=True)
    store_category = Column(String(100), nullable=True)  # supermarket, grocery, organic, ...
    total_stock = Column(Integer, nullable=False)
    remaining_stock = Column(Integer, nullable=False)
    valid_from = Column(DateTime, nullable=False)
    valid_until = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True)
    terms_conditions = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    redemptions = relationship("VoucherRedemption", back_populates="voucher")

class VoucherRedemption(Base):
    __tablename__ = "voucher_redemptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    voucher_id = Column(Uuid, ForeignKey("vouchers.id"), nullable=False, index=True)
    points_spent = Column(Integer, nullable=False)
    redemption_code = Column(String(100), unique=True, index=True, nullable=False)
    # Stored status only moves active -> used; expiry is derived from expires_at
    status = Column(Enum(RedemptionStatus), nullable=False, default=RedemptionStatus.ACTIVE)
    redeemed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="redemptions")
    voucher = relationship("Voucher", back_populates="redemptions")

    def effective_status(self, now: datetime = None) -> RedemptionStatus:
        if self.status == RedemptionStatus.ACTIVE and (now or datetime.utcnow()) > self.expires_at:
            return RedemptionStatus.EXPIRED
        return self.status

# Donation Tables
class DonationMarket(Base):
    """Charity or market that accepts food donations"""
    __tablename__ = "donation_markets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    phone = Column(String(50), nullable=True)
    image_url = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    donations = relationship("Donation", back_populates="market")

class Donation(Base):
    __tablename__ = "donations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    food_id = Column(Uuid, ForeignKey("food_items.id"), nullable=False, index=True)
    market_id = Column(Integer, ForeignKey("donation_markets.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    points_earned = Column(Integer, default=0)
    status = Column(Enum(DonationStatus), default=DonationStatus.PENDING)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="donations")
    food = relationship("FoodItem")
    market = relationship("DonationMarket", back_populates="donations")

# Supermarket Tables
class Supermarket(Base):
    """Partner store whose products can be ordered for pickup"""
    __tablename__ = "supermarkets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, index=True)
    location = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    phone_number = Column(String(50), nullable=True)
    open_time = Column(String(5), nullable=True)  # "08:00"
    close_time = Column(String(5), nullable=True)
    rating = Column(Float, default=0)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    products = relationship("SupermarketProduct", back_populates="supermarket", cascade="all, delete-orphan")

class SupermarketProduct(Base):
    __tablename__ = "supermarket_products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    supermarket_id = Column(Uuid, ForeignKey("supermarkets.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, index=True)
    category = Column(String(50), nullable=False)  # same categories as FoodItem
    price = Column(Float, nullable=False)
    unit = Column(String(20), nullable=False, default="pcs")
    stock = Column(Integer, nullable=False, default=0)
    image_url = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    expiry_days = Column(Integer, nullable=True)  # shelf life once picked up
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supermarket = relationship("Supermarket", back_populates="products")

# Order Tables
class Order(Base):
    """Pickup order; a voucher redemption can discount it once"""
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("discount_amount >= 0", name="ck_order_discount_non_negative"),
        CheckConstraint("final_amount >= 0", name="ck_order_final_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    supermarket_id = Column(Uuid, ForeignKey("supermarkets.id"), nullable=False, index=True)
    supermarket_name = Column(String(255), nullable=False)
    order_number = Column(String(100), unique=True, index=True, nullable=False)
    status = Column(Enum(OrderStatus), nullable=False, default=OrderStatus.PENDING_PICKUP)
    total_amount = Column(Float, nullable=False)
    discount_amount = Column(Float, nullable=False, default=0)
    final_amount = Column(Float, nullable=False)
    redemption_id = Column(Uuid, ForeignKey("voucher_redemptions.id"), unique=True, nullable=True)
    voucher_code = Column(String(100), nullable=True)
    voucher_title = Column(String(200), nullable=True)
    picked_up_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="orders")
    supermarket = relationship("Supermarket")
    redemption = relationship("VoucherRedemption")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position")

class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("supermarket_products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)
    expiry_days = Column(Integer, nullable=True)

    order = relationship("Order", back_populates="items")

# Notification Tables
class NotificationRead(Base):
    """Which derived notifications a user has already read"""
    __tablename__ = "notification_reads"
    __table_args__ = (UniqueConstraint("user_id", "notification_id", name="uq_notification_read"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    notification_id = Column(String(255), nullable=False, index=True)
    read_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    user = relationship("User", back_populates="notification_reads")
