#/backend/pantry_rewards/services/order_service.py
"""
Pickup orders with voucher discounts.

Checkout is one unit of work:

    1. product stock reserved (conditional decrement per line)
    2. the voucher redemption, if any, moves active -> used
    3. discount computed from the voucher and the order total
    4. order and its lines written

Picking the order up moves its lines into the user's pantry; cancelling a
pending order puts the stock back. A redemption spent on an order stays used
even if the order is cancelled.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from datetime import datetime, timedelta
import logging
import uuid

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from pantry_rewards.core.config import settings
from pantry_rewards.core.exceptions import (
    AppError, InvalidOrderStateError, InvalidStatusError, MinimumPurchaseNotMetError,
    OrderNotFoundError, ProductNotFoundError, ProductOutOfStockError,
    TransactionConflictError, ValidationError
)
from pantry_rewards.models.database import (
    DiscountType, FoodItem, Order, OrderItem, OrderStatus, SupermarketProduct, Voucher
)
from pantry_rewards.services.supermarket_service import SupermarketService
from pantry_rewards.services.voucher_service import VoucherService

logger = logging.getLogger(__name__)

PURCHASE_ADD_METHOD = "purchase"


@dataclass(frozen=True)
class OrderLine:
    product_id: uuid.UUID
    quantity: int


def generate_order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


def compute_discount(voucher: Voucher, subtotal: float) -> float:
    """
    Discount a voucher grants on an order total.

    Raises MinimumPurchaseNotMetError below min_purchase. Percentage
    discounts are capped at max_discount, and no discount exceeds the total.
    """
    min_purchase = voucher.min_purchase or 0
    if subtotal < min_purchase:
        raise MinimumPurchaseNotMetError(min_purchase=min_purchase, subtotal=subtotal)

    if voucher.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * voucher.discount_value / 100
    else:
        discount = voucher.discount_value

    if voucher.max_discount:
        discount = min(discount, voucher.max_discount)
    return round(min(discount, subtotal), 2)


def merge_lines(lines: Sequence[OrderLine]) -> Dict[uuid.UUID, int]:
    """Validated quantities per product, first-seen order kept"""
    if not lines:
        raise ValidationError("Order must contain at least one item")

    merged = {}
    for line in lines:
        quantity = line.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity must be a positive integer, got {quantity!r}")
        merged[line.product_id] = merged.get(line.product_id, 0) + quantity
    return merged


class OrderService:
    """Checkout, pickup and cancellation of supermarket orders"""

    def __init__(self, db: Session, vouchers: Optional[VoucherService] = None):
        self.db = db
        self.supermarkets = SupermarketService(db)
        self.vouchers = vouchers or VoucherService(db)

    # ========================================================================
    # CHECKOUT
    # ========================================================================

    def _reserve(self, product_id: uuid.UUID, quantity: int, supermarket_id: uuid.UUID) -> SupermarketProduct:
        product = (
            self.db.query(SupermarketProduct)
            .filter(SupermarketProduct.id == product_id)
            .with_for_update()
            .first()
        )
        if not product:
            raise ProductNotFoundError(f"Product {product_id} not found")
        if product.supermarket_id != supermarket_id:
            raise ValidationError(f"{product.name} is not sold by this supermarket")
        if product.stock < quantity:
            raise ProductOutOfStockError(f"Only {product.stock} {product.unit} of {product.name} left")

        result = self.db.execute(
            update(SupermarketProduct)
            .where(SupermarketProduct.id == product.id, SupermarketProduct.stock >= quantity)
            .values(stock=SupermarketProduct.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ProductOutOfStockError(f"{product.name} sold out while ordering")
        return product

    def create_order(
        self,
        user_id: uuid.UUID,
        supermarket_id: uuid.UUID,
        lines: Sequence[OrderLine],
        redemption_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Place a pickup order, optionally discounted by one of the user's
        active redemptions. Prices come from the catalogue, never the client.
        """
        now = now or datetime.utcnow()
        quantities = merge_lines(lines)

        try:
            supermarket = self.supermarkets.get_supermarket(supermarket_id)
            order = Order(
                user_id=user_id,
                supermarket_id=supermarket.id,
                supermarket_name=supermarket.name,
                order_number=generate_order_number(now),
                status=OrderStatus.PENDING_PICKUP,
                created_at=now,
            )

            total = 0.0
            for position, (product_id, quantity) in enumerate(quantities.items()):
                product = self._reserve(product_id, quantity, supermarket.id)
                subtotal = round(product.price * quantity, 2)
                total += subtotal
                order.items.append(OrderItem(
                    product_id=product.id,
                    position=position,
                    product_name=product.name,
                    category=product.category,
                    quantity=quantity,
                    unit=product.unit,
                    price=product.price,
                    subtotal=subtotal,
                    expiry_days=product.expiry_days,
                ))
            total = round(total, 2)

            discount = 0.0
            if redemption_id is not None:
                redemption = self.vouchers._apply_use(redemption_id, user_id, now)
                discount = compute_discount(redemption.voucher, total)
                order.redemption_id = redemption.id
                order.voucher_code = redemption.redemption_code
                order.voucher_title = redemption.voucher.title

            order.total_amount = total
            order.discount_amount = discount
            order.final_amount = round(total - discount, 2)

            self.db.add(order)
            self.db.flush()
            self.db.commit()

        except AppError as e:
            self.db.rollback()
            logger.info(f"Order by user {user_id} at supermarket {supermarket_id} rejected: {e.detail}")
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Order by user {user_id} at supermarket {supermarket_id} rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(order)
        logger.info(
            f"User {user_id} placed order {order.order_number}: total {order.total_amount:g}, "
            f"discount {order.discount_amount:g}, pay {order.final_amount:g}"
        )
        return order

    # ========================================================================
    # PICKUP / CANCEL
    # ========================================================================

    def _pending_order(self, user_id: uuid.UUID, order_id: uuid.UUID) -> Order:
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.user_id == user_id)
            .with_for_update()
            .first()
        )
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if order.status != OrderStatus.PENDING_PICKUP:
            raise InvalidOrderStateError(f"Order is {order.status.value}, not pending pickup")
        return order

    def _transition(self, order: Order, status: OrderStatus, now: datetime, **values):
        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.PENDING_PICKUP)
            .values(status=status, updated_at=now, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidOrderStateError("Order was changed concurrently")

    def confirm_pickup(self, user_id: uuid.UUID, order_id: uuid.UUID, now: Optional[datetime] = None) -> Order:
        """Complete the order and move its lines into the user's pantry"""
        now = now or datetime.utcnow()

        try:
            order = self._pending_order(user_id, order_id)
            self._transition(order, OrderStatus.COMPLETED, now, picked_up_at=now)

            for item in order.items:
                shelf_life = item.expiry_days or settings.purchase_default_expiry_days
                self.db.add(FoodItem(
                    user_id=user_id,
                    name=item.product_name,
                    category=item.category or "other",
                    quantity=item.quantity,
                    initial_quantity=item.quantity,
                    unit=item.unit,
                    purchase_date=now,
                    expiry_date=now + timedelta(days=shelf_life),
                    add_method=PURCHASE_ADD_METHOD,
                ))

            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Pickup of order {order_id} rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} picked up, {len(order.items)} items added to pantry")
        return order

    def cancel_order(self, user_id: uuid.UUID, order_id: uuid.UUID, now: Optional[datetime] = None) -> Order:
        """Cancel a pending order and return its stock"""
        now = now or datetime.utcnow()

        try:
            order = self._pending_order(user_id, order_id)
            self._transition(order, OrderStatus.CANCELLED, now)

            for item in order.items:
                self.db.execute(
                    update(SupermarketProduct)
                    .where(SupermarketProduct.id == item.product_id)
                    .values(stock=SupermarketProduct.stock + item.quantity)
                    .execution_options(synchronize_session=False)
                )

            self.db.commit()

        except AppError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Cancelling order {order_id} rolled back: {e}")
            raise TransactionConflictError() from e

        self.db.refresh(order)
        logger.info(f"Order {order.order_number} cancelled")
        return order

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_order(self, user_id: uuid.UUID, order_id: uuid.UUID) -> Order:
        order = (
            self.db.query(Order)
            .options(selectinload(Order.items))
            .filter(Order.id == order_id, Order.user_id == user_id)
            .first()
        )
        if not order:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def list_orders(self, user_id: uuid.UUID, status: Optional[str] = None) -> List[Order]:
        query = self.db.query(Order).options(selectinload(Order.items)).filter(Order.user_id == user_id)
        if status:
            try:
                query = query.filter(Order.status == OrderStatus(status))
            except ValueError:
                raise InvalidStatusError(f"Invalid order status: {status}")
        return query.order_by(Order.created_at.desc()).all()
