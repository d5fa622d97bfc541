# backend/pantry_rewards/api/orders.py
"""
Supermarket pickup orders. A voucher redemption can be applied at checkout.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import uuid
import logging

from pantry_rewards.models.database import get_db, User
from pantry_rewards.schemas.orders import OrderCreate, OrderResponse
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user
from pantry_rewards.services.order_service import OrderLine, OrderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Place a pickup order; prices and discount are computed server-side"""
    return OrderService(db).create_order(
        current_user.id,
        payload.supermarket_id,
        [OrderLine(product_id=item.product_id, quantity=item.quantity) for item in payload.items],
        redemption_id=payload.redemption_id
    )


@router.get("", response_model=List[OrderResponse])
def my_orders(
    order_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).list_orders(current_user.id, status=order_status)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).get_order(current_user.id, order_id)


@router.post("/{order_id}/pickup", response_model=OrderResponse)
def confirm_pickup(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark the order collected; its items move into the pantry"""
    return OrderService(db).confirm_pickup(current_user.id, order_id)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return OrderService(db).cancel_order(current_user.id, order_id)
