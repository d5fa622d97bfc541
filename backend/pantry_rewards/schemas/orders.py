from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
import uuid

from pantry_rewards.models.database import OrderStatus

# Supermarket Schemas
class SupermarketResponse(BaseModel):
    id: uuid.UUID
    name: str
    location: str
    address: Optional[str] = None
    phone_number: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    rating: Optional[float] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True

class ProductResponse(BaseModel):
    id: uuid.UUID
    supermarket_id: uuid.UUID
    name: str
    category: str
    price: float
    unit: str
    stock: int
    image_url: Optional[str] = None
    description: Optional[str] = None
    expiry_days: Optional[int] = None

    class Config:
        from_attributes = True

# Order Schemas
class OrderItemRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)

class OrderCreate(BaseModel):
    supermarket_id: uuid.UUID
    items: List[OrderItemRequest] = Field(..., min_length=1)
    redemption_id: Optional[uuid.UUID] = None

class OrderItemResponse(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    category: Optional[str] = None
    quantity: int
    unit: str
    price: float
    subtotal: float

    class Config:
        from_attributes = True

class OrderResponse(BaseModel):
    id: uuid.UUID
    order_number: str
    supermarket_id: uuid.UUID
    supermarket_name: str
    status: OrderStatus
    total_amount: float
    discount_amount: float
    final_amount: float
    redemption_id: Optional[uuid.UUID] = None
    voucher_code: Optional[str] = None
    voucher_title: Optional[str] = None
    items: List[OrderItemResponse]
    picked_up_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
