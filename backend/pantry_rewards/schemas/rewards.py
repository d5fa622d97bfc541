from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime
import uuid

from pantry_rewards.models.database import DiscountType, RedemptionStatus, TransactionType

# Points Schemas
class PointsAccountResponse(BaseModel):
    user_id: uuid.UUID
    total_points: int
    available_points: int
    used_points: int

    class Config:
        from_attributes = True

class PointsTransactionResponse(BaseModel):
    id: uuid.UUID
    type: TransactionType
    amount: int
    source: str
    description: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class PointsHistoryResponse(BaseModel):
    transactions: List[PointsTransactionResponse]
    total: int
    page: int
    limit: int

# Voucher Schemas
class VoucherResponse(BaseModel):
    id: uuid.UUID
    code: str
    title: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: float
    min_purchase: Optional[float] = None
    max_discount: Optional[float] = None
    points_required: int
    store_name: Optional[str] = None
    store_category: Optional[str] = None
    remaining_stock: int
    valid_from: datetime
    valid_until: datetime
    terms_conditions: Optional[str] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True

class VoucherListResponse(BaseModel):
    vouchers: List[VoucherResponse]
    total: int
    page: int
    limit: int

class RedeemRequest(BaseModel):
    voucher_id: uuid.UUID

class RedemptionResponse(BaseModel):
    id: uuid.UUID
    voucher_id: uuid.UUID
    points_spent: int
    redemption_code: str
    status: RedemptionStatus
    redeemed_at: datetime
    used_at: Optional[datetime] = None
    expires_at: datetime
    voucher: Optional[VoucherResponse] = None

    class Config:
        from_attributes = True

class RedemptionListResponse(BaseModel):
    redemptions: List[RedemptionResponse]
    total: int
    page: int
    limit: int
