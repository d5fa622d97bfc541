from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
import uuid

from pantry_rewards.models.database import DonationStatus

class DonationMarketResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True

class DonationCreate(BaseModel):
    food_id: uuid.UUID
    market_id: int
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = Field(None, max_length=1000)

class DonationStatusUpdate(BaseModel):
    status: str

class DonationResponse(BaseModel):
    id: int
    food_id: uuid.UUID
    market_id: int
    quantity: int
    points_earned: int
    status: DonationStatus
    notes: Optional[str] = None
    created_at: datetime
    market: Optional[DonationMarketResponse] = None

    class Config:
        from_attributes = True

class DonationStats(BaseModel):
    total_donations: int
    total_items: int
    total_points: int
