from pydantic import BaseModel, Field, validator
from typing import Dict, List, Optional
from datetime import datetime
import uuid

# Food Schemas
class FoodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=50)
    quantity: float = Field(..., gt=0)
    unit: str = Field("pcs", max_length=20)
    purchase_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    location: Optional[str] = Field(None, pattern="^(upper|middle|lower|freezer)$")
    is_halal: bool = True
    add_method: str = Field("manual", pattern="^(manual|scan|barcode)$")

    @validator('name')
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name must not be blank')
        return v

class StockChange(BaseModel):
    quantity: float = Field(..., gt=0)

class FoodResponse(BaseModel):
    id: uuid.UUID
    name: str
    category: str
    quantity: float
    initial_quantity: float
    unit: str
    purchase_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    location: Optional[str] = None
    is_halal: bool
    add_method: str
    is_expired: bool = False
    days_until_expiry: Optional[int] = None
    stock_percentage: float = 100.0
    created_at: datetime

    class Config:
        from_attributes = True

class FoodListResponse(BaseModel):
    foods: List[FoodResponse]
    total: int
    page: int
    limit: int

class PantryStatistics(BaseModel):
    total_items: int
    in_stock: int
    expired: int
    expiring_soon: int
    by_category: Dict[str, int]
