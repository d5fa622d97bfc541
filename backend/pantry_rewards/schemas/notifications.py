from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    food_id: str
    food_name: str
    quantity: float
    unit: str
    severity: str
    expiry_date: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    created_at: datetime

class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int
