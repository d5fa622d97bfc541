# backend/pantry_rewards/api/pantry.py
"""
Food storage endpoints. Adding or restocking food earns points.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import uuid
import logging

from pantry_rewards.models.database import get_db, User, FoodItem
from pantry_rewards.schemas.pantry import (
    FoodCreate, FoodListResponse, FoodResponse, PantryStatistics, StockChange
)
from pantry_rewards.services.pantry_service import PantryService, stock_percentage
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/pantry", tags=["Pantry"])


def to_food_response(food: FoodItem) -> FoodResponse:
    return FoodResponse(
        id=food.id,
        name=food.name,
        category=food.category,
        quantity=food.quantity,
        initial_quantity=food.initial_quantity,
        unit=food.unit,
        purchase_date=food.purchase_date,
        expiry_date=food.expiry_date,
        location=food.location,
        is_halal=bool(food.is_halal),
        add_method=food.add_method or "manual",
        is_expired=food.is_expired(),
        days_until_expiry=food.days_until_expiry(),
        stock_percentage=round(stock_percentage(food), 1),
        created_at=food.created_at,
    )


@router.post("/foods", response_model=FoodResponse, status_code=status.HTTP_201_CREATED)
def add_food(
    payload: FoodCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Add a food item to storage"""
    food = PantryService(db).add_food(current_user.id, **payload.model_dump())
    return to_food_response(food)


@router.get("/foods", response_model=FoodListResponse)
def list_foods(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = None,
    location: Optional[str] = None,
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    foods, total = PantryService(db).list_foods(
        current_user.id, page=page, limit=limit,
        category=category, location=location, search=search
    )
    return FoodListResponse(
        foods=[to_food_response(food) for food in foods],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/foods/expiring", response_model=List[FoodResponse])
def expiring_soon(
    days: int = Query(3, ge=0, le=365),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [to_food_response(food) for food in PantryService(db).expiring_soon(current_user.id, days=days)]


@router.get("/foods/expired", response_model=List[FoodResponse])
def expired(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [to_food_response(food) for food in PantryService(db).expired(current_user.id)]


@router.get("/statistics", response_model=PantryStatistics)
def statistics(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PantryService(db).statistics(current_user.id)


@router.get("/foods/{food_id}", response_model=FoodResponse)
def get_food(
    food_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return to_food_response(PantryService(db).get_food(food_id, current_user.id))


@router.post("/foods/{food_id}/stock", response_model=FoodResponse)
def add_stock(
    food_id: uuid.UUID,
    payload: StockChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Restock an item; earns food-save points"""
    food = PantryService(db).add_stock(food_id, current_user.id, payload.quantity)
    return to_food_response(food)


@router.post("/foods/{food_id}/consume", response_model=FoodResponse)
def consume(
    food_id: uuid.UUID,
    payload: StockChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    food = PantryService(db).reduce_stock(food_id, current_user.id, payload.quantity)
    return to_food_response(food)


@router.delete("/foods/{food_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_food(
    food_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    PantryService(db).delete_food(food_id, current_user.id)
