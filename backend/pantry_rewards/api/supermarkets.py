# backend/pantry_rewards/api/supermarkets.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import uuid
import logging

from pantry_rewards.models.database import get_db
from pantry_rewards.schemas.orders import ProductResponse, SupermarketResponse
from pantry_rewards.services.supermarket_service import SupermarketService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/supermarkets", tags=["Supermarkets"])


@router.get("", response_model=List[SupermarketResponse])
def list_supermarkets(db: Session = Depends(get_db)):
    return SupermarketService(db).list_supermarkets()


@router.get("/products/search", response_model=List[ProductResponse])
def search_products(q: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    return SupermarketService(db).search_products(q)


@router.get("/{supermarket_id}", response_model=SupermarketResponse)
def get_supermarket(supermarket_id: uuid.UUID, db: Session = Depends(get_db)):
    return SupermarketService(db).get_supermarket(supermarket_id)


@router.get("/{supermarket_id}/products", response_model=List[ProductResponse])
def list_products(
    supermarket_id: uuid.UUID,
    category: Optional[str] = None,
    db: Session = Depends(get_db)
):
    return SupermarketService(db).list_products(supermarket_id, category=category)
