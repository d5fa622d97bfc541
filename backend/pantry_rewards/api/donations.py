# backend/pantry_rewards/api/donations.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
import logging

from pantry_rewards.models.database import get_db, User
from pantry_rewards.schemas.donations import (
    DonationCreate, DonationMarketResponse, DonationResponse, DonationStats, DonationStatusUpdate
)
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user
from pantry_rewards.services.donation_service import DonationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/donations", tags=["Donations"])


@router.get("/markets", response_model=List[DonationMarketResponse])
def list_markets(db: Session = Depends(get_db)):
    return DonationService(db).list_markets()


@router.get("/markets/{market_id}", response_model=DonationMarketResponse)
def get_market(market_id: int, db: Session = Depends(get_db)):
    return DonationService(db).get_market(market_id)


@router.post("", response_model=DonationResponse, status_code=status.HTTP_201_CREATED)
def donate(
    payload: DonationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Donate food to a market; earns points per donated unit"""
    return DonationService(db).donate(
        current_user.id,
        payload.food_id,
        payload.market_id,
        payload.quantity,
        notes=payload.notes
    )


@router.get("", response_model=List[DonationResponse])
def my_donations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return DonationService(db).user_donations(current_user.id)


@router.get("/stats", response_model=DonationStats)
def donation_stats(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return DonationService(db).stats(current_user.id)


@router.patch("/{donation_id}/status", response_model=DonationResponse)
def update_status(
    donation_id: int,
    payload: DonationStatusUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return DonationService(db).update_status(donation_id, payload.status)
