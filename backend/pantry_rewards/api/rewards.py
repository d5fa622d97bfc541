# backend/pantry_rewards/api/rewards.py
"""
Points balance, history, voucher catalogue and redemptions.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import uuid
import logging

from pantry_rewards.models.database import get_db, User, VoucherRedemption
from pantry_rewards.schemas.rewards import (
    PointsAccountResponse, PointsHistoryResponse, PointsTransactionResponse,
    RedeemRequest, RedemptionListResponse, RedemptionResponse,
    VoucherListResponse, VoucherResponse
)
from pantry_rewards.services.auth import get_current_user_dependency as get_current_user
from pantry_rewards.services.points_ledger import PointsLedger
from pantry_rewards.services.voucher_service import VoucherService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/rewards", tags=["Rewards"])


def to_redemption_response(redemption: VoucherRedemption, now: Optional[datetime] = None) -> RedemptionResponse:
    response = RedemptionResponse.model_validate(redemption)
    response.status = redemption.effective_status(now)
    return response


# ===== POINTS =====

@router.get("/points", response_model=PointsAccountResponse)
def get_points(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return PointsLedger(db).get_account(current_user.id)


@router.get("/points/history", response_model=PointsHistoryResponse)
def points_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    transactions, total = PointsLedger(db).history(current_user.id, page=page, limit=limit)
    return PointsHistoryResponse(
        transactions=[PointsTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=page,
        limit=limit
    )


# ===== VOUCHERS =====

@router.get("/vouchers", response_model=VoucherListResponse)
def list_vouchers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    store_name: Optional[str] = None,
    store_category: Optional[str] = None,
    db: Session = Depends(get_db)
):
    vouchers, total = VoucherService(db).list_available_vouchers(
        page=page, limit=limit, store_name=store_name, store_category=store_category
    )
    return VoucherListResponse(
        vouchers=[VoucherResponse.model_validate(v) for v in vouchers],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/vouchers/{voucher_id}", response_model=VoucherResponse)
def get_voucher(voucher_id: uuid.UUID, db: Session = Depends(get_db)):
    return VoucherService(db).get_voucher(voucher_id)


@router.post("/redeem", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
def redeem_voucher(
    payload: RedeemRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Spend points on a voucher; returns the redemption code"""
    redemption = VoucherService(db).redeem(current_user.id, payload.voucher_id)
    return to_redemption_response(redemption)


# ===== REDEMPTIONS =====

@router.get("/redemptions", response_model=RedemptionListResponse)
def list_redemptions(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    redemptions, total = VoucherService(db).user_redemptions(current_user.id, page=page, limit=limit)
    now = datetime.utcnow()
    return RedemptionListResponse(
        redemptions=[to_redemption_response(r, now) for r in redemptions],
        total=total,
        page=page,
        limit=limit
    )


@router.get("/redemptions/active", response_model=List[RedemptionResponse])
def active_redemptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return [to_redemption_response(r) for r in VoucherService(db).active_redemptions(current_user.id)]


@router.post("/redemptions/{redemption_id}/use", response_model=RedemptionResponse)
def use_redemption(
    redemption_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    redemption = VoucherService(db).mark_used(redemption_id, user_id=current_user.id)
    return to_redemption_response(redemption)
