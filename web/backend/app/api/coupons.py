"""API для купонов"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_coupon_manager
from app.schemas.coupon import (
    CouponApplyRequest,
    CouponCreateRequest,
    CouponListResponse,
    CouponResponse,
    CouponStatsResponse,
    CouponUsageResponse,
    CouponValidateRequest,
    CouponValidateResponse,
)
from app.services import coupon_service
from app.services.coupon_rules import BookingContext, is_currently_valid, usage_percentage
from shared.database.models import Coupon, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


def coupon_to_response(coupon: Coupon, now: Optional[datetime] = None) -> CouponResponse:
    response = CouponResponse.model_validate(coupon)
    response.is_currently_valid = is_currently_valid(coupon, now)
    response.usage_percentage = usage_percentage(coupon)
    return response


@router.post("", response_model=CouponResponse, status_code=201)
async def create_coupon(
    coupon_data: CouponCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_coupon_manager),
):
    """Создать купон"""
    if current_user.is_vendor:
        if coupon_data.vendor_id is not None and coupon_data.vendor_id != current_user.id:
            raise HTTPException(status_code=403, detail="Vendors can only create their own coupons")
        # купоны салона всегда привязаны к салону
        coupon_data.vendor_id = current_user.id

    coupon = await coupon_service.create_coupon(db, coupon_data, created_by=current_user.id)
    return coupon_to_response(coupon)


@router.get("", response_model=CouponListResponse)
async def get_available_coupons(
    customer_id: int = Query(...),
    vendor_id: Optional[int] = Query(None),
    service_category: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    """Купоны, доступные клиенту"""
    coupons = await coupon_service.get_available_coupons(
        db, customer_id, vendor_id=vendor_id, service_category=service_category
    )
    items = [coupon_to_response(c) for c in coupons]
    return CouponListResponse(items=items, total=len(items))


@router.post("/validate", response_model=CouponValidateResponse)
async def validate_coupon(
    request: CouponValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Проверить купон для записи (без применения)"""
    details = request.booking_details
    booking = BookingContext(
        vendor_id=details.vendor_id,
        service_id=details.service_id,
        total_price=details.total_price,
        scheduled_at=details.scheduled_at,
        service_category=details.service_category,
    )

    evaluation = await coupon_service.evaluate_coupon(db, request.coupon_code, request.customer_id, booking)

    if not evaluation.valid:
        return CouponValidateResponse(valid=False, reason=evaluation.reason)

    return CouponValidateResponse(
        valid=True,
        discount_amount=evaluation.discount_amount,
        final_amount=max(details.total_price - evaluation.discount_amount, 0),
        coupon=coupon_to_response(evaluation.coupon),
    )


@router.post("/apply", response_model=CouponUsageResponse)
async def apply_coupon(
    request: CouponApplyRequest,
    db: AsyncSession = Depends(get_db),
):
    """Применить купон к записи"""
    usage = await coupon_service.apply_coupon(
        db,
        request.coupon_code,
        request.customer_id,
        request.booking_id,
        request.discount_amount,
    )
    return CouponUsageResponse.model_validate(usage)


@router.get("/stats", response_model=CouponStatsResponse)
async def get_coupon_stats(
    vendor_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_coupon_manager),
):
    """Статистика использования купонов"""
    # салон видит только свою статистику
    if current_user.is_vendor:
        vendor_id = current_user.id

    stats = await coupon_service.get_coupon_stats(
        db, vendor_id=vendor_id, start_date=start_date, end_date=end_date
    )
    return CouponStatsResponse(**stats)
