"""
Pydantic схемы для API купонов.

Содержит схемы создания купона, проверки и применения купона к записи,
а также ответы со статистикой использования.
"""
import re
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

CODE_PATTERN = re.compile(r"^[A-Z0-9]+$")
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


class CouponType(str, Enum):
    """Типы скидки"""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SERVICE = "free_service"


class TimeSlot(BaseModel):
    """Временной интервал действия купона, HH:MM"""
    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        v = v.strip()
        if not TIME_PATTERN.match(v):
            raise ValueError("Time must be in HH:MM 24-hour format")
        hours, minutes = v.split(":")
        return f"{int(hours):02d}:{minutes}"


class CouponCreateRequest(BaseModel):
    """Данные для создания купона"""
    code: str = Field(..., min_length=3, max_length=20)
    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    type: CouponType
    value: Decimal = Field(..., ge=0)
    minimum_amount: Optional[int] = Field(None, ge=0)
    maximum_discount: Optional[int] = Field(None, ge=0)

    vendor_id: Optional[int] = None
    service_categories: List[str] = Field(default_factory=list)
    service_ids: List[int] = Field(default_factory=list)

    max_uses: Optional[int] = Field(None, ge=1)
    max_uses_per_customer: int = Field(1, ge=1)

    start_date: datetime
    end_date: datetime
    is_active: bool = True

    first_time_customers_only: bool = False
    minimum_rating: Optional[Decimal] = Field(None, ge=0, le=5)
    days_of_week: List[int] = Field(default_factory=list)
    time_slots: List[TimeSlot] = Field(default_factory=list)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        if not CODE_PATTERN.match(v):
            raise ValueError("Coupon code must contain only letters and digits")
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("Days of week must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @field_validator("start_date", "end_date")
    @classmethod
    def to_naive_utc(cls, v: datetime) -> datetime:
        # В БД хранится наивное UTC время
        if v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @model_validator(mode="after")
    def validate_terms(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.type == CouponType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage value cannot exceed 100")
        return self


class CouponResponse(BaseModel):
    id: int
    code: str
    title: str
    description: Optional[str] = None
    type: str
    value: Decimal
    minimum_amount: Optional[int] = None
    maximum_discount: Optional[int] = None
    vendor_id: Optional[int] = None
    service_categories: Optional[List[str]] = None
    service_ids: Optional[List[int]] = None
    max_uses: Optional[int] = None
    max_uses_per_customer: Optional[int] = None
    current_uses: int
    start_date: datetime
    end_date: datetime
    is_active: bool
    first_time_customers_only: bool
    minimum_rating: Optional[Decimal] = None
    days_of_week: Optional[List[int]] = None
    time_slots: Optional[List[TimeSlot]] = None
    created_by: Optional[int] = None
    created_at: datetime
    is_currently_valid: bool = False
    usage_percentage: int = 0

    class Config:
        from_attributes = True


class CouponListResponse(BaseModel):
    items: list[CouponResponse]
    total: int


class BookingDetails(BaseModel):
    """Снимок записи для проверки купона"""
    vendor_id: int
    service_id: int
    total_price: int = Field(..., ge=0)
    scheduled_at: datetime = Field(..., alias="datetime")
    service_category: Optional[str] = None

    class Config:
        populate_by_name = True


class CouponValidateRequest(BaseModel):
    coupon_code: str = Field(..., min_length=1)
    customer_id: int
    booking_details: BookingDetails


class CouponValidateResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    discount_amount: Optional[int] = None
    final_amount: Optional[int] = None
    coupon: Optional[CouponResponse] = None


class CouponApplyRequest(BaseModel):
    coupon_code: str = Field(..., min_length=1)
    customer_id: int
    booking_id: int
    discount_amount: int = Field(..., ge=0)


class CouponUsageResponse(BaseModel):
    id: int
    coupon_id: int
    customer_id: int
    booking_id: int
    customer_use_number: int
    used_at: datetime
    discount_amount: int

    class Config:
        from_attributes = True


class PopularCoupon(BaseModel):
    code: str
    title: str
    uses: int
    discount_given: int


class CouponStatsResponse(BaseModel):
    total_coupons: int = 0
    active_coupons: int = 0
    total_usage: int = 0
    total_discount: int = 0
    popular_coupons: List[PopularCoupon] = Field(default_factory=list)
