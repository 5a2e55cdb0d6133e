from .models import (
    Base,
    User,
    Service,
    Booking,
    Coupon,
    CouponUsage,
    COUPON_TYPES,
    USER_TYPES,
    BOOKING_STATUSES,
    validate_coupon_terms,
)

__all__ = [
    "Base",
    "User",
    "Service",
    "Booking",
    "Coupon",
    "CouponUsage",
    "COUPON_TYPES",
    "USER_TYPES",
    "BOOKING_STATUSES",
    "validate_coupon_terms",
]
