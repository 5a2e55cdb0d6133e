"""
Правила применимости купонов и расчет скидки.

Обеспечивает:
- Проверку срока действия и общего лимита купона
- Проверку лимита использований на клиента
- Проверку ограничений по салону, категории, услуге, сумме, дню и времени
- Расчет суммы скидки

Все функции чистые: работают с полями купона и снимком записи,
к БД не обращаются. Суммы - целые числа в минимальных единицах валюты.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from zoneinfo import ZoneInfo

from app.config import settings


@dataclass(frozen=True)
class BookingContext:
    """Снимок записи, для которой проверяется купон"""
    vendor_id: int
    service_id: int
    total_price: int
    scheduled_at: datetime
    service_category: Optional[str] = None


@dataclass(frozen=True)
class EligibilityResult:
    """Результат проверки применимости"""
    valid: bool
    reason: Optional[str] = None


ELIGIBLE = EligibilityResult(valid=True)


def _ineligible(reason: str) -> EligibilityResult:
    return EligibilityResult(valid=False, reason=reason)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_currency(amount: int) -> str:
    """Отформатировать сумму в минимальных единицах, например 5000 -> "$50.00"."""
    major = _as_decimal(amount) / 100
    return f"{settings.CURRENCY_SYMBOL}{major:.2f}"


def booking_wall_clock(moment: datetime) -> datetime:
    """
    Привести время записи к локальному "настенному" времени.

    Наивное время используется как есть, время с часовым поясом
    переводится в COUPON_TIMEZONE.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(ZoneInfo(settings.COUPON_TIMEZONE)).replace(tzinfo=None)


def _normalize_hhmm(value: str) -> str:
    hours, minutes = value.strip().split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def invalidity_reason(coupon, now: Optional[datetime] = None) -> Optional[str]:
    """
    Причина, по которой купон сейчас недействителен, или None.

    Порядок: неактивен, истек, еще не начал действовать, исчерпан общий лимит.
    """
    now = now or datetime.utcnow()
    if not coupon.is_active:
        return "Coupon is not active"
    if coupon.end_date < now:
        return "Coupon has expired"
    if coupon.start_date > now:
        return "Coupon is not yet active"
    if coupon.max_uses and (coupon.current_uses or 0) >= coupon.max_uses:
        return "Coupon usage limit reached"
    return None


def is_currently_valid(coupon, now: Optional[datetime] = None) -> bool:
    return invalidity_reason(coupon, now) is None


def usage_limit_per_customer(coupon) -> int:
    return coupon.max_uses_per_customer or 1


def customer_usage_count(coupon, customer_id: int) -> int:
    """Количество записей журнала для клиента"""
    return sum(1 for usage in coupon.usages if usage.customer_id == customer_id)


def can_customer_use(coupon, customer_id: int, now: Optional[datetime] = None) -> bool:
    if not is_currently_valid(coupon, now):
        return False
    return customer_usage_count(coupon, customer_id) < usage_limit_per_customer(coupon)


def check_usage(coupon, customer_id: int, now: Optional[datetime] = None) -> EligibilityResult:
    """Шаги 1-2: срок действия, общий лимит и лимит на клиента."""
    reason = invalidity_reason(coupon, now)
    if reason:
        return _ineligible(reason)

    limit = usage_limit_per_customer(coupon)
    if customer_usage_count(coupon, customer_id) >= limit:
        return _ineligible(f"You have already used this coupon {limit} time(s)")

    return ELIGIBLE


def applies_to_booking(coupon, booking: BookingContext) -> EligibilityResult:
    """Шаги 3-8: ограничения купона относительно конкретной записи."""
    # Салон
    if coupon.vendor_id is not None and coupon.vendor_id != booking.vendor_id:
        return _ineligible("Coupon not valid for this vendor")

    # Категория услуги
    if coupon.service_categories:
        if booking.service_category not in coupon.service_categories:
            return _ineligible("Coupon not valid for this service category")

    # Конкретные услуги
    if coupon.service_ids:
        if booking.service_id not in coupon.service_ids:
            return _ineligible("Coupon not valid for this service")

    # Минимальная сумма
    if coupon.minimum_amount and booking.total_price < coupon.minimum_amount:
        return _ineligible(f"Minimum booking amount is {format_currency(coupon.minimum_amount)}")

    moment = booking_wall_clock(booking.scheduled_at)

    # День недели (воскресенье = 0)
    if coupon.days_of_week:
        booking_day = (moment.weekday() + 1) % 7
        if booking_day not in coupon.days_of_week:
            return _ineligible("Coupon not valid for this day")

    # Временные слоты, границы включительно
    if coupon.time_slots:
        booking_time = moment.strftime("%H:%M")
        fits = any(
            _normalize_hhmm(slot["start"]) <= booking_time <= _normalize_hhmm(slot["end"])
            for slot in coupon.time_slots
        )
        if not fits:
            return _ineligible("Coupon not valid for this time")

    return ELIGIBLE


def evaluate(coupon, customer_id: int, booking: BookingContext, now: Optional[datetime] = None) -> EligibilityResult:
    """Полная проверка купона (шаги 1-8) без обращений к БД."""
    result = check_usage(coupon, customer_id, now)
    if not result.valid:
        return result
    return applies_to_booking(coupon, booking)


def calculate_discount(coupon, booking_amount: int) -> int:
    """
    Рассчитать скидку для суммы записи.

    - percentage: round_half_up(amount * value / 100), не больше maximum_discount
    - fixed_amount: min(value, amount)
    - free_service: вся сумма
    """
    amount = max(int(booking_amount), 0)
    value = _as_decimal(coupon.value)

    if coupon.type == "percentage":
        discount = int((Decimal(amount) * value / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        if coupon.maximum_discount is not None:
            discount = min(discount, int(coupon.maximum_discount))
    elif coupon.type == "fixed_amount":
        discount = min(int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)), amount)
    elif coupon.type == "free_service":
        discount = amount
    else:
        discount = 0

    return max(discount, 0)


def usage_percentage(coupon) -> int:
    """Процент использования общего лимита (0, если лимита нет)"""
    if not coupon.max_uses:
        return 0
    ratio = Decimal(coupon.current_uses or 0) / Decimal(coupon.max_uses) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
