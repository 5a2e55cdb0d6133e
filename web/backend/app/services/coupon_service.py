"""
Сервис для работы с купонами.

Обеспечивает:
- Поиск купона по коду
- Проверку купона для записи и расчет скидки (без побочных эффектов)
- Применение купона: атомарное увеличение счетчика и запись в журнал
- Создание купонов администраторами и салонами
- Список доступных клиенту купонов и статистику использования
- Деактивацию истекших купонов (фоновая задача)
"""
import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, and_, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.exceptions import (
    CouponNotFoundError,
    CouponIneligibleError,
    CouponCapExceededError,
    CouponConflictError,
    CouponValidationError,
)
from app.schemas.coupon import CouponCreateRequest
from app.services.coupon_rules import (
    BookingContext,
    applies_to_booking,
    calculate_discount,
    can_customer_use,
    check_usage,
    invalidity_reason,
    usage_limit_per_customer,
)
from shared.database.models import Booking, Coupon, CouponUsage, User

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class CouponEvaluation:
    """Результат предварительной проверки купона"""
    valid: bool
    reason: Optional[str] = None
    discount_amount: Optional[int] = None
    coupon: Optional[Coupon] = None


def normalize_code(coupon_code: Optional[str]) -> str:
    """Привести код к виду, в котором он хранится в БД."""
    code = (coupon_code or "").strip().upper()
    if not code:
        raise CouponValidationError("Coupon code is required")
    return code


def _is_unique_violation(error: IntegrityError) -> bool:
    """Нарушено ли ограничение уникальности (а не внешний ключ или CHECK)."""
    message = str(error.orig).lower()
    return "unique" in message or "duplicate key" in message


def _format_rating(rating) -> str:
    return format(Decimal(str(rating)).normalize(), "f")


async def get_coupon_by_code(session: AsyncSession, coupon_code: str) -> Coupon:
    """
    Получить купон по коду вместе с журналом использования.

    Args:
        session: Асинхронная сессия БД
        coupon_code: Код купона (регистр не важен)

    Returns:
        Объект Coupon

    Raises:
        CouponNotFoundError: купона с таким кодом нет
    """
    code = normalize_code(coupon_code)
    result = await session.execute(
        select(Coupon)
        .options(selectinload(Coupon.usages))
        .where(Coupon.code == code)
        .execution_options(populate_existing=True)
    )
    coupon = result.scalar_one_or_none()
    if coupon is None:
        raise CouponNotFoundError()
    return coupon


async def has_completed_bookings(session: AsyncSession, customer_id: int) -> bool:
    result = await session.execute(
        select(func.count(Booking.id)).where(
            and_(Booking.customer_id == customer_id, Booking.status == "completed")
        )
    )
    return result.scalar_one() > 0


async def get_vendor_rating(session: AsyncSession, vendor_id: int) -> Decimal:
    result = await session.execute(select(User.rating).where(User.id == vendor_id))
    rating = result.scalar_one_or_none()
    return Decimal(str(rating)) if rating is not None else Decimal("0")


async def evaluate_coupon(
    session: AsyncSession,
    coupon_code: str,
    customer_id: int,
    booking: BookingContext,
    now: Optional[datetime] = None,
) -> CouponEvaluation:
    """
    Проверить купон для записи и рассчитать скидку.

    Ничего не записывает в БД: повторный вызов с теми же данными
    дает тот же результат.

    Порядок проверок:
    1. Срок действия и общий лимит
    2. Лимит на клиента
    3. Только для новых клиентов (нет завершенных записей)
    4. Салон, категория, услуга, минимальная сумма, день недели, время
    5. Минимальный рейтинг салона

    Raises:
        CouponNotFoundError: купона с таким кодом нет
        CouponValidationError: пустой код или некорректная сумма
    """
    if isinstance(booking.total_price, bool) or not isinstance(booking.total_price, int):
        raise CouponValidationError("Booking amount must be an integer number of minor units")

    coupon = await get_coupon_by_code(session, coupon_code)
    now = now or datetime.utcnow()

    result = check_usage(coupon, customer_id, now)
    if not result.valid:
        return CouponEvaluation(valid=False, reason=result.reason, coupon=coupon)

    if coupon.first_time_customers_only and await has_completed_bookings(session, customer_id):
        return CouponEvaluation(
            valid=False,
            reason="This coupon is only valid for first-time customers",
            coupon=coupon,
        )

    result = applies_to_booking(coupon, booking)
    if not result.valid:
        return CouponEvaluation(valid=False, reason=result.reason, coupon=coupon)

    if coupon.minimum_rating:
        vendor_rating = await get_vendor_rating(session, booking.vendor_id)
        if vendor_rating < Decimal(str(coupon.minimum_rating)):
            return CouponEvaluation(
                valid=False,
                reason=(
                    "This coupon requires a vendor rating of at least "
                    f"{_format_rating(coupon.minimum_rating)} stars"
                ),
                coupon=coupon,
            )

    discount_amount = calculate_discount(coupon, booking.total_price)
    return CouponEvaluation(valid=True, discount_amount=discount_amount, coupon=coupon)


async def apply_coupon(
    session: AsyncSession,
    coupon_code: str,
    customer_id: int,
    booking_id: int,
    discount_amount: int,
    now: Optional[datetime] = None,
) -> CouponUsage:
    """
    Применить купон: увеличить счетчик и добавить запись в журнал.

    Полная проверка не повторяется, она должна пройти раньше через
    evaluate_coupon. Счетчик увеличивается одним условным UPDATE, который
    заново проверяет активность, срок действия, общий лимит и лимит на клиента.
    Запись в журнал добавляется в той же транзакции.

    Returns:
        Созданная запись CouponUsage

    Raises:
        CouponNotFoundError: купона с таким кодом нет
        CouponIneligibleError: купон неактивен или вне срока действия
        CouponCapExceededError: лимит исчерпан (в том числе параллельным запросом)
        CouponValidationError: некорректная сумма скидки, запись или клиент не найдены
    """
    if isinstance(discount_amount, bool) or not isinstance(discount_amount, int) or discount_amount < 0:
        raise CouponValidationError("Discount amount must be a non-negative integer")

    coupon = await get_coupon_by_code(session, coupon_code)
    now = now or datetime.utcnow()
    coupon_id = coupon.id
    code = coupon.code
    per_customer_limit = usage_limit_per_customer(coupon)

    if not coupon.is_active or not (coupon.start_date <= now <= coupon.end_date):
        raise CouponIneligibleError(invalidity_reason(coupon, now))

    customer_uses = (
        select(func.count(CouponUsage.id))
        .where(and_(CouponUsage.coupon_id == coupon_id, CouponUsage.customer_id == customer_id))
        .scalar_subquery()
    )
    result = await session.execute(
        update(Coupon)
        .where(
            and_(
                Coupon.id == coupon_id,
                Coupon.is_active.is_(True),
                Coupon.start_date <= now,
                Coupon.end_date >= now,
                or_(Coupon.max_uses.is_(None), Coupon.current_uses < Coupon.max_uses),
                customer_uses < func.coalesce(Coupon.max_uses_per_customer, 1),
            )
        )
        .values(current_uses=Coupon.current_uses + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        logger.warning(
            f"Купон {code}: лимит исчерпан при применении "
            f"(клиент {customer_id}, запись {booking_id})"
        )
        raise CouponCapExceededError()

    # Строка купона заблокирована UPDATE до конца транзакции,
    # поэтому подсчет ниже видит все ранее зафиксированные использования
    count_result = await session.execute(
        select(func.count(CouponUsage.id)).where(
            and_(CouponUsage.coupon_id == coupon_id, CouponUsage.customer_id == customer_id)
        )
    )
    use_number = count_result.scalar_one() + 1
    if use_number > per_customer_limit:
        await session.rollback()
        logger.warning(f"Купон {code}: клиент {customer_id} превысил лимит использований")
        raise CouponCapExceededError()

    usage = CouponUsage(
        coupon_id=coupon_id,
        customer_id=customer_id,
        booking_id=booking_id,
        customer_use_number=use_number,
        used_at=now,
        discount_amount=discount_amount,
    )
    session.add(usage)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if _is_unique_violation(e):
            logger.warning(f"Купон {code}: параллельное применение для клиента {customer_id} отклонено")
            raise CouponCapExceededError()
        logger.warning(f"Купон {code}: запись {booking_id} или клиент {customer_id} не найдены")
        raise CouponValidationError("Unknown booking or customer")

    await session.refresh(usage)
    logger.info(
        f"Купон {code} применен: клиент {customer_id}, запись {booking_id}, "
        f"скидка {discount_amount}"
    )
    return usage


async def create_coupon(
    session: AsyncSession,
    coupon_data: CouponCreateRequest,
    created_by: int,
) -> Coupon:
    """
    Создать купон.

    Args:
        session: Асинхронная сессия БД
        coupon_data: Проверенные данные купона
        created_by: ID администратора или салона

    Returns:
        Созданный объект Coupon

    Raises:
        CouponConflictError: код уже занят
        CouponValidationError: нарушены инварианты купона или салон не найден
    """
    code = normalize_code(coupon_data.code)

    existing = await session.execute(select(Coupon.id).where(Coupon.code == code))
    if existing.scalar_one_or_none() is not None:
        raise CouponConflictError()

    coupon = Coupon(
        code=code,
        title=coupon_data.title.strip(),
        description=coupon_data.description,
        type=coupon_data.type.value,
        value=coupon_data.value,
        minimum_amount=coupon_data.minimum_amount,
        maximum_discount=coupon_data.maximum_discount,
        vendor_id=coupon_data.vendor_id,
        service_categories=list(coupon_data.service_categories),
        service_ids=list(coupon_data.service_ids),
        max_uses=coupon_data.max_uses,
        max_uses_per_customer=coupon_data.max_uses_per_customer,
        current_uses=0,
        start_date=coupon_data.start_date,
        end_date=coupon_data.end_date,
        is_active=coupon_data.is_active,
        first_time_customers_only=coupon_data.first_time_customers_only,
        minimum_rating=coupon_data.minimum_rating,
        days_of_week=list(coupon_data.days_of_week),
        time_slots=[slot.model_dump() for slot in coupon_data.time_slots],
        created_by=created_by,
    )

    session.add(coupon)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if _is_unique_violation(e):
            raise CouponConflictError()
        raise CouponValidationError("Unknown vendor or creator")
    except ValueError as e:
        await session.rollback()
        raise CouponValidationError(str(e))

    await session.refresh(coupon)
    logger.info(f"Создан купон {coupon.code} (id={coupon.id}, автор {created_by})")
    return coupon


async def get_available_coupons(
    session: AsyncSession,
    customer_id: int,
    vendor_id: Optional[int] = None,
    service_category: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Coupon]:
    """
    Получить купоны, которыми клиент может воспользоваться сейчас.

    Без vendor_id возвращаются только купоны платформы, с vendor_id -
    купоны салона и платформы. Сортировка: по размеру скидки, затем
    по ближайшему окончанию.
    """
    now = now or datetime.utcnow()

    query = (
        select(Coupon)
        .options(selectinload(Coupon.usages))
        .where(
            and_(
                Coupon.is_active.is_(True),
                Coupon.start_date <= now,
                Coupon.end_date >= now,
                or_(Coupon.max_uses.is_(None), Coupon.current_uses < Coupon.max_uses),
            )
        )
    )

    if vendor_id is not None:
        query = query.where(or_(Coupon.vendor_id == vendor_id, Coupon.vendor_id.is_(None)))
    else:
        query = query.where(Coupon.vendor_id.is_(None))

    query = query.order_by(Coupon.value.desc(), Coupon.end_date.asc()).execution_options(populate_existing=True)

    result = await session.execute(query)
    coupons = list(result.scalars().all())

    # Фильтр по категории на стороне Python: JSON-списки хранятся по-разному в разных БД
    if service_category:
        coupons = [
            c for c in coupons
            if not c.service_categories or service_category in c.service_categories
        ]

    coupons = coupons[:settings.AVAILABLE_COUPONS_LIMIT]
    return [c for c in coupons if can_customer_use(c, customer_id, now)]


async def get_coupon_stats(
    session: AsyncSession,
    vendor_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Статистика использования купонов.

    Args:
        session: Асинхронная сессия БД
        vendor_id: Только купоны салона (по умолчанию - все)
        start_date: Учитывать скидки, выданные начиная с этой даты
        end_date: Учитывать скидки, выданные до этой даты
        now: Текущее время (для подсчета активных купонов)

    Returns:
        Словарь с полями total_coupons, active_coupons, total_usage,
        total_discount, popular_coupons
    """
    now = now or datetime.utcnow()

    coupon_filters = []
    if vendor_id is not None:
        coupon_filters.append(Coupon.vendor_id == vendor_id)

    overview_result = await session.execute(
        select(
            func.count(Coupon.id),
            func.coalesce(func.sum(Coupon.current_uses), 0),
        ).where(*coupon_filters)
    )
    total_coupons, total_usage = overview_result.one()

    active_result = await session.execute(
        select(func.count(Coupon.id)).where(
            *coupon_filters,
            Coupon.is_active.is_(True),
            Coupon.start_date <= now,
            Coupon.end_date >= now,
        )
    )
    active_coupons = active_result.scalar_one()

    usage_filters = list(coupon_filters)
    if start_date is not None:
        usage_filters.append(CouponUsage.used_at >= start_date)
    if end_date is not None:
        usage_filters.append(CouponUsage.used_at <= end_date)

    discount_result = await session.execute(
        select(func.coalesce(func.sum(CouponUsage.discount_amount), 0))
        .select_from(CouponUsage)
        .join(Coupon, Coupon.id == CouponUsage.coupon_id)
        .where(*usage_filters)
    )
    total_discount = discount_result.scalar_one()

    discount_given = func.coalesce(func.sum(CouponUsage.discount_amount), 0)
    popular_result = await session.execute(
        select(Coupon.code, Coupon.title, Coupon.current_uses, discount_given)
        .select_from(Coupon)
        .outerjoin(CouponUsage, CouponUsage.coupon_id == Coupon.id)
        .where(*coupon_filters, Coupon.current_uses > 0)
        .group_by(Coupon.id, Coupon.code, Coupon.title, Coupon.current_uses)
        .order_by(Coupon.current_uses.desc(), Coupon.code.asc())
        .limit(settings.POPULAR_COUPONS_LIMIT)
    )
    popular_coupons = [
        {
            "code": row[0],
            "title": row[1],
            "uses": int(row[2]),
            "discount_given": int(row[3] or 0),
        }
        for row in popular_result.all()
    ]

    return {
        "total_coupons": int(total_coupons or 0),
        "active_coupons": int(active_coupons or 0),
        "total_usage": int(total_usage or 0),
        "total_discount": int(total_discount or 0),
        "popular_coupons": popular_coupons,
    }


def generate_coupon_code(prefix: str = "", length: int = 8) -> str:
    """Сгенерировать случайный код: префикс + случайные A-Z0-9 до нужной длины."""
    result = prefix.upper()
    while len(result) < length:
        result += secrets.choice(CODE_ALPHABET)
    return result


async def deactivate_expired_coupons(
    session: AsyncSession,
    now: Optional[datetime] = None,
) -> int:
    """
    Деактивировать активные купоны, срок действия которых закончился.

    Returns:
        Количество деактивированных купонов
    """
    now = now or datetime.utcnow()
    result = await session.execute(
        update(Coupon)
        .where(and_(Coupon.is_active.is_(True), Coupon.end_date < now))
        .values(is_active=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    count = result.rowcount or 0
    logger.info(f"Деактивировано истекших купонов: {count}")
    return count
