"""Скрипт для заполнения БД демонстрационными данными (seed data)."""
import asyncio
import logging
import sys
import os
from datetime import datetime, timedelta
from decimal import Decimal

# Добавляем путь к директории backend и к корню проекта
BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, BACKEND_DIR)
sys.path.insert(0, os.path.dirname(os.path.dirname(BACKEND_DIR)))

from sqlalchemy import select

from app.database import async_session_maker, init_db, close_db
from app.exceptions import CouponConflictError
from app.schemas.coupon import CouponCreateRequest, TimeSlot
from app.services.coupon_service import create_coupon, generate_coupon_code
from shared.database.models import User, Service

logger = logging.getLogger(__name__)


async def get_or_create_user(session, email: str, **fields) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user
    user = User(email=email, **fields)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def seed_database():
    """Заполнить БД начальными данными."""
    await init_db()

    async with async_session_maker() as session:
        admin = await get_or_create_user(
            session, "admin@salon.local", first_name="Platform", last_name="Admin", user_type="admin"
        )
        vendor = await get_or_create_user(
            session, "studio@salon.local", first_name="Glow", last_name="Studio",
            user_type="vendor", rating=Decimal("4.60"),
        )
        await get_or_create_user(
            session, "customer@salon.local", first_name="Demo", last_name="Customer", user_type="customer"
        )

        result = await session.execute(select(Service).where(Service.vendor_id == vendor.id))
        if not result.scalars().first():
            session.add_all([
                Service(vendor_id=vendor.id, name="Haircut", category="hair", duration=45, price=3500),
                Service(vendor_id=vendor.id, name="Manicure", category="nails", duration=60, price=2500),
            ])
            await session.commit()

        now = datetime.utcnow()
        coupons = [
            (
                CouponCreateRequest(
                    code="WELCOME20",
                    title="20% off your first visit",
                    type="percentage",
                    value=Decimal("20"),
                    maximum_discount=1500,
                    first_time_customers_only=True,
                    start_date=now,
                    end_date=now + timedelta(days=90),
                ),
                admin.id,
            ),
            (
                CouponCreateRequest(
                    code=generate_coupon_code("GLOW", 10),
                    title="Weekday mornings",
                    type="fixed_amount",
                    value=Decimal("500"),
                    vendor_id=vendor.id,
                    minimum_amount=2000,
                    max_uses=100,
                    days_of_week=[1, 2, 3, 4, 5],
                    time_slots=[TimeSlot(start="09:00", end="12:00")],
                    start_date=now,
                    end_date=now + timedelta(days=30),
                ),
                vendor.id,
            ),
        ]

        for coupon_data, created_by in coupons:
            try:
                coupon = await create_coupon(session, coupon_data, created_by=created_by)
                logger.info(f"Создан купон {coupon.code}")
            except CouponConflictError:
                logger.info(f"Купон {coupon_data.code} уже существует, пропускаем")

    await close_db()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed_database())
