"""
Общие fixtures для всех тестов.

Содержит:
- Настройка тестовой БД (временная SQLite или TEST_DATABASE_URL)
- Fixtures для сессий БД
- Фабрики тестовых данных (пользователи, записи, купоны)
- HTTP клиент с подмененными зависимостями
"""
import os
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

# Добавляем корневую директорию проекта и backend в PYTHONPATH
backend_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
project_root = os.path.abspath(os.path.join(backend_root, '..', '..'))
for path in (backend_root, project_root):
    if path not in sys.path:
        sys.path.insert(0, path)


from app.config import settings
from shared.database.models import Base, Booking, Coupon, CouponUsage, User


# Вторник, 10 марта 2026, 12:00
NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def test_database_url(tmp_path) -> str:
    """URL тестовой БД: TEST_DATABASE_URL или временный файл SQLite."""
    return settings.TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'coupons_test.db'}"


@pytest_asyncio.fixture
async def test_engine(test_database_url):
    """Создать engine и схему тестовой БД."""
    engine = create_async_engine(test_database_url, echo=False, poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_maker(test_engine):
    """Создать session maker для тестовой БД."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Fixture для получения тестовой сессии БД."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def fk_db_session(test_engine, test_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Сессия с проверкой внешних ключей (в SQLite она по умолчанию выключена)."""

    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    is_sqlite = test_engine.dialect.name == "sqlite"
    if is_sqlite:
        event.listen(test_engine.sync_engine, "connect", enable_foreign_keys)
    async with test_session_maker() as session:
        yield session
    if is_sqlite:
        event.remove(test_engine.sync_engine, "connect", enable_foreign_keys)


@pytest_asyncio.fixture
async def make_user(db_session):
    """Фабрика пользователей."""
    counter = {"n": 0}

    async def _make_user(user_type: str = "customer", **fields) -> User:
        counter["n"] += 1
        user = User(
            email=fields.pop("email", f"{user_type}{counter['n']}@example.com"),
            user_type=user_type,
            **fields,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make_user


@pytest_asyncio.fixture
async def make_booking(db_session):
    """Фабрика записей."""

    async def _make_booking(customer_id: int, vendor_id: int, **fields) -> Booking:
        booking = Booking(
            customer_id=customer_id,
            vendor_id=vendor_id,
            service_id=fields.pop("service_id", None),
            scheduled_at=fields.pop("scheduled_at", NOW + timedelta(days=1)),
            total_price=fields.pop("total_price", 5000),
            status=fields.pop("status", "pending"),
            **fields,
        )
        db_session.add(booking)
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _make_booking


def coupon_fields(**overrides) -> dict:
    """Поля купона по умолчанию: 20% без ограничений, действует вокруг NOW."""
    fields = {
        "code": "SAVE20",
        "title": "Save 20%",
        "type": "percentage",
        "value": Decimal("20"),
        "minimum_amount": None,
        "maximum_discount": None,
        "vendor_id": None,
        "service_categories": [],
        "service_ids": [],
        "max_uses": None,
        "max_uses_per_customer": 1,
        "current_uses": 0,
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=30),
        "is_active": True,
        "first_time_customers_only": False,
        "minimum_rating": None,
        "days_of_week": [],
        "time_slots": [],
        "created_by": None,
    }
    fields.update(overrides)
    return fields


def build_coupon(usages=None, **overrides) -> Coupon:
    """Купон в памяти, без сохранения в БД."""
    coupon = Coupon(**coupon_fields(**overrides))
    coupon.usages = list(usages or [])
    return coupon


def build_usage(customer_id: int, booking_id: int = 1, discount_amount: int = 100) -> CouponUsage:
    return CouponUsage(
        customer_id=customer_id,
        booking_id=booking_id,
        customer_use_number=1,
        used_at=NOW,
        discount_amount=discount_amount,
    )


@pytest_asyncio.fixture
async def make_coupon(db_session):
    """Фабрика сохраненных купонов."""

    async def _make_coupon(**overrides) -> Coupon:
        coupon = Coupon(**coupon_fields(**overrides))
        db_session.add(coupon)
        await db_session.commit()
        await db_session.refresh(coupon)
        return coupon

    return _make_coupon


@pytest.fixture
def mock_user():
    """Fixture для создания mock администратора."""
    from unittest.mock import Mock

    user = Mock(spec=User)
    user.id = 1
    user.email = "admin@example.com"
    user.user_type = "admin"
    user.is_admin = True
    user.is_vendor = False
    user.is_active = True
    return user


@pytest.fixture
def mock_vendor():
    """Fixture для создания mock салона."""
    from unittest.mock import Mock

    user = Mock(spec=User)
    user.id = 42
    user.email = "vendor@example.com"
    user.user_type = "vendor"
    user.is_admin = False
    user.is_vendor = True
    user.is_active = True
    return user


@pytest.fixture
def sample_jwt_token():
    """Fixture для создания тестового JWT токена."""
    from jose import jwt

    def _token(user_id: int) -> str:
        payload = {
            "sub": str(user_id),
            "exp": datetime.utcnow() + timedelta(days=1),
        }
        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    return _token


@pytest_asyncio.fixture
async def api_client(test_session_maker):
    """HTTP клиент приложения с тестовой БД."""
    from httpx import AsyncClient, ASGITransport

    from main import app
    from app.database import get_db

    async def override_get_db():
        async with test_session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
