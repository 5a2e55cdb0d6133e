"""
SQLAlchemy модели для базы данных маркетплейса салонов
"""
from datetime import datetime

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric,
    String, Text, UniqueConstraint, Index, CheckConstraint, event
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.dialects.postgresql import JSONB

Base = declarative_base()

# JSONB в PostgreSQL, обычный JSON в остальных диалектах (SQLite в тестах)
JSONList = JSON().with_variant(JSONB(), "postgresql")

COUPON_TYPES = ("percentage", "fixed_amount", "free_service")
USER_TYPES = ("customer", "vendor", "admin")
BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no_show")


def _one_of(column: str, values) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


class User(Base):
    """Пользователи маркетплейса (клиенты, салоны, администраторы)"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    user_type = Column(String(20), default="customer", nullable=False, index=True)  # customer, vendor, admin
    rating = Column(Numeric(3, 2), nullable=True)  # средний рейтинг салона, 0-5
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    services = relationship("Service", back_populates="vendor")

    __table_args__ = (
        CheckConstraint(_one_of("user_type", USER_TYPES), name="ck_users_user_type"),
    )

    @property
    def is_admin(self) -> bool:
        return self.user_type == "admin"

    @property
    def is_vendor(self) -> bool:
        return self.user_type == "vendor"


class Service(Base):
    """Услуги салонов"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False)  # в минутах
    price = Column(Integer, nullable=False)  # в минимальных единицах валюты
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    vendor = relationship("User", back_populates="services")
    bookings = relationship("Booking", back_populates="service")


class Booking(Base):
    """Записи клиентов"""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id", ondelete="SET NULL"), nullable=True, index=True)

    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False, default=60)  # в минутах
    status = Column(String(50), default="pending", nullable=False, index=True)  # pending, confirmed, completed, cancelled, no_show

    total_price = Column(Integer, nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    discount_amount = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    service = relationship("Service", back_populates="bookings")
    coupon = relationship("Coupon", back_populates="bookings")

    __table_args__ = (
        CheckConstraint(_one_of("status", BOOKING_STATUSES), name="ck_bookings_status"),
        Index("idx_bookings_customer_status", "customer_id", "status"),
    )


class Coupon(Base):
    """Купоны на скидку"""
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    type = Column(String(20), nullable=False)  # percentage, fixed_amount, free_service
    value = Column(Numeric(10, 2), nullable=False)  # процент (0-100) или сумма в минимальных единицах
    minimum_amount = Column(Integer, nullable=True)
    maximum_discount = Column(Integer, nullable=True)  # только для percentage

    # Применимость
    vendor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)  # None - купон платформы
    service_categories = Column(JSONList, nullable=True)
    service_ids = Column(JSONList, nullable=True)

    # Лимиты использования
    max_uses = Column(Integer, nullable=True)
    max_uses_per_customer = Column(Integer, default=1, nullable=True)
    current_uses = Column(Integer, default=0, nullable=False)

    # Срок действия
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Условия
    first_time_customers_only = Column(Boolean, default=False, nullable=False)
    minimum_rating = Column(Numeric(3, 2), nullable=True)
    days_of_week = Column(JSONList, nullable=True)  # 0-6, воскресенье = 0
    time_slots = Column(JSONList, nullable=True)  # [{"start": "09:00", "end": "17:00"}]

    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    usages = relationship(
        "CouponUsage",
        back_populates="coupon",
        cascade="all, delete-orphan",
        order_by="CouponUsage.used_at",
    )
    bookings = relationship("Booking", back_populates="coupon")

    __table_args__ = (
        CheckConstraint(_one_of("type", COUPON_TYPES), name="ck_coupons_type"),
        CheckConstraint("current_uses >= 0", name="ck_coupons_current_uses"),
        CheckConstraint("max_uses IS NULL OR current_uses <= max_uses", name="ck_coupons_max_uses"),
        Index("idx_coupons_vendor_active", "vendor_id", "is_active"),
        Index("idx_coupons_dates", "start_date", "end_date"),
        Index("idx_coupons_type_active", "type", "is_active"),
    )

    def __repr__(self):
        return f"<Coupon {self.code}>"


class CouponUsage(Base):
    """Журнал использования купонов (только добавление)"""
    __tablename__ = "coupon_usages"

    id = Column(Integer, primary_key=True, index=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    customer_use_number = Column(Integer, nullable=False)  # порядковый номер использования клиентом
    used_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    discount_amount = Column(Integer, nullable=False)

    # Relationships
    coupon = relationship("Coupon", back_populates="usages")

    __table_args__ = (
        UniqueConstraint("coupon_id", "customer_id", "customer_use_number", name="uq_coupon_usage_customer_seq"),
        CheckConstraint("discount_amount >= 0", name="ck_coupon_usages_discount"),
    )


def validate_coupon_terms(coupon: Coupon) -> None:
    """Проверить инварианты купона перед записью в БД.

    Raises:
        ValueError: если окончание не позже начала или процент больше 100
    """
    if coupon.start_date is not None and coupon.end_date is not None:
        if coupon.end_date <= coupon.start_date:
            raise ValueError("End date must be after start date")
    if coupon.type == "percentage" and coupon.value is not None and coupon.value > 100:
        raise ValueError("Percentage value cannot exceed 100")


@event.listens_for(Coupon, "before_insert")
@event.listens_for(Coupon, "before_update")
def _validate_coupon_before_save(mapper, connection, target):
    validate_coupon_terms(target)
