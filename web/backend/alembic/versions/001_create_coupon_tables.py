"""Создать таблицы маркетплейса и купонов

Revision ID: 001_create_coupon_tables
Revises:
Create Date: 2026-03-01 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001_create_coupon_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Создать пользователей, услуги, записи, купоны и журнал использования."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("user_type", sa.String(length=20), nullable=False, server_default="customer"),
        sa.Column("rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("user_type IN ('customer', 'vendor', 'admin')", name="ck_users_user_type"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)
    op.create_index("ix_users_user_type", "users", ["user_type"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_services_vendor_id", "services", ["vendor_id"], unique=False)
    op.create_index("ix_services_category", "services", ["category"], unique=False)
    op.create_index("ix_services_is_active", "services", ["is_active"], unique=False)

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=20), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("minimum_amount", sa.Integer(), nullable=True),
        sa.Column("maximum_discount", sa.Integer(), nullable=True),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("service_categories", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("service_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("max_uses", sa.Integer(), nullable=True),
        sa.Column("max_uses_per_customer", sa.Integer(), nullable=True, server_default="1"),
        sa.Column("current_uses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("first_time_customers_only", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("minimum_rating", sa.Numeric(3, 2), nullable=True),
        sa.Column("days_of_week", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("time_slots", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("code", name="uq_coupons_code"),
        sa.CheckConstraint(
            "type IN ('percentage', 'fixed_amount', 'free_service')", name="ck_coupons_type"
        ),
        sa.CheckConstraint("current_uses >= 0", name="ck_coupons_current_uses"),
        sa.CheckConstraint("max_uses IS NULL OR current_uses <= max_uses", name="ck_coupons_max_uses"),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=False)
    op.create_index("ix_coupons_vendor_id", "coupons", ["vendor_id"], unique=False)
    op.create_index("ix_coupons_created_by", "coupons", ["created_by"], unique=False)
    op.create_index("idx_coupons_vendor_active", "coupons", ["vendor_id", "is_active"], unique=False)
    op.create_index("idx_coupons_dates", "coupons", ["start_date", "end_date"], unique=False)
    op.create_index("idx_coupons_type_active", "coupons", ["type", "is_active"], unique=False)

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_id", sa.Integer(), sa.ForeignKey("services.id", ondelete="SET NULL"), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="pending"),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'no_show')", name="ck_bookings_status"
        ),
    )
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"], unique=False)
    op.create_index("ix_bookings_vendor_id", "bookings", ["vendor_id"], unique=False)
    op.create_index("ix_bookings_service_id", "bookings", ["service_id"], unique=False)
    op.create_index("ix_bookings_scheduled_at", "bookings", ["scheduled_at"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index("idx_bookings_customer_status", "bookings", ["customer_id", "status"], unique=False)

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("customer_use_number", sa.Integer(), nullable=False),
        sa.Column("used_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        sa.UniqueConstraint(
            "coupon_id", "customer_id", "customer_use_number", name="uq_coupon_usage_customer_seq"
        ),
        sa.CheckConstraint("discount_amount >= 0", name="ck_coupon_usages_discount"),
    )
    op.create_index("ix_coupon_usages_coupon_id", "coupon_usages", ["coupon_id"], unique=False)
    op.create_index("ix_coupon_usages_customer_id", "coupon_usages", ["customer_id"], unique=False)


def downgrade() -> None:
    """Удалить таблицы маркетплейса и купонов."""
    op.drop_table("coupon_usages")
    op.drop_table("bookings")
    op.drop_table("coupons")
    op.drop_table("services")
    op.drop_table("users")
