"""create coupons and coupon_usages tables

Revision ID: c3e4a5b6c7d8
Revises: b2d3f4a5b6c7
Create Date: 2026-10-01 09:20:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "c3e4a5b6c7d8"
down_revision = "b2d3f4a5b6c7"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "coupons",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("code", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("coupon_type", sa.String(length=30), nullable=False),
        sa.Column("value", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("minimum_order_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("maximum_discount_amount", sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_limit_per_user", sa.Integer(), nullable=True),
        sa.Column("times_redeemed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("applicable_plans", sa.JSON(), nullable=True),
        sa.Column(
            "first_time_users_only", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("eligible_user_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("coupon_metadata", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("(CURRENT_TIMESTAMP)"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["eligible_user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "usage_limit IS NULL OR times_redeemed <= usage_limit",
            name="ck_coupons_times_redeemed_within_limit",
        ),
    )
    op.create_index(op.f("ix_coupons_code"), "coupons", ["code"], unique=True)
    op.create_index(op.f("ix_coupons_coupon_type"), "coupons", ["coupon_type"])
    op.create_index(op.f("ix_coupons_valid_from"), "coupons", ["valid_from"])
    op.create_index(op.f("ix_coupons_valid_until"), "coupons", ["valid_until"])
    op.create_index(op.f("ix_coupons_eligible_user_id"), "coupons", ["eligible_user_id"])
    op.create_index(op.f("ix_coupons_status"), "coupons", ["status"])
    op.create_index(op.f("ix_coupons_created_by"), "coupons", ["created_by"])

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("coupon_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("order_id", sa.String(length=255), nullable=True),
        sa.Column("subscription_id", sa.String(length=255), nullable=True),
        sa.Column("plan_id", sa.String(length=255), nullable=True),
        sa.Column("original_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("final_amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("trial_extension_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id"),
    )
    op.create_index(op.f("ix_coupon_usages_coupon_id"), "coupon_usages", ["coupon_id"])
    op.create_index(op.f("ix_coupon_usages_user_id"), "coupon_usages", ["user_id"])
    op.create_index(
        op.f("ix_coupon_usages_subscription_id"), "coupon_usages", ["subscription_id"]
    )
    op.create_index(op.f("ix_coupon_usages_used_at"), "coupon_usages", ["used_at"])


def downgrade() -> None:
    op.drop_index(op.f("ix_coupon_usages_used_at"), table_name="coupon_usages")
    op.drop_index(op.f("ix_coupon_usages_subscription_id"), table_name="coupon_usages")
    op.drop_index(op.f("ix_coupon_usages_user_id"), table_name="coupon_usages")
    op.drop_index(op.f("ix_coupon_usages_coupon_id"), table_name="coupon_usages")
    op.drop_table("coupon_usages")
    op.drop_index(op.f("ix_coupons_created_by"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_status"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_eligible_user_id"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_valid_until"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_valid_from"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_coupon_type"), table_name="coupons")
    op.drop_index(op.f("ix_coupons_code"), table_name="coupons")
    op.drop_table("coupons")
