"""Create marketplace tables

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-18 09:12:31.402518

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]
from carmarket.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3f1c2a9b7d10"
down_revision = None
branch_labels = None
depends_on = None


def _fk(table: str) -> str:
    return f"{SCHEMA}.{table}.id" if SCHEMA else f"{table}.id"


def upgrade() -> None:
    """Upgrade schema."""
    ts = sa.TIMESTAMP(timezone=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("subscription_plan", sa.String(), nullable=False),
        sa.Column("subscription_is_active", sa.Boolean(), nullable=False),
        sa.Column("subscription_end_date", ts, nullable=True),
        sa.Column("created_at", ts, nullable=False),
        sa.Column("updated_at", ts, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_users_subscription_end_date", "users", ["subscription_end_date"], schema=SCHEMA
    )

    op.create_table(
        "user_listing_refs",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], [_fk("users")], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "listing_id"),
        schema=SCHEMA,
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("make", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("variant", sa.String(), nullable=True),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("condition", sa.String(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("color_exterior", sa.String(), nullable=True),
        sa.Column("color_interior", sa.String(), nullable=True),
        sa.Column("fuel_type", sa.String(), nullable=True),
        sa.Column("engine_capacity", sa.Float(), nullable=True),
        sa.Column("transmission", sa.String(), nullable=True),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("regional_spec", sa.String(), nullable=True),
        sa.Column("body_type", sa.String(), nullable=True),
        sa.Column("vehicle_type", sa.String(), nullable=False),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("car_doors", sa.Integer(), nullable=True),
        sa.Column("contact_number", sa.String(), nullable=True),
        sa.Column("warranty", sa.String(), nullable=True),
        sa.Column("number_of_cylinders", sa.Integer(), nullable=True),
        sa.Column("owner_type", sa.String(), nullable=True),
        sa.Column("horsepower", sa.Integer(), nullable=True),
        sa.Column("battery_range", sa.Float(), nullable=True),
        sa.Column("motor_power", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("mileage_flagged", sa.Boolean(), nullable=False),
        sa.Column("mileage_flag_reason", sa.String(), nullable=True),
        sa.Column("is_approved", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("expiry_date", ts, nullable=True),
        sa.Column("sold_date", ts, nullable=True),
        sa.Column("auto_delete_date", ts, nullable=True),
        sa.Column("actual_sale_price", sa.Float(), nullable=True),
        sa.Column("is_auto_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", ts, nullable=True),
        sa.Column("deleted_by", sa.Integer(), nullable=True),
        sa.Column("is_boosted", sa.Boolean(), nullable=False),
        sa.Column("boost_expiry", ts, nullable=True),
        sa.Column("boost_priority", sa.Integer(), nullable=False),
        sa.Column("featured", sa.Boolean(), nullable=False),
        sa.Column("created_at", ts, nullable=False),
        sa.Column("updated_at", ts, nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], [_fk("users")], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"], schema=SCHEMA)
    op.create_index("ix_listings_status", "listings", ["status"], schema=SCHEMA)
    op.create_index("ix_listings_boost_expiry", "listings", ["boost_expiry"], schema=SCHEMA)
    op.create_index(
        "ix_listings_status_expiry", "listings", ["status", "expiry_date"], schema=SCHEMA
    )
    op.create_index(
        "ix_listings_status_auto_delete",
        "listings",
        ["status", "is_auto_deleted", "auto_delete_date"],
        schema=SCHEMA,
    )
    op.create_index(
        "ix_listings_dedupe", "listings", ["owner_id", "make", "model", "year"], schema=SCHEMA
    )

    op.create_table(
        "listing_images",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], [_fk("listings")], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("listing_id", "position"),
        schema=SCHEMA,
    )
    op.create_index("ix_listing_images_listing_id", "listing_images", ["listing_id"], schema=SCHEMA)
    op.create_index("ix_listing_images_url", "listing_images", ["url"], schema=SCHEMA)

    op.create_table(
        "listing_features",
        sa.Column("listing_id", sa.Integer(), nullable=False),
        sa.Column("feature", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["listing_id"], [_fk("listings")], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("listing_id", "feature"),
        schema=SCHEMA,
    )

    op.create_table(
        "listing_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("old_listing_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("make", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("final_status", sa.String(), nullable=False),
        sa.Column("final_selling_date", ts, nullable=True),
        sa.Column("seller_user_id", sa.Integer(), nullable=False),
        sa.Column("is_auto_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_by", sa.Integer(), nullable=True),
        sa.Column("deleted_at", ts, nullable=False),
        sa.Column("images_deleted", sa.Integer(), nullable=False),
        sa.Column("images_failed", sa.Integer(), nullable=False),
        sa.Column("created_at", ts, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_listing_history_old_listing_id", "listing_history", ["old_listing_id"], schema=SCHEMA
    )
    op.create_index(
        "ix_listing_history_seller_user_id", "listing_history", ["seller_user_id"], schema=SCHEMA
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("listing_history", schema=SCHEMA)
    op.drop_table("listing_features", schema=SCHEMA)
    op.drop_table("listing_images", schema=SCHEMA)
    op.drop_table("listings", schema=SCHEMA)
    op.drop_table("user_listing_refs", schema=SCHEMA)
    op.drop_table("users", schema=SCHEMA)
