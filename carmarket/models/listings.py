"""SQLAlchemy models for live vehicle listings and their child rows."""

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from carmarket.models.base import Base, qualified, table_args


class Listing(Base):
    """
    ORM model for a live vehicle listing.

    ``status`` is exactly one of active, sold, expired or deleted. A listing
    only holds ``deleted`` for the instant between the archival claim and its
    removal inside the same transaction; after commit the row is gone and a
    ListingHistory snapshot remains.
    """

    __tablename__ = "listings"
    __table_args__ = table_args(
        Index("ix_listings_status_expiry", "status", "expiry_date"),
        Index("ix_listings_status_auto_delete", "status", "is_auto_deleted", "auto_delete_date"),
        Index("ix_listings_dedupe", "owner_id", "make", "model", "year"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(
        Integer, ForeignKey(qualified("users"), ondelete="CASCADE"), nullable=False, index=True
    )

    # Descriptive
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    variant = Column(String, nullable=True)
    year = Column(Integer, nullable=False)
    condition = Column(String, nullable=True)
    price = Column(Float, nullable=False)
    color_exterior = Column(String, nullable=True)
    color_interior = Column(String, nullable=True)
    fuel_type = Column(String, nullable=True)
    engine_capacity = Column(Float, nullable=True)
    transmission = Column(String, nullable=True)
    mileage = Column(Integer, nullable=True)
    regional_spec = Column(String, nullable=True)
    body_type = Column(String, nullable=True)
    vehicle_type = Column(String, nullable=False, default="Car")
    city = Column(String, nullable=True)
    location = Column(String, nullable=True)
    car_doors = Column(Integer, nullable=True)
    contact_number = Column(String, nullable=True)
    warranty = Column(String, nullable=True)
    number_of_cylinders = Column(Integer, nullable=True)
    owner_type = Column(String, nullable=True)
    horsepower = Column(Integer, nullable=True)
    battery_range = Column(Float, nullable=True)
    motor_power = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Moderation
    mileage_flagged = Column(Boolean, nullable=False, default=False)
    mileage_flag_reason = Column(String, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=True)

    # Lifecycle
    status = Column(String, nullable=False, default="active", index=True)
    expiry_date = Column(TIMESTAMP(timezone=True), nullable=True)
    sold_date = Column(TIMESTAMP(timezone=True), nullable=True)
    auto_delete_date = Column(TIMESTAMP(timezone=True), nullable=True)
    actual_sale_price = Column(Float, nullable=True)
    is_auto_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(TIMESTAMP(timezone=True), nullable=True)
    deleted_by = Column(Integer, nullable=True)

    # Boost
    is_boosted = Column(Boolean, nullable=False, default=False)
    boost_expiry = Column(TIMESTAMP(timezone=True), nullable=True, index=True)
    boost_priority = Column(Integer, nullable=False, default=0)
    featured = Column(Boolean, nullable=False, default=False)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)


class ListingImage(Base):
    """Ordered image URLs hosted by the external object store."""

    __tablename__ = "listing_images"
    __table_args__ = table_args(UniqueConstraint("listing_id", "position"))

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(
        Integer,
        ForeignKey(qualified("listings"), ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)
    url = Column(String, nullable=False, index=True)


class ListingFeature(Base):
    __tablename__ = "listing_features"
    __table_args__ = table_args()

    listing_id = Column(
        Integer, ForeignKey(qualified("listings"), ondelete="CASCADE"), primary_key=True
    )
    feature = Column(String, primary_key=True)
