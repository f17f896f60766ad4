"""SQLAlchemy models for marketplace owners and their live-listing index."""

from sqlalchemy import TIMESTAMP, Boolean, Column, ForeignKey, Integer, String

from carmarket.models.base import Base, qualified, table_args


class User(Base):
    """
    ORM model for marketplace owners.

    Only the subscription fields are consumed by the lifecycle core: the
    billing domain writes them, the subscription sweep downgrades them once
    ``subscription_end_date`` has passed.
    """

    __tablename__ = "users"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True)
    role = Column(String, nullable=False, default="individual")  # individual | dealer | admin
    subscription_plan = Column(String, nullable=False, default="free")
    subscription_is_active = Column(Boolean, nullable=False, default=False)
    subscription_end_date = Column(TIMESTAMP(timezone=True), nullable=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)


class UserListingRef(Base):
    """
    Owner back-reference index: one row per live listing an owner has posted.

    A row exists iff the listing is still in the live store. Archival removes
    it in the same transaction that deletes the listing.
    """

    __tablename__ = "user_listing_refs"
    __table_args__ = table_args()

    user_id = Column(
        Integer, ForeignKey(qualified("users"), ondelete="CASCADE"), primary_key=True
    )
    listing_id = Column(Integer, primary_key=True)
