"""SQLAlchemy model for archived listing snapshots."""

from sqlalchemy import TIMESTAMP, Boolean, Column, Integer, String

from carmarket.models.base import Base, table_args


class ListingHistory(Base):
    """
    Immutable snapshot written exactly once when a listing is archived.

    ``old_listing_id`` is an audit reference without a foreign key, since the
    live row is deleted in the same transaction.
    ``deleted_by`` is NULL when the scheduler archived the listing. No code
    path updates a row after insert.
    """

    __tablename__ = "listing_history"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, autoincrement=True)
    old_listing_id = Column(Integer, nullable=False, index=True)
    title = Column(String, nullable=False)
    make = Column(String, nullable=False)
    model = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    mileage = Column(Integer, nullable=True)
    final_status = Column(String, nullable=False)  # sold | expired | deleted
    final_selling_date = Column(TIMESTAMP(timezone=True), nullable=True)
    seller_user_id = Column(Integer, nullable=False, index=True)
    is_auto_deleted = Column(Boolean, nullable=False, default=False)
    deleted_by = Column(Integer, nullable=True)
    deleted_at = Column(TIMESTAMP(timezone=True), nullable=False)
    images_deleted = Column(Integer, nullable=False, default=0)
    images_failed = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
