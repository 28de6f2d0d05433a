import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.database import Base
from stockledger.models.mixins import SoftDeleteMixin, TimestampMixin, utcnow


class Location(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "locations"

    __table_args__ = (CheckConstraint("capacity >= 0", name="ck_locations_capacity_non_negative"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, unique=True, nullable=False)
    type: Mapped[str] = mapped_column(String, default="WAREHOUSE")
    address: Mapped[str] = mapped_column(String, default="")
    capacity: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    stock_rows: Mapped[list["ProductLocation"]] = relationship("ProductLocation", back_populates="location")


class ProductLocation(Base):
    """Authoritative quantity of one product at one location."""

    __tablename__ = "product_locations"

    __table_args__ = (
        UniqueConstraint("product_id", "location_id", name="uq_product_locations_product_location"),
        CheckConstraint("quantity >= 0", name="ck_product_locations_quantity_non_negative"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String, ForeignKey("products.id"), nullable=False, index=True)
    location_id: Mapped[str] = mapped_column(String, ForeignKey("locations.id"), nullable=False, index=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    product: Mapped["Product"] = relationship("Product", back_populates="stock_rows")  # noqa: F821
    location: Mapped["Location"] = relationship("Location", back_populates="stock_rows", lazy="joined")
