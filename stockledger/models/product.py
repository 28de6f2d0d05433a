import uuid
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stockledger.database import Base
from stockledger.models.location import ProductLocation
from stockledger.models.mixins import SoftDeleteMixin, TimestampMixin


class Category(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")


class Product(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("min_stock_level >= 0", name="ck_products_min_stock_non_negative"),
        CheckConstraint("max_stock_level >= 0", name="ck_products_max_stock_non_negative"),
        CheckConstraint("reorder_point >= 0", name="ck_products_reorder_point_non_negative"),
        CheckConstraint("unit_price >= 0", name="ck_products_unit_price_non_negative"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    # Unique across live and soft-deleted rows alike
    sku: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    category_id: Mapped[str | None] = mapped_column(String, ForeignKey("categories.id"), nullable=True, index=True)

    min_stock_level: Mapped[int] = mapped_column(Integer, default=10)
    max_stock_level: Mapped[int] = mapped_column(Integer, default=1000)
    reorder_point: Mapped[int] = mapped_column(Integer, default=50)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    category: Mapped[Category | None] = relationship("Category")
    stock_rows: Mapped[list[ProductLocation]] = relationship(
        "ProductLocation",
        back_populates="product",
        lazy="selectin",
        order_by="ProductLocation.location_id",
    )

    @property
    def total_quantity(self) -> int:
        return sum(row.quantity for row in self.stock_rows)
