from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# --- Category schemas ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""

    model_config = {"extra": "forbid"}


class CategoryUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None

    model_config = {"extra": "forbid"}


class CategoryOut(BaseModel):
    id: str
    name: str
    description: str
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Product schemas ---

class ProductCreate(BaseModel):
    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    category_id: str | None = None
    min_stock_level: int = Field(default=10, ge=0)
    max_stock_level: int = Field(default=1000, ge=0)
    reorder_point: int = Field(default=50, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    is_active: bool = True

    model_config = {"extra": "forbid"}


class ProductUpdate(BaseModel):
    sku: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    category_id: str | None = None
    min_stock_level: int | None = Field(default=None, ge=0)
    max_stock_level: int | None = Field(default=None, ge=0)
    reorder_point: int | None = Field(default=None, ge=0)
    unit_price: Decimal | None = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    is_active: bool | None = None

    model_config = {"extra": "forbid"}


class StockRowOut(BaseModel):
    id: str
    product_id: str
    location_id: str
    quantity: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductOut(BaseModel):
    id: str
    sku: str
    name: str
    description: str
    category_id: str | None
    category: CategoryOut | None = None
    min_stock_level: int
    max_stock_level: int
    reorder_point: int
    unit_price: Decimal
    is_active: bool
    stock_rows: list[StockRowOut] = []
    total_quantity: int = 0
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
