"""Audit snapshots and audit log output.

A snapshot is the full column state of an entity at one instant. Snapshots are a
tagged union on ``entity_type`` so a stored before/after image always parses back
into the right shape.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from stockledger.models.audit_log import AuditAction


class _Snapshot(BaseModel):
    id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProductSnapshot(_Snapshot):
    entity_type: Literal["Product"] = "Product"
    sku: str
    name: str
    description: str = ""
    category_id: str | None = None
    min_stock_level: int
    max_stock_level: int
    reorder_point: int
    unit_price: Decimal
    is_active: bool
    deleted_at: datetime | None = None


class CategorySnapshot(_Snapshot):
    entity_type: Literal["Category"] = "Category"
    name: str
    description: str = ""
    deleted_at: datetime | None = None


class LocationSnapshot(_Snapshot):
    entity_type: Literal["Location"] = "Location"
    code: str
    name: str
    type: str
    address: str = ""
    capacity: int
    is_active: bool
    deleted_at: datetime | None = None


class SupplierSnapshot(_Snapshot):
    entity_type: Literal["Supplier"] = "Supplier"
    name: str
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zip_code: str = ""
    is_active: bool
    deleted_at: datetime | None = None


class ProductLocationSnapshot(_Snapshot):
    entity_type: Literal["ProductLocation"] = "ProductLocation"
    product_id: str
    location_id: str
    quantity: int


Snapshot = Annotated[
    Union[ProductSnapshot, CategorySnapshot, LocationSnapshot, SupplierSnapshot, ProductLocationSnapshot],
    Field(discriminator="entity_type"),
]

SNAPSHOT_TYPES: dict[str, type[_Snapshot]] = {
    "Product": ProductSnapshot,
    "Category": CategorySnapshot,
    "Location": LocationSnapshot,
    "Supplier": SupplierSnapshot,
    "ProductLocation": ProductLocationSnapshot,
}

snapshot_adapter = TypeAdapter(Snapshot)


class AuditLogOut(BaseModel):
    id: int
    user_id: str
    entity: str
    entity_id: str
    action: AuditAction
    before: Optional[Snapshot] = None
    after: Optional[Snapshot] = None
    ip_address: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogDetailOut(AuditLogOut):
    changes: dict[str, dict] = {}
