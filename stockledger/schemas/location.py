from datetime import datetime

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    type: str = "WAREHOUSE"
    address: str = ""
    capacity: int = Field(default=0, ge=0)
    is_active: bool = True

    model_config = {"extra": "forbid"}


class LocationUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    type: str | None = None
    address: str | None = None
    capacity: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    model_config = {"extra": "forbid"}


class LocationOut(BaseModel):
    id: str
    code: str
    name: str
    type: str
    address: str
    capacity: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


# --- Stock ledger requests ---

class StockSet(BaseModel):
    product_id: str
    location_id: str
    quantity: int  # absolute; negative values are rejected by the ledger


class StockAdjust(BaseModel):
    product_id: str
    location_id: str
    delta: int  # positive to add, negative to remove


class StockLevelOut(BaseModel):
    product_id: str
    sku: str
    name: str
    reorder_point: int
    total_quantity: int
