from datetime import datetime

from pydantic import BaseModel, Field


class SupplierCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    zip_code: str = ""
    is_active: bool = True

    model_config = {"extra": "forbid"}


class SupplierUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    zip_code: str | None = None
    is_active: bool | None = None

    model_config = {"extra": "forbid"}


class SupplierOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    country: str
    zip_code: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}
