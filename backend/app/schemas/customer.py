from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.schemas.common import PageParams, ScopedFilters


class CustomerFilters(ScopedFilters):
    language: str | None = None
    currency: str | None = None
    min_total_value: float | None = None
    max_total_value: float | None = None


class Address(BaseModel):
    type: str = Field("billing", pattern="^(billing|shipping|other)$")
    street: str
    city: str
    state: str | None = None
    zip_code: str | None = None
    country: str
    is_primary: bool = False


class CustomerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    addresses: list[Address] = []
    language: str = "English"
    currency: str = Field("USD", min_length=3, max_length=3)
    total_value: float = Field(0, ge=0)
    notes: str | None = None
    tags: list[str] = []
    owner_id: str | None = None


class CustomerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    addresses: list[Address] | None = None
    language: str | None = None
    currency: str | None = Field(None, min_length=3, max_length=3)
    total_value: float | None = Field(None, ge=0)
    notes: str | None = None
    tags: list[str] | None = None
    owner_id: str | None = None


class CustomerOut(BaseModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    addresses: list[Address] = []
    language: str
    currency: str
    total_value: float
    notes: str | None = None
    tags: list[str] = []
    owner_id: str | None = None
    created_at: datetime
    last_activity: datetime | None = None

    model_config = {"from_attributes": True}


class CustomerListParams(CustomerFilters, PageParams):
    pass
