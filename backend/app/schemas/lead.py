from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.schemas.common import PageParams, ScopedFilters


class LeadFilters(ScopedFilters):
    status: str | None = None
    source: str | None = None
    min_score: int | None = None
    max_score: int | None = None


class LeadCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    source: str = "manual"
    score: int = 0
    status: str = "new"
    location: str | None = None
    notes: str | None = None
    tags: list[str] = []
    assigned_to: str | None = None


class LeadUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    source: str | None = None
    score: int | None = None
    status: str | None = None
    location: str | None = None
    notes: str | None = None
    tags: list[str] | None = None
    assigned_to: str | None = None


class LeadOut(BaseModel):
    id: str
    name: str
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    source: str
    score: int
    status: str
    location: str | None = None
    notes: str | None = None
    tags: list[str] = []
    assigned_to: str | None = None
    created_by: str | None = None
    created_at: datetime
    last_activity: datetime | None = None

    model_config = {"from_attributes": True}


class CommunicationCreate(BaseModel):
    type: str = Field(..., pattern="^(email|sms|call|meeting|note)$")
    direction: str = Field("outbound", pattern="^(inbound|outbound)$")
    sender: str | None = None
    recipient: str | None = None
    subject: str | None = None
    content: str = Field(..., min_length=1)
    status: str = "sent"


class CommunicationOut(BaseModel):
    id: str
    lead_id: str
    type: str
    direction: str
    sender: str | None = None
    recipient: str | None = None
    subject: str | None = None
    content: str
    status: str
    user_id: str | None = None
    timestamp: datetime

    model_config = {"from_attributes": True}


class LeadListParams(LeadFilters, PageParams):
    pass
