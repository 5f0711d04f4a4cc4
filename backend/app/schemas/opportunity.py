from datetime import date, datetime

from pydantic import BaseModel, Field

from app.schemas.common import PageParams, ScopedFilters

STAGE_PATTERN = "^(prospecting|qualification|proposal|negotiation|closed-won|closed-lost)$"


class OpportunityFilters(ScopedFilters):
    stage: str | None = None
    assigned_to: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    expected_close_after: date | None = None
    expected_close_before: date | None = None


class OpportunityCreate(BaseModel):
    name: str = Field("Untitled Opportunity", min_length=1, max_length=255)
    lead_id: str | None = None
    customer_id: str | None = None
    value: float = Field(0, ge=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    stage: str = Field("prospecting", pattern=STAGE_PATTERN)
    probability: float = Field(0.1, ge=0, le=1)
    expected_close_date: date | None = None
    description: str | None = None
    next_action: str | None = None
    tags: list[str] = []
    assigned_to: str | None = None


class OpportunityUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    value: float | None = Field(None, ge=0)
    currency: str | None = Field(None, min_length=3, max_length=3)
    stage: str | None = Field(None, pattern=STAGE_PATTERN)
    probability: float | None = Field(None, ge=0, le=1)
    expected_close_date: date | None = None
    description: str | None = None
    lost_reason: str | None = None
    next_action: str | None = None
    tags: list[str] | None = None
    assigned_to: str | None = None


class OpportunityOut(BaseModel):
    id: str
    name: str
    lead_id: str | None = None
    customer_id: str | None = None
    value: float
    currency: str
    stage: str
    probability: float
    expected_close_date: date | None = None
    description: str | None = None
    lost_reason: str | None = None
    next_action: str | None = None
    tags: list[str] = []
    assigned_to: str | None = None
    created_by: str | None = None
    created_at: datetime
    last_activity: datetime | None = None

    model_config = {"from_attributes": True}


class OpportunityListParams(OpportunityFilters, PageParams):
    pass
