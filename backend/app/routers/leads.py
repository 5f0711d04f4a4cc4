"""Leads router.

Endpoints:
    GET    /api/leads/                       List leads in the caller's view
    GET    /api/leads/{id}                   Lead detail
    POST   /api/leads/                       Create lead
    PATCH  /api/leads/{id}                   Update lead
    DELETE /api/leads/{id}                   Delete lead
    GET    /api/leads/{id}/communications    Communication history
    POST   /api/leads/{id}/communications    Log a communication
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.deps import get_authorization, module_permission
from app.auth.permissions import LEADS, ModulePermission
from app.database import get_db
from app.schemas.common import PaginatedResponse
from app.schemas.lead import (
    CommunicationCreate,
    CommunicationOut,
    LeadCreate,
    LeadListParams,
    LeadOut,
    LeadUpdate,
)
from app.services.leads import leads

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[LeadOut])
async def list_leads(
    params: Annotated[LeadListParams, Query()],
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
    permission: ModulePermission = Depends(module_permission(LEADS)),
):
    """Leads visible to the caller; empty (not 403) without a view grant."""
    records, total = await leads.list(
        db, ctx.user_id, params.page, params.page_size, permission, params
    )
    return PaginatedResponse[LeadOut](
        items=[LeadOut.model_validate(r) for r in records],
        total=total,
        page=params.page,
        page_size=params.page_size,
    )


@router.get("/{lead_id}", response_model=LeadOut)
async def get_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    return LeadOut.model_validate(await leads.get(db, ctx, lead_id))


@router.post("/", response_model=LeadOut, status_code=201)
async def create_lead(
    body: LeadCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    lead = await leads.create(db, ctx, body.model_dump())
    return LeadOut.model_validate(lead)


@router.patch("/{lead_id}", response_model=LeadOut)
async def update_lead(
    lead_id: str,
    body: LeadUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    lead = await leads.update(db, ctx, lead_id, body.model_dump(exclude_unset=True))
    return LeadOut.model_validate(lead)


@router.delete("/{lead_id}", status_code=204)
async def delete_lead(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    await leads.delete(db, ctx, lead_id)


@router.get("/{lead_id}/communications", response_model=list[CommunicationOut])
async def list_communications(
    lead_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    communications = await leads.list_communications(db, ctx, lead_id)
    return [CommunicationOut.model_validate(c) for c in communications]


@router.post(
    "/{lead_id}/communications", response_model=CommunicationOut, status_code=201
)
async def add_communication(
    lead_id: str,
    body: CommunicationCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    communication = await leads.add_communication(db, ctx, lead_id, body.model_dump())
    return CommunicationOut.model_validate(communication)
