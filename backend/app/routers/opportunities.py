"""Opportunities router.

Endpoints:
    GET    /api/opportunities/          List opportunities in the caller's view
    GET    /api/opportunities/{id}      Opportunity detail
    POST   /api/opportunities/          Create opportunity
    PATCH  /api/opportunities/{id}      Update opportunity
    DELETE /api/opportunities/{id}      Delete opportunity
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.deps import get_authorization, module_permission
from app.auth.permissions import OPPORTUNITIES, ModulePermission
from app.database import get_db
from app.schemas.common import PaginatedResponse
from app.schemas.opportunity import (
    OpportunityCreate,
    OpportunityListParams,
    OpportunityOut,
    OpportunityUpdate,
)
from app.services.opportunities import opportunities

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[OpportunityOut])
async def list_opportunities(
    params: Annotated[OpportunityListParams, Query()],
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
    permission: ModulePermission = Depends(module_permission(OPPORTUNITIES)),
):
    records, total = await opportunities.list(
        db, ctx.user_id, params.page, params.page_size, permission, params
    )
    return PaginatedResponse[OpportunityOut](
        items=[OpportunityOut.model_validate(r) for r in records],
        total=total,
        page=params.page,
        page_size=params.page_size,
    )


@router.get("/{opportunity_id}", response_model=OpportunityOut)
async def get_opportunity(
    opportunity_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    return OpportunityOut.model_validate(await opportunities.get(db, ctx, opportunity_id))


@router.post("/", response_model=OpportunityOut, status_code=201)
async def create_opportunity(
    body: OpportunityCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    opportunity = await opportunities.create(db, ctx, body.model_dump())
    return OpportunityOut.model_validate(opportunity)


@router.patch("/{opportunity_id}", response_model=OpportunityOut)
async def update_opportunity(
    opportunity_id: str,
    body: OpportunityUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    opportunity = await opportunities.update(
        db, ctx, opportunity_id, body.model_dump(exclude_unset=True)
    )
    return OpportunityOut.model_validate(opportunity)


@router.delete("/{opportunity_id}", status_code=204)
async def delete_opportunity(
    opportunity_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    await opportunities.delete(db, ctx, opportunity_id)
