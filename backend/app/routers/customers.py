"""Customers router.

Endpoints:
    GET    /api/customers/          List customers in the caller's view
    GET    /api/customers/{id}      Customer detail
    POST   /api/customers/          Create customer
    PATCH  /api/customers/{id}      Update customer
    DELETE /api/customers/{id}      Delete customer
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.context import AuthorizationContext
from app.auth.deps import get_authorization, module_permission
from app.auth.permissions import CUSTOMERS, ModulePermission
from app.database import get_db
from app.schemas.common import PaginatedResponse
from app.schemas.customer import (
    CustomerCreate,
    CustomerListParams,
    CustomerOut,
    CustomerUpdate,
)
from app.services.customers import customers

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[CustomerOut])
async def list_customers(
    params: Annotated[CustomerListParams, Query()],
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
    permission: ModulePermission = Depends(module_permission(CUSTOMERS)),
):
    records, total = await customers.list(
        db, ctx.user_id, params.page, params.page_size, permission, params
    )
    return PaginatedResponse[CustomerOut](
        items=[CustomerOut.model_validate(r) for r in records],
        total=total,
        page=params.page,
        page_size=params.page_size,
    )


@router.get("/{customer_id}", response_model=CustomerOut)
async def get_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    return CustomerOut.model_validate(await customers.get(db, ctx, customer_id))


@router.post("/", response_model=CustomerOut, status_code=201)
async def create_customer(
    body: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    customer = await customers.create(db, ctx, body.model_dump())
    return CustomerOut.model_validate(customer)


@router.patch("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: str,
    body: CustomerUpdate,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    customer = await customers.update(
        db, ctx, customer_id, body.model_dump(exclude_unset=True)
    )
    return CustomerOut.model_validate(customer)


@router.delete("/{customer_id}", status_code=204)
async def delete_customer(
    customer_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: AuthorizationContext = Depends(get_authorization),
):
    await customers.delete(db, ctx, customer_id)
