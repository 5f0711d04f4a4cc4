import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.middleware.exceptions import register_exception_handlers
from app.routers import customers, health, leads, me, opportunities, roles
from app.utils.cache import close_redis

logger = logging.getLogger("leaddesk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"LeadDesk API starting ({settings.environment})")
    yield
    await close_redis()
    logger.info("LeadDesk API stopped")


app = FastAPI(
    title="LeadDesk",
    description="Multi-tenant CRM with role-based, view-scoped access control",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(me.router, prefix="/api/me", tags=["me"])

# Permission-scoped CRM entities
app.include_router(leads.router, prefix="/api/leads", tags=["leads"])
app.include_router(opportunities.router, prefix="/api/opportunities", tags=["opportunities"])
app.include_router(customers.router, prefix="/api/customers", tags=["customers"])

# Super admin
app.include_router(roles.router, prefix="/api/roles", tags=["roles"])
