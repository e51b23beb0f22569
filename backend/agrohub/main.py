import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agrohub import __version__
from agrohub.config import settings
from agrohub.database import engine, init_models
from agrohub.middleware.exceptions import register_exception_handlers
from agrohub.middleware.rate_limit import RateLimitMiddleware
from agrohub.middleware.security import SecurityHeadersMiddleware
from agrohub.routers import (
    auth,
    crops,
    farms,
    fields,
    finance,
    harvests,
    health,
    inventory,
    livestock,
    parcels,
    veterinary_supplies,
)
from agrohub.utils.redis import close_redis
from agrohub.utils.safe_logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    if settings.environment == "development":
        await init_models()
    if settings.skip_auth_dev:
        logger.warning("skip_auth_dev is set: requests run as the development user")
    logger.info(f"AgroHub {__version__} started ({settings.environment})")
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title="AgroHub",
    description="Multi-tenant farm management API",
    version=__version__,
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    RateLimitMiddleware,
    default_limit=settings.rate_limit_default,
    default_window=settings.rate_limit_window,
    exempt_paths=["/health", "/health/ready", "/docs", "/openapi.json"],
    enabled=settings.rate_limit_enabled,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
# Public
app.include_router(health.router)
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])

# Tenant-scoped (ownership chain and/or owner_id)
app.include_router(farms.router, prefix="/api/farms", tags=["farms"])
app.include_router(fields.router, prefix="/api/fields", tags=["fields"])
app.include_router(parcels.router, prefix="/api/parcels", tags=["parcels"])
app.include_router(crops.router, prefix="/api/crops", tags=["crops"])
app.include_router(livestock.router, prefix="/api/livestock", tags=["livestock"])
app.include_router(harvests.router, prefix="/api/harvests", tags=["harvests"])
app.include_router(inventory.router, prefix="/api/inventory", tags=["inventory"])
app.include_router(finance.router, prefix="/api/finance", tags=["finance"])

# Shared catalog
app.include_router(
    veterinary_supplies.router,
    prefix="/api/veterinary-supplies",
    tags=["veterinary-supplies"],
)
