# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the PackShop API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    PackShopException,
    packshop_exception_handler,
    validation_exception_handler,
)
from app.routers import admin, catalog, health, orders, packs
from app.auth import routes as auth_routes

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    - Startup: log configuration
    - Shutdown: log
    """
    logger.info(f"Starting PackShop API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Storage bucket: {settings.STORAGE_BUCKET}, pack expiry: {settings.PACK_EXPIRY_HOURS}h")

    if not settings.STRIPE_SECRET_KEY:
        logger.warning("STRIPE_SECRET_KEY not set: payment endpoints will fail")
    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set: delivery emails are disabled")

    yield

    logger.info("Shutting down PackShop API")


# Create FastAPI application
app = FastAPI(
    title="PackShop API",
    description="""
## Digital Pack Storefront API

Customers pick files from the catalog, pay, and receive a time-limited link
to one ZIP archive assembled from their selection.

### Purchase Flow

1. **Browse** - `GET /categories`
2. **Pay** - `POST /create-payment-intent` creates a pending order
3. **Confirm** - `POST /confirm-payment/{purchaseId}` once the payment succeeded
4. **Generate** - `POST /generate-pack/{purchaseId}` queues pack assembly
5. **Poll** - `GET /pack-status/{purchaseId}` until `completed`
6. **Download** - `GET /download/{token}` redirects to a signed URL

Packs expire after the configured lifetime (48h by default).

All routes are also served under `/api`.
""",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Catalog",
            "description": "Public product catalog",
        },
        {
            "name": "Orders",
            "description": "Checkout, payment confirmation and status polling",
        },
        {
            "name": "Packs",
            "description": "Pack generation and downloads",
        },
        {
            "name": "Admin",
            "description": "File uploads, catalog management and statistics (admin token)",
        },
        {
            "name": "Auth",
            "description": "Admin login and token verification",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(PackShopException)
async def handle_packshop_exception(request: Request, exc: PackShopException):
    """Handle custom PackShop exceptions."""
    return await packshop_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Render request validation errors as 400."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Erreur serveur",
            "message": "Une erreur inattendue est survenue",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

def build_api_router() -> APIRouter:
    """All public and admin routes, mounted twice below."""
    api = APIRouter()

    # Authentication endpoints
    api.include_router(auth_routes.router, tags=["Auth"])

    # Health check endpoints
    api.include_router(health.router, tags=["Health"])

    # Catalog endpoints
    api.include_router(catalog.router, tags=["Catalog"])

    # Checkout and order endpoints
    api.include_router(orders.router, tags=["Orders"])

    # Pack generation and download endpoints
    api.include_router(packs.router, tags=["Packs"])

    # Admin endpoints
    api.include_router(admin.router, prefix="/admin", tags=["Admin"])

    return api


api_router = build_api_router()

app.include_router(api_router)
app.include_router(api_router, prefix="/api", include_in_schema=False)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "PackShop API",
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
    }
