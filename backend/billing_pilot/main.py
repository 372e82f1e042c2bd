"""
billing-pilot: FastAPI backend for importing price sheets into Stripe billing.

Run with: uvicorn billing_pilot.main:app --reload

Architecture:
- Parses pasted text and uploaded files (Excel, CSV, JSON, PDF, images)
  into normalized billing line items
- Recommends a billing model and previews the Stripe configuration
- Deploys products, prices and meters to Stripe with the server-side key
- Saved models and usage events live in Supabase; requests carry a
  Supabase access token
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from billing_pilot.config import get_settings
from billing_pilot.api import health
from billing_pilot.api import parse as parse_api
from billing_pilot.api import billing_models as billing_models_api
from billing_pilot.api import stripe as stripe_api
from billing_pilot.api import usage as usage_api
from billing_pilot.services.ocr import TESSERACT_AVAILABLE

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting billing-pilot backend...")

    if not settings.supabase_url:
        logger.warning("SUPABASE_URL not set - authenticated endpoints will reject every request")
    if not settings.stripe_enabled:
        logger.warning("STRIPE_SECRET_KEY not set - deployment endpoints are disabled")
    if settings.feature_image_ocr and not TESSERACT_AVAILABLE:
        logger.warning("Image OCR enabled but pytesseract is not installed")

    yield

    logger.info("Shutting down billing-pilot backend...")


app = FastAPI(
    title="billing-pilot",
    description="Billing data import and Stripe setup API",
    version=VERSION,
    lifespan=lifespan,
)

# CORS - allow frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(parse_api.router)  # /api/parse
app.include_router(billing_models_api.router)  # /api/billing-models
app.include_router(stripe_api.router)  # /api/stripe
app.include_router(usage_api.router)  # /api/usage


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "billing-pilot",
        "version": VERSION,
        "description": "Import price sheets and deploy them as Stripe billing models",
        "docs": "/docs",
        "endpoints": {
            "health": "/health",
            "parse": "/api/parse",
            "billing-models": "/api/billing-models",
            "stripe": "/api/stripe",
            "usage": "/api/usage",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "billing_pilot.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=not settings.is_production,
    )
