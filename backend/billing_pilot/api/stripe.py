"""Stripe configuration and deployment endpoints."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from billing_pilot.api.deps import get_current_user_id
from billing_pilot.models.billing import AnalyzeRequest
from billing_pilot.models.stripe import (
    BillingModelCreate,
    ConfigurationResponse,
    ConnectionStatus,
    DeployResult,
    MeterCreateRequest,
    MeterCreateResponse,
)
from billing_pilot.services.stripe_billing import get_stripe_service
from billing_pilot.services.stripe_config import build_configuration_response

router = APIRouter(prefix="/api/stripe", tags=["stripe"])


def _require_stripe():
    service = get_stripe_service()
    if not service.is_enabled:
        raise HTTPException(status_code=503, detail="Stripe is not configured. Set STRIPE_SECRET_KEY.")
    return service


@router.post("/configuration", response_model=ConfigurationResponse)
async def preview_configuration(
    body: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Preview the products, prices and meters a deployment would create.

    Each item is validated; nothing is sent to Stripe.
    """
    return build_configuration_response(body.items)


@router.post("/deploy", response_model=DeployResult)
async def deploy_model(
    body: BillingModelCreate,
    user_id: str = Depends(get_current_user_id),
):
    """Deploy an unsaved billing model to Stripe."""
    service = _require_stripe()
    if not body.items:
        raise HTTPException(status_code=400, detail="Billing model with items is required")
    return await asyncio.to_thread(service.deploy_billing_model, body, user_id)


@router.post("/meters", response_model=MeterCreateResponse)
async def create_meter(
    body: MeterCreateRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Create a Stripe billing meter."""
    service = _require_stripe()
    result = await asyncio.to_thread(
        service.create_meter_checked,
        body.display_name,
        body.event_name,
        body.aggregation_formula,
    )
    if not result.success and result.error and result.error.startswith("Invalid aggregation formula"):
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.get("/connection", response_model=ConnectionStatus)
async def connection_status(user_id: str = Depends(get_current_user_id)):
    """Check whether the configured Stripe key works."""
    return await asyncio.to_thread(get_stripe_service().check_connection)
