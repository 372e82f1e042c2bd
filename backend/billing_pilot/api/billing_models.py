"""Saved billing model endpoints."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException

from billing_pilot.api.deps import get_current_user_id
from billing_pilot.models.stripe import (
    BillingModel,
    BillingModelCreate,
    BillingModelListResponse,
    DeployResult,
)
from billing_pilot.services import billing_models as store
from billing_pilot.services.stripe_billing import get_stripe_service

router = APIRouter(prefix="/api/billing-models", tags=["billing-models"])


@router.get("", response_model=BillingModelListResponse)
async def list_billing_models(user_id: str = Depends(get_current_user_id)):
    """List the user's saved billing models, newest first."""
    models = await store.get_billing_models(user_id)
    return BillingModelListResponse(total=len(models), models=models)


@router.post("", response_model=BillingModel, status_code=201)
async def create_billing_model(
    body: BillingModelCreate,
    user_id: str = Depends(get_current_user_id),
):
    """Save a billing model."""
    try:
        return await store.save_billing_model(user_id, body)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/{model_id}", response_model=BillingModel)
async def get_billing_model(model_id: str, user_id: str = Depends(get_current_user_id)):
    model = await store.get_billing_model(user_id, model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Billing model not found")
    return model


@router.delete("/{model_id}")
async def delete_billing_model(model_id: str, user_id: str = Depends(get_current_user_id)):
    deleted = await store.delete_billing_model(user_id, model_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Billing model not found")
    return {"success": True, "id": model_id}


@router.post("/{model_id}/deploy", response_model=DeployResult)
async def deploy_saved_model(model_id: str, user_id: str = Depends(get_current_user_id)):
    """Deploy a saved billing model to Stripe."""
    model = await store.get_billing_model(user_id, model_id)
    if not model:
        raise HTTPException(status_code=404, detail="Billing model not found")

    service = get_stripe_service()
    if not service.is_enabled:
        raise HTTPException(status_code=503, detail="Stripe is not configured. Set STRIPE_SECRET_KEY.")

    return await asyncio.to_thread(service.deploy_billing_model, model, user_id)
