"""Usage metering endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from billing_pilot.api.deps import get_current_user
from billing_pilot.models.stripe import UsageEventRequest, UsageEventResponse
from billing_pilot.services.usage import record_usage_event

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.post("/events", response_model=UsageEventResponse)
async def record_event(body: UsageEventRequest, user: dict = Depends(get_current_user)):
    """
    Record a usage event.

    Forwarded to Stripe when the meter is linked to a Stripe meter and the
    user has a Stripe customer; Stripe failures don't fail the request.
    """
    result = await record_usage_event(user, body.meter_name, body.value, body.metadata)
    if not result.success:
        status = 404 if result.error and result.error.startswith("Meter not found") else 500
        raise HTTPException(status_code=status, detail=result.error)
    return result
