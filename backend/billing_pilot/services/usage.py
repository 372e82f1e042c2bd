"""
Usage event recording.

Stores usage events in Supabase and, for meters linked to Stripe, forwards
them as Stripe meter events. Stripe failures never fail the recording.
"""

import asyncio
import logging
from typing import Optional

import stripe

from billing_pilot.models.stripe import UsageEventResponse
from billing_pilot.services import supabase as db
from billing_pilot.services.stripe_billing import get_stripe_service

logger = logging.getLogger(__name__)


async def record_usage_event(
    user: dict,
    meter_name: str,
    value: float = 1,
    metadata: Optional[dict[str, str]] = None,
) -> UsageEventResponse:
    """
    Record usage against a named meter.

    Args:
        user: {"id", "email"} of the authenticated user
        meter_name: Name of a row in usage_meters
        value: Usage quantity
        metadata: Extra string key/values stored with the event
    """
    metadata = metadata or {}

    meter = await db.get_meter(meter_name)
    if not meter:
        return UsageEventResponse(success=False, error=f"Meter not found: {meter_name}")

    event = await db.insert_usage_event({
        "user_id": user["id"],
        "meter_id": meter["id"],
        "event_name": meter["event_name"],
        "value": float(value),
        "metadata": metadata,
    })
    if not event:
        return UsageEventResponse(success=False, error="Failed to record usage event")

    logger.info(f"Usage event {event['id']} recorded on {meter['event_name']} for {user['id']}")

    stripe_event_id = None
    if meter.get("stripe_meter_id"):
        stripe_event_id = await _forward_to_stripe(user, meter, event, value, metadata)

    return UsageEventResponse(
        success=True,
        event_id=str(event["id"]),
        stripe_event_id=stripe_event_id,
        message="Usage event recorded successfully",
    )


async def _forward_to_stripe(
    user: dict,
    meter: dict,
    event: dict,
    value: float,
    metadata: dict,
) -> Optional[str]:
    service = get_stripe_service()
    if not service.is_enabled or not user.get("email"):
        return None

    try:
        customer_id = await asyncio.to_thread(service.find_customer_id, user["email"])
        if not customer_id:
            logger.info(f"No Stripe customer for {user['email']}, skipping meter event")
            return None

        stripe_event_id = await asyncio.to_thread(
            service.send_meter_event, meter["event_name"], customer_id, value, metadata
        )
        await db.update_usage_event(event["id"], {"stripe_event_id": stripe_event_id})
        logger.info(f"Stripe meter event created: {stripe_event_id}")
        return stripe_event_id

    except stripe.StripeError as e:
        logger.warning(f"Stripe error (non-fatal): {e}")
        return None
