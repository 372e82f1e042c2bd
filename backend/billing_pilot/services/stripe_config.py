"""
Stripe configuration preview.

Turns reviewed billing items into the products, prices and meters a
deployment would create, and validates items against Stripe's requirements
before anything is sent.
"""

from typing import Optional

from billing_pilot.models.billing import (
    AggregateUsage,
    BillingInterval,
    BillingLineItem,
    BillingType,
)
from billing_pilot.models.stripe import (
    ConfigurationResponse,
    ItemValidation,
    StripeConfiguration,
)
from billing_pilot.services.pricing import generate_event_name

SUPPORTED_CURRENCIES = ("usd", "eur", "gbp")


def item_event_name(item: BillingLineItem) -> str:
    """Meter event name for an item, generated from the name when missing."""
    return item.event_name or generate_event_name(item.name)


def product_payload(item: BillingLineItem) -> dict:
    return {
        "name": item.name,
        "description": item.description or f"{item.name} - {item.type.value} billing",
        "metadata": {
            "event_name": item_event_name(item),
            "billing_type": item.type.value,
            "unit": item.unit or "",
        },
    }


def price_recurring(item: BillingLineItem) -> Optional[dict]:
    """Stripe `recurring` block for an item; None for one-time prices."""
    if item.is_metered:
        interval = item.interval or BillingInterval.MONTH
        return {"interval": interval.value, "usage_type": "metered"}
    if item.type == BillingType.RECURRING and item.interval:
        return {"interval": item.interval.value}
    return None


def price_payload(item: BillingLineItem) -> dict:
    return {
        "product_name": item.name,
        "unit_amount": item.unit_amount,
        "currency": item.currency.lower(),
        "recurring": price_recurring(item),
        "billing_scheme": item.billing_scheme.value,
        "metadata": {
            "event_name": item.event_name or "",
            "description": item.description or "",
        },
    }


def meter_payload(item: BillingLineItem) -> dict:
    aggregation = item.aggregate_usage or AggregateUsage.SUM
    return {
        "display_name": item.name,
        "event_name": item_event_name(item),
        "default_aggregation": {"formula": aggregation.value},
    }


def generate_stripe_configuration(items: list[BillingLineItem]) -> StripeConfiguration:
    """Build the products, prices and meters for a set of items."""
    return StripeConfiguration(
        products=[product_payload(item) for item in items],
        prices=[price_payload(item) for item in items],
        meters=[meter_payload(item) for item in items if item.is_metered],
    )


def validate_billing_item(item: BillingLineItem) -> list[str]:
    """Return the reasons an item can't be deployed; empty when it can."""
    errors = []

    if not item.name.strip():
        errors.append("Product name is required")

    if item.unit_amount <= 0:
        errors.append("Unit amount must be greater than 0")

    if item.currency.lower() not in SUPPORTED_CURRENCIES:
        errors.append("Valid currency is required (USD, EUR, GBP)")

    if item.is_metered and not item.event_name:
        errors.append("Event name is required for metered billing")

    if item.type == BillingType.RECURRING and not item.interval:
        errors.append("Interval is required for recurring billing")

    return errors


def build_configuration_response(items: list[BillingLineItem]) -> ConfigurationResponse:
    validation = []
    for index, item in enumerate(items):
        errors = validate_billing_item(item)
        validation.append(ItemValidation(index=index, name=item.name, valid=not errors, errors=errors))

    return ConfigurationResponse(
        configuration=generate_stripe_configuration(items),
        validation=validation,
        valid=all(v.valid for v in validation),
    )
