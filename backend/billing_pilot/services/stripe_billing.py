"""
Stripe billing service.

Creates products, prices and billing meters with the server-side secret key
and deploys whole billing models item by item. A failing item is recorded
in the result's errors and never stops the rest of the batch; nothing is
retried automatically.

Setup:
    STRIPE_SECRET_KEY=sk_test_...
    STRIPE_API_VERSION=2024-06-20   # optional, account default otherwise
"""

import logging
from typing import Any, Optional

import stripe

from billing_pilot.config import get_settings
from billing_pilot.models.billing import BillingLineItem
from billing_pilot.models.stripe import (
    AggregationFormula,
    BillingModelCreate,
    ConnectionStatus,
    DeployResult,
    DeploySummary,
    MeterCreateResponse,
)
from billing_pilot.services.stripe_config import item_event_name, price_recurring

logger = logging.getLogger(__name__)
settings = get_settings()

CREATED_BY = "billing-pilot"
VALID_FORMULAS = [f.value for f in AggregationFormula]


def _as_dict(obj: Any) -> dict:
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


class StripeBillingService:
    """Talks to Stripe on behalf of the signed-in user."""

    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        self.api_key = api_key or settings.stripe_secret_key
        self.api_version = api_version or settings.stripe_api_version

    @property
    def is_enabled(self) -> bool:
        return bool(self.api_key)

    def _request_options(self) -> dict:
        options = {"api_key": self.api_key}
        if self.api_version:
            options["stripe_version"] = self.api_version
        return options

    # =========================================================================
    # Connection
    # =========================================================================

    def check_connection(self) -> ConnectionStatus:
        """Verify the secret key by retrieving the account."""
        if not self.is_enabled:
            return ConnectionStatus(connected=False, error="Stripe secret key not configured")

        try:
            account = stripe.Account.retrieve(**self._request_options())
            return ConnectionStatus(connected=True, account_id=account["id"])
        except stripe.StripeError as e:
            logger.warning(f"Stripe connection check failed: {e}")
            return ConnectionStatus(connected=False, error=str(e))

    # =========================================================================
    # Primitives
    # =========================================================================

    def create_product(self, item: BillingLineItem, metadata: Optional[dict] = None) -> dict:
        product = stripe.Product.create(
            name=item.name,
            description=item.description or f"{item.name} - {item.type.value} billing",
            metadata={"created_by": CREATED_BY, **(metadata or {})},
            **self._request_options(),
        )
        logger.info(f"Product created: {product['id']} ({item.name})")
        return _as_dict(product)

    def create_price(
        self,
        item: BillingLineItem,
        product_id: str,
        meter_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        """
        Create a price for an item.

        Scheme and interval match the configuration preview. Metered prices
        default to monthly and reference the meter that aggregates their usage.
        """
        params: dict[str, Any] = {
            "product": product_id,
            "unit_amount": item.unit_amount,
            "currency": item.currency.lower(),
            "billing_scheme": item.billing_scheme.value,
            "metadata": {
                "event_name": item.event_name or "",
                "description": item.description or "",
                **(metadata or {}),
            },
        }

        recurring = price_recurring(item)
        if recurring is not None:
            if item.is_metered and meter_id:
                recurring["meter"] = meter_id
            params["recurring"] = recurring

        price = stripe.Price.create(**params, **self._request_options())
        logger.info(f"Price created: {price['id']} ({item.unit_amount} {item.currency})")
        return _as_dict(price)

    def create_meter(
        self,
        display_name: str,
        event_name: str,
        aggregation_formula: str = "sum",
    ) -> dict:
        """
        Create a Stripe billing meter.

        Raises ValueError for an unknown aggregation formula.
        """
        if aggregation_formula not in VALID_FORMULAS:
            raise ValueError(
                f"Invalid aggregation formula. Must be one of: {', '.join(VALID_FORMULAS)}"
            )

        meter = stripe.billing.Meter.create(
            display_name=display_name,
            event_name=event_name,
            default_aggregation={"formula": aggregation_formula},
            customer_mapping={"event_payload_key": "customer_id", "type": "by_id"},
            value_settings={"event_payload_key": "value"},
            **self._request_options(),
        )
        logger.info(f"Meter created: {meter['id']} ({event_name})")
        return _as_dict(meter)

    def create_meter_checked(
        self,
        display_name: str,
        event_name: str,
        aggregation_formula: str = "sum",
    ) -> MeterCreateResponse:
        """create_meter with failures reported in the response."""
        if not self.is_enabled:
            return MeterCreateResponse(success=False, error="Stripe secret key not configured")

        try:
            meter = self.create_meter(display_name, event_name, aggregation_formula)
            return MeterCreateResponse(success=True, meter=meter)
        except ValueError as e:
            return MeterCreateResponse(success=False, error=str(e))
        except stripe.StripeError as e:
            logger.error(f"Meter creation failed for {event_name}: {e}")
            return MeterCreateResponse(success=False, error=str(e))

    # =========================================================================
    # Usage
    # =========================================================================

    def find_customer_id(self, email: str) -> Optional[str]:
        customers = stripe.Customer.list(email=email, limit=1, **self._request_options())
        data = customers["data"]
        return data[0]["id"] if data else None

    def send_meter_event(self, event_name: str, customer_id: str, value: float, metadata: Optional[dict] = None) -> str:
        """Report usage to a meter; returns the event identifier."""
        payload = {**(metadata or {}), "customer_id": customer_id, "value": str(value)}
        event = stripe.billing.MeterEvent.create(
            event_name=event_name,
            payload=payload,
            **self._request_options(),
        )
        return event["identifier"]

    # =========================================================================
    # Deployment
    # =========================================================================

    def deploy_billing_model(self, model: BillingModelCreate, user_id: str) -> DeployResult:
        """
        Deploy every item of a billing model.

        Per item: product, then a meter for metered items, then the price.
        When a metered item's meter can't be created its price is skipped.
        """
        if not self.is_enabled:
            return DeployResult(success=False, error="Stripe secret key not configured")
        if not model.items:
            return DeployResult(success=False, error="Billing model with items is required")

        logger.info(f"Deploying billing model '{model.name}' ({len(model.items)} items) for {user_id}")

        products: list[dict] = []
        prices: list[dict] = []
        meters: list[dict] = []
        errors: list[str] = []

        for item in model.items:
            metadata = {"user_id": user_id, "billing_model_type": model.type.value}
            try:
                product = self.create_product(item, metadata=metadata)
                products.append(product)

                meter_id = None
                if item.is_metered:
                    aggregation = item.aggregate_usage.value if item.aggregate_usage else "sum"
                    try:
                        meter = self.create_meter(item.name, item_event_name(item), aggregation)
                    except (stripe.StripeError, ValueError) as e:
                        logger.warning(f"Meter for {item.name} failed: {e}")
                        errors.append(f"Meter for {item.name}: {e}")
                        continue
                    meters.append(meter)
                    meter_id = meter["id"]

                prices.append(self.create_price(item, product["id"], meter_id=meter_id, metadata=metadata))

            except stripe.StripeError as e:
                logger.error(f"Error deploying {item.name}: {e}")
                errors.append(f"{item.name}: {e}")

        summary = DeploySummary(
            products_created=len(products),
            prices_created=len(prices),
            meters_created=len(meters),
            errors=len(errors),
        )
        logger.info(
            f"Deployment finished: {summary.products_created} products, "
            f"{summary.prices_created} prices, {summary.meters_created} meters, "
            f"{summary.errors} errors"
        )

        return DeployResult(
            success=True,
            products=products,
            prices=prices,
            meters=meters,
            errors=errors,
            summary=summary,
        )


# Singleton
_stripe_service: Optional[StripeBillingService] = None


def get_stripe_service() -> StripeBillingService:
    """Get Stripe billing service singleton."""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeBillingService()
    return _stripe_service
