"""
End-to-end tests for the import-to-Stripe flow.

Parse pasted data, review the recommendation, preview the configuration,
then deploy. Stripe is patched at the SDK boundary so the whole service
stack runs; the live variant needs a Stripe test key.
"""

import os

import pytest
import stripe
from unittest.mock import patch

from billing_pilot.services.stripe_billing import StripeBillingService


PRICE_SHEET = """Service\tMeter Name\tUnit\tRate
API Calls\tapi_calls\trequest\t$0.02
Storage\tstorage_usage\tGB-Month\t$0.10
Bandwidth\tbandwidth_out\tGB\t$0.09
"""


def _create(prefix):
    counter = {"n": 0}

    def create(**kwargs):
        counter["n"] += 1
        return {"id": f"{prefix}_{counter['n']}"}

    return create


@pytest.mark.e2e
class TestImportToStripeFlow:
    """
    1. Parse pasted price sheet
    2. Get a billing model recommendation
    3. Preview and validate the Stripe configuration
    4. Deploy
    """

    @pytest.mark.asyncio
    async def test_full_flow(self, async_client):
        parse = await async_client.post("/api/parse/text", json={"text": PRICE_SHEET})
        assert parse.status_code == 200
        items = parse.json()["items"]
        assert len(items) == 3
        assert all(i["type"] == "metered" for i in items)

        analysis = await async_client.post("/api/parse/analyze", json={"items": items})
        assert analysis.json()["recommended_model"] == "pay-as-you-go"
        optimized = analysis.json()["optimized_items"]

        preview = await async_client.post("/api/stripe/configuration", json={"items": optimized})
        assert preview.json()["valid"] is True
        assert len(preview.json()["configuration"]["meters"]) == 3

        service = StripeBillingService(api_key="sk_test_123")
        with patch("billing_pilot.api.stripe.get_stripe_service", return_value=service), \
             patch.object(stripe.Product, "create", side_effect=_create("prod")), \
             patch.object(stripe.Price, "create", side_effect=_create("price")), \
             patch.object(stripe.billing.Meter, "create", side_effect=_create("mtr")):

            deploy = await async_client.post(
                "/api/stripe/deploy",
                json={"name": "Usage pricing", "type": "pay-as-you-go", "items": optimized},
            )

        assert deploy.status_code == 200
        summary = deploy.json()["summary"]
        assert summary == {"products_created": 3, "prices_created": 3, "meters_created": 3, "errors": 0}

    @pytest.mark.skipif(not os.getenv("STRIPE_TEST_KEY"), reason="Requires a Stripe test key")
    def test_live_connection(self):
        status = StripeBillingService(api_key=os.environ["STRIPE_TEST_KEY"]).check_connection()
        assert status.connected is True
