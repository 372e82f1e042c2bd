"""
Unit tests for billing model recommendation.
"""

import pytest

from billing_pilot.models.billing import (
    AggregateUsage,
    BillingInterval,
    BillingLineItem,
    BillingType,
    UsageType,
)
from billing_pilot.services.analysis import (
    calculate_variance,
    detect_billing_type,
    determine_aggregation,
    determine_pricing_tier,
    optimize_item,
    recommend_billing_model,
)


def item(name, price, **fields):
    return BillingLineItem(name=name, price=price, **fields)


class TestRecommendation:

    @pytest.mark.unit
    def test_empty_input(self):
        result = recommend_billing_model([])

        assert result.recommended_model == "pay-as-you-go"
        assert result.confidence == 0
        assert result.detected_patterns == ["No data provided"]

    @pytest.mark.unit
    def test_meter_names_mean_pay_as_you_go(self, sample_items):
        result = recommend_billing_model(sample_items)

        assert result.recommended_model == "pay-as-you-go"
        assert result.confidence == 95
        assert result.metering_strategy == "pure-usage-based"

    @pytest.mark.unit
    def test_subscription_plans(self):
        items = [item("Starter Plan", 29), item("Team Plan", 99), item("Enterprise Plan", 499)]
        result = recommend_billing_model(items)

        assert result.recommended_model == "flat-recurring"
        assert result.confidence == 88
        assert "High price variance - multiple tiers" in result.detected_patterns

    @pytest.mark.unit
    def test_subscription_with_usage(self):
        items = [item("Starter Plan", 29), item("Team Plan", 99), item("Pro Plan", 199), item("API Overage", 25)]
        result = recommend_billing_model(items)

        assert result.recommended_model == "fixed-overage"
        assert result.metering_strategy == "base-plus-usage"

    @pytest.mark.unit
    def test_micro_pricing(self):
        items = [item("Widget A", 0.10), item("Widget B", 0.12)]
        result = recommend_billing_model(items)

        assert result.recommended_model == "pay-as-you-go"
        assert result.metering_strategy == "micro-usage"

    @pytest.mark.unit
    def test_freemium_pattern(self):
        result = recommend_billing_model([item("Free", 0), item("Paid", 20)])
        assert "Freemium pricing detected" in result.detected_patterns

    @pytest.mark.unit
    def test_price_analysis(self):
        result = recommend_billing_model([item("A", 2), item("B", 4)])

        assert result.price_analysis.avg_price == 3
        assert result.price_analysis.min_price == 2
        assert result.price_analysis.max_price == 4
        assert result.price_analysis.price_variance == 1

    @pytest.mark.unit
    def test_optimized_items_are_copies(self, sample_items):
        result = recommend_billing_model(sample_items)

        assert len(result.optimized_items) == len(sample_items)
        assert len(result.item_metadata) == len(sample_items)
        assert sample_items[2].type == BillingType.ONE_TIME
        assert result.optimized_items[2].type == BillingType.RECURRING
        assert result.item_metadata[0]["pricing_tier"] == "small"


class TestItemInference:

    @pytest.mark.unit
    def test_explicit_type_kept(self):
        assert detect_billing_type(item("Plan", 5, type=BillingType.RECURRING)) == BillingType.RECURRING

    @pytest.mark.unit
    def test_event_name_means_metered(self):
        assert detect_billing_type(item("Thing", 50, event_name="thing")) == BillingType.METERED

    @pytest.mark.unit
    def test_usage_unit_means_metered(self):
        assert detect_billing_type(item("Thing", 50, unit="GB")) == BillingType.METERED

    @pytest.mark.unit
    def test_usage_name_means_metered(self):
        assert detect_billing_type(item("Bandwidth", 50)) == BillingType.METERED

    @pytest.mark.unit
    def test_price_fallback(self):
        assert detect_billing_type(item("Gold", 10)) == BillingType.RECURRING
        assert detect_billing_type(item("Bronze", 5)) == BillingType.METERED

    @pytest.mark.unit
    def test_optimize_metered(self):
        result = optimize_item(item("Peak Seats", 5, unit="peak seats"), BillingType.METERED)

        assert result.event_name == "peak_seats"
        assert result.usage_type == UsageType.METERED
        assert result.aggregate_usage == AggregateUsage.MAX

    @pytest.mark.unit
    def test_optimize_recurring_interval(self):
        result = optimize_item(item("Plan", 5, description="billed yearly"), BillingType.RECURRING)
        assert result.interval == BillingInterval.YEAR

        result = optimize_item(item("Plan", 5), BillingType.RECURRING)
        assert result.interval == BillingInterval.MONTH

    @pytest.mark.unit
    @pytest.mark.parametrize("unit,formula", [
        (None, AggregateUsage.SUM),
        ("Max connections", AggregateUsage.MAX),
        ("current seats", AggregateUsage.LAST_DURING_PERIOD),
        ("GB", AggregateUsage.SUM),
    ])
    def test_aggregation(self, unit, formula):
        assert determine_aggregation(unit) == formula

    @pytest.mark.unit
    @pytest.mark.parametrize("price,tier", [(0.001, "micro"), (0.5, "small"), (5, "medium"), (50, "large")])
    def test_pricing_tier(self, price, tier):
        assert determine_pricing_tier(price) == tier

    @pytest.mark.unit
    def test_variance(self):
        assert calculate_variance([]) == 0
        assert calculate_variance([1, 1, 1]) == 0
        assert calculate_variance([2, 4]) == 1
