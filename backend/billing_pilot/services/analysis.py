"""
Billing model recommendation.

Looks at names, units, prices and meter names across a set of parsed items
and suggests one of the four billing model archetypes, along with copies of
the items with billing types, event names and intervals filled in.
"""

import logging
from typing import Optional

from billing_pilot.models.billing import (
    AggregateUsage,
    BillingInterval,
    BillingLineItem,
    BillingType,
    ModelRecommendation,
    PriceAnalysis,
    UsageType,
)
from billing_pilot.models.stripe import BillingModelType
from billing_pilot.services.pricing import generate_event_name

logger = logging.getLogger(__name__)


USAGE_INDICATORS = (
    "api", "call", "request", "transaction", "usage", "storage", "bandwidth",
    "processing", "compute", "cpu", "memory", "gb", "mb", "hour", "minute",
    "backup", "transfer", "network", "execution", "job", "query",
)

SUBSCRIPTION_INDICATORS = ("plan", "subscription", "monthly", "yearly", "tier", "package")

METERED_UNIT_HINTS = ("hour", "gb", "request", "call", "job", "day")

# Product-name patterns; a subset of USAGE_INDICATORS without the unit words
USAGE_NAME_PATTERNS = (
    "api", "call", "request", "storage", "bandwidth", "processing",
    "compute", "cpu", "memory", "backup", "transfer", "network",
    "execution", "job", "query", "transaction", "usage",
)


def _contains_any(text: str, needles: tuple) -> bool:
    return any(needle in text for needle in needles)


def calculate_variance(values: list[float]) -> float:
    """Population variance."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


# =============================================================================
# Per-item inference
# =============================================================================


def detect_billing_type(item: BillingLineItem) -> BillingType:
    """
    Infer how an item should be billed.

    An explicit metered/recurring type wins. Otherwise: a meter event name,
    then usage-like units, then usage-like names or sub-dollar prices mean
    metered; plan/subscription names mean recurring; anything left is
    recurring from $10 up and metered below that.
    """
    if item.type != BillingType.ONE_TIME:
        return item.type

    if item.event_name:
        return BillingType.METERED

    unit = (item.unit or "").lower()
    if _contains_any(unit, METERED_UNIT_HINTS):
        return BillingType.METERED

    name = item.name.lower()
    if _contains_any(name, USAGE_NAME_PATTERNS) or item.price < 1:
        return BillingType.METERED

    if _contains_any(name, ("plan", "subscription", "monthly", "yearly")):
        return BillingType.RECURRING

    return BillingType.RECURRING if item.price >= 10 else BillingType.METERED


def determine_interval(item: BillingLineItem) -> Optional[BillingInterval]:
    if item.interval:
        return item.interval

    description = (item.description or "").lower()
    if "monthly" in description:
        return BillingInterval.MONTH
    if "yearly" in description:
        return BillingInterval.YEAR
    if "weekly" in description:
        return BillingInterval.WEEK
    return None


def determine_aggregation(unit: Optional[str]) -> AggregateUsage:
    """Peak-style units aggregate by max, point-in-time units by last value."""
    unit = (unit or "").lower()
    if "max" in unit or "peak" in unit:
        return AggregateUsage.MAX
    if "last" in unit or "current" in unit:
        return AggregateUsage.LAST_DURING_PERIOD
    return AggregateUsage.SUM


def determine_pricing_tier(price: float) -> str:
    if price < 0.01:
        return "micro"
    if price < 1:
        return "small"
    if price < 10:
        return "medium"
    return "large"


def optimize_item(item: BillingLineItem, billing_type: BillingType) -> BillingLineItem:
    """Return a copy of the item with the fields its billing type needs."""
    update: dict = {"type": billing_type}

    if billing_type == BillingType.METERED:
        update["event_name"] = item.event_name or generate_event_name(item.name) or None
        update["usage_type"] = UsageType.METERED
        update["aggregate_usage"] = item.aggregate_usage or determine_aggregation(item.unit)
        update["interval"] = None
    elif billing_type == BillingType.RECURRING:
        update["interval"] = determine_interval(item) or BillingInterval.MONTH
        update["usage_type"] = UsageType.LICENSED
        update["aggregate_usage"] = None

    return item.model_copy(update=update)


# =============================================================================
# Model recommendation
# =============================================================================


def recommend_billing_model(items: list[BillingLineItem]) -> ModelRecommendation:
    """Recommend a billing model archetype for a set of parsed items."""
    if not items:
        return ModelRecommendation(
            recommended_model=BillingModelType.PAY_AS_YOU_GO.value,
            confidence=0,
            reasoning="No items to analyze.",
            metering_strategy="usage-based",
            detected_patterns=["No data provided"],
        )

    count = len(items)
    prices = [item.price for item in items]
    avg_price = sum(prices) / count
    min_price = min(prices)
    max_price = max(prices)
    variance = calculate_variance(prices)

    names = [item.name.lower() for item in items]
    units = [(item.unit or "").lower() for item in items]

    metered_keywords = sum(1 for n in names if _contains_any(n, USAGE_INDICATORS))
    subscription_keywords = sum(1 for n in names if _contains_any(n, SUBSCRIPTION_INDICATORS))
    time_units = sum(1 for u in units if _contains_any(u, ("hour", "day", "month", "minute")))
    volume_units = sum(1 for u in units if _contains_any(u, ("gb", "mb", "request", "call")))
    has_meter_names = any(item.event_name for item in items)

    model = BillingModelType.PAY_AS_YOU_GO
    confidence = 70
    reasoning = "Default recommendation based on common patterns."
    strategy = "usage-based"
    patterns: list[str] = []

    if has_meter_names or metered_keywords / count > 0.7:
        confidence = 95
        reasoning = (
            "Strong indicators of metered billing detected: meter names, "
            "usage-based terminology and micro-pricing patterns."
        )
        strategy = "pure-usage-based"
        patterns += ["Meter names detected", "Usage-based terminology prevalent", "Micro-pricing structure"]
    elif subscription_keywords / count > 0.6 and avg_price > 10:
        if metered_keywords > 0:
            model = BillingModelType.FIXED_OVERAGE
            confidence = 90
            reasoning = "Subscription plans with usage components: a base fee plus overages fits best."
            strategy = "base-plus-usage"
            patterns += ["Subscription plans detected", "Usage components present", "Hybrid pricing structure"]
        else:
            model = BillingModelType.FLAT_RECURRING
            confidence = 88
            reasoning = "Subscription products with fixed pricing: predictable recurring revenue."
            strategy = "subscription-only"
            patterns += ["Subscription plans dominant", "Fixed pricing structure", "Recurring revenue model"]
    elif avg_price < 1 and variance < 0.1:
        confidence = 92
        reasoning = "Micro-pricing with low variance suggests pure usage-based billing."
        strategy = "micro-usage"
        patterns += ["Micro-pricing detected", "Low price variance", "Usage-based pattern"]
    elif time_units / count > 0.5:
        confidence = 85
        reasoning = "Time-based units (hours, days) indicate resource consumption billing."
        strategy = "time-based-usage"
        patterns += ["Time-based units prevalent", "Resource consumption model"]

    if min_price == 0 and max_price > 0:
        patterns.append("Freemium pricing detected")
    if variance > 1:
        patterns.append("High price variance - multiple tiers")
    if volume_units / count > 0.4:
        patterns.append("Volume-based billing components")

    optimized = []
    metadata = []
    for item in items:
        billing_type = detect_billing_type(item)
        optimized_item = optimize_item(item, billing_type)
        optimized.append(optimized_item)

        meta = {
            "original_price": str(item.price),
            "confidence_score": str(confidence),
            "unit_type": item.unit or "units",
            "billing_strategy": strategy,
        }
        if optimized_item.is_metered:
            meta["meter_aggregation"] = optimized_item.aggregate_usage.value
            meta["pricing_tier"] = determine_pricing_tier(item.price)
        metadata.append(meta)

    logger.info(f"Recommended {model.value} ({confidence}%) for {count} items")

    return ModelRecommendation(
        recommended_model=model.value,
        confidence=confidence,
        reasoning=reasoning,
        metering_strategy=strategy,
        detected_patterns=patterns,
        price_analysis=PriceAnalysis(
            avg_price=round(avg_price, 4),
            min_price=min_price,
            max_price=max_price,
            price_variance=round(variance, 4),
        ),
        optimized_items=optimized,
        item_metadata=metadata,
    )
