"""Pydantic models for billing-pilot API."""

from .billing import (
    BillingType,
    BillingScheme,
    UsageType,
    AggregateUsage,
    BillingInterval,
    StructureHint,
    BillingLineItem,
    ParseResult,
    ExtractionResult,
    ModelRecommendation,
)
from .stripe import (
    BillingModelType,
    AggregationFormula,
    BillingModelCreate,
    BillingModel,
    StripeConfiguration,
    DeployResult,
)

__all__ = [
    # Line items
    "BillingType",
    "BillingScheme",
    "UsageType",
    "AggregateUsage",
    "BillingInterval",
    "StructureHint",
    "BillingLineItem",
    "ParseResult",
    "ExtractionResult",
    "ModelRecommendation",
    # Billing models / Stripe
    "BillingModelType",
    "AggregationFormula",
    "BillingModelCreate",
    "BillingModel",
    "StripeConfiguration",
    "DeployResult",
]
