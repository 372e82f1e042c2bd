"""Billing model, Stripe deployment and usage metering models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from billing_pilot.models.billing import BillingLineItem


class BillingModelType(str, Enum):
    """Billing model archetypes offered by the configurator."""

    PAY_AS_YOU_GO = "pay-as-you-go"
    FLAT_RECURRING = "flat-recurring"
    FIXED_OVERAGE = "fixed-overage"
    PER_SEAT = "per-seat"


class AggregationFormula(str, Enum):
    """Stripe meter aggregation formulas."""

    SUM = "sum"
    COUNT = "count"
    LAST_DURING_PERIOD = "last_during_period"
    LAST_EVER = "last_ever"
    MAX = "max"


# =============================================================================
# Billing models
# =============================================================================


class BillingModelCreate(BaseModel):
    """A billing model assembled from reviewed line items."""

    name: str = Field(..., min_length=1)
    description: str = ""
    type: BillingModelType = BillingModelType.PAY_AS_YOU_GO
    items: list[BillingLineItem] = Field(default_factory=list)


class BillingModel(BillingModelCreate):
    """A billing model persisted in Supabase."""

    id: str
    user_id: str
    created_at: Optional[datetime] = None


class BillingModelListResponse(BaseModel):
    total: int
    models: list[BillingModel] = Field(default_factory=list)


# =============================================================================
# Stripe configuration preview
# =============================================================================


class StripeConfiguration(BaseModel):
    """Products, prices and meters that a deployment would create."""

    products: list[dict[str, Any]] = Field(default_factory=list)
    prices: list[dict[str, Any]] = Field(default_factory=list)
    meters: list[dict[str, Any]] = Field(default_factory=list)


class ItemValidation(BaseModel):
    index: int
    name: str
    valid: bool
    errors: list[str] = Field(default_factory=list)


class ConfigurationResponse(BaseModel):
    configuration: StripeConfiguration
    validation: list[ItemValidation] = Field(default_factory=list)
    valid: bool = True


# =============================================================================
# Deployment
# =============================================================================


class DeploySummary(BaseModel):
    products_created: int = 0
    prices_created: int = 0
    meters_created: int = 0
    errors: int = 0


class DeployResult(BaseModel):
    """Outcome of deploying a billing model to Stripe."""

    success: bool
    products: list[dict[str, Any]] = Field(default_factory=list)
    prices: list[dict[str, Any]] = Field(default_factory=list)
    meters: list[dict[str, Any]] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    summary: DeploySummary = Field(default_factory=DeploySummary)
    error: Optional[str] = None


class MeterCreateRequest(BaseModel):
    display_name: str = Field(..., min_length=1)
    event_name: str = Field(..., min_length=1)
    aggregation_formula: str = "sum"


class MeterCreateResponse(BaseModel):
    success: bool
    meter: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class ConnectionStatus(BaseModel):
    connected: bool
    account_id: Optional[str] = None
    error: Optional[str] = None


# =============================================================================
# Usage events
# =============================================================================


class UsageEventRequest(BaseModel):
    meter_name: str = Field(..., min_length=1)
    value: float = Field(default=1, ge=0)
    metadata: dict[str, str] = Field(default_factory=dict)


class UsageEventResponse(BaseModel):
    success: bool
    event_id: Optional[str] = None
    stripe_event_id: Optional[str] = None
    message: str = ""
    error: Optional[str] = None
