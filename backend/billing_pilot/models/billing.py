"""Billing line item models produced by the import parser."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from billing_pilot.services.pricing import MAX_PRICE, to_minor_units


# =============================================================================
# Enums
# =============================================================================


class BillingType(str, Enum):
    """How a line item is charged."""

    ONE_TIME = "one_time"
    RECURRING = "recurring"
    METERED = "metered"


class BillingScheme(str, Enum):
    """Single per-unit rate or quantity-based price bands."""

    PER_UNIT = "per_unit"
    TIERED = "tiered"


class UsageType(str, Enum):
    """Fixed quantity (licensed) or aggregated usage events (metered)."""

    LICENSED = "licensed"
    METERED = "metered"


class AggregateUsage(str, Enum):
    """Aggregation applied to metered usage over a period."""

    SUM = "sum"
    LAST_DURING_PERIOD = "last_during_period"
    LAST_EVER = "last_ever"
    MAX = "max"


class BillingInterval(str, Enum):
    """Recurring billing interval."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class StructureHint(str, Enum):
    """Document shape proposed by the format sniffer."""

    JSON = "json"
    TABULAR = "tabular"
    FREEFORM = "freeform"


# =============================================================================
# Line items
# =============================================================================


class BillingLineItem(BaseModel):
    """A normalized billing line item. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, le=MAX_PRICE, description="Price in major currency units")
    currency: str = "USD"
    type: BillingType = BillingType.ONE_TIME
    event_name: Optional[str] = None  # Meter / usage-tracking key
    unit: Optional[str] = None  # e.g. "GB-Hour"
    description: Optional[str] = None
    billing_scheme: BillingScheme = BillingScheme.PER_UNIT
    usage_type: Optional[UsageType] = None
    aggregate_usage: Optional[AggregateUsage] = None
    interval: Optional[BillingInterval] = None

    # Provenance, display only
    source: Optional[str] = None
    line_number: Optional[int] = None
    raw_text: Optional[str] = None

    @computed_field
    @property
    def unit_amount(self) -> int:
        """Price in minor units (cents)."""
        return to_minor_units(self.price)

    @property
    def is_metered(self) -> bool:
        return self.type == BillingType.METERED


class ParseResult(BaseModel):
    """Outcome of one parse invocation over one document."""

    items: list[BillingLineItem] = Field(default_factory=list)
    structure: StructureHint = StructureHint.FREEFORM
    delimiter: Optional[str] = None

    @property
    def count(self) -> int:
        return len(self.items)


class ExtractionResult(BaseModel):
    """Result of extracting billing items from an uploaded file."""

    items: list[BillingLineItem] = Field(default_factory=list)
    confidence: float = 0
    method: str
    extracted_text: Optional[str] = None
    structure: Optional[StructureHint] = None


# =============================================================================
# API request / response models
# =============================================================================


class ParseTextRequest(BaseModel):
    """Request to parse pasted billing data."""

    text: str = Field(..., description="Pasted CSV, TSV, JSON or free text")
    source: str = Field(default="paste_parser", description="Provenance tag")
    default_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class ParseResponse(BaseModel):
    """Parsed line items returned to the review UI."""

    success: bool
    items: list[BillingLineItem] = Field(default_factory=list)
    count: int = 0
    structure: Optional[StructureHint] = None
    delimiter: Optional[str] = None
    method: Optional[str] = None
    confidence: Optional[float] = None
    message: str = ""
    extracted_text: Optional[str] = None


class AnalyzeRequest(BaseModel):
    """Request a billing model recommendation for parsed items."""

    items: list[BillingLineItem] = Field(default_factory=list)


class PriceAnalysis(BaseModel):
    avg_price: float = 0
    min_price: float = 0
    max_price: float = 0
    price_variance: float = 0


class ModelRecommendation(BaseModel):
    """Recommended billing model for a set of items."""

    recommended_model: str
    confidence: float
    reasoning: str
    metering_strategy: str
    detected_patterns: list[str] = Field(default_factory=list)
    price_analysis: PriceAnalysis = Field(default_factory=PriceAnalysis)
    optimized_items: list[BillingLineItem] = Field(default_factory=list)
    item_metadata: list[dict[str, Any]] = Field(default_factory=list)
