"""
Billing data parser.

Turns pasted or uploaded billing data into normalized billing line items.
Accepts whatever users throw at the importer:

    Service,Price                     <- header, skipped
    API Calls,0.02
    Storage\tstorage_usage\tGB-Hour\t$0.02
    Support | $1,200.00
    Storage - $5.00                   <- freeform "name - price" line
    [{"name": "API Calls", "price": 0.02}]

Pipeline (single pass, stateless, one document per call):

    raw text -> sniff_format -> tokenize_line -> classify_line
             -> parse_price -> assemble_item -> [BillingLineItem, ...]

This is a data-entry aid, not a validator: rows without a name or a
parseable price are dropped, and nothing here raises on bad content.
"""

import csv
import json
import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from pydantic import ValidationError

from billing_pilot.models.billing import (
    AggregateUsage,
    BillingInterval,
    BillingLineItem,
    BillingScheme,
    BillingType,
    ParseResult,
    StructureHint,
    UsageType,
)
from billing_pilot.services.pricing import normalize_event_name, parse_price

logger = logging.getLogger(__name__)


# =============================================================================
# Delimiters
# =============================================================================


@dataclass(frozen=True)
class Delimiter:
    """A field delimiter candidate. ``pattern=None`` means quote-aware CSV splitting."""

    name: str
    pattern: Optional[re.Pattern] = None
    loose: bool = False  # Can't tell a multi-word name from a field boundary

    def split(self, line: str) -> list[str]:
        """Split into stripped cells, keeping empty cells so columns stay aligned."""
        if self.pattern is not None:
            parts = self.pattern.split(line)
        else:
            try:
                parts = next(csv.reader([line], skipinitialspace=True), [])
            except csv.Error:
                parts = line.split(",")
        return [part.strip() for part in parts]


TAB = Delimiter("tab", re.compile(r"\t"))
PIPE = Delimiter("pipe", re.compile(r"\|"))
COMMA = Delimiter("comma")
MULTI_SPACE = Delimiter("multi_space", re.compile(r" {2,}"))
SINGLE_SPACE = Delimiter("single_space", re.compile(r"\s+"), loose=True)

DEFAULT_DELIMITERS = (TAB, PIPE, COMMA, MULTI_SPACE, SINGLE_SPACE)

# Bare punctuation left between fields ("Storage - $5.00")
SEPARATOR_TOKENS = frozenset({"-", "--", "\u2013", "\u2014", ":", "|", "="})

# "$0.02", "5", "1,200.50"
PRICE_PATTERN = re.compile(r"\$?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d*)?")

# "Storage - $5.00", "Backup 12.50"
LINE_PATTERN = re.compile(r"^(.+?)[\s\-]+\$?(\d[\d,]*\.?\d*)$")

HEADER_PATTERN = re.compile(r"service|product|item", re.IGNORECASE)

JSON_COLLECTION_KEYS = ("data", "items", "services", "products")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f\ufeff]")


def default_header_predicate(tokens: Sequence[str], line_index: int) -> bool:
    """The first line is a header when its first token names the item column."""
    return line_index == 0 and bool(tokens) and bool(HEADER_PATTERN.search(tokens[0]))


# =============================================================================
# Record field aliases
# =============================================================================

# Checked exact-match first, then substring, in this order.
NAME_FIELDS = ("name", "product", "service", "metric description", "title", "item")
PRICE_FIELDS = ("price", "rate", "amount", "cost", "fee")
MINOR_UNIT_FIELDS = ("unit amount",)
DESCRIPTION_FIELDS = ("description", "details", "notes")
EVENT_FIELDS = ("event name", "eventname", "meter name", "metername", "meter", "event")
# Exact only: "unit" is a substring of "per unit rate"
UNIT_FIELDS = ("unit", "units", "unit label", "unit type")
CURRENCY_FIELDS = ("currency",)
TYPE_FIELDS = ("billing type", "type", "pricing type")
INTERVAL_FIELDS = ("interval", "billing cycle", "billing period", "period")
SCHEME_FIELDS = ("billing scheme",)
AGGREGATE_FIELDS = ("aggregate usage", "aggregation")


def _normalize_key(key: Any) -> str:
    text = re.sub(r"[_\-]+", " ", str(key).strip().lower())
    return " ".join(text.split())


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def find_field(record: dict, aliases: Sequence[str], exact: bool = False) -> Any:
    """
    Find a value in a loosely keyed record.

    Keys are compared case-insensitively with ``_``/``-`` treated as spaces.
    Exact key matches win over substring matches.
    """
    keys = [(_normalize_key(key), key) for key in record]

    for alias in aliases:
        for normalized, key in keys:
            if normalized == alias and not _is_blank(record[key]):
                return record[key]

    if exact:
        return None

    for alias in aliases:
        for normalized, key in keys:
            if alias in normalized and not _is_blank(record[key]):
                return record[key]

    return None


def _text(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    return str(value).strip()


# =============================================================================
# Classification rules
# =============================================================================


@dataclass(frozen=True)
class LineContext:
    """One tokenized line as seen by the classification rules."""

    text: str
    tokens: tuple[str, ...]
    index: int  # Position among non-empty lines
    structure: StructureHint
    line_number: Optional[int] = None  # 1-based position in the document


@dataclass(frozen=True)
class PartialItem:
    """Fields a rule (or record mapping) could identify. Unvalidated."""

    name: str
    price: Union[str, int, float, None]
    event_name: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    currency: Optional[str] = None
    type: Optional[str] = None
    interval: Optional[str] = None
    billing_scheme: Optional[str] = None
    aggregate_usage: Optional[str] = None


Rule = Callable[[LineContext, "ParserConfig"], Optional[PartialItem]]


def name_price_line_rule(ctx: LineContext, config: "ParserConfig") -> Optional[PartialItem]:
    """A name followed by a dash or whitespace, then a price at end of line."""
    if ctx.structure != StructureHint.FREEFORM and len(ctx.tokens) != 1:
        return None

    match = config.line_pattern.match(ctx.text.strip())
    if not match:
        return None

    name = match.group(1).strip(" -\t")
    if not name:
        return None
    return PartialItem(name=name, price=match.group(2))


def multi_column_rule(ctx: LineContext, config: "ParserConfig") -> Optional[PartialItem]:
    """
    Three or more columns: name first, then event name / unit / price in any order.

    The canonical price is the last non-zero price-shaped token. Non-price
    tokens before it become the event name, then the unit. After it, a token
    fills the unit if an event name is waiting for one, otherwise it goes to
    the description.
    """
    tokens = ctx.tokens
    if ctx.structure == StructureHint.FREEFORM or len(tokens) < 3:
        return None

    price_positions = [i for i in range(1, len(tokens)) if config.is_price_token(tokens[i])]
    if not price_positions:
        return None

    non_zero = [i for i in price_positions if parse_price(tokens[i])]
    price_index = (non_zero or price_positions)[-1]

    event_name = None
    unit = None
    extras = []
    for i in range(1, len(tokens)):
        token = tokens[i]
        if i in price_positions:
            continue
        if i < price_index:
            if event_name is None:
                event_name = token
            elif unit is None:
                unit = token
            else:
                extras.append(token)
        elif event_name is not None and unit is None:
            unit = token
        else:
            extras.append(token)

    return PartialItem(
        name=tokens[0],
        price=tokens[price_index],
        event_name=event_name,
        unit=unit,
        description=" ".join(extras) or None,
    )


def two_column_rule(ctx: LineContext, config: "ParserConfig") -> Optional[PartialItem]:
    """Exactly two columns: name, price."""
    if ctx.structure == StructureHint.FREEFORM or len(ctx.tokens) != 2:
        return None

    name, price = ctx.tokens
    if parse_price(price) is None:
        return None
    return PartialItem(name=name, price=price)


DEFAULT_RULES: tuple[Rule, ...] = (name_price_line_rule, multi_column_rule, two_column_rule)


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class ParserConfig:
    """Single configuration surface for every import path."""

    delimiters: tuple[Delimiter, ...] = DEFAULT_DELIMITERS
    price_pattern: re.Pattern = PRICE_PATTERN
    line_pattern: re.Pattern = LINE_PATTERN
    header_predicate: Callable[[Sequence[str], int], bool] = default_header_predicate
    rules: tuple[Rule, ...] = DEFAULT_RULES
    default_currency: str = "USD"
    source: str = "paste_parser"

    def is_price_token(self, token: str) -> bool:
        return bool(self.price_pattern.fullmatch(token.strip()))

    def with_overrides(self, **changes) -> "ParserConfig":
        return replace(self, **changes)


DEFAULT_CONFIG = ParserConfig()


# =============================================================================
# Format sniffing & tokenizing
# =============================================================================


@dataclass(frozen=True)
class SniffResult:
    structure: StructureHint
    delimiter: Optional[Delimiter] = None


def tokenize_line(line: str, delimiter: Optional[Delimiter]) -> list[str]:
    """Split a line into trimmed, non-empty tokens. Never raises."""
    if not line or not line.strip():
        return []

    cells = delimiter.split(line) if delimiter is not None else [line.strip()]
    return [cell for cell in cells if cell and cell not in SEPARATOR_TOKENS]


def _content_lines(text: str) -> list[tuple[int, str]]:
    """Non-empty lines with their 1-based line numbers."""
    return [
        (number, line.rstrip("\r"))
        for number, line in enumerate(text.split("\n"), start=1)
        if line.strip()
    ]


def _clean_text(text: str) -> str:
    text = _CONTROL_CHARS.sub("", text)
    return text.replace("\u00a0", " ")


def _extract_json_records(text: str) -> Optional[list]:
    """Return the record array of a JSON payload, or None if it isn't one."""
    stripped = text.strip()
    if not stripped or stripped[0] not in "[{":
        return None

    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("Text looked like JSON but failed to parse, falling through")
        return None

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in JSON_COLLECTION_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return None


def sniff_format(text: str, config: Optional[ParserConfig] = None) -> SniffResult:
    """
    Propose a structure and delimiter for a document.

    JSON arrays short-circuit. Otherwise the first delimiter (in priority
    order) that splits the first splittable line into two or more tokens
    wins for the whole document.
    """
    config = config or DEFAULT_CONFIG
    text = _clean_text(text or "")

    if _extract_json_records(text) is not None:
        return SniffResult(StructureHint.JSON)

    for _, line in _content_lines(text):
        for delimiter in config.delimiters:
            if len(tokenize_line(line, delimiter)) >= 2:
                structure = StructureHint.FREEFORM if delimiter.loose else StructureHint.TABULAR
                return SniffResult(structure, delimiter)

    return SniffResult(StructureHint.FREEFORM)


# =============================================================================
# Classification & assembly
# =============================================================================


def classify_line(ctx: LineContext, config: Optional[ParserConfig] = None) -> Optional[PartialItem]:
    """Run the rules in priority order. None means "not a data row"."""
    config = config or DEFAULT_CONFIG

    if not ctx.tokens:
        return None
    if config.header_predicate(ctx.tokens, ctx.index):
        logger.debug(f"Skipping header row: {ctx.text!r}")
        return None

    for rule in config.rules:
        partial = rule(ctx, config)
        if partial is not None:
            return partial
    return None


def _resolve_type(explicit: Optional[str], event_name: Optional[str], unit: Optional[str],
                  interval: Optional[BillingInterval]) -> BillingType:
    if explicit:
        value = explicit.strip().lower()
        if "meter" in value or "usage" in value:
            return BillingType.METERED
        if "recurring" in value or "subscription" in value:
            return BillingType.RECURRING
        if value.replace("-", "_").replace(" ", "_") == "one_time":
            return BillingType.ONE_TIME
        # Anything else ("service", "good") says nothing about billing

    if event_name and unit:
        return BillingType.METERED
    if interval:
        return BillingType.RECURRING
    return BillingType.ONE_TIME


def _resolve_interval(value: Optional[str]) -> Optional[BillingInterval]:
    if not value:
        return None
    value = value.lower()
    for interval in (BillingInterval.MONTH, BillingInterval.YEAR, BillingInterval.WEEK, BillingInterval.DAY):
        if interval.value in value:
            return interval
    if "annual" in value:
        return BillingInterval.YEAR
    return None


def _resolve_currency(value: Optional[str], default: str) -> str:
    if value:
        value = value.strip().upper()
        if len(value) == 3 and value.isalpha():
            return value
    return default.upper()


def assemble_item(
    partial: PartialItem,
    config: Optional[ParserConfig] = None,
    line_number: Optional[int] = None,
    raw_text: Optional[str] = None,
) -> Optional[BillingLineItem]:
    """
    Fill defaults and build a BillingLineItem.

    Returns None only when the name is blank or the price doesn't parse
    as a non-negative number.
    """
    config = config or DEFAULT_CONFIG

    name = (partial.name or "").strip()
    price = parse_price(partial.price)
    if not name or price is None:
        return None

    event_name = normalize_event_name(partial.event_name) if partial.event_name else None
    unit = partial.unit.strip() if partial.unit else None
    interval = _resolve_interval(partial.interval)
    billing_type = _resolve_type(partial.type, event_name, unit, interval)

    usage_type = None
    aggregate_usage = None
    if billing_type == BillingType.METERED:
        event_name = event_name or normalize_event_name(name)
        usage_type = UsageType.METERED
        aggregate_usage = AggregateUsage.SUM
        if partial.aggregate_usage:
            try:
                aggregate_usage = AggregateUsage(partial.aggregate_usage.strip().lower())
            except ValueError:
                pass
    elif billing_type == BillingType.RECURRING:
        interval = interval or BillingInterval.MONTH

    scheme = BillingScheme.PER_UNIT
    if partial.billing_scheme and partial.billing_scheme.strip().lower() == "tiered":
        scheme = BillingScheme.TIERED

    try:
        return BillingLineItem(
            name=name,
            price=price,
            currency=_resolve_currency(partial.currency, config.default_currency),
            type=billing_type,
            event_name=event_name,
            unit=unit,
            description=(partial.description or "").strip() or f"{name} service",
            billing_scheme=scheme,
            usage_type=usage_type,
            aggregate_usage=aggregate_usage,
            interval=interval,
            source=config.source,
            line_number=line_number,
            raw_text=raw_text,
        )
    except ValidationError as e:
        logger.debug(f"Dropping row {name!r}: {e}")
        return None


def record_to_partial(record: dict) -> Optional[PartialItem]:
    """Map a loosely keyed record (JSON object, spreadsheet row) to fields."""
    # "name" is a substring of "event name" and "meter name"
    name_fields = {k: v for k, v in record.items() if _normalize_key(k) not in EVENT_FIELDS}
    name = _text(find_field(name_fields, NAME_FIELDS))
    if not name:
        return None

    # "amount" is a substring of "unit amount", which holds cents
    major_fields = {k: v for k, v in record.items() if _normalize_key(k) not in MINOR_UNIT_FIELDS}
    price = find_field(major_fields, PRICE_FIELDS)
    if _is_blank(price):
        minor = parse_price(find_field(record, MINOR_UNIT_FIELDS, exact=True))
        price = minor / 100 if minor is not None else None

    return PartialItem(
        name=name,
        price=price,
        event_name=_text(find_field(record, EVENT_FIELDS)),
        unit=_text(find_field(record, UNIT_FIELDS, exact=True)),
        description=_text(find_field(record, DESCRIPTION_FIELDS)),
        currency=_text(find_field(record, CURRENCY_FIELDS, exact=True)),
        type=_text(find_field(record, TYPE_FIELDS, exact=True)),
        interval=_text(find_field(record, INTERVAL_FIELDS, exact=True)),
        billing_scheme=_text(find_field(record, SCHEME_FIELDS, exact=True)),
        aggregate_usage=_text(find_field(record, AGGREGATE_FIELDS, exact=True)),
    )


def assemble_record(
    record: dict,
    config: Optional[ParserConfig] = None,
    line_number: Optional[int] = None,
    raw_text: Optional[str] = None,
) -> Optional[BillingLineItem]:
    partial = record_to_partial(record)
    if partial is None:
        return None
    return assemble_item(partial, config, line_number=line_number, raw_text=raw_text)


def parse_records(records: Iterable[Any], config: Optional[ParserConfig] = None) -> list[BillingLineItem]:
    """Assemble items from JSON objects or header-keyed rows. Non-dicts are ignored."""
    config = config or DEFAULT_CONFIG
    items = []
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            continue
        item = assemble_record(record, config, line_number=index + 1)
        if item is not None:
            items.append(item)
    return items


def _header_columns(cells: Sequence[str], config: ParserConfig) -> Optional[list[str]]:
    """Return the column names if a row looks like a name/price header."""
    if not cells or any(config.is_price_token(cell) for cell in cells if cell):
        return None

    normalized = [_normalize_key(cell) for cell in cells]
    has_name = any(alias in cell for cell in normalized for alias in NAME_FIELDS)
    has_price = any(
        alias in cell for cell in normalized for alias in PRICE_FIELDS + MINOR_UNIT_FIELDS
    )
    return list(cells) if has_name and has_price else None


def _row_record(header: Sequence[str], cells: Sequence[str]) -> dict:
    return {column: cells[i] for i, column in enumerate(header) if column and i < len(cells)}


# =============================================================================
# Entry points
# =============================================================================


def parse_billing_text(text: str, config: Optional[ParserConfig] = None) -> ParseResult:
    """
    Parse one document of pasted text, file content or OCR output.

    JSON is tried first, then delimited tables (header-mapped when the first
    line names the columns), then freeform "name - price" lines as a last
    resort when a table yields nothing.
    """
    config = config or DEFAULT_CONFIG
    if not text or not text.strip():
        return ParseResult()

    text = _clean_text(text)

    records = _extract_json_records(text)
    if records is not None:
        items = parse_records(records, config)
        logger.info(f"Parsed {len(items)} items from JSON ({len(records)} records)")
        return ParseResult(items=items, structure=StructureHint.JSON)

    sniff = sniff_format(text, config)
    lines = _content_lines(text)
    items = _parse_lines(lines, sniff, config)

    if not items and sniff.structure == StructureHint.TABULAR:
        logger.debug("No rows from table layout, retrying as freeform lines")
        fallback = SniffResult(StructureHint.FREEFORM)
        items = _parse_lines(lines, fallback, config)
        if items:
            sniff = fallback

    delimiter_name = sniff.delimiter.name if sniff.delimiter else None
    logger.info(f"Parsed {len(items)} items ({sniff.structure.value}, delimiter={delimiter_name})")
    return ParseResult(items=items, structure=sniff.structure, delimiter=delimiter_name)


def _parse_lines(lines: list[tuple[int, str]], sniff: SniffResult, config: ParserConfig) -> list[BillingLineItem]:
    items = []
    header = None

    for index, (line_number, line) in enumerate(lines):
        if header is not None:
            record = _row_record(header, sniff.delimiter.split(line))
            item = assemble_record(record, config, line_number=line_number, raw_text=line)
        else:
            if index == 0 and sniff.structure == StructureHint.TABULAR:
                header = _header_columns(sniff.delimiter.split(line), config)
                if header is not None:
                    logger.debug(f"Mapping columns from header: {header}")
                    continue

            ctx = LineContext(
                text=line,
                tokens=tuple(tokenize_line(line, sniff.delimiter)),
                index=index,
                structure=sniff.structure,
                line_number=line_number,
            )
            partial = classify_line(ctx, config)
            item = assemble_item(partial, config, line_number=line_number, raw_text=line) if partial else None

        if item is not None:
            items.append(item)

    return items


def _cell_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_rows(rows: Iterable[Sequence[Any]], config: Optional[ParserConfig] = None) -> list[BillingLineItem]:
    """
    Parse a spreadsheet grid.

    A recognizable header row maps columns by name; otherwise each row's
    non-empty cells are classified like a tabular text line.
    """
    config = config or DEFAULT_CONFIG
    grid = [[_cell_text(cell) for cell in row] for row in rows]
    grid = [row for row in grid if any(row)]
    if not grid:
        return []

    items = []
    header = _header_columns(grid[0], config)
    if header is not None:
        for row_number, row in enumerate(grid[1:], start=2):
            item = assemble_record(_row_record(header, row), config, line_number=row_number)
            if item is not None:
                items.append(item)
        return items

    for index, row in enumerate(grid):
        tokens = tuple(cell for cell in row if cell)
        ctx = LineContext(
            text="\t".join(tokens),
            tokens=tokens,
            index=index,
            structure=StructureHint.TABULAR,
            line_number=index + 1,
        )
        partial = classify_line(ctx, config)
        item = assemble_item(partial, config, line_number=index + 1) if partial else None
        if item is not None:
            items.append(item)

    return items
