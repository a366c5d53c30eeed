"""
Domain Models - Pure Business Objects

This module contains domain models representing core business concepts:
- Reference rate quotes and per-tier source results
- Purchase orders, order lines and dispatch events
- Planned dispatch dates and effective rates
- The daily statistics snapshot

Files that USE this module:
- refrate.application.* (all services use domain models)
- refrate.adapters.* (adapters create and use domain models)
- tests.* (tests use domain models for test data)

Files that this module USES:
- None (pure domain layer, no external dependencies)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass, field, fields  # Data classes and field introspection
from datetime import date, datetime  # Date/time types for business dates and timestamps
from decimal import Decimal  # Exact arithmetic for money and rates
from enum import Enum  # Closed sets of source/tier labels
from typing import Any, Dict, List, Optional  # Type hints

MIN_VALID_RATE = Decimal("3800")
MAX_VALID_RATE = Decimal("10000")
DEFAULT_RATE = Decimal("4000")
ZERO = Decimal("0")


class RateSource(str, Enum):
    """Tier that produced a resolved reference rate."""
    CACHE = "cache"
    PRIMARY = "primary"
    SECONDARY = "secondary"
    EMERGENCY = "emergency"
    DEFAULT = "default"


class DispatchType(str, Enum):
    """Kind of dispatch record attached to an order line."""
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"


class DateSource(str, Enum):
    """Where a planned dispatch date came from."""
    CONFIRMED = "confirmed"
    TENTATIVE = "tentative"
    COMPUTED = "computed"


class RateTier(str, Enum):
    """Which branch of the effective-rate cascade supplied a rate."""
    EVENT = "event"
    HISTORICAL = "historical"
    ORDER = "order"
    RESOLVED = "resolved"
    DEFAULT = "default"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PARTIAL = "partial"
    COMPLETED = "completed"


@dataclass(frozen=True)
class RateQuote:
    """
    A resolved reference rate for one calendar date.

    Attributes:
        date: Business date the rate applies to
        value: COP per 1 USD (0 only as an unresolved sentinel)
        source: Tier that produced the value
    """
    date: date
    value: Decimal
    source: RateSource


@dataclass(frozen=True)
class SourceResult:
    """
    Outcome of querying one external rate source.

    Exactly one of value/error is set. Sources never raise past this type,
    so the resolver can walk its tiers by inspecting results.
    """
    source: RateSource
    value: Optional[Decimal] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, source: RateSource, value: Decimal, details: Optional[Dict[str, Any]] = None) -> SourceResult:
        return cls(source=source, value=value, details=details)

    @classmethod
    def failure(cls, source: RateSource, error: str) -> SourceResult:
        return cls(source=source, error=error)


@dataclass(frozen=True)
class DispatchEvent:
    """
    A dispatch record ("partial") for part of an order line.

    Attributes:
        id: Record id
        order_id: Owning order
        product_id: Product dispatched
        line_id: Order line the quantity belongs to (None on legacy rows)
        quantity: Units dispatched or planned
        type: Confirmed (shipped) or tentative (provisional)
        dispatch_date: Date of the dispatch, when known
        rate: Rate typed on the record, as entered (unnormalized)
    """
    id: int
    order_id: int
    product_id: int
    quantity: int
    type: DispatchType
    line_id: Optional[int] = None
    dispatch_date: Optional[date] = None
    rate: Optional[str] = None

    @property
    def is_confirmed(self) -> bool:
        return self.type == DispatchType.CONFIRMED


@dataclass(frozen=True)
class OrderLine:
    """
    One product line of a purchase order.

    Attributes:
        id: Line id
        order_id: Owning order
        product_id: Product ordered
        quantity: Units ordered
        list_price: Product catalogue price in USD
        price_override: Line price in USD when negotiated (used when > 0)
        is_sample: Sample lines never carry monetary value
        requested_delivery_date: Delivery date requested by the client
    """
    id: int
    order_id: int
    product_id: int
    quantity: int
    list_price: Decimal = ZERO
    price_override: Optional[Decimal] = None
    is_sample: bool = False
    requested_delivery_date: Optional[date] = None

    @property
    def unit_price(self) -> Decimal:
        """Effective USD unit price; samples are always zero."""
        if self.is_sample:
            return ZERO
        if self.price_override is not None and self.price_override > 0:
            return self.price_override
        return self.list_price or ZERO


@dataclass(frozen=True)
class Order:
    """Purchase order aggregate with its lines and dispatch events."""
    id: int
    client_id: int
    status: str
    created_at: datetime
    is_new_win: bool = False
    rate: Optional[Decimal] = None
    lines: List[OrderLine] = field(default_factory=list)
    events: List[DispatchEvent] = field(default_factory=list)

    def events_for_line(self, line: OrderLine) -> List[DispatchEvent]:
        """Events recorded against a line; legacy events without a line id match on product."""
        return [
            e for e in self.events
            if e.line_id == line.id or (e.line_id is None and e.product_id == line.product_id)
        ]

    def line_for_event(self, event: DispatchEvent) -> Optional[OrderLine]:
        for line in self.lines:
            if event.line_id == line.id:
                return line
        for line in self.lines:
            if event.line_id is None and event.product_id == line.product_id:
                return line
        return None


@dataclass(frozen=True)
class PlannedDispatch:
    """
    Planned dispatch date for one order line.

    Attributes:
        date: Planned date
        source: Which priority rule produced it
        rate: Raw rate of the selected confirmed event (None otherwise)
        event: The selected event, when the date came from one
    """
    date: date
    source: DateSource
    rate: Optional[str] = None
    event: Optional[DispatchEvent] = None


@dataclass(frozen=True)
class EffectiveRate:
    """Rate applied to one dispatch event and the tier that supplied it."""
    value: Decimal
    tier: RateTier

    @property
    def is_custom(self) -> bool:
        return self.tier == RateTier.EVENT


@dataclass
class DailyStatisticsSnapshot:
    """
    Aggregated statistics for one calendar date.

    One row per date; replaced as a whole on recomputation.
    """
    date: date
    computed_at: Optional[datetime] = None

    # Order creation
    total_orders_created: int = 0
    orders_pending: int = 0
    orders_processing: int = 0
    orders_partial: int = 0
    orders_completed: int = 0
    orders_new_win: int = 0
    orders_commercial: int = 0
    orders_sample: int = 0
    orders_mixed: int = 0
    total_orders_value_usd: Decimal = ZERO
    total_orders_value_cop: Decimal = ZERO

    # Actual dispatch
    dispatched_orders_count: int = 0
    dispatched_value_usd: Decimal = ZERO
    dispatched_value_cop: Decimal = ZERO
    commercial_products_dispatched: int = 0
    sample_products_dispatched: int = 0
    commercial_dispatch_events: int = 0
    sample_dispatch_events: int = 0

    # Planned dispatch
    planned_orders_count: int = 0
    planned_dispatch_value_usd: Decimal = ZERO
    planned_dispatch_value_cop: Decimal = ZERO
    planned_commercial_products: int = 0
    planned_sample_products: int = 0
    planned_from_confirmed: int = 0
    planned_from_tentative: int = 0
    planned_from_computed: int = 0

    # Pending / fulfillment
    pending_dispatch_value_usd: Decimal = ZERO
    pending_dispatch_value_cop: Decimal = ZERO
    pending_commercial_products: int = 0
    pending_sample_products: int = 0
    dispatch_fulfillment_rate_usd: Decimal = ZERO
    dispatch_fulfillment_rate_products: Decimal = ZERO

    # Completion
    orders_fully_dispatched: int = 0
    orders_partially_dispatched: int = 0
    orders_not_dispatched: int = 0
    completion_pending_value_usd: Decimal = ZERO
    completion_pending_value_cop: Decimal = ZERO
    avg_days_order_to_first_dispatch: Decimal = ZERO
    dispatch_completion_percentage: Decimal = ZERO

    # Financial / rate usage
    average_trm: Decimal = ZERO
    events_with_default_rate: int = 0
    events_with_custom_rate: int = 0

    # Client activity
    unique_clients_with_orders: int = 0
    unique_clients_with_dispatches: int = 0
    unique_clients_with_planned_dispatches: int = 0

    @classmethod
    def metric_names(cls) -> List[str]:
        """Names of all metric fields (everything except date and computed_at)."""
        return [f.name for f in fields(cls) if f.name not in ("date", "computed_at")]

    def update(self, values: Dict[str, Any]) -> None:
        """Merge one metric group's results into the snapshot."""
        known = set(self.metric_names())
        for key, value in values.items():
            if key not in known:
                raise KeyError(f"Unknown statistics field: {key}")
            setattr(self, key, value)

    def as_row(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> DailyStatisticsSnapshot:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})
