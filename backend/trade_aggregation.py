"""
Trade aggregation — turns settled-position rows into the series the
dashboard renders: monthly P/L buckets, a cumulative running total and the
portfolio summary (total profit, win rate, trade count).

Everything here is a pure function over an immutable input sequence.
Amounts arrive in cents and leave as Decimal dollars so that bucket sums
and totals agree to the cent.

Assumptions documented at the bottom of this file.
"""

from typing import Annotated, Dict, List, Optional, Sequence, Tuple
from datetime import datetime, timezone
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP

from pydantic import (
    AfterValidator, BaseModel, ConfigDict, PlainSerializer, computed_field, field_validator,
)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

CENTS = Decimal(100)
TWO_PLACES = Decimal("0.01")


def _two_places(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# Decimal in Python, plain number in JSON; reads back at two places
Money = Annotated[
    Decimal,
    AfterValidator(_two_places),
    PlainSerializer(float, return_type=float, when_used="json"),
]


# ── Value objects ────────────────────────────────────────────────
class PositionRecord(BaseModel):
    """One settled position as returned by the data source."""

    model_config = ConfigDict(frozen=True)

    ticker: str
    market_name: str = ""
    realized_pnl: int          # cents, signed
    settled_at: datetime

    @field_validator("settled_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def pnl(self) -> Money:
        return cents_to_amount(self.realized_pnl)

    @computed_field
    @property
    def outcome(self) -> str:
        return "Win" if self.realized_pnl > 0 else "Loss"


class MonthlyBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str                       # "Jan".."Dec"
    period_key: Optional[str] = None  # "2024-Jan"; None when zero-filled
    total_pnl: Money = Decimal("0.00")

    @computed_field
    @property
    def label(self) -> str:
        return format_compact(self.total_pnl)


class CumulativePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    period_label: str
    pnl: Money
    cumulative_pnl: Money


class PortfolioSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_profit: Money = Decimal("0.00")
    win_rate: int = 0
    total_trades: int = 0
    wins: int = 0
    losses: int = 0


class PerformanceReport(BaseModel):
    """Everything the monthly P/L chart needs in one payload."""

    model_config = ConfigDict(frozen=True)

    monthly: List[MonthlyBucket]
    cumulative: List[CumulativePoint]
    total_pnl: Money
    total_pnl_display: str
    axis_max: int


# ── Helpers ──────────────────────────────────────────────────────
def cents_to_amount(cents: int) -> Decimal:
    return (Decimal(cents) / CENTS).quantize(TWO_PLACES)


def _utc(ts: datetime) -> datetime:
    return ts.astimezone(timezone.utc)


def period_key(ts: datetime) -> str:
    ts = _utc(ts)
    return f"{ts.year}-{MONTH_NAMES[ts.month - 1]}"


def sort_by_settlement(records: Sequence[PositionRecord]) -> List[PositionRecord]:
    """Ascending by settlement time, ticker as tie-break. Stable."""
    return sorted(records, key=lambda r: (_utc(r.settled_at), r.ticker))


# ── Aggregations ─────────────────────────────────────────────────
def aggregate_monthly(records: Sequence[PositionRecord]) -> List[MonthlyBucket]:
    """
    Twelve buckets, Jan..Dec, zero-filled.

    Rows are grouped by a year-qualified key ("2024-Jan"). The display slot
    for a month is filled by the first year-group seen in input order; other
    years of the same month do not add into it.
    """
    groups: Dict[str, int] = {}
    for r in records:
        key = period_key(r.settled_at)
        groups[key] = groups.get(key, 0) + r.realized_pnl

    slots: Dict[str, Tuple[str, int]] = {}
    for key, cents in groups.items():
        slots.setdefault(key.split("-", 1)[1], (key, cents))

    buckets: List[MonthlyBucket] = []
    for month in MONTH_NAMES:
        hit = slots.get(month)
        if hit is None:
            buckets.append(MonthlyBucket(month=month))
        else:
            buckets.append(MonthlyBucket(
                month=month, period_key=hit[0], total_pnl=cents_to_amount(hit[1]),
            ))
    return buckets


def aggregate_cumulative(records: Sequence[PositionRecord]) -> List[CumulativePoint]:
    """
    Running total over ``records`` in the order given.

    Callers pass rows already sorted ascending by settlement time
    (see ``sort_by_settlement``); nothing is re-sorted here.
    """
    points: List[CumulativePoint] = []
    running = 0
    for i, r in enumerate(records):
        running += r.realized_pnl
        points.append(CumulativePoint(
            index=i,
            period_label=_utc(r.settled_at).date().isoformat(),
            pnl=cents_to_amount(r.realized_pnl),
            cumulative_pnl=cents_to_amount(running),
        ))
    return points


def summarize(records: Sequence[PositionRecord]) -> PortfolioSummary:
    total_trades = len(records)
    if total_trades == 0:
        return PortfolioSummary()

    total_cents = sum(r.realized_pnl for r in records)
    wins = sum(1 for r in records if r.realized_pnl > 0)
    win_rate = int((Decimal(100 * wins) / total_trades).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP,
    ))
    return PortfolioSummary(
        total_profit=cents_to_amount(total_cents),
        win_rate=win_rate,
        total_trades=total_trades,
        wins=wins,
        losses=total_trades - wins,
    )


def build_performance(records: Sequence[PositionRecord]) -> PerformanceReport:
    """Monthly chart data, cumulative series and the chart's headline total."""
    monthly = aggregate_monthly(records)
    total = sum((b.total_pnl for b in monthly), Decimal("0.00"))
    return PerformanceReport(
        monthly=monthly,
        cumulative=aggregate_cumulative(sort_by_settlement(records)),
        total_pnl=total,
        total_pnl_display=format_currency(total),
        axis_max=axis_ceiling(monthly),
    )


# ── Display formatting ───────────────────────────────────────────
def format_currency(amount: Decimal) -> str:
    """``$1,284.75`` / ``-$1,234.5`` / ``$300``: no padded zeros, sign before the dollar."""
    prefix = "-$" if amount < 0 else "$"
    text = f"{abs(amount):,.2f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return prefix + text


def format_compact(amount: Decimal) -> str:
    """Bar tooltip format: ``$1.23K`` from a thousand up, ``$12.34`` below."""
    prefix = "-$" if amount < 0 else "$"
    value = abs(amount)
    if value >= 1000:
        return f"{prefix}{value / 1000:.2f}K"
    return f"{prefix}{value:.2f}"


def axis_ceiling(buckets: Sequence[MonthlyBucket]) -> int:
    """Symmetric y-axis bound, rounded up to a multiple of 5 (at least 5)."""
    values = [b.total_pnl for b in buckets]
    largest = max([abs(max(values, default=0)), abs(min(values, default=0)), Decimal(1)])
    return int((Decimal(largest) / 5).to_integral_value(rounding=ROUND_CEILING)) * 5


# ═══════════════════════════════════════════════════════════════
#  ASSUMPTIONS & FORMULAS
# ═══════════════════════════════════════════════════════════════
"""
1. AMOUNTS:
   - realized_pnl is stored in cents. Display amount = cents / 100, kept as
     Decimal quantized to 0.01. Sums are taken in cents first.

2. MONTHS:
   - A trade belongs to the UTC calendar month of its settlement timestamp.
   - Years are folded away in the 12 display slots (see aggregate_monthly).

3. WIN RATE:
   - win_rate = round_half_up(100 * wins / total_trades), 0 when no trades.
   - A win is realized_pnl > 0; zero P/L counts as a loss.

4. CHART TOTAL:
   - The chart headline is the sum of the 12 display slots, which equals the
     summary total whenever the data covers a single year.
"""
