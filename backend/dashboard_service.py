"""
Dashboard service — one entry point per user action (range switch, page
change). Each action makes at most one outbound query and updates state
once; results come back as an Outcome rather than an exception.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Generic, Optional, Tuple, TypeVar
from datetime import datetime
import logging

from data_source import DataSource, DataSourceError
from pagination import Paginator, TradePage
from result_cache import ResultCache
from time_range import TimeRange, utcnow
from trade_aggregation import (
    PerformanceReport, PortfolioSummary, build_performance, summarize,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Either a value or an error message, never both."""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DashboardService:
    def __init__(
        self,
        source: DataSource,
        page_size: int = 5,
        clock: Callable[[], datetime] = utcnow,
        summary_cache: Optional[ResultCache] = None,
        performance_cache: Optional[ResultCache] = None,
    ):
        self.source = source
        self.clock = clock
        self.summaries = summary_cache if summary_cache is not None else ResultCache()
        self.performance = performance_cache if performance_cache is not None else ResultCache()
        self.paginator = Paginator(source, page_size=page_size)

    # ── Aggregates (cached per range) ────────────────────────────
    def _refresh(self, time_range: TimeRange) -> Tuple[PortfolioSummary, PerformanceReport]:
        """One fetch fills both caches for ``time_range``. "now" is read per query."""
        records = self.source.fetch_all(time_range.since(self.clock()))
        summary = summarize(records)
        report = build_performance(records)
        self.summaries.put(time_range, summary)
        self.performance.put(time_range, report)
        logger.info("Aggregated %d positions for range %s", len(records), time_range.value)
        return summary, report

    def get_summary(self, time_range: TimeRange) -> Outcome[PortfolioSummary]:
        try:
            summary = self.summaries.get_or_compute(
                time_range, lambda: self._refresh(time_range)[0],
            )
        except DataSourceError as e:
            logger.warning("Summary for %s failed: %s", time_range.value, e)
            return Outcome(error=str(e))
        return Outcome(value=summary)

    def get_performance(self, time_range: TimeRange) -> Outcome[PerformanceReport]:
        try:
            report = self.performance.get_or_compute(
                time_range, lambda: self._refresh(time_range)[1],
            )
        except DataSourceError as e:
            logger.warning("Performance for %s failed: %s", time_range.value, e)
            return Outcome(error=str(e))
        return Outcome(value=report)

    # ── Trade list ───────────────────────────────────────────────
    def change_page(self, index: int, size: Optional[int] = None) -> TradePage:
        return self.paginator.page(index, size)

    def current_trades(self) -> TradePage:
        """The page on screen; loads page 1 the first time."""
        page = self.paginator.current
        if page.window is None and page.error is None:
            page = self.paginator.page(1)
        return page

    # ── Whole page ───────────────────────────────────────────────
    def get_overview(self, time_range: TimeRange) -> Outcome[Dict]:
        summary = self.get_summary(time_range)
        if not summary.ok:
            return Outcome(error=summary.error)
        performance = self.get_performance(time_range)
        if not performance.ok:
            return Outcome(error=performance.error)
        return Outcome(value={
            "range": time_range.value,
            "summary": summary.value,
            "performance": performance.value,
            "trades": self.current_trades(),
        })
