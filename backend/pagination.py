"""
Trade list pagination.

The Paginator maps a 1-based page index onto an inclusive row range of the
data source (newest settlement first), keeps the last good page, and
rejects navigation outside ``1..max(1, total_pages)`` instead of clamping.
"""

from typing import List, Optional
from datetime import datetime
import logging
import threading

from pydantic import BaseModel, ConfigDict, computed_field

from data_source import DataSource, DataSourceError
from trade_aggregation import PositionRecord

logger = logging.getLogger(__name__)

BUTTON_WINDOW = 3


def page_buttons(current: int, total_pages: int, width: int = BUTTON_WINDOW) -> List[int]:
    """
    Page numbers to show: ``min(width, total_pages)`` of them, centered on
    ``current`` and slid back inside ``1..total_pages`` near either edge.
    """
    if total_pages <= 0:
        return []
    count = min(width, total_pages)
    current = min(max(current, 1), total_pages)
    start = max(1, current - count // 2)
    end = start + count - 1
    if end > total_pages:
        end = total_pages
        start = end - count + 1
    return list(range(start, end + 1))


class PageWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    page_index: int
    page_size: int
    total_count: int

    @classmethod
    def build(cls, page_index: int, page_size: int, total_count: int) -> "PageWindow":
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if total_count < 0:
            raise ValueError("total_count cannot be negative")
        window = cls(page_index=page_index, page_size=page_size, total_count=total_count)
        if not 1 <= page_index <= max(1, window.total_pages):
            raise ValueError(f"page {page_index} outside 1..{max(1, window.total_pages)}")
        return window

    @computed_field
    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.page_size)

    @computed_field
    @property
    def page_buttons(self) -> List[int]:
        return page_buttons(self.page_index, self.total_pages)

    @computed_field
    @property
    def has_previous(self) -> bool:
        return self.page_index > 1

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page_index < self.total_pages

    @property
    def row_range(self) -> tuple:
        """Inclusive ``(start, end)`` row offsets for this page."""
        start = (self.page_index - 1) * self.page_size
        return start, start + self.page_size - 1


class TradePage(BaseModel):
    """What the trade list shows. An error replaces the records entirely."""

    model_config = ConfigDict(frozen=True)

    window: Optional[PageWindow] = None
    records: List[PositionRecord] = []
    error: Optional[str] = None
    rejected: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class Paginator:
    """
    Stateful page controller over a DataSource.

    One request at a time: a call made while another is outstanding is
    rejected, the same as a disabled button.
    """

    def __init__(self, source: DataSource, page_size: int = 5,
                 since: Optional[datetime] = None):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.source = source
        self.page_size = page_size
        self.since = since
        self._state = TradePage()
        self._lock = threading.Lock()

    @property
    def current(self) -> TradePage:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _rejected(self) -> TradePage:
        return self._state.model_copy(update={"rejected": True})

    def page(self, index: int, size: Optional[int] = None) -> TradePage:
        size = self.page_size if size is None else size
        if size <= 0:
            raise ValueError("page size must be positive")
        if not self._lock.acquire(blocking=False):
            logger.info("Page %d ignored: a page request is in flight", index)
            return self._rejected()
        try:
            try:
                total = self.source.count(self.since)
                total_pages = -(-total // size)
                if index < 1 or index > max(1, total_pages):
                    logger.info("Page %d rejected: %d page(s) available", index, total_pages)
                    return self._rejected()
                window = PageWindow.build(index, size, total)
                start, end = window.row_range
                records = self.source.fetch_range(start, end, self.since) if total else []
            except DataSourceError as e:
                logger.warning("Trade page %d fetch failed: %s", index, e)
                self._state = TradePage(window=self._state.window, error=str(e))
                return self._state

            self.page_size = size
            self._state = TradePage(window=window, records=records)
            return self._state
        finally:
            self._lock.release()

    def next_page(self) -> TradePage:
        window = self._state.window
        return self.page(window.page_index + 1 if window else 1)

    def previous_page(self) -> TradePage:
        window = self._state.window
        return self.page(window.page_index - 1 if window else 1)

    def reload(self) -> TradePage:
        """Explicit retry of the current page (page 1 before anything loaded)."""
        window = self._state.window
        return self.page(window.page_index if window else 1)
