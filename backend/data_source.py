"""
Data sources for settled positions.

Two backends share one contract: a SQL database through SQLAlchemy, and a
hosted PostgREST (Supabase) table over HTTP. Both return PositionRecord
lists and raise DataSourceError on any failure; there is no partial result.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from datetime import datetime, timezone
import logging

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from database import SettledPosition
from trade_aggregation import PositionRecord

logger = logging.getLogger(__name__)

SELECT_COLUMNS = "ticker,market_name,realized_pnl,last_updated_ts"
# every selected column, so rows that tie sort as identical values
FETCH_ALL_ORDER = "last_updated_ts.asc,ticker.asc,market_name.asc,realized_pnl.asc"


class DataSourceError(Exception):
    """Network or query failure. The message is passed through unchanged."""


def _as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


class DataSource(ABC):
    """Read-only query interface over the settled positions table."""

    @abstractmethod
    def fetch_all(self, since: Optional[datetime] = None) -> List[PositionRecord]:
        """Every matching row, any order."""

    @abstractmethod
    def fetch_range(self, start: int, end: int,
                    since: Optional[datetime] = None) -> List[PositionRecord]:
        """Rows ``start..end`` inclusive, newest first, ticker as tie-break."""

    @abstractmethod
    def count(self, since: Optional[datetime] = None) -> int:
        """Exact number of matching rows."""


# ── SQL backend ──────────────────────────────────────────────────
class SqlDataSource(DataSource):
    """One short-lived session per query."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _query(self, db, since: Optional[datetime]):
        q = db.query(SettledPosition)
        if since is not None:
            q = q.filter(SettledPosition.last_updated_ts >= _as_utc(since))
        return q

    @staticmethod
    def _to_record(row: SettledPosition) -> PositionRecord:
        return PositionRecord(
            ticker=row.ticker,
            market_name=row.market_name or "",
            realized_pnl=int(row.realized_pnl),
            settled_at=_as_utc(row.last_updated_ts),
        )

    def fetch_all(self, since: Optional[datetime] = None) -> List[PositionRecord]:
        try:
            with self._session_factory() as db:
                return [self._to_record(r) for r in self._query(db, since).all()]
        except SQLAlchemyError as e:
            raise DataSourceError(str(e)) from e

    def fetch_range(self, start: int, end: int,
                    since: Optional[datetime] = None) -> List[PositionRecord]:
        if end < start:
            return []
        try:
            with self._session_factory() as db:
                rows = (
                    self._query(db, since)
                    .order_by(SettledPosition.last_updated_ts.desc(), SettledPosition.ticker.asc())
                    .offset(start)
                    .limit(end - start + 1)
                    .all()
                )
                return [self._to_record(r) for r in rows]
        except SQLAlchemyError as e:
            raise DataSourceError(str(e)) from e

    def count(self, since: Optional[datetime] = None) -> int:
        try:
            with self._session_factory() as db:
                return self._query(db, since).count()
        except SQLAlchemyError as e:
            raise DataSourceError(str(e)) from e


# ── PostgREST / Supabase backend ─────────────────────────────────
class SupabaseDataSource(DataSource):
    """
    Queries ``/rest/v1/<table>`` directly. Paging uses the ``Range`` header,
    counts come from ``Content-Range`` with ``Prefer: count=exact``.
    """

    BATCH_SIZE = 1000   # PostgREST's default max-rows on hosted projects

    def __init__(self, url: str, anon_key: str, table: str = "settled_positions",
                 timeout: float = 10, session: Optional[requests.Session] = None):
        if not url or not anon_key:
            raise ValueError("Supabase URL and Anon Key are required.")
        self.endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self.timeout = timeout
        self._http = session or requests.Session()
        self._http.headers.update({
            "apikey": anon_key,
            "Authorization": f"Bearer {anon_key}",
            "Accept": "application/json",
        })

    @staticmethod
    def _filters(since: Optional[datetime]) -> Dict[str, str]:
        if since is None:
            return {}
        return {"last_updated_ts": f"gte.{_as_utc(since).isoformat()}"}

    @staticmethod
    def _raise_for_status(r: requests.Response) -> None:
        if r.status_code < 400:
            return
        detail = r.reason or f"HTTP {r.status_code}"
        try:
            body = r.json()
            if isinstance(body, dict) and body.get("message"):
                detail = body["message"]
        except ValueError:
            pass
        raise DataSourceError(f"{r.status_code}: {detail}")

    def _get_rows(self, params: Dict[str, str], start: int, end: int) -> List[PositionRecord]:
        try:
            r = self._http.get(
                self.endpoint,
                params=params,
                headers={"Range-Unit": "items", "Range": f"{start}-{end}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DataSourceError(str(e)) from e
        if r.status_code == 416:   # offset past the last row
            return []
        self._raise_for_status(r)
        try:
            return [
                PositionRecord(
                    ticker=row["ticker"],
                    market_name=row.get("market_name") or "",
                    realized_pnl=int(row["realized_pnl"]),
                    settled_at=row["last_updated_ts"],
                )
                for row in r.json()
            ]
        except (ValueError, KeyError, TypeError) as e:
            raise DataSourceError(f"Malformed response: {e}") from e

    def fetch_all(self, since: Optional[datetime] = None) -> List[PositionRecord]:
        params = {
            "select": SELECT_COLUMNS,
            "order": FETCH_ALL_ORDER,
            **self._filters(since),
        }
        records: List[PositionRecord] = []
        start = 0
        while True:
            batch = self._get_rows(params, start, start + self.BATCH_SIZE - 1)
            records.extend(batch)
            if len(batch) < self.BATCH_SIZE:
                break
            start += self.BATCH_SIZE
        logger.info("Fetched %d settled positions", len(records))
        return records

    def fetch_range(self, start: int, end: int,
                    since: Optional[datetime] = None) -> List[PositionRecord]:
        if end < start:
            return []
        params = {
            "select": SELECT_COLUMNS,
            "order": "last_updated_ts.desc,ticker.asc",
            **self._filters(since),
        }
        return self._get_rows(params, start, end)

    def count(self, since: Optional[datetime] = None) -> int:
        try:
            r = self._http.head(
                self.endpoint,
                params={"select": "ticker", **self._filters(since)},
                headers={"Prefer": "count=exact"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise DataSourceError(str(e)) from e
        self._raise_for_status(r)
        content_range = r.headers.get("Content-Range", "")
        total = content_range.rsplit("/", 1)[-1]
        if not total.isdigit():
            raise DataSourceError(f"Missing exact count in Content-Range: {content_range!r}")
        return int(total)
