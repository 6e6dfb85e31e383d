"""
Shared fixtures: sample settled positions, an in-memory data source and a
SQLite-backed session factory.
"""

from datetime import datetime, timezone
from typing import List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, SettledPosition
from data_source import DataSource, DataSourceError
from trade_aggregation import PositionRecord


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeDataSource(DataSource):
    """In-memory source that records every call and can be told to fail."""

    def __init__(self, records: Optional[List[PositionRecord]] = None):
        self.records = list(records or [])
        self.calls: List[tuple] = []
        self.fail: Optional[str] = None

    def _enter(self, name: str, since) -> None:
        self.calls.append((name, since))
        if self.fail:
            raise DataSourceError(self.fail)

    def _filtered(self, since):
        return [r for r in self.records if since is None or r.settled_at >= since]

    def fetch_all(self, since=None):
        self._enter("fetch_all", since)
        return self._filtered(since)

    def fetch_range(self, start, end, since=None):
        self._enter("fetch_range", since)
        rows = sorted(self._filtered(since), key=lambda r: r.ticker)
        rows = sorted(rows, key=lambda r: r.settled_at, reverse=True)
        return rows[start:end + 1]

    def count(self, since=None):
        self._enter("count", since)
        return len(self._filtered(since))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scenario_records():
    """Two January 2024 trades (+250, -50) and one February win (+100)."""
    return [
        PositionRecord(ticker="BTC60K", market_name="Will BTC exceed $60K in Q3?",
                       realized_pnl=25000, settled_at=utc(2024, 1, 15, 12, 0)),
        PositionRecord(ticker="FEDJUL", market_name="Will Fed raise rates in July?",
                       realized_pnl=-5000, settled_at=utc(2024, 1, 20, 9, 30)),
        PositionRecord(ticker="AAPLAR", market_name="Will Apple release AR glasses?",
                       realized_pnl=10000, settled_at=utc(2024, 2, 1, 16, 45)),
    ]


@pytest.fixture
def dozen_records():
    """Twelve trades, one per day from 2024-03-01, alternating win/loss."""
    return [
        PositionRecord(ticker=f"T{i:02d}", market_name=f"Market {i}",
                       realized_pnl=(1000 if i % 2 == 0 else -400),
                       settled_at=utc(2024, 3, 1 + i))
        for i in range(12)
    ]


@pytest.fixture
def make_source():
    return FakeDataSource


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def seeded_session_factory(session_factory, scenario_records):
    with session_factory() as db:
        for r in scenario_records:
            db.add(SettledPosition(
                ticker=r.ticker,
                market_name=r.market_name,
                realized_pnl=r.realized_pnl,
                last_updated_ts=r.settled_at,
            ))
        db.commit()
    return session_factory
