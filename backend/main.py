"""
P/L Dashboard — FastAPI Backend
Endpoints: portfolio summary, monthly performance, paginated settled trades
"""

from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging

import redis

import config
from database import SessionLocal, init_db
from data_source import DataSource, SqlDataSource, SupabaseDataSource
from dashboard_service import DashboardService, Outcome
from pagination import TradePage
from result_cache import RedisResultCache, ResultCache
from time_range import TimeRange
from trade_aggregation import PerformanceReport, PortfolioSummary

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


# ── Redis (optional, degrades gracefully) ───────────────────────
def _connect_redis():
    if not config.REDIS_URL:
        return None
    try:
        client = redis.from_url(config.REDIS_URL, decode_responses=True)
        client.ping()
        return client
    except Exception as e:
        logger.warning("Redis unavailable, using in-memory cache: %s", e)
        return None


redis_client = _connect_redis()
REDIS_AVAILABLE = redis_client is not None


# ── Service wiring ───────────────────────────────────────────────
def build_data_source() -> DataSource:
    if config.DATA_BACKEND == "supabase":
        return SupabaseDataSource(
            config.SUPABASE_URL, config.SUPABASE_ANON_KEY,
            table=config.SUPABASE_TABLE, timeout=config.HTTP_TIMEOUT,
        )
    if config.DATA_BACKEND != "sql":
        raise ValueError(f"Unknown DATA_BACKEND: {config.DATA_BACKEND!r}")
    return SqlDataSource(SessionLocal)


def build_service() -> DashboardService:
    if REDIS_AVAILABLE:
        summary_cache = RedisResultCache(redis_client, PortfolioSummary, config.CACHE_NAMESPACE)
        performance_cache = RedisResultCache(redis_client, PerformanceReport, config.CACHE_NAMESPACE)
    else:
        summary_cache, performance_cache = ResultCache(), ResultCache()
    return DashboardService(
        build_data_source(),
        page_size=config.PAGE_SIZE,
        summary_cache=summary_cache,
        performance_cache=performance_cache,
    )


dashboard = build_service()


def get_service() -> DashboardService:
    """
    The one process-wide service. Its Paginator is shared too, so the page
    set by the last ``/api/trades`` call is the page every client sees.
    """
    return dashboard


# ── App ──────────────────────────────────────────────────────────
app = FastAPI(title="P/L Dashboard API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


# ── Startup ──────────────────────────────────────────────────────
@app.on_event("startup")
async def startup_event():
    if config.DATA_BACKEND == "sql":
        init_db()
    logger.info("Data backend: %s, Redis available: %s", config.DATA_BACKEND, REDIS_AVAILABLE)


# ── Helpers ──────────────────────────────────────────────────────
def _parse_range(value: str) -> TimeRange:
    try:
        return TimeRange.parse(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _unwrap(outcome: Outcome):
    if not outcome.ok:
        raise HTTPException(status_code=502, detail=outcome.error)
    return outcome.value


def _page_or_error(page: TradePage) -> TradePage:
    if not page.ok:
        raise HTTPException(status_code=502, detail=page.error)
    return page


# ═══════════════════════════════════════════════════════════════
#  DASHBOARD ENDPOINTS
# ═══════════════════════════════════════════════════════════════

@app.get("/")
async def root():
    return {"message": "P/L Dashboard API v1.0"}


@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "backend": config.DATA_BACKEND,
        "cache": "redis" if REDIS_AVAILABLE else "memory",
    }


@app.get("/api/summary", response_model=PortfolioSummary)
async def get_summary(
    range_: str = Query("all", alias="range"),
    service: DashboardService = Depends(get_service),
):
    """Total profit, win rate and trade count for a time range (all or 7d)."""
    return _unwrap(service.get_summary(_parse_range(range_)))


@app.get("/api/performance", response_model=PerformanceReport)
async def get_performance(
    range_: str = Query("all", alias="range"),
    service: DashboardService = Depends(get_service),
):
    """Monthly P/L buckets (Jan..Dec), cumulative series and chart total."""
    return _unwrap(service.get_performance(_parse_range(range_)))


@app.get("/api/trades", response_model=TradePage)
async def get_trades(
    page: Optional[int] = None,
    size: Optional[int] = Query(None, ge=1, le=config.MAX_PAGE_SIZE),
    service: DashboardService = Depends(get_service),
):
    """
    Settled trades, newest first. Without ``page`` returns the page on screen.
    A page outside 1..total_pages is a no-op: the previous page comes back
    with ``rejected: true``.
    """
    if page is None:
        return _page_or_error(service.current_trades())
    return _page_or_error(service.change_page(page, size))


@app.get("/api/overview")
async def get_overview(
    range_: str = Query("all", alias="range"),
    service: DashboardService = Depends(get_service),
):
    """Summary, performance chart and the current trade page in one call."""
    return _unwrap(service.get_overview(_parse_range(range_)))
