from sqlalchemy import (
    create_engine, Column, BigInteger, Integer, String, DateTime, Index,
)
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from config import DATABASE_URL

logger = logging.getLogger(__name__)


def make_engine(url: str):
    """Engine for ``url``; SQLite needs cross-thread access for FastAPI's worker pool."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(
        url, echo=False, pool_pre_ping=True, pool_recycle=3600,
        connect_args=connect_args,
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ── Models ───────────────────────────────────────────────────────
class SettledPosition(Base):
    """A closed trade. Rows are append-only; nothing here writes them."""

    __tablename__ = "settled_positions"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    ticker = Column(String(64), nullable=False, index=True)
    last_updated_ts = Column(DateTime(timezone=True), nullable=False)
    market_name = Column(String(512), nullable=False, default="")
    realized_pnl = Column(BigInteger, nullable=False)   # cents

    __table_args__ = (
        Index("ix_settled_ts_ticker", "last_updated_ts", "ticker"),
    )


# ── DB helpers ───────────────────────────────────────────────────
def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database ready: %s", (bind or engine).url.render_as_string(hide_password=True))
