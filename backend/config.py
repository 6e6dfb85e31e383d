"""
Settings for the P/L dashboard backend, read once from the environment.
"""

import os

# ── Data backend ─────────────────────────────────────────────────
DATA_BACKEND = os.getenv("DATA_BACKEND", "sql").strip().lower()   # "sql" or "supabase"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./settled_positions.db")

SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "").strip()
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "settled_positions")
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# ── Trade list ───────────────────────────────────────────────────
PAGE_SIZE = int(os.getenv("PAGE_SIZE", "5"))
MAX_PAGE_SIZE = 100

# ── Cache (optional, in-memory when Redis is not reachable) ─────
REDIS_URL = os.getenv("REDIS_URL", "").strip()
CACHE_NAMESPACE = os.getenv("CACHE_NAMESPACE", "pnl-dashboard")

# ── HTTP ─────────────────────────────────────────────────────────
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000",
    ).split(",")
    if o.strip()
]
