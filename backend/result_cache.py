"""
Keyed result cache for aggregated dashboard data.

Entries are keyed by time range and never expire: settled positions are
append-only, so a cached summary can only be stale by trades that settled
after it was computed.
"""

from typing import Callable, Dict, Generic, Hashable, Optional, Type, TypeVar
import enum
import logging

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

V = TypeVar("V")
M = TypeVar("M", bound=BaseModel)


def _key_str(key: Hashable) -> str:
    return key.value if isinstance(key, enum.Enum) else str(key)


class ResultCache(Generic[V]):
    """In-process map from range key to computed value. At most one entry per key."""

    def __init__(self):
        self._entries: Dict[Hashable, V] = {}

    def get(self, key: Hashable) -> Optional[V]:
        return self._entries.get(key)

    def put(self, key: Hashable, value: V) -> None:
        self._entries[key] = value

    def get_or_compute(self, key: Hashable, compute: Callable[[], V]) -> V:
        """Read-through: ``compute`` runs only on a miss. Failures are not cached."""
        hit = self.get(key)
        if hit is not None:
            logger.debug("Cache hit: %s", _key_str(key))
            return hit
        value = compute()
        self.put(key, value)
        return value

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class RedisResultCache(ResultCache[M]):
    """
    Same contract backed by Redis, so several workers share one summary per
    range. Values are pydantic models stored as JSON without expiry.
    Redis errors degrade to a miss (get) or a skipped write (put); an entry
    that no longer validates against ``model`` is a miss too.
    """

    def __init__(self, client, model: Type[M], namespace: str = "pnl-dashboard"):
        super().__init__()
        self._client = client
        self._model = model
        self._prefix = f"{namespace}:{model.__name__}:"

    def _redis_key(self, key: Hashable) -> str:
        return self._prefix + _key_str(key)

    def get(self, key: Hashable) -> Optional[M]:
        try:
            raw = self._client.get(self._redis_key(key))
        except Exception as e:
            logger.warning("Redis get %s failed: %s", self._redis_key(key), e)
            return None
        if raw is None:
            return None
        try:
            return self._model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Unreadable cache entry %s, recomputing: %s", self._redis_key(key), e)
            return None

    def put(self, key: Hashable, value: M) -> None:
        try:
            self._client.set(self._redis_key(key), value.model_dump_json())
        except Exception as e:
            logger.warning("Redis set %s failed: %s", self._redis_key(key), e)

    def __contains__(self, key: Hashable) -> bool:
        try:
            return bool(self._client.exists(self._redis_key(key)))
        except Exception:
            return False

    def __len__(self) -> int:
        try:
            return sum(1 for _ in self._client.scan_iter(match=self._prefix + "*"))
        except Exception:
            return 0
