"""File-backed ingredient price cache with a time-to-live.

Entries are keyed by (ingredient name, location). Fresh entries are served
by get(); entries past their TTL but cached recently enough can still be
served by get_stale() as a fallback when no fresh price is available.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from platewise import config

logger = logging.getLogger(__name__)

DEFAULT_LOCATION = "default"


class PriceCacheError(Exception):
    """Raised when the price cache cannot be written to disk."""
    pass


@dataclass
class CachedPrice:
    ingredient_name: str
    location: str
    price: float
    product_name: str | None
    size: str | None
    cached_at: str   # ISO 8601, UTC
    expires_at: str  # ISO 8601, UTC
    confidence: float | None = None

    @property
    def cached_at_dt(self) -> datetime:
        return datetime.fromisoformat(self.cached_at)

    @property
    def expires_at_dt(self) -> datetime:
        return datetime.fromisoformat(self.expires_at)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _key(ingredient_name: str, location: str | None) -> str:
    return f"{ingredient_name.strip().lower()}|{(location or DEFAULT_LOCATION).strip().lower()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _entry_from_dict(raw) -> CachedPrice | None:
    """Rebuild a saved entry; None if its fields or timestamps are unusable."""
    try:
        entry = CachedPrice(**raw)
        stamps = (entry.cached_at_dt, entry.expires_at_dt)
    except (TypeError, ValueError):
        return None
    # Naive timestamps can't be compared with the UTC clock
    if any(stamp.tzinfo is None for stamp in stamps):
        return None
    return entry


class PriceCache:
    """TTL price cache persisted as a JSON file.

    One instance is shared across request threads, so every access to the
    entries goes through a lock.
    """

    def __init__(
        self,
        file_path: Path | str | None = None,
        ttl_hours: float | None = None,
        stale_hours: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.file_path = Path(file_path or config.PRICE_CACHE_FILE)
        self.ttl_hours = config.PRICE_CACHE_TTL_HOURS if ttl_hours is None else ttl_hours
        self.stale_hours = config.PRICE_CACHE_STALE_HOURS if stale_hours is None else stale_hours
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CachedPrice] = self._load()

    def _load(self) -> dict[str, CachedPrice]:
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path) as f:
                data = json.load(f)
            raw_entries = data.get("entries", {}).items()
        except (json.JSONDecodeError, AttributeError, OSError) as e:
            logger.warning("Price cache unreadable, starting empty", extra={"path": str(self.file_path), "error": str(e)})
            return {}

        entries = {}
        for key, raw in raw_entries:
            entry = _entry_from_dict(raw)
            if entry is None:
                logger.warning("Dropping malformed price cache entry", extra={"key": key})
                continue
            entries[key] = entry
        return entries

    def _save(self) -> None:
        data = {"entries": {key: entry.to_dict() for key, entry in self._entries.items()}}
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            # Atomic write: temp file in the same directory, then replace
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.file_path.parent,
                prefix=".price_cache_tmp_",
                suffix=".json"
            )
            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(data, f, indent=2)
                os.replace(temp_path, self.file_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise PriceCacheError(f"Failed to save price cache to {self.file_path}: {e}")

    def get(self, ingredient_name: str, location: str | None = None) -> CachedPrice | None:
        """Return the cached price if it hasn't expired."""
        with self._lock:
            entry = self._entries.get(_key(ingredient_name, location))
        if entry is None or entry.expires_at_dt <= self._clock():
            return None
        return entry

    def get_stale(
        self, ingredient_name: str, location: str | None = None, max_age_hours: float | None = None
    ) -> CachedPrice | None:
        """Return an expired entry that was cached within *max_age_hours*."""
        with self._lock:
            entry = self._entries.get(_key(ingredient_name, location))
        if entry is None:
            return None
        now = self._clock()
        max_age = self.stale_hours if max_age_hours is None else max_age_hours
        if entry.expires_at_dt > now:
            return None
        if entry.cached_at_dt <= now - timedelta(hours=max_age):
            return None
        return entry

    def put(
        self,
        ingredient_name: str,
        price: float,
        location: str | None = None,
        product_name: str | None = None,
        size: str | None = None,
        confidence: float | None = None,
        ttl_hours: float | None = None,
    ) -> CachedPrice:
        now = self._clock()
        ttl = self.ttl_hours if ttl_hours is None else ttl_hours
        entry = CachedPrice(
            ingredient_name=ingredient_name.strip().lower(),
            location=(location or DEFAULT_LOCATION).strip().lower(),
            price=float(price),
            product_name=product_name,
            size=size,
            cached_at=now.isoformat(),
            expires_at=(now + timedelta(hours=ttl)).isoformat(),
            confidence=confidence,
        )
        with self._lock:
            self._entries[_key(ingredient_name, location)] = entry
            self._save()
        logger.debug("Cached price", extra={"ingredient": entry.ingredient_name, "location": entry.location})
        return entry

    def cleanup_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expires_at_dt <= now]
            for key in expired:
                del self._entries[key]
            if expired:
                self._save()
        if expired:
            logger.info("Cleaned up expired price cache entries", extra={"removed": len(expired)})
        return len(expired)

    def stats(self) -> dict[str, int]:
        now = self._clock()
        stale_threshold = now - timedelta(hours=self.stale_hours)
        with self._lock:
            entries = list(self._entries.values())
        total = len(entries)
        fresh = sum(1 for e in entries if e.expires_at_dt > now)
        stale = sum(1 for e in entries if e.expires_at_dt <= now and e.cached_at_dt > stale_threshold)
        return {
            "total_entries": total,
            "fresh_entries": fresh,
            "stale_entries": stale,
            "expired_entries": total - fresh - stale,
        }
