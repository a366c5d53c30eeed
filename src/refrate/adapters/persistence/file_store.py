# src/refrate/adapters/persistence/file_store.py
"""
File Store - Persistent Rate Cache and Last-Known-Good Record

This module handles the two file-backed stores of the rate resolver:
- JsonCacheStore: date-keyed rate entries, each with its own expiry
- The last-known-good record: the most recent rate obtained from a
  network source, used when every remote source is down

Both are plain JSON files written atomically (temp file + rename) so a crash
mid-write never leaves a truncated file behind.

Files that USE this module:
- refrate.application.rate_cache (RateCache wraps both stores)
- refrate.app (builds the stores from settings)
- tests.test_file_store (unit tests)

Files that this module USES:
- refrate.domain.models (RateSource enum)
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

from refrate.domain.models import RateSource

log = logging.getLogger(__name__)


def _finite_decimal(raw: Any) -> Decimal:
    value = Decimal(str(raw))
    if not value.is_finite():
        raise ValueError(f"non-finite rate value {raw!r}")
    return value


def _aware_datetime(raw: str) -> datetime:
    # Accept both "...Z" and "+00:00"; naive stamps cannot be compared with the clock
    moment = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if moment.tzinfo is None:
        raise ValueError(f"timestamp without offset {raw!r}")
    return moment


@dataclass(frozen=True)
class RateCacheEntry:
    date: date
    value: Decimal
    source: RateSource
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_json(self) -> dict:
        return {
            "value": str(self.value),
            "source": self.source.value,
            "expires_at": self.expires_at.isoformat(),
        }

    @staticmethod
    def from_json(day: str, data: dict) -> "RateCacheEntry":
        return RateCacheEntry(
            date=date.fromisoformat(day),
            value=_finite_decimal(data["value"]),
            source=RateSource(data.get("source", RateSource.CACHE.value)),
            expires_at=_aware_datetime(data["expires_at"]),
        )


@dataclass(frozen=True)
class LastKnownGoodRate:
    value: Decimal
    date: date
    source: RateSource
    saved_at: Optional[datetime] = None  # UTC - set on save when not provided

    def to_json(self) -> dict:
        """
        Convert LastKnownGoodRate to a JSON-serializable dictionary.

        Returns:
            Dictionary with string value and ISO-formatted dates
        """
        saved_at = self.saved_at or datetime.now(timezone.utc)
        return {
            "value": str(self.value),
            "date": self.date.isoformat(),
            "source": self.source.value,
            "saved_at": saved_at.isoformat(),
        }

    @staticmethod
    def from_json(data: dict) -> "LastKnownGoodRate":
        saved_raw = data.get("saved_at")
        # Accept both "...Z" and "+00:00"
        if isinstance(saved_raw, str):
            saved_at = datetime.fromisoformat(saved_raw.replace("Z", "+00:00"))
        else:
            saved_at = None
        return LastKnownGoodRate(
            value=_finite_decimal(data["value"]),
            date=date.fromisoformat(data["date"]),
            source=RateSource(data["source"]),
            saved_at=saved_at,
        )


def atomic_write_json(path: Path, payload: Any) -> None:
    """
    Write payload as JSON using temp file + atomic rename.

    Raises:
        RuntimeError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(suffix=".json.tmp", dir=str(path.parent), text=True)

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())  # Ensure data is written to disk

        os.replace(temp_path, str(path))
    except Exception as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise RuntimeError(f"Failed to write {path.name}: {e}") from e


def read_json(path: Path) -> Optional[Any]:
    """
    Read a JSON file; a corrupt file is moved aside to *.json.corrupt.

    Returns:
        Parsed content, or None when the file is missing or corrupt
    """
    if not path.exists():
        return None

    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            corrupt = e

    backup_path = path.with_suffix(".json.corrupt")
    try:
        shutil.copy2(path, backup_path)
        path.unlink()
        log.warning("%s corrupted (JSON decode error), backed up to %s: %s", path.name, backup_path, corrupt)
    except OSError as backup_error:
        log.error("Failed to back up corrupt file %s: %s", path, backup_error)
    return None


class JsonCacheStore:
    """
    Date-keyed rate store persisted to a single JSON file.

    Layout: {"2024-01-05": {"value": "4012.5", "source": "primary",
    "expires_at": "2024-02-04T10:00:00-05:00"}, ...}
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, dict]:
        data = read_json(self.path)
        if not isinstance(data, dict):
            if data is not None:
                log.warning("Ignoring rate cache file with unexpected layout: %s", self.path)
            return {}
        return data

    def get(self, day: date, now: datetime) -> Optional[RateCacheEntry]:
        """
        Get the entry for a date when present and not expired.

        Expired entries are removed from the file as a side effect.
        """
        key = day.isoformat()
        with self._lock:
            data = self._load()
            raw = data.get(key)
            if raw is None:
                return None
            try:
                entry = RateCacheEntry.from_json(key, raw)
                expired = entry.is_expired(now)
            except (KeyError, ValueError, TypeError, AttributeError, ArithmeticError) as e:
                log.warning("Dropping unreadable cache entry for %s: %s", key, e)
                data.pop(key, None)
                atomic_write_json(self.path, data)
                return None
            if expired:
                log.debug("Cache entry for %s expired at %s", key, entry.expires_at)
                data.pop(key, None)
                atomic_write_json(self.path, data)
                return None
            return entry

    def put(self, entry: RateCacheEntry) -> None:
        with self._lock:
            data = self._load()
            data[entry.date.isoformat()] = entry.to_json()
            atomic_write_json(self.path, data)

    def delete(self, day: date) -> bool:
        with self._lock:
            data = self._load()
            if data.pop(day.isoformat(), None) is None:
                return False
            atomic_write_json(self.path, data)
            return True

    def clear(self) -> int:
        """Remove every entry; returns how many were dropped."""
        with self._lock:
            count = len(self._load())
            if self.path.exists():
                self.path.unlink()
            return count

    def count(self) -> int:
        with self._lock:
            return len(self._load())


def save_last_known_good(path: Union[str, Path], record: LastKnownGoodRate) -> None:
    """
    Save the last-known-good rate using an atomic write.

    Args:
        path: Target JSON file
        record: LastKnownGoodRate instance to save
    """
    atomic_write_json(Path(path), record.to_json())


def load_last_known_good(path: Union[str, Path]) -> Optional[LastKnownGoodRate]:
    """
    Load the last-known-good rate.

    Returns:
        LastKnownGoodRate if the file exists and is valid, None otherwise
    """
    p = Path(path)
    data = read_json(p)
    if data is None:
        return None
    try:
        return LastKnownGoodRate.from_json(data)
    except (KeyError, ValueError, TypeError, ArithmeticError) as e:
        log.warning("Last-known-good file schema mismatch, ignoring: %s", e)
        return None


def clear_last_known_good(path: Union[str, Path]) -> bool:
    p = Path(path)
    if not p.exists():
        return False
    p.unlink()
    return True
