"""Append-only price history with a rolling retention window."""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Any, Callable, Dict, List, Optional

from core.assets import PriceSnapshot
from core.errors import StoreWriteFailure
from storage import sqlite_manager

LOGGER = logging.getLogger(__name__)

DEFAULT_RETENTION_SECONDS = 90 * 24 * 60 * 60


class HistoryStore:
    """Write snapshots to ``price_history`` and prune rows past retention."""

    def __init__(
        self,
        retention_seconds: int = DEFAULT_RETENTION_SECONDS,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        if retention_seconds <= 0:
            raise ValueError("retention must be positive")
        self.retention_seconds = retention_seconds
        self._now = now_func

    def append(self, snapshot: PriceSnapshot) -> int:
        """Insert one row per price point.

        Every point is attempted; if any insert fails a :class:`StoreWriteFailure`
        listing the failed symbols is raised after the others were written.
        """

        written = 0
        failed: List[str] = []
        for point in snapshot.points():
            row = {
                "symbol": point.symbol,
                "name": point.name,
                "currency": point.currency,
                "price": float(point.price),
                "source": point.source.value,
                "provider": point.provider,
                "ts": point.ts,
            }
            try:
                sqlite_manager.insert_price_point(row)
            except sqlite3.Error as exc:
                LOGGER.error("Failed to save %s price history: %s", point.symbol, exc)
                failed.append(point.symbol)
                continue
            written += 1
        if failed:
            raise StoreWriteFailure(f"history append failed for {', '.join(failed)} ({written} rows written)")
        return written

    def prune(self, retention_seconds: Optional[int] = None, now: Optional[float] = None) -> int:
        """Delete rows older than the retention window; rows inside it are untouched."""

        window = retention_seconds or self.retention_seconds
        cutoff = int((self._now() if now is None else now) - window)
        try:
            removed = sqlite_manager.delete_price_history_before(cutoff)
        except sqlite3.Error as exc:
            raise StoreWriteFailure(f"history prune failed: {exc}") from exc
        if removed:
            LOGGER.info("Pruned %d history rows older than %d", removed, cutoff)
        return removed

    def history(
        self,
        symbol: str,
        window_seconds: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        since = int(self._now() - window_seconds) if window_seconds else None
        return sqlite_manager.fetch_price_history(symbol, since_ts=since, limit=limit)

    def latest(self, symbol: str, source: Optional[str] = None) -> Optional[Dict[str, Any]]:
        rows = sqlite_manager.fetch_price_history(symbol, limit=1, source=source)
        return rows[0] if rows else None

    def stats(self, symbol: str, window_seconds: Optional[int] = None) -> Dict[str, Any]:
        since = int(self._now() - window_seconds) if window_seconds else None
        return sqlite_manager.price_stats(symbol, since_ts=since)


__all__ = ["DEFAULT_RETENTION_SECONDS", "HistoryStore"]
