"""End-to-end monitoring cycle: snapshot, history, evaluate, dispatch."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from alerts.dispatcher import DeliveryOutcome, NotificationDispatcher
from core.alert_models import TriggeredAlert
from core.assets import PriceSnapshot
from core.errors import StoreWriteFailure
from core.health import ProviderHealth
from core.snapshot import SnapshotBuilder
from rules.price_alerts import AlertEvaluator
from storage.history import HistoryStore

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class CycleReport:
    started_at: int
    snapshot: PriceSnapshot
    history_written: int = 0
    history_pruned: int = 0
    store_errors: List[str] = field(default_factory=list)
    triggered: List[TriggeredAlert] = field(default_factory=list)
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    duration: float = 0.0

    @property
    def sent(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.sent)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.sent


class PriceMonitor:
    """Wire the pipeline stages together for one cycle at a time.

    Storage problems never stop a cycle: a failed history write is logged and
    evaluation still runs against the in-memory snapshot.
    """

    def __init__(
        self,
        builder: SnapshotBuilder,
        history: HistoryStore,
        evaluator: AlertEvaluator,
        dispatcher: NotificationDispatcher,
        health: Optional[ProviderHealth] = None,
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self.builder = builder
        self.history = history
        self.evaluator = evaluator
        self.dispatcher = dispatcher
        self.health = health
        self._now = now_func
        self._snapshot: Optional[PriceSnapshot] = None

    async def run_cycle(self) -> CycleReport:
        started = time.monotonic()
        snapshot = await self.builder.build()
        self._snapshot = snapshot
        report = CycleReport(started_at=int(self._now()), snapshot=snapshot)

        try:
            report.history_written = await asyncio.to_thread(self.history.append, snapshot)
        except StoreWriteFailure as exc:
            LOGGER.error("History append incomplete: %s", exc)
            report.store_errors.append(str(exc))
        try:
            report.history_pruned = await asyncio.to_thread(self.history.prune)
        except StoreWriteFailure as exc:
            LOGGER.error("History prune failed: %s", exc)
            report.store_errors.append(str(exc))

        try:
            report.triggered = await asyncio.to_thread(self.evaluator.evaluate, snapshot)
        except sqlite3.Error:
            LOGGER.exception("Could not load alert rules; skipping evaluation this cycle")
        report.outcomes = await self.dispatcher.dispatch_all(report.triggered)

        report.duration = time.monotonic() - started
        LOGGER.info(
            "Cycle finished in %.2fs: %d prices, %d stored, %d pruned, %d alerts (%d sent, %d failed)",
            report.duration,
            len(snapshot),
            report.history_written,
            report.history_pruned,
            len(report.triggered),
            report.sent,
            report.failed,
        )
        return report

    def get_current_snapshot(self) -> Optional[PriceSnapshot]:
        """Snapshot produced by the most recent cycle, ``None`` before the first."""

        return self._snapshot

    def get_history(self, symbol: str, window_seconds: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.history.history(symbol, window_seconds=window_seconds)

    def provider_status(self) -> List[Dict[str, object]]:
        return self.health.snapshot() if self.health is not None else []


__all__ = ["CycleReport", "PriceMonitor"]
