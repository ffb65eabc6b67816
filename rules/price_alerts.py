"""Threshold alert evaluation against a fresh price snapshot."""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Callable, Iterable, List, Optional, Set

from core.alert_models import AlertRule, TriggeredAlert
from core.assets import AssetDescriptor, PriceSnapshot
from storage import sqlite_manager

LOGGER = logging.getLogger(__name__)


class AlertEvaluator:
    """Select active rules whose condition is met and claim them.

    A triggered rule is deactivated in the store during the evaluation pass,
    before anything is dispatched, so a crash while notifying can never make
    the same activation fire twice.
    """

    def __init__(
        self,
        catalog: Iterable[AssetDescriptor],
        now_func: Callable[[], float] = time.time,
    ) -> None:
        self._symbols: Set[str] = {asset.symbol for asset in catalog}
        self._now = now_func
        self._reported_orphans: Set[int] = set()

    def load_active_rules(self) -> List[AlertRule]:
        rules: List[AlertRule] = []
        for row in sqlite_manager.list_alerts(active=True):
            try:
                rules.append(AlertRule.from_row(row))
            except (KeyError, ValueError, ArithmeticError) as exc:
                LOGGER.warning("Skipping malformed alert row %s: %s", row.get("id"), exc)
        return rules

    def find_orphaned_rules(self, rules: Optional[Iterable[AlertRule]] = None) -> List[AlertRule]:
        """Active rules for symbols no longer in the asset catalog.

        They can never trigger; each is logged once per process and left
        active for the user to clean up.
        """

        candidates = self.load_active_rules() if rules is None else rules
        orphans = [rule for rule in candidates if rule.symbol not in self._symbols]
        for rule in orphans:
            if rule.id not in self._reported_orphans:
                self._reported_orphans.add(rule.id)
                LOGGER.warning("Alert %s targets unsupported asset %s and will never trigger", rule.id, rule.symbol)
        return orphans

    def evaluate(self, snapshot: PriceSnapshot) -> List[TriggeredAlert]:
        rules = self.load_active_rules()
        self.find_orphaned_rules(rules)
        now = int(self._now())
        triggered: List[TriggeredAlert] = []
        for rule in rules:
            point = snapshot.get(rule.symbol)
            if point is None:
                continue
            if not rule.condition.is_met(point.price, rule.threshold):
                continue
            try:
                claimed = sqlite_manager.deactivate_alert(rule.id, now)
            except sqlite3.Error:
                LOGGER.exception("Could not deactivate alert %s; not dispatching this cycle", rule.id)
                continue
            if not claimed:
                LOGGER.info("Alert %s was deactivated or deleted concurrently; skipping", rule.id)
                continue
            LOGGER.info(
                "Alert triggered: %s is %s %s (current: %s, source: %s)",
                rule.symbol,
                rule.condition.value,
                rule.threshold,
                point.price,
                point.source.value,
            )
            triggered.append(TriggeredAlert(rule=rule, point=point, triggered_at=now))
        return triggered


__all__ = ["AlertEvaluator"]
