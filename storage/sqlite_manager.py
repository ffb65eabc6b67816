"""SQLite data-access helpers for price history, alerts, notifications and favorites."""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional

_DB_PATH_ENV = "ALERT_DB_PATH"
_DEFAULT_DB_FILENAME = "prices.db"
_ALERT_UPDATABLE = {"threshold", "condition", "is_active", "destination", "last_triggered_at"}

_connection_lock = Lock()


def get_db_path() -> str:
    """Return the configured SQLite database path."""
    env_path = os.environ.get(_DB_PATH_ENV)
    if env_path:
        return env_path
    storage_dir = Path(__file__).resolve().parent
    return str(storage_dir / _DEFAULT_DB_FILENAME)


def _connect(db_path: Optional[str] = None) -> sqlite3.Connection:
    path = Path(db_path or get_db_path())
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _execute(query: str, params: Iterable[Any] | Dict[str, Any] | None = None) -> sqlite3.Cursor:
    with _connection_lock:
        conn = _connect()
        try:
            with conn:
                return conn.execute(query, params or [])
        finally:
            conn.close()


def _query(
    query: str,
    params: Iterable[Any] | Dict[str, Any] | None = None,
) -> List[Dict[str, Any]]:
    with _connection_lock:
        conn = _connect()
        try:
            rows = conn.execute(query, params or []).fetchall()
        finally:
            conn.close()
    return [dict(row) for row in rows]


def _insert(table: str, payload: Dict[str, Any]) -> int:
    if not payload:
        raise ValueError("payload must include at least one column")
    columns = list(payload.keys())
    placeholders = ", ".join(["?" for _ in columns])
    sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
    cursor = _execute(sql, [payload[col] for col in columns])
    return int(cursor.lastrowid or 0)


# -- price history ---------------------------------------------------------


def insert_price_point(row: Dict[str, Any]) -> int:
    """Append one ``price_history`` row; rows are never updated afterwards."""

    for key in ("symbol", "name", "currency", "price", "ts"):
        if row.get(key) is None:
            raise ValueError(f"price row missing '{key}'")
    return _insert("price_history", row)


def delete_price_history_before(cutoff_ts: int) -> int:
    """Delete rows strictly older than ``cutoff_ts``; return the number removed."""

    cursor = _execute("DELETE FROM price_history WHERE ts < ?", (cutoff_ts,))
    return cursor.rowcount


def fetch_price_history(
    symbol: Optional[str] = None,
    since_ts: Optional[int] = None,
    limit: Optional[int] = None,
    source: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Return history rows ordered oldest first; ``limit`` keeps the most recent."""

    query = "SELECT * FROM price_history WHERE 1=1"
    params: List[Any] = []
    if symbol is not None:
        query += " AND symbol = ?"
        params.append(symbol)
    if source is not None:
        query += " AND source = ?"
        params.append(source)
    if since_ts is not None:
        query += " AND ts >= ?"
        params.append(since_ts)
    query += " ORDER BY ts DESC, id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    return list(reversed(_query(query, params)))


def fetch_latest_prices() -> Dict[str, Dict[str, Any]]:
    """Most recent stored row per symbol."""

    rows = _query(
        "SELECT p.* FROM price_history p "
        "JOIN (SELECT symbol, MAX(id) AS max_id FROM price_history GROUP BY symbol) latest "
        "ON p.id = latest.max_id ORDER BY p.symbol"
    )
    return {row["symbol"]: row for row in rows}


def price_stats(symbol: str, since_ts: Optional[int] = None) -> Dict[str, Any]:
    query = (
        "SELECT MIN(price) AS min_price, MAX(price) AS max_price, AVG(price) AS avg_price, "
        "COUNT(*) AS data_points, MIN(ts) AS first_record, MAX(ts) AS last_record "
        "FROM price_history WHERE symbol = ?"
    )
    params: List[Any] = [symbol]
    if since_ts is not None:
        query += " AND ts >= ?"
        params.append(since_ts)
    return _query(query, params)[0]


# -- alerts ----------------------------------------------------------------


def create_alert(alert: Dict[str, Any]) -> int:
    """Insert a validated alert row (see ``core.alert_models.new_alert_payload``)."""

    if alert.get("condition") not in {"above", "below"}:
        raise ValueError("condition must be 'above' or 'below'")
    return _insert("alerts", alert)


def get_alert(alert_id: int) -> Optional[Dict[str, Any]]:
    rows = _query("SELECT * FROM alerts WHERE id = ?", (alert_id,))
    return rows[0] if rows else None


def list_alerts(symbol: Optional[str] = None, active: Optional[bool] = None) -> List[Dict[str, Any]]:
    query = "SELECT * FROM alerts"
    conditions: List[str] = []
    params: List[Any] = []
    if symbol is not None:
        conditions.append("symbol = ?")
        params.append(symbol)
    if active is not None:
        conditions.append("is_active = ?")
        params.append(1 if active else 0)
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    query += " ORDER BY created_at DESC, id DESC"
    return _query(query, params)


def update_alert(alert_id: int, fields: Dict[str, Any]) -> bool:
    unknown = set(fields) - _ALERT_UPDATABLE
    if unknown:
        raise ValueError(f"Cannot update alert columns: {sorted(unknown)}")
    if not fields:
        return False
    assignments = ", ".join(f"{col} = ?" for col in fields)
    cursor = _execute(
        f"UPDATE alerts SET {assignments} WHERE id = ?",
        [*fields.values(), alert_id],
    )
    return cursor.rowcount > 0


def deactivate_alert(alert_id: int, triggered_at: int) -> bool:
    """Flip an active alert to inactive.

    Returns ``False`` when the alert is missing or already inactive, so a rule
    can only be claimed by one trigger per activation.
    """

    cursor = _execute(
        "UPDATE alerts SET is_active = 0, last_triggered_at = ? WHERE id = ? AND is_active = 1",
        (triggered_at, alert_id),
    )
    return cursor.rowcount > 0


def set_alert_active(alert_id: int, active: bool) -> bool:
    cursor = _execute(
        "UPDATE alerts SET is_active = ? WHERE id = ?",
        (1 if active else 0, alert_id),
    )
    return cursor.rowcount > 0


def delete_alert(alert_id: int) -> bool:
    cursor = _execute("DELETE FROM alerts WHERE id = ?", (alert_id,))
    return cursor.rowcount > 0


# -- notifications ---------------------------------------------------------


def insert_notification(record: Dict[str, Any]) -> int:
    if record.get("status") not in {"sent", "failed"}:
        raise ValueError("status must be 'sent' or 'failed'")
    return _insert("notifications", record)


def list_notifications(
    alert_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: Optional[int] = 100,
) -> List[Dict[str, Any]]:
    query = "SELECT * FROM notifications WHERE 1=1"
    params: List[Any] = []
    if alert_id is not None:
        query += " AND alert_id = ?"
        params.append(alert_id)
    if status is not None:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY sent_at DESC, id DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    return _query(query, params)


# -- favorites -------------------------------------------------------------


def add_favorite(symbol: str, name: str, added_at: int) -> bool:
    """Add a favorite; returns ``False`` when it already exists."""

    cursor = _execute(
        "INSERT INTO favorites (symbol, name, added_at) VALUES (?, ?, ?) "
        "ON CONFLICT(symbol) DO NOTHING",
        (symbol, name, added_at),
    )
    return cursor.rowcount > 0


def remove_favorite(symbol: str) -> bool:
    cursor = _execute("DELETE FROM favorites WHERE symbol = ?", (symbol,))
    return cursor.rowcount > 0


def list_favorites() -> List[Dict[str, Any]]:
    return _query("SELECT * FROM favorites ORDER BY added_at DESC, symbol")


def is_favorite(symbol: str) -> bool:
    return bool(_query("SELECT 1 FROM favorites WHERE symbol = ?", (symbol,)))


__all__ = [
    "get_db_path",
    "insert_price_point",
    "delete_price_history_before",
    "fetch_price_history",
    "fetch_latest_prices",
    "price_stats",
    "create_alert",
    "get_alert",
    "list_alerts",
    "update_alert",
    "deactivate_alert",
    "set_alert_active",
    "delete_alert",
    "insert_notification",
    "list_notifications",
    "add_favorite",
    "remove_favorite",
    "list_favorites",
    "is_favorite",
]
