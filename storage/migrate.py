"""Database initialization utilities."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Iterable

from .sqlite_manager import _connect, get_db_path

LOGGER = logging.getLogger(__name__)


CREATE_TABLE_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS price_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL,
        name TEXT NOT NULL,
        currency TEXT NOT NULL,
        price REAL NOT NULL,
        source TEXT NOT NULL DEFAULT 'live',
        provider TEXT,
        ts INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL,
        asset_name TEXT NOT NULL,
        currency TEXT NOT NULL,
        threshold REAL NOT NULL,
        condition TEXT NOT NULL CHECK(condition IN ('above', 'below')),
        is_active INTEGER NOT NULL DEFAULT 1,
        destination TEXT,
        created_at INTEGER NOT NULL,
        last_triggered_at INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        alert_id INTEGER,
        symbol TEXT NOT NULL,
        asset_name TEXT NOT NULL,
        currency TEXT NOT NULL,
        threshold REAL NOT NULL,
        current_price REAL NOT NULL,
        condition TEXT NOT NULL,
        status TEXT NOT NULL CHECK(status IN ('sent', 'failed')),
        destination TEXT,
        error TEXT,
        sent_at INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS favorites (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        symbol TEXT NOT NULL UNIQUE,
        name TEXT NOT NULL,
        added_at INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_price_history_symbol_ts ON price_history(symbol, ts)",
    "CREATE INDEX IF NOT EXISTS idx_price_history_ts ON price_history(ts)",
    "CREATE INDEX IF NOT EXISTS idx_alerts_active ON alerts(is_active, symbol)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_alert ON notifications(alert_id)",
)


def initialize_database(db_path: str | None = None) -> None:
    """Create all tables and indexes; safe to run repeatedly."""
    path = Path(db_path or get_db_path())
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = _connect(str(path))
    try:
        with conn:
            for statement in CREATE_TABLE_STATEMENTS:
                conn.execute(statement)
    finally:
        conn.close()
    LOGGER.info("Database initialized at %s", path)


def _parse_args(args: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SQLite migration helper")
    parser.add_argument("--init", action="store_true", help="initialize database tables")
    parser.add_argument("--db-path", help="override database path", default=None)
    return parser.parse_args(args)


def main(argv: Iterable[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.init:
        initialize_database(args.db_path)
    else:
        LOGGER.info("No action specified. Use --init to create tables.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    main()
