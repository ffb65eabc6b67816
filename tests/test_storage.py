import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.alert_models import AlertRule, new_alert_payload
from core.assets import DEFAULT_ASSETS
from storage import sqlite_manager
from storage.migrate import initialize_database


@pytest.fixture()
def temp_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "storage.db"
    monkeypatch.setenv("ALERT_DB_PATH", str(db_path))
    initialize_database(str(db_path))
    return db_path


def _alert(symbol: str = "BTC", threshold=70000, condition: str = "above") -> int:
    payload = new_alert_payload(
        symbol, threshold, condition, "trader@example.com", DEFAULT_ASSETS, 1_700_000_000
    )
    return sqlite_manager.create_alert(payload)


def test_alert_crud_round_trip(temp_db: Path) -> None:
    alert_id = _alert()
    row = sqlite_manager.get_alert(alert_id)
    rule = AlertRule.from_row(row)
    assert rule.symbol == "BTC"
    assert rule.asset_name == "Bitcoin"
    assert rule.currency == "USD"
    assert rule.active

    assert sqlite_manager.update_alert(alert_id, {"threshold": 72000.0})
    assert sqlite_manager.get_alert(alert_id)["threshold"] == 72000.0
    with pytest.raises(ValueError):
        sqlite_manager.update_alert(alert_id, {"symbol": "ETH"})

    assert sqlite_manager.delete_alert(alert_id)
    assert sqlite_manager.get_alert(alert_id) is None
    assert not sqlite_manager.delete_alert(alert_id)


def test_list_alerts_filters(temp_db: Path) -> None:
    btc = _alert("BTC")
    eth = _alert("ETH", 3000, "below")
    sqlite_manager.set_alert_active(eth, False)

    assert [row["id"] for row in sqlite_manager.list_alerts(active=True)] == [btc]
    assert [row["id"] for row in sqlite_manager.list_alerts(symbol="ETH")] == [eth]
    assert len(sqlite_manager.list_alerts()) == 2


def test_deactivate_alert_claims_only_once(temp_db: Path) -> None:
    alert_id = _alert()

    assert sqlite_manager.deactivate_alert(alert_id, 1_700_000_100) is True
    assert sqlite_manager.deactivate_alert(alert_id, 1_700_000_200) is False
    row = sqlite_manager.get_alert(alert_id)
    assert row["is_active"] == 0
    assert row["last_triggered_at"] == 1_700_000_100

    # re-enabling arms it again
    assert sqlite_manager.set_alert_active(alert_id, True)
    assert sqlite_manager.deactivate_alert(alert_id, 1_700_000_300) is True


@pytest.mark.parametrize(
    "symbol, threshold, condition, destination",
    [
        ("DOGE", 1, "above", "a@b.co"),
        ("BTC", 0, "above", "a@b.co"),
        ("BTC", "-3", "below", "a@b.co"),
        ("BTC", "abc", "below", "a@b.co"),
        ("BTC", 100, "sideways", "a@b.co"),
        ("BTC", 100, "above", "not-an-email"),
    ],
)
def test_new_alert_payload_validation(symbol, threshold, condition, destination) -> None:
    with pytest.raises(ValueError):
        new_alert_payload(symbol, threshold, condition, destination, DEFAULT_ASSETS, 0)


def test_notifications_are_listed_newest_first(temp_db: Path) -> None:
    alert_id = _alert()
    base = {
        "alert_id": alert_id,
        "symbol": "BTC",
        "asset_name": "Bitcoin",
        "currency": "USD",
        "threshold": 70000.0,
        "current_price": 70500.0,
        "condition": "above",
        "destination": "trader@example.com",
        "error": "",
    }
    sqlite_manager.insert_notification({**base, "status": "failed", "sent_at": 10})
    sqlite_manager.insert_notification({**base, "status": "sent", "sent_at": 20})
    with pytest.raises(ValueError):
        sqlite_manager.insert_notification({**base, "status": "queued", "sent_at": 30})

    rows = sqlite_manager.list_notifications(alert_id=alert_id)
    assert [row["status"] for row in rows] == ["sent", "failed"]
    assert len(sqlite_manager.list_notifications(status="failed")) == 1


def test_favorites(temp_db: Path) -> None:
    assert sqlite_manager.add_favorite("BTC", "Bitcoin", 100)
    assert not sqlite_manager.add_favorite("BTC", "Bitcoin", 200)
    assert sqlite_manager.add_favorite("GOLD", "Gold", 150)
    assert sqlite_manager.is_favorite("BTC")
    assert [row["symbol"] for row in sqlite_manager.list_favorites()] == ["GOLD", "BTC"]

    assert sqlite_manager.remove_favorite("BTC")
    assert not sqlite_manager.is_favorite("BTC")
    assert not sqlite_manager.remove_favorite("BTC")


def test_initialize_database_is_idempotent(temp_db: Path) -> None:
    _alert()
    initialize_database(str(temp_db))
    assert len(sqlite_manager.list_alerts()) == 1
