import sys
from decimal import Decimal
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import run
from core.assets import DEFAULT_ASSETS, build_catalog
from rules.config_loader import AppConfig, load_config
from storage import sqlite_manager


def test_load_config_with_env(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
monitor:
  interval_seconds: 120
  retention_days: 30
providers:
  timeout_seconds: 5
gold:
  ttl_hours: 12
  metalprice_key_env: TEST_METAL_KEY
assets:
  BTC:
    providers: [coingecko, binance]
    fallback_price: 50000
email:
  username_env: TEST_SMTP_USER
  password_env: TEST_SMTP_PASSWORD
""",
        encoding="utf-8",
    )
    env_path = tmp_path / ".env"
    env_path.write_text(
        "TEST_SMTP_USER=alerts@example.com\nTEST_SMTP_PASSWORD=secret\nTEST_METAL_KEY=abc123\n",
        encoding="utf-8",
    )

    config = load_config(config_path, env_path)

    assert config.monitor.interval_seconds == 120
    assert config.monitor.retention_seconds == 30 * 24 * 60 * 60
    assert config.providers.timeout_seconds == 5
    assert config.providers.inter_provider_delay_seconds == 0.3
    assert config.gold.ttl_seconds == 12 * 3600
    assert config.gold.metalprice_key == "abc123"
    assert config.email.configured
    assert config.email.password == "secret"
    btc = next(asset for asset in config.assets if asset.symbol == "BTC")
    assert btc.providers == ("coingecko", "binance")
    assert btc.fallback_price == Decimal("50000")
    eth = next(asset for asset in config.assets if asset.symbol == "ETH")
    assert eth.providers[0] == "binance"


def test_defaults_without_file() -> None:
    config = AppConfig.from_dict(None)
    assert config.monitor.interval_seconds == 300
    assert config.monitor.retention_days == 90
    assert config.gold.ttl_seconds == 24 * 3600
    assert [a.symbol for a in config.assets] == [a.symbol for a in DEFAULT_ASSETS]


def test_explicit_missing_config_path_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / "missing.env")


@pytest.mark.parametrize(
    "data",
    [
        {"monitor": {"interval_seconds": 0}},
        {"monitor": {"retention_days": -1}},
        {"monitor": "fast"},
        {"monitor": {"unknown_key": 1}},
        {"assets": {"DOGE": {"fallback_price": 1}}},
        {"assets": {"BTC": {"providers": []}}},
        {"assets": {"BTC": {"fallback_price": 0}}},
    ],
)
def test_invalid_config_rejected(data) -> None:
    with pytest.raises((ValueError, TypeError)):
        AppConfig.from_dict(data)


def test_unknown_provider_id_rejected() -> None:
    known = {name for asset in DEFAULT_ASSETS for name in asset.providers}
    run.check_provider_ids(DEFAULT_ASSETS, known)

    catalog = build_catalog({"ETH": {"providers": ["binance", "kraken"]}})
    with pytest.raises(ValueError, match=r"^ETH: unknown provider\(s\) kraken$"):
        run.check_provider_ids(catalog, known)


def test_cli_flags() -> None:
    args = run.parse_args(["--once", "--config", "custom.yaml"])
    assert args.once and not args.loop
    assert args.config == Path("custom.yaml")
    with pytest.raises(SystemExit):
        run.parse_args(["--once", "--loop"])


def test_init_db_creates_tables(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("ALERT_DB_PATH", str(db_path))
    run.main(["--init-db"])
    assert db_path.exists()


def test_build_monitor_from_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALERT_DB_PATH", str(tmp_path / "build.db"))
    run.main(["--init-db"])
    monitor = run.build_monitor(AppConfig())
    assert {a.symbol for a in monitor.builder.assets} == {a.symbol for a in DEFAULT_ASSETS}
    assert monitor.get_current_snapshot() is None


def test_db_path_from_env_file_is_initialized(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    db_path = tmp_path / "from_env.db"
    env_path = tmp_path / ".env"
    env_path.write_text(f"ALERT_DB_PATH={db_path}\n", encoding="utf-8")
    # registered first so teardown removes the value load_dotenv writes
    monkeypatch.setenv("ALERT_DB_PATH", str(tmp_path / "placeholder.db"))
    monkeypatch.delenv("ALERT_DB_PATH")

    run.main(["--init-db", "--env-file", str(env_path)])

    assert db_path.exists()
    assert sqlite_manager.get_db_path() == str(db_path)
    assert sqlite_manager.list_alerts(active=True) == []
