"""Configuration loader for the price monitor."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from core.assets import AssetDescriptor, build_catalog


def _section(data: Dict[str, object], key: str) -> Dict[str, object]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{key}' must be a mapping")
    return value


@dataclass
class MonitorConfig:
    """Cycle timing and history retention."""

    interval_seconds: int = 300
    retention_days: int = 90
    asset_deadline_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError("monitor.interval_seconds must be positive")
        if self.retention_days <= 0:
            raise ValueError("monitor.retention_days must be positive")

    @property
    def retention_seconds(self) -> int:
        return int(self.retention_days) * 24 * 60 * 60

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "MonitorConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class ProvidersConfig:
    timeout_seconds: float = 10.0
    inter_provider_delay_seconds: float = 0.3

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "ProvidersConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class GoldConfig:
    """Gold cache TTL, FX refresh cadence and API keys (via env var names)."""

    ttl_hours: float = 24.0
    fx_refresh_minutes: float = 60.0
    metalprice_key_env: str = "METALPRICEAPI_KEY"
    alphavantage_key_env: str = "ALPHAVANTAGE_KEY"

    @property
    def ttl_seconds(self) -> float:
        return float(self.ttl_hours) * 3600

    @property
    def fx_refresh_seconds(self) -> float:
        return float(self.fx_refresh_minutes) * 60

    @property
    def metalprice_key(self) -> Optional[str]:
        return os.getenv(self.metalprice_key_env) if self.metalprice_key_env else None

    @property
    def alphavantage_key(self) -> Optional[str]:
        return os.getenv(self.alphavantage_key_env) if self.alphavantage_key_env else None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "GoldConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class EmailConfig:
    """SMTP settings with environment indirection for host and credentials."""

    smtp_host_env: str = "SMTP_HOST"
    default_smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    use_tls: bool = True
    username_env: str = "GMAIL_USER"
    password_env: str = "GMAIL_APP_PASSWORD"
    sender_name: str = "Price Alerts"
    timeout_seconds: float = 15.0

    @property
    def smtp_host(self) -> str:
        return os.getenv(self.smtp_host_env) or self.default_smtp_host

    @property
    def username(self) -> Optional[str]:
        return os.getenv(self.username_env) if self.username_env else None

    @property
    def password(self) -> Optional[str]:
        return os.getenv(self.password_env) if self.password_env else None

    @property
    def configured(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "EmailConfig":
        if not data:
            return cls()
        return cls(**data)


@dataclass
class AppConfig:
    """Top level configuration model."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    providers: ProvidersConfig = field(default_factory=ProvidersConfig)
    gold: GoldConfig = field(default_factory=GoldConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    assets: Tuple[AssetDescriptor, ...] = field(default_factory=build_catalog)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, object]]) -> "AppConfig":
        data = data or {}
        if not isinstance(data, dict):
            raise ValueError("configuration root must be a mapping")
        return cls(
            monitor=MonitorConfig.from_dict(_section(data, "monitor")),
            providers=ProvidersConfig.from_dict(_section(data, "providers")),
            gold=GoldConfig.from_dict(_section(data, "gold")),
            email=EmailConfig.from_dict(_section(data, "email")),
            assets=build_catalog(_section(data, "assets")),  # type: ignore[arg-type]
        )


_BASE_PATH = Path(__file__).resolve().parents[1]


def load_environment(env_path: Optional[Path] = None) -> Optional[Path]:
    """Load ``.env`` into ``os.environ`` without overriding existing variables.

    Must run before anything reads the environment, e.g. ``ALERT_DB_PATH``.
    """

    if env_path is None:
        default_env = _BASE_PATH / ".env"
        if not default_env.exists():
            return None
        env_path = default_env
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load configuration from YAML and environment variables.

    A missing default ``config.yaml`` yields the built-in defaults; an
    explicitly passed path must exist.
    """

    load_environment(env_path)
    if config_path is None:
        config_path = _BASE_PATH / "config.yaml"
        if not config_path.exists():
            return AppConfig()

    with open(config_path, "r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}

    return AppConfig.from_dict(data)


__all__ = [
    "MonitorConfig",
    "ProvidersConfig",
    "GoldConfig",
    "EmailConfig",
    "AppConfig",
    "load_environment",
    "load_config",
]
