"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .errors import InvalidInput
from .models import Asset, Position, to_scaled

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ManualPriceConfig:
    price_usd: int = 0
    enabled: bool = False


@dataclass(frozen=True)
class TrackerConfig:
    owner: str = ""
    state_path: str = "portfolio_state.json"
    check_interval_minutes: int = 60
    positions: dict[Asset, Position] | None = None
    manual_prices: dict[Asset, ManualPriceConfig] = field(default_factory=dict)


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    feeds: dict[Asset, str] = field(default_factory=dict)
    timeout: int = 10


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "pyth"
    pyth: PythConfig = field(default_factory=PythConfig)


@dataclass(frozen=True)
class TelegramConfig:
    enabled: bool = False
    alert_bot_token: str = ""
    log_bot_token: str = ""
    chat_id: str = ""


@dataclass(frozen=True)
class EmailConfig:
    enabled: bool = False
    alert_email: str = ""
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    sender_email: str = ""
    sender_password: str = ""


@dataclass(frozen=True)
class NotificationsConfig:
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


@dataclass(frozen=True)
class AppConfig:
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _parse_asset(symbol: Any, section: str) -> Asset:
    try:
        return Asset.parse(symbol)
    except InvalidInput:
        raise ValueError(f"Unknown asset '{symbol}' in {section}") from None


def _parse_amount(value: Any, what: str) -> int:
    try:
        scaled = to_scaled(value)
    except InvalidInput:
        raise ValueError(f"Invalid {what}: {value!r}") from None
    if scaled < 0:
        raise ValueError(f"Negative {what}: {value!r}")
    return scaled


def _build_positions(raw: dict[str, Any] | None) -> dict[Asset, Position] | None:
    if raw is None:
        return None
    positions: dict[Asset, Position] = {}
    for symbol, cfg in raw.items():
        asset = _parse_asset(symbol, "tracker.positions")
        cfg = cfg or {}
        positions[asset] = Position(
            amount=_parse_amount(cfg.get("amount", 0), f"{asset.name} amount"),
            avg_buy_price_usd=_parse_amount(
                cfg.get("avg_buy_price_usd", 0), f"{asset.name} avg_buy_price_usd"
            ),
            staking_rewards=_parse_amount(
                cfg.get("staking_rewards", 0), f"{asset.name} staking_rewards"
            ),
        )
    return positions


def _build_manual_prices(raw: dict[str, Any]) -> dict[Asset, ManualPriceConfig]:
    prices: dict[Asset, ManualPriceConfig] = {}
    for symbol, cfg in raw.items():
        asset = _parse_asset(symbol, "tracker.manual_prices")
        cfg = cfg or {}
        prices[asset] = ManualPriceConfig(
            price_usd=_parse_amount(cfg.get("price_usd", 0), f"{asset.name} price"),
            enabled=bool(cfg.get("enabled", False)),
        )
    return prices


def _build_tracker(raw: dict[str, Any]) -> TrackerConfig:
    return TrackerConfig(
        owner=str(raw.get("owner", "")),
        state_path=str(raw.get("state_path", TrackerConfig.state_path)),
        check_interval_minutes=int(raw.get("check_interval_minutes", 60)),
        positions=_build_positions(raw.get("positions")),
        manual_prices=_build_manual_prices(raw.get("manual_prices") or {}),
    )


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    pyth_raw = raw.get("pyth") or {}
    feeds = {
        _parse_asset(symbol, "price_oracle.pyth.feeds"): str(feed_id)
        for symbol, feed_id in (pyth_raw.get("feeds") or {}).items()
    }
    return PriceOracleConfig(
        provider=raw.get("provider", "pyth"),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feeds=feeds,
            timeout=int(pyth_raw.get("timeout", PythConfig.timeout)),
        ),
    )


def _build_notifications(raw: dict[str, Any]) -> NotificationsConfig:
    tg = raw.get("telegram") or {}
    em = raw.get("email") or {}
    return NotificationsConfig(
        telegram=TelegramConfig(
            enabled=bool(tg.get("enabled", False)),
            alert_bot_token=tg.get("alert_bot_token", ""),
            log_bot_token=tg.get("log_bot_token", ""),
            chat_id=tg.get("chat_id", ""),
        ),
        email=EmailConfig(
            enabled=bool(em.get("enabled", False)),
            alert_email=em.get("alert_email", ""),
            smtp_server=em.get("smtp_server", "smtp.gmail.com"),
            smtp_port=int(em.get("smtp_port", 587)),
            sender_email=em.get("sender_email", ""),
            sender_password=em.get("sender_password", ""),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        tracker=_build_tracker(raw.get("tracker") or {}),
        price_oracle=_build_price_oracle(raw.get("price_oracle") or {}),
        notifications=_build_notifications(raw.get("notifications") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.tracker.owner:
        raise ValueError("Tracker owner must be configured")

    if cfg.tracker.check_interval_minutes <= 0:
        raise ValueError("check_interval_minutes must be positive")

    if cfg.price_oracle.provider != "pyth":
        raise ValueError(
            f"Unsupported price oracle provider '{cfg.price_oracle.provider}'"
        )
