"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from portfolio_tracker.config import (
    AppConfig,
    EmailConfig,
    ManualPriceConfig,
    NotificationsConfig,
    PriceOracleConfig,
    PythConfig,
    TelegramConfig,
    TrackerConfig,
)
from portfolio_tracker.models import Asset, Position
from portfolio_tracker.pricing import StaticPriceFeed
from portfolio_tracker.tracker import PortfolioTracker

OWNER = "owner"
OTHER = "mallory"

# BTC $60,000 and ETH $3,000 with 8 decimals
BTC_FEED_PRICE = 6_000_000_000_000
ETH_FEED_PRICE = 300_000_000_000


# ---------------------------------------------------------------------------
# Tracker fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def tracker() -> PortfolioTracker:
    return PortfolioTracker.deploy(OWNER)


@pytest.fixture()
def empty_tracker() -> PortfolioTracker:
    return PortfolioTracker.deploy(OWNER, seeds={})


@pytest.fixture()
def btc_feed() -> StaticPriceFeed:
    return StaticPriceFeed(decimals=8, answer=BTC_FEED_PRICE, updated_at=1_700_000_000)


@pytest.fixture()
def eth_feed() -> StaticPriceFeed:
    return StaticPriceFeed(decimals=8, answer=ETH_FEED_PRICE, updated_at=1_700_000_000)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pyth_config() -> PythConfig:
    return PythConfig(
        hermes_url="https://hermes.example.com/v2/updates/price/latest",
        feeds={Asset.BTC: "0xAAA111", Asset.ETH: "bbb222", Asset.SOL: "ccc333"},
    )


@pytest.fixture()
def sample_app_config(tmp_path: Path, sample_pyth_config: PythConfig) -> AppConfig:
    return AppConfig(
        tracker=TrackerConfig(
            owner=OWNER,
            state_path=str(tmp_path / "state.json"),
            check_interval_minutes=5,
            positions={
                Asset.BTC: Position(310_000_000, 6_000_000_000_000, 0),
                Asset.ADA: Position(1_000_000_000_000, 50_000_000, 0),
            },
            manual_prices={
                Asset.ADA: ManualPriceConfig(price_usd=45_000_000, enabled=True)
            },
        ),
        price_oracle=PriceOracleConfig(provider="pyth", pyth=sample_pyth_config),
        notifications=NotificationsConfig(
            telegram=TelegramConfig(
                enabled=True,
                alert_bot_token="fake-alert-token",
                log_bot_token="fake-log-token",
                chat_id="12345",
            ),
            email=EmailConfig(enabled=False),
        ),
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    tracker:
      owner: owner
      state_path: "{state_path}"
      check_interval_minutes: 5
      positions:
        BTC: {{amount: "3.1", avg_buy_price_usd: "60000"}}
        sol: {{amount: "200", avg_buy_price_usd: "150", staking_rewards: "4.2"}}
      manual_prices:
        ADA: {{price_usd: "0.45", enabled: true}}
    price_oracle:
      provider: pyth
      pyth:
        hermes_url: "https://hermes.example.com"
        feeds: {{BTC: "aaa", ETH: "bbb"}}
    notifications:
      telegram:
        enabled: true
        alert_bot_token: "tok1"
        log_bot_token: "tok2"
        chat_id: "999"
      email:
        enabled: false
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML.format(state_path=tmp_path / "state.json"))
    return cfg_file


@pytest.fixture()
def offline_yaml_path(tmp_path: Path) -> Path:
    """Config without oracle feeds or notifiers, safe to run commands against."""
    cfg_file = tmp_path / "offline.yaml"
    cfg_file.write_text(
        textwrap.dedent(f"""\
            tracker:
              owner: owner
              state_path: "{tmp_path / 'offline_state.json'}"
              positions:
                BTC: {{amount: "3.1", avg_buy_price_usd: "60000"}}
              manual_prices:
                BTC: {{price_usd: "60000", enabled: true}}
            price_oracle:
              provider: pyth
              pyth: {{}}
        """)
    )
    return cfg_file
