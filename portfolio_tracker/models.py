"""Data models — all frozen (immutable).

Amounts and prices are integers scaled by ``SCALE`` (1e8).
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import IntEnum

from .errors import InvalidInput

SCALE = 10**8


def to_scaled(value: str | int | float | Decimal) -> int:
    """Convert a human amount such as ``"3.1"`` to a 1e8-scaled integer.

    Digits beyond the eighth decimal are truncated.
    """
    try:
        return int(Decimal(str(value)) * SCALE)
    except (InvalidOperation, ValueError, OverflowError):
        raise InvalidInput(f"Not a number: {value!r}") from None


class Asset(IntEnum):
    """The fixed set of tracked assets, in report order."""

    BTC = 0
    ETH = 1
    BNB = 2
    SOL = 3
    ADA = 4
    XRP = 5
    DOT = 6
    DOGE = 7
    COIN = 8
    MSTR = 9
    TRON = 10

    @classmethod
    def parse(cls, value: str | int | Asset) -> Asset:
        """Resolve a symbol (case-insensitive) or index to an ``Asset``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidInput(f"Unknown asset index {value}") from None
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls.parse(int(text))
            try:
                return cls[text.upper()]
            except KeyError:
                raise InvalidInput(f"Unknown asset '{value}'") from None
        raise InvalidInput(f"Unknown asset {value!r}")


class LegacyAssetClass(IntEnum):
    """Two-value classification kept for compatibility with older readers."""

    CRYPTO = 0
    STOCK = 1


@dataclass(frozen=True)
class Position:
    """Holding of one asset: principal at an average cost plus rewards."""

    amount: int = 0
    avg_buy_price_usd: int = 0
    staking_rewards: int = 0

    @property
    def total_amount(self) -> int:
        return self.amount + self.staking_rewards


@dataclass(frozen=True)
class PriceConfig:
    feed: object | None = None
    manual_price_usd: int = 0
    use_manual_override: bool = False


@dataclass(frozen=True)
class ClassInfo:
    exists: bool = False
    active: bool = False
    parent_id: int = 0
    name: str = ""


@dataclass(frozen=True)
class RealizedPnlState:
    realized_pnl_usd: int = 0
    last_sell_price_usd: int = 0
    last_sell_amount: int = 0


@dataclass(frozen=True)
class FeedRound:
    """One reading of an aggregator-style price feed."""

    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@dataclass(frozen=True)
class AssetReport:
    """Mark-to-market view of a single asset."""

    asset: Asset
    asset_class: LegacyAssetClass
    class_id: int
    amount: int
    staking_rewards: int
    total_amount: int
    avg_buy_price_usd: int
    price_usd: int
    value_usd: int
    cost_usd: int
    pnl_usd: int
    has_position: bool
    price_ok: bool
    in_profit: bool


@dataclass(frozen=True)
class PortfolioTotals:
    value_usd: int = 0
    cost_usd: int = 0
    pnl_usd: int = 0
    assets_held: int = 0
    missing_prices: int = 0
