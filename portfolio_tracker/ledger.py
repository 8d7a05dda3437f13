"""Position ledger — holdings, staking rewards and average-cost sell accounting."""
from __future__ import annotations

import logging

from .errors import InsufficientHoldings, InvalidInput
from .models import SCALE, Asset, Position, RealizedPnlState

logger = logging.getLogger(__name__)


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise InvalidInput(f"{name} must not be negative")


class PositionLedger:
    """One ``Position`` and one ``RealizedPnlState`` per asset.

    Positions are never removed; a fully sold asset stays as a zeroed record.
    """

    def __init__(self) -> None:
        self._positions: dict[Asset, Position] = {a: Position() for a in Asset}
        self._realized: dict[Asset, RealizedPnlState] = {
            a: RealizedPnlState() for a in Asset
        }

    def position(self, asset: Asset) -> Position:
        return self._positions[asset]

    def realized(self, asset: Asset) -> RealizedPnlState:
        return self._realized[asset]

    def set_position(
        self, asset: Asset, amount: int, avg_buy_price_usd: int, staking_rewards: int
    ) -> Position:
        _require_non_negative("amount", amount)
        _require_non_negative("avg_buy_price_usd", avg_buy_price_usd)
        _require_non_negative("staking_rewards", staking_rewards)
        position = Position(
            amount=amount,
            avg_buy_price_usd=avg_buy_price_usd,
            staking_rewards=staking_rewards,
        )
        self._positions[asset] = position
        return position

    def add_staking_rewards(self, asset: Asset, extra: int) -> Position:
        if extra <= 0:
            raise InvalidInput("Staking reward amount must be positive")
        current = self._positions[asset]
        position = Position(
            amount=current.amount,
            avg_buy_price_usd=current.avg_buy_price_usd,
            staking_rewards=current.staking_rewards + extra,
        )
        self._positions[asset] = position
        return position

    def record_sell(self, asset: Asset, sell_amount: int, sell_price_usd: int) -> int:
        """Apply a sell and return the realized PnL delta (signed, 1e8-scaled).

        Principal is consumed first at the average buy price; any remainder
        comes out of staking rewards, which carry no cost basis.
        """
        if sell_amount <= 0:
            raise InvalidInput("Sell amount must be positive")
        if sell_price_usd <= 0:
            raise InvalidInput("Sell price must be positive")

        current = self._positions[asset]
        if sell_amount > current.total_amount:
            raise InsufficientHoldings(
                f"Cannot sell {sell_amount} {asset.name}: only "
                f"{current.total_amount} held"
            )

        principal_sold = min(sell_amount, current.amount)
        rewards_sold = sell_amount - principal_sold

        delta = 0
        if principal_sold:
            delta += _div_trunc(
                (sell_price_usd - current.avg_buy_price_usd) * principal_sold, SCALE
            )
        if rewards_sold:
            delta += sell_price_usd * rewards_sold // SCALE

        remaining = current.amount - principal_sold
        self._positions[asset] = Position(
            amount=remaining,
            avg_buy_price_usd=current.avg_buy_price_usd if remaining else 0,
            staking_rewards=current.staking_rewards - rewards_sold,
        )

        previous = self._realized[asset]
        self._realized[asset] = RealizedPnlState(
            realized_pnl_usd=previous.realized_pnl_usd + delta,
            last_sell_price_usd=sell_price_usd,
            last_sell_amount=sell_amount,
        )
        logger.info(
            "Sell %s: %d @ %d (principal %d, rewards %d) realized %+d",
            asset.name,
            sell_amount,
            sell_price_usd,
            principal_sold,
            rewards_sold,
            delta,
        )
        return delta

    def restore(
        self,
        positions: dict[Asset, Position],
        realized: dict[Asset, RealizedPnlState],
    ) -> None:
        self._positions = {a: positions.get(a, Position()) for a in Asset}
        self._realized = {a: realized.get(a, RealizedPnlState()) for a in Asset}


def _div_trunc(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // denominator
    return quotient if numerator >= 0 else -quotient
