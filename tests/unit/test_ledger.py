"""Unit tests for the position ledger and average-cost sell accounting."""
from __future__ import annotations

import pytest

from portfolio_tracker.errors import InsufficientHoldings, InvalidInput
from portfolio_tracker.ledger import PositionLedger
from portfolio_tracker.models import SCALE, Asset, Position, RealizedPnlState

AVG = 5_000 * SCALE


@pytest.fixture()
def ledger() -> PositionLedger:
    led = PositionLedger()
    led.set_position(Asset.ETH, 100 * SCALE, AVG, 0)
    return led


class TestSetPosition:
    def test_overwrites(self, ledger: PositionLedger) -> None:
        ledger.set_position(Asset.ETH, 1, 2, 3)
        assert ledger.position(Asset.ETH) == Position(1, 2, 3)

    def test_negative_rejected(self, ledger: PositionLedger) -> None:
        with pytest.raises(InvalidInput):
            ledger.set_position(Asset.ETH, -1, 0, 0)

    def test_untouched_assets_are_zero(self, ledger: PositionLedger) -> None:
        assert ledger.position(Asset.TRON) == Position()
        assert ledger.realized(Asset.TRON) == RealizedPnlState()


class TestStakingRewards:
    def test_additive(self, ledger: PositionLedger) -> None:
        ledger.add_staking_rewards(Asset.ETH, 2 * SCALE)
        ledger.add_staking_rewards(Asset.ETH, 3 * SCALE)
        pos = ledger.position(Asset.ETH)
        assert pos.staking_rewards == 5 * SCALE
        assert pos.amount == 100 * SCALE
        assert pos.avg_buy_price_usd == AVG

    def test_zero_rejected(self, ledger: PositionLedger) -> None:
        with pytest.raises(InvalidInput):
            ledger.add_staking_rewards(Asset.ETH, 0)


class TestRecordSell:
    def test_partial_principal_sell(self, ledger: PositionLedger) -> None:
        price = 6_000 * SCALE
        delta = ledger.record_sell(Asset.ETH, 40 * SCALE, price)

        assert delta == (price - AVG) * 40 * SCALE // SCALE
        pos = ledger.position(Asset.ETH)
        assert pos.amount == 60 * SCALE
        assert pos.avg_buy_price_usd == AVG
        realized = ledger.realized(Asset.ETH)
        assert realized.realized_pnl_usd == delta
        assert realized.last_sell_price_usd == price
        assert realized.last_sell_amount == 40 * SCALE

    def test_loss_is_negative(self, ledger: PositionLedger) -> None:
        delta = ledger.record_sell(Asset.ETH, 10 * SCALE, 4_000 * SCALE)
        assert delta == -10_000 * SCALE
        assert ledger.realized(Asset.ETH).realized_pnl_usd == -10_000 * SCALE

    def test_negative_delta_truncates_toward_zero(self) -> None:
        led = PositionLedger()
        led.set_position(Asset.BTC, 3, 2, 0)
        # (1 - 2) * 3 / 1e8 → -0.00000003 → 0
        assert led.record_sell(Asset.BTC, 3, 1) == 0

    def test_full_sell_resets_avg(self, ledger: PositionLedger) -> None:
        ledger.record_sell(Asset.ETH, 100 * SCALE, 5_500 * SCALE)
        pos = ledger.position(Asset.ETH)
        assert pos.amount == 0
        assert pos.avg_buy_price_usd == 0

    def test_principal_first_then_rewards(self, ledger: PositionLedger) -> None:
        ledger.add_staking_rewards(Asset.ETH, 10 * SCALE)
        price = 6_000 * SCALE
        delta = ledger.record_sell(Asset.ETH, 105 * SCALE, price)

        principal_part = (price - AVG) * 100
        rewards_part = price * 5
        assert delta == principal_part + rewards_part
        pos = ledger.position(Asset.ETH)
        assert pos.amount == 0
        assert pos.avg_buy_price_usd == 0
        assert pos.staking_rewards == 5 * SCALE

    def test_rewards_only_sell(self) -> None:
        led = PositionLedger()
        led.add_staking_rewards(Asset.DOT, 50 * SCALE)
        delta = led.record_sell(Asset.DOT, 20 * SCALE, 7 * SCALE)
        assert delta == 140 * SCALE
        assert led.position(Asset.DOT).staking_rewards == 30 * SCALE

    def test_realized_accumulates(self, ledger: PositionLedger) -> None:
        d1 = ledger.record_sell(Asset.ETH, 10 * SCALE, 6_000 * SCALE)
        d2 = ledger.record_sell(Asset.ETH, 10 * SCALE, 4_000 * SCALE)
        realized = ledger.realized(Asset.ETH)
        assert realized.realized_pnl_usd == d1 + d2
        assert realized.last_sell_price_usd == 4_000 * SCALE

    def test_oversell_rejected_without_change(self, ledger: PositionLedger) -> None:
        before = ledger.position(Asset.ETH)
        with pytest.raises(InsufficientHoldings):
            ledger.record_sell(Asset.ETH, 101 * SCALE, 6_000 * SCALE)
        assert ledger.position(Asset.ETH) == before
        assert ledger.realized(Asset.ETH) == RealizedPnlState()

    @pytest.mark.parametrize("amount,price", [(0, 1), (1, 0), (-1, 1)])
    def test_zero_inputs_rejected(
        self, ledger: PositionLedger, amount: int, price: int
    ) -> None:
        with pytest.raises(InvalidInput):
            ledger.record_sell(Asset.ETH, amount, price)
