"""Unit tests for price resolution."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from portfolio_tracker.errors import ExternalSourceUnavailable, InvalidInput
from portfolio_tracker.models import Asset, FeedRound
from portfolio_tracker.pricing import PriceResolver, StaticPriceFeed, is_price_feed


@pytest.fixture()
def resolver() -> PriceResolver:
    return PriceResolver()


def _failing_feed(exc: Exception) -> MagicMock:
    feed = MagicMock()
    feed.latest_round_data.side_effect = exc
    return feed


class TestResolve:
    def test_nothing_configured_is_zero(self, resolver: PriceResolver) -> None:
        assert resolver.resolve(Asset.BTC) == 0

    def test_manual_override_without_feed(self, resolver: PriceResolver) -> None:
        resolver.set_manual_price(Asset.ADA, 150_000_000, True)
        assert resolver.resolve(Asset.ADA) == 150_000_000

    def test_manual_override_beats_feed(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.BTC, StaticPriceFeed(answer=6_000_000_000_000))
        resolver.set_manual_price(Asset.BTC, 10_000_000_000_000, True)
        assert resolver.resolve(Asset.BTC) == 10_000_000_000_000

    def test_manual_override_returns_zero(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.BTC, StaticPriceFeed(answer=6_000_000_000_000))
        resolver.set_manual_price(Asset.BTC, 0, True)
        assert resolver.resolve(Asset.BTC) == 0

    def test_feed_used_when_override_disabled(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.BTC, StaticPriceFeed(answer=6_000_000_000_000))
        resolver.set_manual_price(Asset.BTC, 1, False)
        assert resolver.resolve(Asset.BTC) == 6_000_000_000_000

    def test_feed_failure_falls_back(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.ETH, _failing_feed(ConnectionError("down")))
        resolver.set_manual_price(Asset.ETH, 290_000_000_000, False)
        assert resolver.resolve(Asset.ETH) == 290_000_000_000

    def test_unavailable_feed_falls_back(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.ETH, _failing_feed(ExternalSourceUnavailable("x")))
        assert resolver.resolve(Asset.ETH) == 0

    @pytest.mark.parametrize(
        "answer,updated_at", [(0, 1_700_000_000), (-5, 1_700_000_000), (100, 0)]
    )
    def test_untrusted_reading_falls_back(
        self, resolver: PriceResolver, answer: int, updated_at: int
    ) -> None:
        feed = StaticPriceFeed(answer=answer, updated_at=updated_at)
        resolver.set_feed(Asset.SOL, feed)
        resolver.set_manual_price(Asset.SOL, 777, False)
        assert resolver.resolve(Asset.SOL) == 777

    def test_raw_tuple_reading(self, resolver: PriceResolver) -> None:
        feed = MagicMock()
        feed.latest_round_data.return_value = (1, 4200, 10, 10, 1)
        resolver.set_feed(Asset.DOT, feed)
        assert resolver.resolve(Asset.DOT) == 4200

    def test_malformed_reading_falls_back(self, resolver: PriceResolver) -> None:
        feed = MagicMock()
        feed.latest_round_data.return_value = ("garbage",)
        resolver.set_feed(Asset.DOT, feed)
        resolver.set_manual_price(Asset.DOT, 5, False)
        assert resolver.resolve(Asset.DOT) == 5

    def test_no_decimal_rescaling(self, resolver: PriceResolver) -> None:
        resolver.set_feed(Asset.XRP, StaticPriceFeed(decimals=18, answer=123))
        assert resolver.resolve(Asset.XRP) == 123


class TestConfiguration:
    def test_set_feed_rejects_none(self, resolver: PriceResolver) -> None:
        with pytest.raises(InvalidInput):
            resolver.set_feed(Asset.BTC, None)  # type: ignore[arg-type]

    def test_set_feed_rejects_non_feed(self, resolver: PriceResolver) -> None:
        with pytest.raises(InvalidInput):
            resolver.set_feed(Asset.BTC, object())  # type: ignore[arg-type]

    def test_manual_price_keeps_feed(self, resolver: PriceResolver) -> None:
        feed = StaticPriceFeed(answer=1)
        resolver.set_feed(Asset.BTC, feed)
        resolver.set_manual_price(Asset.BTC, 9, True)
        cfg = resolver.config(Asset.BTC)
        assert cfg.feed is feed
        assert cfg.manual_price_usd == 9
        assert cfg.use_manual_override is True

    def test_negative_manual_rejected(self, resolver: PriceResolver) -> None:
        with pytest.raises(InvalidInput):
            resolver.set_manual_price(Asset.BTC, -1, True)

    def test_is_price_feed(self) -> None:
        assert is_price_feed(StaticPriceFeed())
        assert not is_price_feed(None)
        assert not is_price_feed("0xdeadbeef")


class TestStaticPriceFeed:
    def test_round_increments(self) -> None:
        feed = StaticPriceFeed(decimals=8, answer=100, updated_at=5)
        first = feed.latest_round_data()
        feed.update_answer(200, updated_at=6)
        second = feed.latest_round_data()
        assert feed.decimals() == 8
        assert second == FeedRound(
            round_id=first.round_id + 1,
            answer=200,
            started_at=6,
            updated_at=6,
            answered_in_round=first.round_id + 1,
        )
