"""Price resolution — manual override, external feed, manual fallback."""
from __future__ import annotations

import logging
import time

from .errors import InvalidInput
from .interfaces.price_feed import PriceFeed
from .models import Asset, FeedRound, PriceConfig

logger = logging.getLogger(__name__)


def is_price_feed(obj: object) -> bool:
    """True if *obj* can be queried like an aggregator feed."""
    return obj is not None and callable(getattr(obj, "latest_round_data", None))


def _read_round(feed: PriceFeed) -> FeedRound:
    data = feed.latest_round_data()
    if isinstance(data, FeedRound):
        return data
    # Raw 5-tuples as returned by contract bindings
    round_id, answer, started_at, updated_at, answered_in_round = data
    return FeedRound(
        round_id=int(round_id),
        answer=int(answer),
        started_at=int(started_at),
        updated_at=int(updated_at),
        answered_in_round=int(answered_in_round),
    )


class PriceResolver:
    """Per-asset price configuration and the resolution policy.

    Resolution never raises: a failing or untrusted feed falls through to
    the manual price, which may itself be 0 ("price unknown").
    """

    def __init__(self) -> None:
        self._configs: dict[Asset, PriceConfig] = {a: PriceConfig() for a in Asset}

    def config(self, asset: Asset) -> PriceConfig:
        return self._configs[asset]

    def set_feed(self, asset: Asset, feed: PriceFeed) -> None:
        if not is_price_feed(feed):
            raise InvalidInput(f"Invalid price feed for {asset.name}")
        current = self._configs[asset]
        self._configs[asset] = PriceConfig(
            feed=feed,
            manual_price_usd=current.manual_price_usd,
            use_manual_override=current.use_manual_override,
        )

    def set_manual_price(self, asset: Asset, price_usd: int, enabled: bool) -> None:
        if price_usd < 0:
            raise InvalidInput("Manual price must not be negative")
        current = self._configs[asset]
        self._configs[asset] = PriceConfig(
            feed=current.feed,
            manual_price_usd=price_usd,
            use_manual_override=bool(enabled),
        )

    def resolve(self, asset: Asset) -> int:
        cfg = self._configs[asset]
        if cfg.use_manual_override:
            return cfg.manual_price_usd

        if cfg.feed is not None:
            feed_price = self._query_feed(asset, cfg.feed)
            if feed_price is not None:
                return feed_price

        return cfg.manual_price_usd

    @staticmethod
    def _query_feed(asset: Asset, feed: PriceFeed) -> int | None:
        try:
            reading = _read_round(feed)
        except Exception as e:
            logger.warning("Price feed for %s unavailable: %s", asset.name, e)
            return None

        if reading.answer <= 0 or reading.updated_at <= 0:
            logger.warning(
                "Rejected %s feed reading (answer=%d, updated_at=%d)",
                asset.name,
                reading.answer,
                reading.updated_at,
            )
            return None
        return reading.answer

    def restore(self, configs: dict[Asset, PriceConfig]) -> None:
        self._configs = {a: configs.get(a, PriceConfig()) for a in Asset}


class StaticPriceFeed:
    """In-process feed with a settable answer, for simulation and backtests."""

    def __init__(
        self, decimals: int = 8, answer: int = 0, updated_at: int | None = None
    ) -> None:
        self._decimals = decimals
        self._round_id = 0
        self._answer = 0
        self._updated_at = 0
        self.update_answer(answer, updated_at)

    def decimals(self) -> int:
        return self._decimals

    def update_answer(self, answer: int, updated_at: int | None = None) -> None:
        self._round_id += 1
        self._answer = answer
        self._updated_at = int(time.time()) if updated_at is None else updated_at

    def latest_round_data(self) -> FeedRound:
        return FeedRound(
            round_id=self._round_id,
            answer=self._answer,
            started_at=self._updated_at,
            updated_at=self._updated_at,
            answered_in_round=self._round_id,
        )
