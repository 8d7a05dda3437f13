"""Pyth Network price oracle service."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import PythConfig
from ..errors import ExternalSourceUnavailable
from ..models import Asset, FeedRound

logger = logging.getLogger(__name__)


def _normalize_id(feed_id: str) -> str:
    feed_id = feed_id.lower()
    return feed_id[2:] if feed_id.startswith("0x") else feed_id


class PythPriceFeed:
    """Synchronous price feed backed by the latest Pyth snapshot.

    The raw Pyth integer is reported as-is; ``decimals()`` exposes the
    exponent so callers can check it matches the 1e8 scale.
    """

    def __init__(self, asset: Asset, feed_id: str) -> None:
        self.asset = asset
        self.feed_id = _normalize_id(feed_id)
        self._round: FeedRound | None = None
        self._expo = -8

    def __repr__(self) -> str:
        return f"PythPriceFeed({self.asset.name}, {self.feed_id[:10]}...)"

    def update(self, price: int, expo: int, publish_time: int) -> None:
        self._expo = expo
        self._round = FeedRound(
            round_id=publish_time,
            answer=price,
            started_at=publish_time,
            updated_at=publish_time,
            answered_in_round=publish_time,
        )

    def decimals(self) -> int:
        return -self._expo

    def latest_round_data(self) -> FeedRound:
        if self._round is None:
            raise ExternalSourceUnavailable(
                f"No Pyth price fetched yet for {self.asset.name}"
            )
        return self._round


class PythOracle:
    """Fetch prices from Pyth Network oracle."""

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.timeout = config.timeout
        self.feeds: dict[Asset, PythPriceFeed] = {
            asset: PythPriceFeed(asset, feed_id)
            for asset, feed_id in config.feeds.items()
        }

    def feed(self, asset: Asset) -> PythPriceFeed | None:
        return self.feeds.get(asset)

    async def fetch_rounds(
        self, assets: list[Asset] | None = None
    ) -> dict[Asset, FeedRound]:
        """Fetch current prices from Pyth Network and update the feed snapshots.

        Args:
            assets: Optional list of assets to refresh. If None, refreshes all
                    configured feeds.
        """
        rounds: dict[Asset, FeedRound] = {}

        feeds = self.feeds
        if assets is not None:
            feeds = {k: v for k, v in self.feeds.items() if k in assets}

        feed_ids = sorted({f.feed_id for f in feeds.values()})
        if not feed_ids:
            return rounds

        query_params = "&".join([f"ids[]={fid}" for fid in feed_ids])
        url = f"{self.hermes_url}?{query_params}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        return rounds

                    data = await response.json()

            # Reverse mapping from feed ID to the assets sharing it
            id_to_feeds: dict[str, list[PythPriceFeed]] = {}
            for feed in feeds.values():
                id_to_feeds.setdefault(feed.feed_id, []).append(feed)

            for item in data.get("parsed", []):
                targets = id_to_feeds.get(_normalize_id(item.get("id", "")))
                if not targets:
                    continue
                price_data = item.get("price", {})
                price = int(price_data.get("price", 0))
                expo = int(price_data.get("expo", 0))
                publish_time = int(price_data.get("publish_time", 0))

                for feed in targets:
                    feed.update(price, expo, publish_time)
                    rounds[feed.asset] = feed.latest_round_data()

            logger.info("Fetched %d prices from Pyth Network", len(rounds))
            for asset, reading in sorted(rounds.items()):
                logger.debug(
                    "  %s: %d (t=%d)", asset.name, reading.answer, reading.updated_at
                )

        except Exception as e:
            logger.error("Error fetching prices from Pyth: %s", e)

        return rounds
