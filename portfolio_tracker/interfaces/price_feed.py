"""Price feed protocol — aggregator-style external price source."""
from typing import Protocol

from ..models import FeedRound


class PriceFeed(Protocol):
    """Abstract interface for a single-asset price feed."""

    def decimals(self) -> int: ...

    def latest_round_data(self) -> FeedRound: ...
