"""Notifications emitted by successful tracker mutations."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from .models import Asset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceFeedSet:
    asset: Asset
    feed: object


@dataclass(frozen=True)
class ManualPriceSet:
    asset: Asset
    price_usd: int
    enabled: bool


@dataclass(frozen=True)
class PositionUpdated:
    asset: Asset
    amount: int
    avg_buy_price_usd: int
    staking_rewards: int


@dataclass(frozen=True)
class StakingRewardsAdded:
    asset: Asset
    extra: int
    new_total: int


@dataclass(frozen=True)
class SellRecorded:
    asset: Asset
    amount: int
    price_usd: int
    realized_delta_usd: int
    realized_total_usd: int


@dataclass(frozen=True)
class ClassCreated:
    class_id: int
    parent_id: int
    name: str


@dataclass(frozen=True)
class ClassDeactivated:
    class_id: int


@dataclass(frozen=True)
class ClassRenamed:
    class_id: int
    name: str


@dataclass(frozen=True)
class AssetClassSet:
    asset: Asset
    class_id: int


@dataclass(frozen=True)
class OwnershipTransferred:
    previous_owner: str
    new_owner: str


Event = Union[
    PriceFeedSet,
    ManualPriceSet,
    PositionUpdated,
    StakingRewardsAdded,
    SellRecorded,
    ClassCreated,
    ClassDeactivated,
    ClassRenamed,
    AssetClassSet,
    OwnershipTransferred,
]

Subscriber = Callable[[Event], None]


class EventLog:
    """Append-only record of published events with subscriber fan-out."""

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def publish(self, events: list[Event]) -> None:
        for event in events:
            self._events.append(event)
            logger.debug("Event %s", event)
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception as e:
                    logger.error(
                        "Event subscriber failed on %s: %s", type(event).__name__, e
                    )

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)
