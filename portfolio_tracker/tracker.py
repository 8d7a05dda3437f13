"""Portfolio tracker — owner-gated command handler over ledger, prices and classes."""
from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from .errors import InvalidInput, InvalidState, Unauthorized
from .events import (
    AssetClassSet,
    ClassCreated,
    ClassDeactivated,
    ClassRenamed,
    Event,
    EventLog,
    ManualPriceSet,
    OwnershipTransferred,
    PositionUpdated,
    PriceFeedSet,
    SellRecorded,
    StakingRewardsAdded,
)
from .interfaces.price_feed import PriceFeed
from .ledger import PositionLedger
from .models import (
    Asset,
    AssetReport,
    ClassInfo,
    LegacyAssetClass,
    Position,
    PriceConfig,
    RealizedPnlState,
)
from .pricing import PriceResolver
from .taxonomy import ClassRegistry
from .valuation import asset_report

logger = logging.getLogger(__name__)

STOCK_ASSETS: tuple[Asset, ...] = (Asset.COIN, Asset.MSTR)

DEFAULT_SEED_POSITIONS: dict[Asset, Position] = {
    Asset.BTC: Position(310_000_000, 6_000_000_000_000, 0),  # 3.1 BTC @ $60,000
    Asset.ETH: Position(2_500_000_000, 300_000_000_000, 0),  # 25 ETH @ $3,000
    Asset.SOL: Position(20_000_000_000, 15_000_000_000, 0),  # 200 SOL @ $150
    Asset.ADA: Position(1_000_000_000_000, 50_000_000, 0),  # 10,000 ADA @ $0.50
}


@dataclass
class TrackerState:
    """Complete mutable state of a tracker, field order frozen (append only)."""

    owner: str
    initialized: bool = False
    positions: dict[Asset, Position] = field(default_factory=dict)
    asset_classes: dict[Asset, LegacyAssetClass] = field(default_factory=dict)
    price_configs: dict[Asset, PriceConfig] = field(default_factory=dict)
    next_class_id: int = 0
    classes: dict[int, ClassInfo] = field(default_factory=dict)
    asset_class_ids: dict[Asset, int] = field(default_factory=dict)
    realized: dict[Asset, RealizedPnlState] = field(default_factory=dict)


class PortfolioTracker:
    """Single-owner portfolio ledger.

    Every mutating command takes the caller's identity, is rejected with
    ``Unauthorized`` unless it is the owner, and either applies completely or
    leaves no trace. Events are published only after a command succeeds.
    Reads are open to anyone and never fail for lack of a price.
    """

    def __init__(self, owner: str, event_log: EventLog | None = None) -> None:
        if not owner:
            raise InvalidInput("Owner must not be empty")
        self._owner = owner
        self._initialized = False
        self._ledger = PositionLedger()
        self._prices = PriceResolver()
        self._classes = ClassRegistry()
        self._asset_class_ids: dict[Asset, int] = {a: 0 for a in Asset}
        self._legacy_classes: dict[Asset, LegacyAssetClass] = {
            a: LegacyAssetClass.CRYPTO for a in Asset
        }
        self.event_log = event_log or EventLog()

    @classmethod
    def deploy(
        cls, owner: str, seeds: Mapping[Asset, Position] | None = None
    ) -> PortfolioTracker:
        """Create and initialize a tracker in one step."""
        tracker = cls(owner)
        tracker.initialize(seeds)
        return tracker

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise Unauthorized(f"Caller '{caller}' is not the owner")

    @contextmanager
    def _transaction(self) -> Iterator[list[Event]]:
        snapshot = self.snapshot()
        pending: list[Event] = []
        try:
            yield pending
        except Exception:
            self.restore(snapshot)
            raise
        self.event_log.publish(pending)

    @contextmanager
    def _command(self, caller: str) -> Iterator[list[Event]]:
        self._require_owner(caller)
        with self._transaction() as pending:
            yield pending

    def snapshot(self) -> TrackerState:
        return TrackerState(
            owner=self._owner,
            initialized=self._initialized,
            positions={a: self._ledger.position(a) for a in Asset},
            asset_classes=dict(self._legacy_classes),
            price_configs={a: self._prices.config(a) for a in Asset},
            next_class_id=self._classes.next_class_id,
            classes=dict(self._classes.items()),
            asset_class_ids=dict(self._asset_class_ids),
            realized={a: self._ledger.realized(a) for a in Asset},
        )

    def restore(self, state: TrackerState) -> None:
        self._owner = state.owner
        self._initialized = state.initialized
        self._ledger.restore(state.positions, state.realized)
        self._legacy_classes = {
            a: state.asset_classes.get(a, LegacyAssetClass.CRYPTO) for a in Asset
        }
        self._prices.restore(state.price_configs)
        self._classes.restore(state.classes, state.next_class_id)
        self._asset_class_ids = {a: state.asset_class_ids.get(a, 0) for a in Asset}

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, seeds: Mapping[Asset, Position] | None = None) -> None:
        """Seed positions and classifications. Runs once per tracker."""
        if self._initialized:
            raise InvalidState("Tracker is already initialized")
        if seeds is None:
            seeds = DEFAULT_SEED_POSITIONS

        with self._transaction() as pending:
            for asset in Asset:
                seed = seeds.get(asset, Position())
                self._ledger.set_position(
                    asset, seed.amount, seed.avg_buy_price_usd, seed.staking_rewards
                )
                self._legacy_classes[asset] = (
                    LegacyAssetClass.STOCK
                    if asset in STOCK_ASSETS
                    else LegacyAssetClass.CRYPTO
                )
                if seed.total_amount:
                    pending.append(
                        PositionUpdated(
                            asset,
                            seed.amount,
                            seed.avg_buy_price_usd,
                            seed.staking_rewards,
                        )
                    )
            self._bootstrap_classes(pending)
            self._initialized = True
        logger.info("Tracker initialized for owner %s", self._owner)

    def init_dynamic_classes(self, caller: str) -> bool:
        """Bootstrap the class taxonomy if it has not been yet.

        Returns ``False`` (and changes nothing) on repeated calls.
        """
        with self._command(caller) as pending:
            return self._bootstrap_classes(pending)

    def _bootstrap_classes(self, pending: list[Event]) -> bool:
        ids = self._classes.bootstrap()
        if ids is None:
            return False
        cryptos, stocks = ids
        for class_id in ids:
            info = self._classes.get(class_id)
            pending.append(ClassCreated(class_id, info.parent_id, info.name))
        for asset in Asset:
            self._asset_class_ids[asset] = cryptos
        for asset in STOCK_ASSETS:
            self._asset_class_ids[asset] = stocks
        for asset in Asset:
            pending.append(AssetClassSet(asset, self._asset_class_ids[asset]))
        return True

    # ------------------------------------------------------------------
    # Owner commands
    # ------------------------------------------------------------------

    def set_price_feed(self, caller: str, asset: Asset, feed: PriceFeed) -> None:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            self._prices.set_feed(asset, feed)
            pending.append(PriceFeedSet(asset, feed))

    def set_manual_price(
        self, caller: str, asset: Asset, price_usd: int, enabled: bool
    ) -> None:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            self._prices.set_manual_price(asset, price_usd, enabled)
            pending.append(ManualPriceSet(asset, price_usd, bool(enabled)))

    def set_position(
        self,
        caller: str,
        asset: Asset,
        amount: int,
        avg_buy_price_usd: int,
        staking_rewards: int,
    ) -> None:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            self._ledger.set_position(asset, amount, avg_buy_price_usd, staking_rewards)
            pending.append(
                PositionUpdated(asset, amount, avg_buy_price_usd, staking_rewards)
            )

    def add_staking_rewards(self, caller: str, asset: Asset, extra: int) -> None:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            position = self._ledger.add_staking_rewards(asset, extra)
            pending.append(StakingRewardsAdded(asset, extra, position.staking_rewards))

    def record_sell(
        self, caller: str, asset: Asset, sell_amount: int, sell_price_usd: int
    ) -> int:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            delta = self._ledger.record_sell(asset, sell_amount, sell_price_usd)
            pending.append(
                SellRecorded(
                    asset,
                    sell_amount,
                    sell_price_usd,
                    delta,
                    self._ledger.realized(asset).realized_pnl_usd,
                )
            )
        return delta

    def create_class(self, caller: str, name: str, parent_id: int = 0) -> int:
        with self._command(caller) as pending:
            class_id = self._classes.create(name, parent_id)
            pending.append(ClassCreated(class_id, parent_id, name))
        return class_id

    def deactivate_class(self, caller: str, class_id: int) -> None:
        with self._command(caller) as pending:
            self._classes.deactivate(class_id)
            pending.append(ClassDeactivated(class_id))

    def rename_class(self, caller: str, class_id: int, name: str) -> None:
        with self._command(caller) as pending:
            self._classes.rename(class_id, name)
            pending.append(ClassRenamed(class_id, name))

    def set_asset_class(self, caller: str, asset: Asset, class_id: int) -> None:
        with self._command(caller) as pending:
            asset = Asset.parse(asset)
            self._classes.require_active(class_id)
            self._asset_class_ids[asset] = class_id
            pending.append(AssetClassSet(asset, class_id))

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        with self._command(caller) as pending:
            if not new_owner:
                raise InvalidInput("New owner must not be empty")
            previous, self._owner = self._owner, new_owner
            pending.append(OwnershipTransferred(previous, new_owner))
        logger.info("Ownership transferred from %s to %s", previous, new_owner)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def next_class_id(self) -> int:
        return self._classes.next_class_id

    @property
    def classes(self) -> ClassRegistry:
        return self._classes

    def position(self, asset: Asset) -> Position:
        return self._ledger.position(Asset.parse(asset))

    def asset_class(self, asset: Asset) -> LegacyAssetClass:
        return self._legacy_classes[Asset.parse(asset)]

    def price_feed(self, asset: Asset) -> PriceFeed | None:
        return self._prices.config(Asset.parse(asset)).feed

    def manual_price_usd(self, asset: Asset) -> int:
        return self._prices.config(Asset.parse(asset)).manual_price_usd

    def use_manual_price(self, asset: Asset) -> bool:
        return self._prices.config(Asset.parse(asset)).use_manual_override

    def asset_class_id(self, asset: Asset) -> int:
        return self._asset_class_ids[Asset.parse(asset)]

    def realized_pnl_usd(self, asset: Asset) -> int:
        return self._ledger.realized(Asset.parse(asset)).realized_pnl_usd

    def last_sell_price_usd(self, asset: Asset) -> int:
        return self._ledger.realized(Asset.parse(asset)).last_sell_price_usd

    def last_sell_amount(self, asset: Asset) -> int:
        return self._ledger.realized(Asset.parse(asset)).last_sell_amount

    def get_class_info(self, class_id: int) -> ClassInfo:
        return self._classes.get(class_id)

    def resolve_price(self, asset: Asset) -> int:
        return self._prices.resolve(Asset.parse(asset))

    def get_asset_report(self, asset: Asset) -> AssetReport:
        asset = Asset.parse(asset)
        return asset_report(
            asset,
            self._ledger.position(asset),
            self._prices.resolve(asset),
            self._legacy_classes[asset],
            self._asset_class_ids[asset],
        )

    def get_portfolio_report(self) -> list[AssetReport]:
        return [self.get_asset_report(asset) for asset in Asset]
