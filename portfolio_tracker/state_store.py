"""JSON persistence of tracker state.

The file layout is append-only: new fields may be added in later layout
versions but existing ones are never renamed, reordered or removed. Older
files load with defaults for the fields they lack. Feed objects are runtime
attachments and are not persisted.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .errors import InvalidState
from .models import (
    Asset,
    ClassInfo,
    LegacyAssetClass,
    Position,
    PriceConfig,
    RealizedPnlState,
)
from .tracker import PortfolioTracker, TrackerState

logger = logging.getLogger(__name__)

LAYOUT_VERSION = 1


def state_to_dict(state: TrackerState) -> dict[str, Any]:
    return {
        "layout_version": LAYOUT_VERSION,
        "owner": state.owner,
        "initialized": state.initialized,
        "positions": {
            a.name: {
                "amount": p.amount,
                "avg_buy_price_usd": p.avg_buy_price_usd,
                "staking_rewards": p.staking_rewards,
            }
            for a, p in sorted(state.positions.items())
        },
        "asset_classes": {
            a.name: c.name for a, c in sorted(state.asset_classes.items())
        },
        "manual_prices": {
            a.name: {
                "price_usd": c.manual_price_usd,
                "enabled": c.use_manual_override,
            }
            for a, c in sorted(state.price_configs.items())
        },
        "next_class_id": state.next_class_id,
        "classes": {
            str(cid): {
                "active": info.active,
                "parent_id": info.parent_id,
                "name": info.name,
            }
            for cid, info in sorted(state.classes.items())
        },
        "asset_class_ids": {
            a.name: cid for a, cid in sorted(state.asset_class_ids.items())
        },
        "realized": {
            a.name: {
                "realized_pnl_usd": r.realized_pnl_usd,
                "last_sell_price_usd": r.last_sell_price_usd,
                "last_sell_amount": r.last_sell_amount,
            }
            for a, r in sorted(state.realized.items())
        },
    }


def _per_asset(raw: Mapping[str, Any] | None) -> dict[Asset, Any]:
    return {Asset[name]: value for name, value in (raw or {}).items()}


def state_from_dict(raw: Mapping[str, Any]) -> TrackerState:
    version = int(raw.get("layout_version", 1))
    if version > LAYOUT_VERSION:
        raise InvalidState(
            f"State layout version {version} is newer than supported "
            f"({LAYOUT_VERSION})"
        )

    return TrackerState(
        owner=raw["owner"],
        initialized=bool(raw.get("initialized", False)),
        positions={
            a: Position(
                amount=int(p.get("amount", 0)),
                avg_buy_price_usd=int(p.get("avg_buy_price_usd", 0)),
                staking_rewards=int(p.get("staking_rewards", 0)),
            )
            for a, p in _per_asset(raw.get("positions")).items()
        },
        asset_classes={
            a: LegacyAssetClass[c]
            for a, c in _per_asset(raw.get("asset_classes")).items()
        },
        price_configs={
            a: PriceConfig(
                manual_price_usd=int(c.get("price_usd", 0)),
                use_manual_override=bool(c.get("enabled", False)),
            )
            for a, c in _per_asset(raw.get("manual_prices")).items()
        },
        next_class_id=int(raw.get("next_class_id", 0)),
        classes={
            int(cid): ClassInfo(
                exists=True,
                active=bool(c.get("active", True)),
                parent_id=int(c.get("parent_id", 0)),
                name=c.get("name", ""),
            )
            for cid, c in (raw.get("classes") or {}).items()
        },
        asset_class_ids={
            a: int(cid) for a, cid in _per_asset(raw.get("asset_class_ids")).items()
        },
        realized={
            a: RealizedPnlState(
                realized_pnl_usd=int(r.get("realized_pnl_usd", 0)),
                last_sell_price_usd=int(r.get("last_sell_price_usd", 0)),
                last_sell_amount=int(r.get("last_sell_amount", 0)),
            )
            for a, r in _per_asset(raw.get("realized")).items()
        },
    )


def save_state(path: str | Path, state: TrackerState) -> None:
    """Write *state* atomically (temp file + rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(state_to_dict(state), f, indent=2)
        os.replace(tmp, path)
    except BaseException:
        os.unlink(tmp)
        raise
    logger.debug("State saved to %s", path)


def load_state(path: str | Path) -> TrackerState | None:
    path = Path(path)
    if not path.exists():
        return None
    with open(path) as f:
        raw = json.load(f)
    return state_from_dict(raw)


def load_tracker(
    path: str | Path,
    owner: str,
    seeds: Mapping[Asset, Position] | None = None,
) -> tuple[PortfolioTracker, bool]:
    """Restore the tracker saved at *path*, or deploy a fresh one.

    Returns the tracker and whether it was newly deployed.
    """
    state = load_state(path)
    if state is None:
        logger.info("No state at %s, initializing a new tracker", path)
        return PortfolioTracker.deploy(owner, seeds), True

    tracker = PortfolioTracker(state.owner)
    tracker.restore(state)
    logger.info("Tracker state loaded from %s", path)
    return tracker, False
