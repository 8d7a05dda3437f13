"""Command-line interface for the portfolio tracker."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable

from .config import AppConfig, load_config
from .errors import TrackerError
from .logging_setup import configure_logging
from .models import Asset, to_scaled
from .oracles import PythOracle
from .services import Reporter, open_tracker
from .state_store import save_state
from .tracker import PortfolioTracker
from .valuation import format_usd

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="portfolio-tracker",
        description="Single-owner portfolio ledger with oracle pricing",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--caller",
        default=None,
        help="Identity issuing owner commands (default: configured owner)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("report", help="Print and send the portfolio report")
    monitor_parser = sub.add_parser("monitor", help="Send reports periodically")
    monitor_parser.add_argument(
        "interval",
        nargs="?",
        type=int,
        default=None,
        help="Report interval in minutes (overrides config)",
    )

    price = sub.add_parser("price", help="Resolve the current price of an asset")
    price.add_argument("asset")

    sub.add_parser("classes", help="Show the class taxonomy")

    set_pos = sub.add_parser("set-position", help="Overwrite a position")
    set_pos.add_argument("asset")
    set_pos.add_argument("amount")
    set_pos.add_argument("avg_buy_price")
    set_pos.add_argument("--rewards", default="0", help="Staking rewards held")

    rewards = sub.add_parser("add-rewards", help="Add staking rewards")
    rewards.add_argument("asset")
    rewards.add_argument("amount")

    sell = sub.add_parser("sell", help="Record a sell")
    sell.add_argument("asset")
    sell.add_argument("amount")
    sell.add_argument("price")

    manual = sub.add_parser("set-manual-price", help="Set the manual price")
    manual.add_argument("asset")
    manual.add_argument("price")
    manual.add_argument(
        "--disable",
        action="store_true",
        help="Store the price as fallback only, without overriding feeds",
    )

    create = sub.add_parser("create-class", help="Create a class")
    create.add_argument("name")
    create.add_argument("--parent", type=int, default=0, help="Parent class id")

    deactivate = sub.add_parser("deactivate-class", help="Deactivate a class")
    deactivate.add_argument("class_id", type=int)

    rename = sub.add_parser("rename-class", help="Rename a class")
    rename.add_argument("class_id", type=int)
    rename.add_argument("name")

    assign = sub.add_parser("set-asset-class", help="Assign an asset to a class")
    assign.add_argument("asset")
    assign.add_argument("class_id", type=int)

    transfer = sub.add_parser("transfer-ownership", help="Hand over the tracker")
    transfer.add_argument("new_owner")

    return parser


def _render_classes(tracker: PortfolioTracker) -> str:
    registry = tracker.classes
    members: dict[int, list[str]] = {}
    for asset in Asset:
        members.setdefault(tracker.asset_class_id(asset), []).append(asset.name)

    lines: list[str] = []

    def walk(parent_id: int, depth: int) -> None:
        for class_id in registry.children(parent_id):
            info = registry.get(class_id)
            flag = "" if info.active else " (inactive)"
            assets = ", ".join(members.get(class_id, []))
            suffix = f": {assets}" if assets else ""
            lines.append(f"{'  ' * depth}[{class_id}] {info.name}{flag}{suffix}")
            walk(class_id, depth + 1)

    walk(0, 0)
    return "\n".join(lines) if lines else "No classes defined."


def _mutation(args: argparse.Namespace) -> Callable[[PortfolioTracker, str], object]:
    """Map a mutating subcommand onto the tracker call it performs."""
    cmd = args.command
    if cmd == "set-position":
        return lambda t, c: t.set_position(
            c,
            Asset.parse(args.asset),
            to_scaled(args.amount),
            to_scaled(args.avg_buy_price),
            to_scaled(args.rewards),
        )
    if cmd == "add-rewards":
        return lambda t, c: t.add_staking_rewards(
            c, Asset.parse(args.asset), to_scaled(args.amount)
        )
    if cmd == "sell":
        return lambda t, c: t.record_sell(
            c, Asset.parse(args.asset), to_scaled(args.amount), to_scaled(args.price)
        )
    if cmd == "set-manual-price":
        return lambda t, c: t.set_manual_price(
            c, Asset.parse(args.asset), to_scaled(args.price), not args.disable
        )
    if cmd == "create-class":
        return lambda t, c: t.create_class(c, args.name, args.parent)
    if cmd == "deactivate-class":
        return lambda t, c: t.deactivate_class(c, args.class_id)
    if cmd == "rename-class":
        return lambda t, c: t.rename_class(c, args.class_id, args.name)
    if cmd == "set-asset-class":
        return lambda t, c: t.set_asset_class(
            c, Asset.parse(args.asset), args.class_id
        )
    if cmd == "transfer-ownership":
        return lambda t, c: t.transfer_ownership(c, args.new_owner)
    raise ValueError(f"Unknown command: {cmd}")


READ_COMMANDS = {"report", "monitor", "price", "classes"}


async def _run(args: argparse.Namespace, config: AppConfig) -> None:
    """Execute the selected command."""
    oracle = PythOracle(config.price_oracle.pyth)
    tracker = open_tracker(config, oracle)
    state_path = config.tracker.state_path
    caller = args.caller or config.tracker.owner

    if args.command in READ_COMMANDS:
        reporter = Reporter(config, tracker, oracle)
        if args.command == "report":
            print(await reporter.send_report())
        elif args.command == "monitor":
            await reporter.run_continuous(args.interval)
        elif args.command == "price":
            asset = Asset.parse(args.asset)
            await oracle.fetch_rounds([asset])
            print(f"{asset.name}: {format_usd(tracker.resolve_price(asset))}")
        else:
            print(_render_classes(tracker))
        save_state(state_path, tracker.snapshot())
        return

    result = _mutation(args)(tracker, caller)
    save_state(state_path, tracker.snapshot())
    for event in tracker.event_log.events[-1:]:
        print(event)
    if args.command == "sell":
        print(f"Realized: {format_usd(result)}")
    elif args.command == "create-class":
        print(f"Created class {result}")


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)
    config = load_config(args.config)
    try:
        asyncio.run(_run(args, config))
    except TrackerError as e:
        logger.error("%s: %s", type(e).__name__, e)
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(2)
