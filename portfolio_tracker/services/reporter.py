"""Portfolio reporting — refreshes oracle prices, renders and delivers reports."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from ..config import AppConfig
from ..errors import TrackerError
from ..interfaces.notifier import Notifier
from ..models import AssetReport
from ..notifications import EmailNotifier, TelegramNotifier
from ..oracles import PythOracle
from ..state_store import load_tracker
from ..tracker import PortfolioTracker
from ..valuation import format_amount, format_usd, portfolio_totals

logger = logging.getLogger(__name__)


def open_tracker(
    config: AppConfig, oracle: PythOracle | None = None
) -> PortfolioTracker:
    """Load (or deploy) the tracker described by *config* and attach feeds.

    Manual prices from the config are applied only when a new tracker is
    deployed; afterwards the persisted values win.
    """
    cfg = config.tracker
    tracker, fresh = load_tracker(cfg.state_path, cfg.owner, cfg.positions)

    try:
        if fresh:
            for asset, manual in cfg.manual_prices.items():
                tracker.set_manual_price(
                    cfg.owner, asset, manual.price_usd, manual.enabled
                )
        if oracle is not None:
            for asset, feed in oracle.feeds.items():
                tracker.set_price_feed(cfg.owner, asset, feed)
    except TrackerError as e:
        logger.warning("Could not apply configured prices: %s", e)

    return tracker


class Reporter:
    """Builds portfolio reports from a tracker and sends them to notifiers."""

    def __init__(
        self,
        config: AppConfig,
        tracker: PortfolioTracker,
        oracle: PythOracle | None = None,
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._oracle = oracle

        self._notifiers: list[Notifier] = []
        if config.notifications.telegram.enabled:
            self._notifiers.append(TelegramNotifier(config.notifications.telegram))
        if config.notifications.email.enabled:
            self._notifiers.append(EmailNotifier(config.notifications.email))

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    def _format_asset_line(self, report: AssetReport) -> str:
        status = "✅" if report.in_profit else "🔻"
        if not report.price_ok:
            status = "❔"
        line = (
            f"{report.asset.name}: {format_amount(report.total_amount)}"
            f" @ {format_usd(report.price_usd)}"
            f" · value {format_usd(report.value_usd)}"
            f" · PnL {format_usd(report.pnl_usd)} {status}"
        )
        if report.staking_rewards:
            line += f"\n  incl. {format_amount(report.staking_rewards)} staking rewards"
        realized = self._tracker.realized_pnl_usd(report.asset)
        if realized:
            line += f"\n  realized {format_usd(realized)}"
        return line

    def render_report(self) -> str:
        """Render the current portfolio grouped by class."""
        reports = self._tracker.get_portfolio_report()
        registry = self._tracker.classes

        groups: dict[int, list[AssetReport]] = {}
        for report in reports:
            if report.has_position:
                groups.setdefault(report.class_id, []).append(report)

        sections: list[str] = []
        for class_id in sorted(groups):
            info = registry.get(class_id)
            title = " / ".join(registry.path(class_id)) or f"class {class_id}"
            if info.exists and not info.active:
                title += " (inactive)"
            lines = [self._format_asset_line(r) for r in groups[class_id]]
            sections.append(f"━━ {title} ━━\n" + "\n".join(lines))

        totals = portfolio_totals(reports)
        body = "\n\n".join(sections) if sections else "No positions held."
        summary = (
            f"Total value: {format_usd(totals.value_usd)}\n"
            f"Total cost: {format_usd(totals.cost_usd)}\n"
            f"Unrealized PnL: {format_usd(totals.pnl_usd)}"
        )
        if totals.missing_prices:
            summary += f"\n⚠️ {totals.missing_prices} held asset(s) without a price"

        return (
            f"📋 Portfolio Report\n"
            f"\n"
            f"{body}\n"
            f"\n"
            f"{summary}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    def _build_missing_price_alert(self, reports: list[AssetReport]) -> str:
        symbols = ", ".join(r.asset.name for r in reports)
        return (
            f"⚠️ No price available for: {symbols}\n"
            f"\n"
            f"Configure a feed or set a manual price.\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    # ------------------------------------------------------------------
    # Notification dispatch
    # ------------------------------------------------------------------

    async def _send_log(self, message: str, silent: bool = False) -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_log(message, silent=silent)
            except Exception as e:
                logger.error("Notifier send_log failed: %s", e)

    async def _send_alert(self, message: str, subject: str = "") -> None:
        for notifier in self._notifiers:
            try:
                await notifier.send_alert(message, subject=subject)
            except Exception as e:
                logger.error("Notifier send_alert failed: %s", e)

    # ------------------------------------------------------------------
    # Core workflows
    # ------------------------------------------------------------------

    async def refresh_prices(self) -> int:
        """Pull fresh oracle readings; returns how many feeds updated."""
        if self._oracle is None:
            return 0
        rounds = await self._oracle.fetch_rounds()
        return len(rounds)

    async def send_report(self) -> str:
        """Refresh prices, send the report and alert on missing prices."""
        await self.refresh_prices()
        report = self.render_report()
        await self._send_log(report, silent=False)

        missing = [
            r
            for r in self._tracker.get_portfolio_report()
            if r.has_position and not r.price_ok
        ]
        if missing:
            await self._send_alert(
                self._build_missing_price_alert(missing),
                subject="⚠️ Portfolio: missing prices",
            )
        logger.info("Portfolio report sent")
        return report

    async def run_continuous(self, check_interval_minutes: int | None = None) -> None:
        """Send a report every interval until cancelled."""
        interval = (
            check_interval_minutes or self._config.tracker.check_interval_minutes
        )
        logger.info("Starting continuous reporting (every %d minutes)", interval)

        while True:
            try:
                await self.send_report()
                await asyncio.sleep(interval * 60)
            except Exception as e:
                logger.error("Error in reporting loop: %s", e)
                await asyncio.sleep(60)
