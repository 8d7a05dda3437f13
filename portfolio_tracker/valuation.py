"""Valuation — mark-to-market reports derived from positions and prices."""
from __future__ import annotations

from collections.abc import Iterable

from .models import (
    SCALE,
    Asset,
    AssetReport,
    LegacyAssetClass,
    PortfolioTotals,
    Position,
)


def asset_report(
    asset: Asset,
    position: Position,
    price_usd: int,
    asset_class: LegacyAssetClass,
    class_id: int,
) -> AssetReport:
    """Value one holding at *price_usd*.

    Staking rewards count toward value but not cost, so they show up as
    pure profit.
    """
    total = position.total_amount
    value = total * price_usd // SCALE
    cost = position.amount * position.avg_buy_price_usd // SCALE
    pnl = value - cost
    return AssetReport(
        asset=asset,
        asset_class=asset_class,
        class_id=class_id,
        amount=position.amount,
        staking_rewards=position.staking_rewards,
        total_amount=total,
        avg_buy_price_usd=position.avg_buy_price_usd,
        price_usd=price_usd,
        value_usd=value,
        cost_usd=cost,
        pnl_usd=pnl,
        has_position=total > 0,
        price_ok=price_usd > 0,
        in_profit=pnl >= 0,
    )


def portfolio_totals(reports: Iterable[AssetReport]) -> PortfolioTotals:
    value = cost = pnl = held = missing = 0
    for report in reports:
        value += report.value_usd
        cost += report.cost_usd
        pnl += report.pnl_usd
        if report.has_position:
            held += 1
            if not report.price_ok:
                missing += 1
    return PortfolioTotals(
        value_usd=value,
        cost_usd=cost,
        pnl_usd=pnl,
        assets_held=held,
        missing_prices=missing,
    )


def format_usd(scaled: int) -> str:
    """Render a 1e8-scaled USD amount, e.g. ``-1,234.50``."""
    sign = "-" if scaled < 0 else ""
    whole, frac = divmod(abs(scaled), SCALE)
    cents = frac * 100 // SCALE
    return f"{sign}${whole:,}.{cents:02d}"


def format_amount(scaled: int) -> str:
    whole, frac = divmod(scaled, SCALE)
    return f"{whole}.{frac:08d}".rstrip("0").rstrip(".")
