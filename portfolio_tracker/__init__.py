"""Single-owner portfolio ledger with oracle pricing and a class taxonomy."""
from .errors import (
    ExternalSourceUnavailable,
    InsufficientHoldings,
    InvalidInput,
    InvalidState,
    NotFound,
    TrackerError,
    Unauthorized,
)
from .models import SCALE, Asset, AssetReport, ClassInfo, Position
from .pricing import StaticPriceFeed
from .tracker import PortfolioTracker

__all__ = [
    "SCALE",
    "Asset",
    "AssetReport",
    "ClassInfo",
    "ExternalSourceUnavailable",
    "InsufficientHoldings",
    "InvalidInput",
    "InvalidState",
    "NotFound",
    "PortfolioTracker",
    "Position",
    "StaticPriceFeed",
    "TrackerError",
    "Unauthorized",
]
