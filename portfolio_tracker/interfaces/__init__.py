"""Protocol interfaces for the portfolio tracker."""
from .notifier import Notifier
from .price_feed import PriceFeed

__all__ = ["Notifier", "PriceFeed"]
