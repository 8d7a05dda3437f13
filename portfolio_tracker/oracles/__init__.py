"""Price oracle adapters."""
from .pyth import PythOracle, PythPriceFeed

__all__ = ["PythOracle", "PythPriceFeed"]
