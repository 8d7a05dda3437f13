"""Service modules"""
from .reporter import Reporter, open_tracker

__all__ = ["Reporter", "open_tracker"]
