"""Reporting package."""

from piggy.reports.aggregator import Aggregator, window_bounds

__all__ = ["Aggregator", "window_bounds"]
