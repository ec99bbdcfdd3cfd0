"""
Utilities module for the Cookie Harvester.

Provides logging setup and per-run metrics.
"""

from cookie_harvester.utils.logging import (
    setup_logging,
    get_logger,
    visit_logger,
    reset_logging,
)
from cookie_harvester.utils.metrics import Metrics, TimingStats

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "visit_logger",
    "reset_logging",
    # Metrics
    "Metrics",
    "TimingStats",
]
