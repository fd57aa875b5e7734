"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Error types
- Clock and update-cycle seams
- Text utilities
"""

from core.errors import MarketplaceError, StorageError
from core.logging import configure_logging, get_logger
from core.runtime import Clock, CycleScheduler, ManualClock, ManualCycleScheduler, SystemClock
from core.utils import normalize, title_case

__all__ = [
    "configure_logging",
    "get_logger",
    "MarketplaceError",
    "StorageError",
    "Clock",
    "CycleScheduler",
    "ManualClock",
    "ManualCycleScheduler",
    "SystemClock",
    "normalize",
    "title_case",
]
