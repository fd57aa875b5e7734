"""
Exception types shared across the ranking engine.

Only storage backends raise these. The stores that sit on top of a
backend catch them, log, and carry on with fewer signals.
"""


class MarketplaceError(Exception):
    """Base class for errors raised inside the ranking engine."""


class StorageError(MarketplaceError):
    """Raised when a key-value backend cannot read or write a payload."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key
