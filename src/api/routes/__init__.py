"""
Route modules for the API.
"""

from api.routes import health
from api.routes import marketplace

__all__ = ["health", "marketplace"]
