"""
Service layer.

- session_manager: in-memory registry of live marketplace sessions
"""

from services.session_manager import SessionData, SessionManager

__all__ = ["SessionData", "SessionManager"]
