"""Session provider: storage, auth client and manager.

Usage:
    from nexus_crm.auth import SessionManager

    manager = SessionManager()
    if manager.has_live_session():
        tenant = manager.current_tenant()
"""

from .client import AuthClient, AuthError
from .manager import SessionManager
from .storage import SessionData, SessionStorage

__all__ = [
    "AuthClient",
    "AuthError",
    "SessionData",
    "SessionManager",
    "SessionStorage",
]
