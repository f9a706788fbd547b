from .app import create_app
from .session import SessionRecord, SessionStore, SessionView

__all__ = [
    "create_app",
    "SessionRecord",
    "SessionStore",
    "SessionView",
]
