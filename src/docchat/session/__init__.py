"""
Session state for docchat conversations.
"""

from .store import FileSessionStore, InMemorySessionStore, SessionState, SessionStore
from .tracker import ResourceTracker

__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "SessionState",
    "ResourceTracker",
]
