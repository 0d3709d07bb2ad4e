"""
Remote agent service access for docchat.

The Azure adapter is imported lazily by ``ConnectionCache`` so the core can be
used (and tested) against any ``AgentServiceClient`` implementation.
"""

from .client import AgentServiceClient
from .connection import ConnectionCache, ConnectionHandle

__all__ = [
    "AgentServiceClient",
    "ConnectionCache",
    "ConnectionHandle",
]
