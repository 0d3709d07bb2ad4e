"""
docchat - Document Conversations over a Remote Agent Service

Upload documents, have them indexed by a remote agent service, and hold a
multi-turn conversation whose documents, search index and thread persist
across requests until the conversation is explicitly ended.

License: Apache-2.0
"""

__version__ = "0.1.0"

from .config import (
    AgentServiceSettings,
    OrchestratorConfig,
    PollingConfig,
    PollingPolicy,
    load_settings,
)
from .exceptions import (
    ConcurrentTurnError,
    DocChatError,
    OrchestrationError,
    ResourceCleanupError,
    RunFailedError,
    RunTimeoutError,
    ServiceConnectionError,
    SessionExpiredError,
    StateError,
    ValidationError,
)
from .models import AgentMessage, ConversationSession, MessageRole, RunStatus, TurnResult
from .orchestration import ConversationOrchestrator
from .service import AgentServiceClient, ConnectionCache
from .session import FileSessionStore, InMemorySessionStore, SessionState, SessionStore

__all__ = [
    "__version__",
    # Configuration
    "AgentServiceSettings",
    "OrchestratorConfig",
    "PollingConfig",
    "PollingPolicy",
    "load_settings",
    # Orchestration
    "ConversationOrchestrator",
    "ConnectionCache",
    "AgentServiceClient",
    # Session state
    "SessionStore",
    "InMemorySessionStore",
    "FileSessionStore",
    "SessionState",
    # Records
    "AgentMessage",
    "ConversationSession",
    "MessageRole",
    "RunStatus",
    "TurnResult",
    # Errors
    "DocChatError",
    "ValidationError",
    "StateError",
    "ConcurrentTurnError",
    "SessionExpiredError",
    "RunTimeoutError",
    "RunFailedError",
    "OrchestrationError",
    "ServiceConnectionError",
    "ResourceCleanupError",
]
