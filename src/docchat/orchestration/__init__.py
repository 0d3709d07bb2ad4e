"""
Conversation orchestration: the start/continue/end state machine and the
pieces it drives (run polling, response extraction, teardown, detached work).
"""

from .background import BackgroundTasks
from .cleanup import CleanupCoordinator, CleanupReport
from .extraction import extract_response
from .orchestrator import ConversationOrchestrator
from .poller import RunPoller

__all__ = [
    "ConversationOrchestrator",
    "RunPoller",
    "CleanupCoordinator",
    "CleanupReport",
    "BackgroundTasks",
    "extract_response",
]
