"""
Data records exchanged between the conversation core and its collaborators.

Remote objects are identified by opaque string ids. The records here are
service-neutral; the Azure adapter maps SDK objects onto them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    """Lifecycle states of a remote run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (RunStatus.QUEUED, RunStatus.IN_PROGRESS)


class MessageRole(str, Enum):
    """Author of a transcript record."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class AgentMessage:
    """A single structured transcript record."""

    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class UploadedDocument:
    """A local file after it has been handed to the remote service."""

    local_path: str
    file_id: str
    filename: str


@dataclass
class RemoteRun:
    id: str
    thread_id: str
    status: RunStatus
    error_message: Optional[str] = None


@dataclass
class RemoteAgent:
    """The parts of a remote agent definition the core reads or rewrites."""

    id: str
    name: Optional[str] = None
    vector_store_ids: List[str] = field(default_factory=list)


@dataclass
class TextPart:
    text: str


@dataclass
class ImagePart:
    file_id: str


ContentPart = Union[TextPart, ImagePart]


@dataclass
class ThreadMessage:
    """A message as stored in a remote thread."""

    id: str
    role: MessageRole
    parts: List[ContentPart] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class ConversationSession:
    """Snapshot of one caller's conversation bookkeeping."""

    thread_id: Optional[str] = None
    is_active: bool = False
    file_ids: List[str] = field(default_factory=list)
    vector_store_ids: List[str] = field(default_factory=list)

    @property
    def has_tracked_resources(self) -> bool:
        return bool(self.file_ids or self.vector_store_ids or self.thread_id)


@dataclass
class TurnResult:
    """
    Outcome of one conversation operation as seen by a caller.

    ``messages`` holds the structured transcript for the turn: the user's
    record followed by the assistant's reply (or a system record).
    """

    success: bool
    message: str = ""
    response: str = ""
    messages: List[AgentMessage] = field(default_factory=list)
    thread_id: Optional[str] = None
    uploaded_documents: List[UploadedDocument] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def files_processed(self) -> int:
        return len(self.uploaded_documents)

    @classmethod
    def from_error(cls, error: BaseException, thread_id: Optional[str] = None) -> "TurnResult":
        """Build a failed result that never exposes internal details of unknown errors."""
        from .exceptions import DocChatError

        if isinstance(error, DocChatError):
            text = error.user_message
        else:
            text = "An unexpected error occurred. Please try again."
        return cls(
            success=False,
            message=text,
            messages=[AgentMessage(role=MessageRole.SYSTEM, content=f"Error: {text}")],
            thread_id=thread_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "response": self.response,
            "messages": [m.to_dict() for m in self.messages],
            "thread_id": self.thread_id,
            "files_processed": self.files_processed,
            "timestamp": self.timestamp.isoformat(),
        }
