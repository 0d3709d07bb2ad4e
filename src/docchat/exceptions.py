"""
docchat Exception Hierarchy

Every failure the conversation core can report is a subclass of
``DocChatError``. Each error carries a stable ``error_code``, the session it
happened in (when known), structured ``context``, a ``user_message`` that is
safe to show to an end user, and an optional ``suggestion``.

Errors fall into three propagation groups:
1. Precondition errors (``ValidationError``, ``StateError``) surface
   immediately with no side effects beyond what already executed.
2. Turn errors (``SessionExpiredError``, ``RunTimeoutError``,
   ``RunFailedError``, ``OrchestrationError``) end the current turn.
3. Infrastructure errors (``ServiceConnectionError``) are fatal;
   ``ResourceCleanupError`` is only ever logged, never raised to callers.
"""

import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorAction(Enum):
    """What the caller can do about an error."""

    # Caller can retry the same operation
    RETRY = "retry"

    # Caller must start a new conversation
    RESTART = "restart"

    # Nothing the caller can do
    TERMINAL = "terminal"


class DocChatError(Exception):
    """
    Base exception class for all docchat errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        session_id: Session where the error occurred (if applicable)
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "DOCCHAT_ERROR",
        session_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.session_id = session_id
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.TERMINAL

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "session_id": self.session_id,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
            "action": self.get_error_action().value,
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}]"]
        if self.session_id:
            parts.append(f"Session:{self.session_id[:8]}")
        parts.append(self.developer_message)
        return " ".join(parts)


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================

class ValidationError(DocChatError):
    """
    Raised when a new conversation has nothing to work with.

    Examples:
    - No document paths were supplied
    - None of the supplied paths exist
    - Every upload to the remote service failed
    """

    def __init__(
        self,
        message: str,
        attempted_paths: Optional[int] = None,
        **kwargs
    ):
        self.attempted_paths = attempted_paths

        context = kwargs.pop("context", {})
        if attempted_paths is not None:
            context["attempted_paths"] = attempted_paths

        kwargs.setdefault("user_message", "No valid files were uploaded. Please provide valid file paths.")
        kwargs.setdefault("suggestion", "Check that the documents exist and are readable.")
        super().__init__(
            message,
            error_code="VALIDATION_ERROR",
            context=context,
            **kwargs
        )

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.RETRY


class StateError(DocChatError):
    """Raised when an operation is not allowed in the session's current state."""

    def __init__(
        self,
        message: str,
        is_active: Optional[bool] = None,
        **kwargs
    ):
        self.is_active = is_active

        context = kwargs.pop("context", {})
        if is_active is not None:
            context["is_active"] = is_active

        error_code = kwargs.pop("error_code", "STATE_ERROR")
        super().__init__(message, error_code=error_code, context=context, **kwargs)

    def get_error_action(self) -> ErrorAction:
        if self.is_active:
            return ErrorAction.TERMINAL
        return ErrorAction.RESTART


class ConcurrentTurnError(StateError):
    """Raised when a second request arrives for a session that already has one in flight."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("user_message", "A request for this conversation is already in progress.")
        kwargs.setdefault("suggestion", "Wait for the current response before sending another message.")
        super().__init__(message, error_code="CONCURRENT_TURN_ERROR", **kwargs)

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.RETRY


# =============================================================================
# TURN ERRORS
# =============================================================================

class SessionExpiredError(DocChatError):
    """Raised when the remote thread behind an active session can no longer be fetched."""

    def __init__(
        self,
        message: str,
        thread_id: Optional[str] = None,
        **kwargs
    ):
        self.thread_id = thread_id

        context = kwargs.pop("context", {})
        if thread_id:
            context["thread_id"] = thread_id

        super().__init__(
            message,
            error_code="SESSION_EXPIRED",
            context=context,
            user_message="Conversation session expired. Please start a new conversation.",
            **kwargs
        )

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.RESTART


class RunTimeoutError(DocChatError):
    """
    Raised when a run does not reach a terminal state before its deadline.

    The remote run is not cancelled; it is left to finish (or expire) on the
    service side.
    """

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        deadline_seconds: Optional[float] = None,
        last_status: Optional[str] = None,
        **kwargs
    ):
        self.run_id = run_id
        self.deadline_seconds = deadline_seconds
        self.last_status = last_status

        context = kwargs.pop("context", {})
        if run_id:
            context["run_id"] = run_id
        if deadline_seconds is not None:
            context["deadline_seconds"] = deadline_seconds
        if last_status:
            context["last_status"] = last_status

        super().__init__(
            message,
            error_code="RUN_TIMEOUT",
            context=context,
            user_message=(
                f"The assistant did not respond within {deadline_seconds:g}s."
                if deadline_seconds is not None else "The assistant did not respond in time."
            ),
            suggestion="Send the message again or end the conversation.",
            **kwargs
        )

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.RETRY


class RunFailedError(DocChatError):
    """Raised when a run ends in a terminal state other than completed."""

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        status: Optional[str] = None,
        remote_message: Optional[str] = None,
        **kwargs
    ):
        self.run_id = run_id
        self.status = status
        self.remote_message = remote_message

        context = kwargs.pop("context", {})
        if run_id:
            context["run_id"] = run_id
        if status:
            context["status"] = status
        if remote_message:
            context["remote_message"] = remote_message

        super().__init__(
            message,
            error_code="RUN_FAILED",
            context=context,
            user_message=f"Run failed or was canceled: {remote_message or 'no details provided'}",
            **kwargs
        )

    def get_error_action(self) -> ErrorAction:
        return ErrorAction.RETRY


class OrchestrationError(DocChatError):
    """
    Wraps a failure that is not part of the known taxonomy.

    The wrapped exception is chained as ``__cause__``; only a generic
    message is exposed through ``user_message``.
    """

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        self.operation = operation

        context = kwargs.pop("context", {})
        if operation:
            context["operation"] = operation

        kwargs.setdefault("user_message", "Something went wrong while talking to the assistant. Please try again.")
        super().__init__(
            message,
            error_code="ORCHESTRATION_ERROR",
            context=context,
            **kwargs
        )


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================

class ServiceConnectionError(DocChatError):
    """Raised when the remote agent service handle cannot be established."""

    def __init__(self, message: str, endpoint: Optional[str] = None, **kwargs):
        self.endpoint = endpoint

        context = kwargs.pop("context", {})
        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(
            message,
            error_code="SERVICE_CONNECTION_ERROR",
            context=context,
            user_message="Could not connect to the agent service.",
            suggestion="Check the endpoint setting and that credentials are available.",
            **kwargs
        )


class ResourceCleanupError(DocChatError):
    """Describes one remote object that could not be deleted during teardown."""

    def __init__(
        self,
        message: str,
        resource_kind: Optional[str] = None,
        resource_id: Optional[str] = None,
        **kwargs
    ):
        self.resource_kind = resource_kind
        self.resource_id = resource_id

        context = kwargs.pop("context", {})
        if resource_kind:
            context["resource_kind"] = resource_kind
        if resource_id:
            context["resource_id"] = resource_id

        super().__init__(
            message,
            error_code="RESOURCE_CLEANUP_ERROR",
            context=context,
            **kwargs
        )
