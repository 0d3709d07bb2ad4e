"""
Tests for the docchat.exceptions module.

This module tests:
- DocChatError base formatting and serialization
- User-facing messages of each error type
- Suggested caller action per error type
"""

import pytest

from docchat.exceptions import (
    ConcurrentTurnError,
    DocChatError,
    ErrorAction,
    OrchestrationError,
    ResourceCleanupError,
    RunFailedError,
    RunTimeoutError,
    ServiceConnectionError,
    SessionExpiredError,
    StateError,
    ValidationError,
)


# =============================================================================
# DocChatError Tests
# =============================================================================

class TestDocChatError:
    """Tests for the base exception."""

    def test_str_includes_code_and_short_session(self):
        error = DocChatError("boom", error_code="X_ERROR", session_id="abcdef123456")

        assert str(error) == "[X_ERROR] Session:abcdef12 boom"

    def test_str_without_session(self):
        assert str(DocChatError("boom")) == "[DOCCHAT_ERROR] boom"

    def test_user_message_defaults_to_message(self):
        error = DocChatError("plain failure")

        assert error.user_message == "plain failure"
        assert error.developer_message == "plain failure"

    def test_to_dict(self):
        error = DocChatError("boom", session_id="s1", context={"k": 1}, suggestion="retry")

        data = error.to_dict()

        assert data["error_type"] == "DocChatError"
        assert data["error_code"] == "DOCCHAT_ERROR"
        assert data["session_id"] == "s1"
        assert data["context"] == {"k": 1}
        assert data["suggestion"] == "retry"
        assert data["action"] == "terminal"


# =============================================================================
# Taxonomy Tests
# =============================================================================

class TestErrorTaxonomy:
    """Tests for the concrete error types."""

    def test_validation_error(self):
        error = ValidationError("nothing uploaded", attempted_paths=3)

        assert error.error_code == "VALIDATION_ERROR"
        assert error.context["attempted_paths"] == 3
        assert error.user_message == "No valid files were uploaded. Please provide valid file paths."
        assert error.get_error_action() == ErrorAction.RETRY

    def test_state_error_action_depends_on_activity(self):
        assert StateError("busy", is_active=True).get_error_action() == ErrorAction.TERMINAL
        assert StateError("idle", is_active=False).get_error_action() == ErrorAction.RESTART

    def test_concurrent_turn_error_is_state_error(self):
        error = ConcurrentTurnError("in flight", session_id="s1")

        assert isinstance(error, StateError)
        assert error.error_code == "CONCURRENT_TURN_ERROR"
        assert error.get_error_action() == ErrorAction.RETRY

    def test_session_expired_user_message(self):
        error = SessionExpiredError("gone", thread_id="T1")

        assert error.user_message == "Conversation session expired. Please start a new conversation."
        assert error.context["thread_id"] == "T1"
        assert error.get_error_action() == ErrorAction.RESTART

    def test_run_timeout_context(self):
        error = RunTimeoutError("slow", run_id="R1", deadline_seconds=300.0, last_status="in_progress")

        assert error.context == {"run_id": "R1", "deadline_seconds": 300.0, "last_status": "in_progress"}
        assert "300s" in error.user_message

    def test_run_failed_user_message(self):
        error = RunFailedError("failed", run_id="R1", status="failed", remote_message="rate limited")

        assert error.user_message == "Run failed or was canceled: rate limited"

    def test_run_failed_without_remote_message(self):
        error = RunFailedError("cancelled", status="cancelled")

        assert error.user_message == "Run failed or was canceled: no details provided"

    def test_orchestration_error_hides_details(self):
        error = OrchestrationError("KeyError: 'secret internals'", operation="start_new")

        assert "secret" not in error.user_message
        assert error.context["operation"] == "start_new"

    def test_service_connection_error(self):
        error = ServiceConnectionError("no route", endpoint="https://example")

        assert error.context["endpoint"] == "https://example"
        assert error.user_message == "Could not connect to the agent service."

    def test_resource_cleanup_error(self):
        error = ResourceCleanupError("could not delete", resource_kind="file", resource_id="F1")

        assert error.resource_kind == "file"
        assert error.resource_id == "F1"

    @pytest.mark.parametrize("error_type", [
        ValidationError, StateError, SessionExpiredError, RunTimeoutError,
        RunFailedError, OrchestrationError, ServiceConnectionError, ResourceCleanupError,
    ])
    def test_all_errors_share_base(self, error_type):
        assert issubclass(error_type, DocChatError)

    def test_explicit_context_is_merged(self):
        error = RunFailedError("failed", run_id="R1", context={"turn": 2})

        assert error.context == {"turn": 2, "run_id": "R1"}
