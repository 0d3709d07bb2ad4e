"""
Tests for the docchat.orchestration.cleanup module.

This module tests:
- Teardown order (vector stores, agent detach, files, thread)
- Best-effort behavior when individual deletions fail
- Connected agent detach
"""

import pytest

from docchat.models import ConversationSession
from docchat.orchestration.cleanup import CleanupCoordinator


class TestCleanupCoordinator:
    """Tests for CleanupCoordinator.teardown."""

    @pytest.mark.asyncio
    async def test_deletes_in_order(self, service):
        service.vector_stores["V1"] = ["F1", "F2"]
        service.files.update({"F1": "a", "F2": "b"})
        service.threads["T1"] = []
        service.agents["connected-agent"].vector_store_ids = ["V1"]
        conversation = ConversationSession(
            thread_id="T1", is_active=True, file_ids=["F1", "F2"], vector_store_ids=["V1"]
        )

        report = await CleanupCoordinator(service, "connected-agent").teardown(conversation)

        assert service.calls == [
            ("delete_vector_store", "V1"),
            ("get_agent", "connected-agent"),
            ("set_file_search_vector_stores", "connected-agent", ()),
            ("delete_file", "F1"),
            ("delete_file", "F2"),
            ("delete_thread", "T1"),
        ]
        assert report.ok
        assert report.deleted == [
            "vector_store:V1", "agent_attachment:connected-agent", "file:F1", "file:F2", "thread:T1",
        ]
        assert service.files == {}
        assert service.vector_stores == {}
        assert service.threads == {}

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_teardown(self, service):
        service.fail_ids["delete_vector_store"] = {"V1"}
        service.fail_ids["delete_file"] = {"F1"}
        conversation = ConversationSession(
            thread_id="T1", is_active=True, file_ids=["F1", "F2"], vector_store_ids=["V1"]
        )

        report = await CleanupCoordinator(service, "connected-agent").teardown(conversation, session_id="user-1")

        assert not report.ok
        assert [(f.resource_kind, f.resource_id) for f in report.failures] == [
            ("vector_store", "V1"), ("file", "F1"),
        ]
        assert report.failures[0].session_id == "user-1"
        assert ("delete_file", "F2") in service.calls
        assert ("delete_thread", "T1") in service.calls

    @pytest.mark.asyncio
    async def test_detach_failure_is_recorded(self, service):
        service.fail_ids["get_agent"] = {"connected-agent"}
        conversation = ConversationSession(thread_id="T1", file_ids=["F1"])

        report = await CleanupCoordinator(service, "connected-agent").teardown(conversation)

        assert [f.resource_kind for f in report.failures] == ["agent_attachment"]
        assert ("delete_file", "F1") in service.calls
        assert ("delete_thread", "T1") in service.calls

    @pytest.mark.asyncio
    async def test_no_connected_agent_skips_detach(self, service):
        conversation = ConversationSession(thread_id="T1", file_ids=["F1"], vector_store_ids=["V1"])

        await CleanupCoordinator(service).teardown(conversation)

        assert "get_agent" not in service.call_names()
        assert "set_file_search_vector_stores" not in service.call_names()

    @pytest.mark.asyncio
    async def test_nothing_tracked(self, service):
        report = await CleanupCoordinator(service).teardown(ConversationSession())

        assert service.calls == []
        assert report.ok
        assert report.deleted == []

    @pytest.mark.asyncio
    async def test_duplicate_ids_are_attempted_twice(self, service):
        conversation = ConversationSession(file_ids=["F1", "F1"])

        await CleanupCoordinator(service).teardown(conversation)

        assert service.calls == [("delete_file", "F1"), ("delete_file", "F1")]


class TestDetachConnectedAgent:

    @pytest.mark.asyncio
    async def test_clears_attached_stores(self, service):
        service.agents["connected-agent"].vector_store_ids = ["V1"]

        changed = await CleanupCoordinator(service, "connected-agent").detach_connected_agent()

        assert changed is True
        assert service.agents["connected-agent"].vector_store_ids == []

    @pytest.mark.asyncio
    async def test_no_update_when_nothing_attached(self, service):
        changed = await CleanupCoordinator(service, "connected-agent").detach_connected_agent()

        assert changed is False
        assert service.call_names() == ["get_agent"]
