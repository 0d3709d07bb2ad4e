"""
Shared fixtures: an in-memory agent service, a controllable clock, and
orchestrator wiring around them.
"""

import asyncio
import os
from typing import Dict, List, Optional

import pytest

from docchat.config import AgentServiceSettings, OrchestratorConfig, PollingConfig, PollingPolicy
from docchat.models import (
    MessageRole,
    RemoteAgent,
    RemoteRun,
    RunStatus,
    TextPart,
    ThreadMessage,
    UploadedDocument,
)
from docchat.orchestration import ConversationOrchestrator
from docchat.service.client import AgentServiceClient
from docchat.service.connection import ConnectionCache, ConnectionHandle
from docchat.session import InMemorySessionStore


# ==============================================================================
# Fakes
# ==============================================================================


class RemoteNotFound(Exception):
    """Stands in for a service-side 404."""


class FakeAgentService(AgentServiceClient):
    """
    In-memory agent service.

    Every call is appended to ``calls`` as ``(method, *args)``. Failures can
    be injected per method through ``fail_on`` ({method: exception}) or per
    resource id through ``fail_ids`` ({method: {id, ...}}).
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self.files: Dict[str, str] = {}
        self.vector_stores: Dict[str, List[str]] = {}
        self.threads: Dict[str, List[ThreadMessage]] = {}
        self.agents: Dict[str, RemoteAgent] = {
            "primary-agent": RemoteAgent(id="primary-agent", name="Primary"),
            "connected-agent": RemoteAgent(id="connected-agent", name="Connected"),
        }
        self.runs: Dict[str, RemoteRun] = {}

        # Statuses returned by successive get_run calls; the last one repeats
        self.run_statuses: List[RunStatus] = [RunStatus.COMPLETED]
        self.run_error_message: Optional[str] = None
        self.reply_parts: Optional[list] = None  # None -> default text reply
        self.reply_enabled = True
        # When set, create_run blocks until the event fires
        self.run_gate: Optional[asyncio.Event] = None
        # Methods listed here block (after recording the call) until their event fires
        self.gates: Dict[str, asyncio.Event] = {}
        # Seconds of latency per agent id for get_agent / set_file_search_vector_stores
        self.agent_delays: Dict[str, float] = {}

        self.fail_on: Dict[str, Exception] = {}
        self.fail_ids: Dict[str, set] = {}
        self._counter = 0
        self._status_index: Dict[str, int] = {}

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _check(self, method: str, resource_id: Optional[str] = None) -> None:
        if method in self.fail_on:
            raise self.fail_on[method]
        if resource_id is not None and resource_id in self.fail_ids.get(method, set()):
            raise RemoteNotFound(f"{method} failed for {resource_id}")

    async def _wait_gate(self, method: str) -> None:
        gate = self.gates.get(method)
        if gate is not None:
            await gate.wait()

    async def _agent_latency(self, agent_id: str) -> None:
        delay = self.agent_delays.get(agent_id)
        if delay:
            await asyncio.sleep(delay)

    def call_names(self) -> List[str]:
        return [c[0] for c in self.calls]

    async def upload_file(self, file_path: str) -> UploadedDocument:
        self.calls.append(("upload_file", file_path))
        await self._wait_gate("upload_file")
        self._check("upload_file", os.path.basename(file_path))
        file_id = self._next_id("F")
        self.files[file_id] = file_path
        return UploadedDocument(local_path=file_path, file_id=file_id, filename=os.path.basename(file_path))

    async def delete_file(self, file_id: str) -> None:
        self.calls.append(("delete_file", file_id))
        self._check("delete_file", file_id)
        self.files.pop(file_id, None)

    async def create_vector_store(self, file_ids: List[str], name: str) -> str:
        self.calls.append(("create_vector_store", tuple(sorted(file_ids)), name))
        await self._wait_gate("create_vector_store")
        self._check("create_vector_store")
        vector_store_id = self._next_id("V")
        self.vector_stores[vector_store_id] = list(file_ids)
        return vector_store_id

    async def delete_vector_store(self, vector_store_id: str) -> None:
        self.calls.append(("delete_vector_store", vector_store_id))
        self._check("delete_vector_store", vector_store_id)
        self.vector_stores.pop(vector_store_id, None)

    async def create_thread(self) -> str:
        self.calls.append(("create_thread",))
        await self._wait_gate("create_thread")
        self._check("create_thread")
        thread_id = self._next_id("T")
        self.threads[thread_id] = []
        return thread_id

    async def get_thread(self, thread_id: str) -> str:
        self.calls.append(("get_thread", thread_id))
        self._check("get_thread", thread_id)
        if thread_id not in self.threads:
            raise RemoteNotFound(f"thread {thread_id} not found")
        return thread_id

    async def delete_thread(self, thread_id: str) -> None:
        self.calls.append(("delete_thread", thread_id))
        self._check("delete_thread", thread_id)
        self.threads.pop(thread_id, None)

    async def create_message(self, thread_id: str, role: MessageRole, content: str) -> str:
        self.calls.append(("create_message", thread_id, role, content))
        self._check("create_message")
        message_id = self._next_id("M")
        self.threads[thread_id].append(
            ThreadMessage(id=message_id, role=role, parts=[TextPart(text=content)])
        )
        return message_id

    async def list_recent_messages(self, thread_id: str, limit: int = 1) -> List[ThreadMessage]:
        self.calls.append(("list_recent_messages", thread_id, limit))
        self._check("list_recent_messages")
        return list(reversed(self.threads[thread_id]))[:limit]

    async def create_run(self, thread_id: str, agent_id: str) -> RemoteRun:
        self.calls.append(("create_run", thread_id, agent_id))
        self._check("create_run")
        if self.run_gate is not None:
            await self.run_gate.wait()
        run = RemoteRun(id=self._next_id("R"), thread_id=thread_id, status=RunStatus.QUEUED)
        self.runs[run.id] = run
        self._status_index[run.id] = 0
        return run

    async def get_run(self, thread_id: str, run_id: str) -> RemoteRun:
        self.calls.append(("get_run", thread_id, run_id))
        self._check("get_run")
        index = self._status_index[run_id]
        status = self.run_statuses[min(index, len(self.run_statuses) - 1)]
        self._status_index[run_id] = index + 1

        run = RemoteRun(id=run_id, thread_id=thread_id, status=status)
        if status in (RunStatus.FAILED, RunStatus.CANCELLED):
            run.error_message = self.run_error_message
        if status == RunStatus.COMPLETED and self.runs[run_id].status != RunStatus.COMPLETED:
            self._add_reply(thread_id)
        self.runs[run_id] = run
        return run

    def _add_reply(self, thread_id: str) -> None:
        if not self.reply_enabled:
            return
        parts = self.reply_parts if self.reply_parts is not None else [TextPart(text="Here is my answer.")]
        self.threads[thread_id].append(
            ThreadMessage(id=self._next_id("M"), role=MessageRole.ASSISTANT, parts=list(parts))
        )

    async def get_agent(self, agent_id: str) -> RemoteAgent:
        self.calls.append(("get_agent", agent_id))
        await self._agent_latency(agent_id)
        self._check("get_agent", agent_id)
        agent = self.agents[agent_id]
        return RemoteAgent(id=agent.id, name=agent.name, vector_store_ids=list(agent.vector_store_ids))

    async def set_file_search_vector_stores(self, agent_id: str, vector_store_ids: List[str]) -> None:
        self.calls.append(("set_file_search_vector_stores", agent_id, tuple(vector_store_ids)))
        await self._wait_gate("set_file_search_vector_stores")
        await self._agent_latency(agent_id)
        self._check("set_file_search_vector_stores", agent_id)
        self.agents[agent_id].vector_store_ids = list(vector_store_ids)


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay
        await asyncio.sleep(0)


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def service():
    return FakeAgentService()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(monkeypatch):
    for var in ("DOCCHAT_ENDPOINT", "DOCCHAT_PRIMARY_AGENT_ID", "DOCCHAT_CONNECTED_AGENT_ID",
                "DOCCHAT_ENVIRONMENT", "WEBSITE_INSTANCE_ID"):
        monkeypatch.delenv(var, raising=False)
    return AgentServiceSettings(
        endpoint="https://example.services.ai.azure.com/api/projects/demo",
        primary_agent_id="primary-agent",
        connected_agent_id="connected-agent",
    )


@pytest.fixture
def fast_config():
    """Small deadlines so timeout scenarios stay short in fake time."""
    return OrchestratorConfig(
        polling=PollingConfig(
            new_conversation=PollingPolicy(base_delay_s=0.5, grace_polls=3, step_s=0.25, max_delay_s=2.0, deadline_s=10.0),
            continuation=PollingPolicy(base_delay_s=0.25, grace_polls=2, step_s=0.25, max_delay_s=1.0, deadline_s=5.0),
        ),
        background_drain_timeout_s=1.0,
    )


@pytest.fixture
def connections(settings, service):
    async def factory(_settings):
        return ConnectionHandle(project_client=object(), service=service)

    return ConnectionCache(settings, factory=factory)


@pytest.fixture
def orchestrator(settings, connections, fast_config, clock):
    return ConversationOrchestrator(
        settings, connections, config=fast_config, sleep=clock.sleep, clock=clock
    )


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def session(store):
    return store.session("user-1")


@pytest.fixture
def documents(tmp_path):
    """Two readable documents on disk."""
    paths = []
    for name, body in (("doc1.pdf", "%PDF-1.4 fake"), ("doc2.txt", "plain text")):
        path = tmp_path / name
        path.write_text(body)
        paths.append(str(path))
    return paths
