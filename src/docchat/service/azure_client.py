"""Agent service adapter backed by the Azure AI Agents async SDK."""

import logging
import os
from typing import Any, List, Optional

from azure.ai.agents.aio import AgentsClient
from azure.ai.agents.models import (
    FilePurpose,
    FileSearchTool,
    ListSortOrder,
    MessageImageFileContent,
    MessageTextContent,
)
from azure.ai.agents.models import MessageRole as AzureMessageRole

from ..models import (
    ContentPart,
    ImagePart,
    MessageRole,
    RemoteAgent,
    RemoteRun,
    RunStatus,
    TextPart,
    ThreadMessage,
    UploadedDocument,
)
from .client import AgentServiceClient

logger = logging.getLogger(__name__)

# Remote statuses that are not part of RunStatus
_STATUS_MAP = {
    "queued": RunStatus.QUEUED,
    "in_progress": RunStatus.IN_PROGRESS,
    "cancelling": RunStatus.IN_PROGRESS,
    "completed": RunStatus.COMPLETED,
    "failed": RunStatus.FAILED,
    "expired": RunStatus.FAILED,
    "requires_action": RunStatus.FAILED,
    "cancelled": RunStatus.CANCELLED,
}


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value)).lower()


def map_run_status(remote_status: Any) -> RunStatus:
    return _STATUS_MAP.get(_enum_value(remote_status), RunStatus.FAILED)


def _run_error_message(run: Any) -> Optional[str]:
    last_error = getattr(run, "last_error", None)
    if last_error:
        if isinstance(last_error, dict):
            return last_error.get("message") or last_error.get("code")
        return getattr(last_error, "message", None) or str(last_error)
    status = _enum_value(run.status)
    if status not in ("completed", "failed", "cancelled", "queued", "in_progress"):
        return f"Run ended with status '{status}'"
    return None


def _to_run(thread_id: str, run: Any) -> RemoteRun:
    return RemoteRun(
        id=run.id,
        thread_id=thread_id,
        status=map_run_status(run.status),
        error_message=_run_error_message(run),
    )


def _to_parts(content_items: Any) -> List[ContentPart]:
    parts: List[ContentPart] = []
    for item in content_items or []:
        if isinstance(item, MessageTextContent):
            parts.append(TextPart(text=item.text.value))
        elif isinstance(item, MessageImageFileContent):
            parts.append(ImagePart(file_id=item.image_file.file_id))
        else:
            logger.debug(f"Skipping unsupported message content type {type(item).__name__}")
    return parts


def _to_role(role: Any) -> MessageRole:
    value = _enum_value(role)
    if value == "user":
        return MessageRole.USER
    if value in ("assistant", "agent"):
        return MessageRole.ASSISTANT
    return MessageRole.SYSTEM


class AzureAgentServiceClient(AgentServiceClient):
    """Implements ``AgentServiceClient`` on top of ``azure.ai.agents.aio.AgentsClient``."""

    def __init__(self, agents_client: AgentsClient):
        self.agents = agents_client

    async def upload_file(self, file_path: str) -> UploadedDocument:
        info = await self.agents.files.upload_and_poll(file_path=file_path, purpose=FilePurpose.AGENTS)
        return UploadedDocument(
            local_path=file_path,
            file_id=info.id,
            filename=getattr(info, "filename", None) or os.path.basename(file_path),
        )

    async def delete_file(self, file_id: str) -> None:
        await self.agents.files.delete(file_id)

    async def create_vector_store(self, file_ids: List[str], name: str) -> str:
        vector_store = await self.agents.vector_stores.create_and_poll(file_ids=file_ids, name=name)
        return vector_store.id

    async def delete_vector_store(self, vector_store_id: str) -> None:
        await self.agents.vector_stores.delete(vector_store_id)

    async def create_thread(self) -> str:
        thread = await self.agents.threads.create()
        return thread.id

    async def get_thread(self, thread_id: str) -> str:
        thread = await self.agents.threads.get(thread_id)
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        await self.agents.threads.delete(thread_id)

    async def create_message(self, thread_id: str, role: MessageRole, content: str) -> str:
        azure_role = AzureMessageRole.USER if role == MessageRole.USER else AzureMessageRole.AGENT
        message = await self.agents.messages.create(thread_id=thread_id, role=azure_role, content=content)
        return message.id

    async def list_recent_messages(self, thread_id: str, limit: int = 1) -> List[ThreadMessage]:
        messages: List[ThreadMessage] = []
        pager = self.agents.messages.list(thread_id=thread_id, order=ListSortOrder.DESCENDING, limit=limit)
        async for message in pager:
            messages.append(ThreadMessage(
                id=message.id,
                role=_to_role(message.role),
                parts=_to_parts(message.content),
                created_at=message.created_at,
            ))
            # The service pages lazily; stop once we have what we asked for
            if len(messages) >= limit:
                break
        return messages

    async def create_run(self, thread_id: str, agent_id: str) -> RemoteRun:
        run = await self.agents.runs.create(thread_id=thread_id, agent_id=agent_id)
        return _to_run(thread_id, run)

    async def get_run(self, thread_id: str, run_id: str) -> RemoteRun:
        run = await self.agents.runs.get(thread_id=thread_id, run_id=run_id)
        return _to_run(thread_id, run)

    async def get_agent(self, agent_id: str) -> RemoteAgent:
        agent = await self.agents.get_agent(agent_id)
        vector_store_ids: List[str] = []
        tool_resources = getattr(agent, "tool_resources", None)
        file_search = getattr(tool_resources, "file_search", None) if tool_resources else None
        if file_search and file_search.vector_store_ids:
            vector_store_ids = list(file_search.vector_store_ids)
        return RemoteAgent(id=agent.id, name=getattr(agent, "name", None), vector_store_ids=vector_store_ids)

    async def set_file_search_vector_stores(self, agent_id: str, vector_store_ids: List[str]) -> None:
        file_search = FileSearchTool(vector_store_ids=list(vector_store_ids))
        await self.agents.update_agent(
            agent_id,
            tools=file_search.definitions,
            tool_resources=file_search.resources,
        )

    async def close(self) -> None:
        await self.agents.close()
