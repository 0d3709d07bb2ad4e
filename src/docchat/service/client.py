"""Abstract interface to the remote agent service."""

from abc import ABC, abstractmethod
from typing import List

from ..models import MessageRole, RemoteAgent, RemoteRun, ThreadMessage, UploadedDocument


class AgentServiceClient(ABC):
    """
    Remote capabilities consumed by the conversation core.

    Identifiers are opaque strings. Implementations translate service
    specific objects into the records in ``docchat.models`` and let service
    exceptions propagate unchanged.
    """

    # Documents
    @abstractmethod
    async def upload_file(self, file_path: str) -> UploadedDocument:
        pass

    @abstractmethod
    async def delete_file(self, file_id: str) -> None:
        pass

    # Vector indices
    @abstractmethod
    async def create_vector_store(self, file_ids: List[str], name: str) -> str:
        """Create an index over ``file_ids`` and return its id once it is usable."""
        pass

    @abstractmethod
    async def delete_vector_store(self, vector_store_id: str) -> None:
        pass

    # Threads
    @abstractmethod
    async def create_thread(self) -> str:
        pass

    @abstractmethod
    async def get_thread(self, thread_id: str) -> str:
        """Return the thread id if it still exists; raise otherwise."""
        pass

    @abstractmethod
    async def delete_thread(self, thread_id: str) -> None:
        pass

    # Messages
    @abstractmethod
    async def create_message(self, thread_id: str, role: MessageRole, content: str) -> str:
        pass

    @abstractmethod
    async def list_recent_messages(self, thread_id: str, limit: int = 1) -> List[ThreadMessage]:
        """Return up to ``limit`` messages, newest first."""
        pass

    # Runs
    @abstractmethod
    async def create_run(self, thread_id: str, agent_id: str) -> RemoteRun:
        pass

    @abstractmethod
    async def get_run(self, thread_id: str, run_id: str) -> RemoteRun:
        pass

    # Agents
    @abstractmethod
    async def get_agent(self, agent_id: str) -> RemoteAgent:
        pass

    @abstractmethod
    async def set_file_search_vector_stores(self, agent_id: str, vector_store_ids: List[str]) -> None:
        """Replace the agent's document-search tool configuration with ``vector_store_ids``."""
        pass

    async def close(self) -> None:
        """Release transport resources; a no-op unless overridden."""
        return None
