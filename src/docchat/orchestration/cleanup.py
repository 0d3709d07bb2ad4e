"""Best-effort teardown of a conversation's remote resources."""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ..exceptions import ResourceCleanupError
from ..models import ConversationSession
from ..service.client import AgentServiceClient

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """What a teardown removed and what it could not."""

    deleted: List[str] = field(default_factory=list)
    failures: List[ResourceCleanupError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class CleanupCoordinator:
    """
    Deletes tracked remote objects in a fixed order:
    vector stores, connected-agent detach, files, thread.

    A failure on one object is logged and recorded in the report; the
    remaining steps still run.
    """

    def __init__(self, service: AgentServiceClient, connected_agent_id: Optional[str] = None):
        self.service = service
        self.connected_agent_id = connected_agent_id

    async def teardown(
        self,
        conversation: ConversationSession,
        session_id: Optional[str] = None,
    ) -> CleanupReport:
        report = CleanupReport()

        for vector_store_id in conversation.vector_store_ids:
            await self._attempt(
                report, "vector_store", vector_store_id,
                lambda vid=vector_store_id: self.service.delete_vector_store(vid),
                session_id,
            )

        if self.connected_agent_id:
            await self._attempt(
                report, "agent_attachment", self.connected_agent_id,
                self.detach_connected_agent,
                session_id,
            )

        for file_id in conversation.file_ids:
            await self._attempt(
                report, "file", file_id,
                lambda fid=file_id: self.service.delete_file(fid),
                session_id,
            )

        if conversation.thread_id:
            await self._attempt(
                report, "thread", conversation.thread_id,
                lambda: self.service.delete_thread(conversation.thread_id),
                session_id,
            )

        if report.failures:
            logger.warning(
                f"Teardown finished with {len(report.failures)} failure(s); "
                f"{len(report.deleted)} object(s) removed"
            )
        return report

    async def detach_connected_agent(self) -> bool:
        """
        Clear the connected agent's document-search attachment.

        The agent is only updated when it reports attached vector stores; an
        agent with nothing attached is left untouched.

        Returns:
            True if the agent had vector stores attached and was updated
        """
        agent = await self.service.get_agent(self.connected_agent_id)
        if not agent.vector_store_ids:
            logger.debug(f"Connected agent {agent.id} has no vector stores attached")
            return False
        await self.service.set_file_search_vector_stores(agent.id, [])
        logger.info(f"Cleared vector stores from connected agent: {agent.id}")
        return True

    async def _attempt(
        self,
        report: CleanupReport,
        kind: str,
        resource_id: str,
        operation: Callable[[], Awaitable[object]],
        session_id: Optional[str],
    ) -> None:
        try:
            await operation()
        except Exception as e:
            error = ResourceCleanupError(
                f"Failed to delete {kind} {resource_id}: {e}",
                resource_kind=kind,
                resource_id=resource_id,
                session_id=session_id,
            )
            logger.warning(str(error))
            report.failures.append(error)
            return

        report.deleted.append(f"{kind}:{resource_id}")
        if kind != "agent_attachment":
            logger.info(f"Deleted {kind}: {resource_id}")
