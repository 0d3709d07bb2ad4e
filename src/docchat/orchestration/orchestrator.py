"""
Conversation orchestration.

``ConversationOrchestrator`` is the state machine behind a document
conversation. A session is either Idle or Active:

- ``start_new`` (Idle -> Active) uploads documents, builds a vector store
  and a thread, attaches the store to the connected agent in the background,
  and answers the first message.
- ``continue_conversation`` (Active) answers another message on the same
  thread.
- ``end`` (any -> Idle) deletes every tracked remote object.

All session bookkeeping goes through the ``SessionState`` passed to each
call. Only one request per session may be in flight; a second one is
rejected with ``ConcurrentTurnError``.
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Set, Union

from ..config import AgentServiceSettings, OrchestratorConfig
from ..exceptions import (
    ConcurrentTurnError,
    DocChatError,
    OrchestrationError,
    RunTimeoutError,
    SessionExpiredError,
    StateError,
    ValidationError,
)
from ..models import (
    AgentMessage,
    ConversationSession,
    MessageRole,
    TurnResult,
    UploadedDocument,
    utcnow,
)
from ..service.client import AgentServiceClient
from ..service.connection import ConnectionCache
from ..session.store import SessionState
from ..session.tracker import ResourceTracker
from .background import BackgroundTasks
from .cleanup import CleanupCoordinator, CleanupReport
from .extraction import extract_response
from .poller import RunPoller

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class ConversationOrchestrator:
    """
    Coordinates start, continue and end of document conversations.

    Args:
        settings: Remote service settings (agent ids)
        connections: Shared connection cache
        config: Polling and recovery configuration
        sleep: Awaitable sleep used by the run poller
        clock: Monotonic clock used by the run poller
    """

    def __init__(
        self,
        settings: AgentServiceSettings,
        connections: ConnectionCache,
        config: Optional[OrchestratorConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.connections = connections
        self.config = config or OrchestratorConfig()
        self.background = BackgroundTasks()
        self._sleep = sleep
        self._clock = clock
        self._in_flight: Set[str] = set()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def status(self, session: SessionState) -> ConversationSession:
        return await ResourceTracker(session).load()

    async def start_new(
        self,
        session: SessionState,
        document_paths: Optional[Iterable[PathLike]],
        message: str,
    ) -> TurnResult:
        """
        Start a conversation over ``document_paths`` and answer ``message``.

        Raises:
            StateError: A conversation is already active
            ValidationError: No document could be uploaded
            RunTimeoutError: The first run did not finish in time (session stays Active)
            RunFailedError: The first run failed
            OrchestrationError: Any other failure
        """
        tracker = ResourceTracker(session)
        async with self._turn_guard(session):
            if await tracker.is_active():
                raise StateError(
                    "Please end the current conversation before starting a new one.",
                    is_active=True,
                    session_id=session.session_id,
                )

            # A detached teardown from an expired conversation may still be
            # detaching the connected agent; it must not undo this start's attach
            await self.drain(session)

            await tracker.set_active(True)
            service: Optional[AgentServiceClient] = None
            try:
                paths = self._existing_paths(document_paths or [])
                if not paths:
                    raise ValidationError(
                        "No valid files were uploaded. Please provide valid file paths.",
                        attempted_paths=0,
                        session_id=session.session_id,
                    )

                service = (await self.connections.acquire()).service
                primary = await service.get_agent(self.settings.primary_agent_id)
                logger.info(f"Retrieved main agent: {primary.id}")

                uploads = await self._upload_documents(service, paths)
                if not uploads:
                    raise ValidationError(
                        "No valid files were uploaded. Please provide valid file paths.",
                        attempted_paths=len(paths),
                        session_id=session.session_id,
                    )
                for document in uploads:
                    await tracker.track_file(document.file_id)

                vector_store_id, thread_id = await self._create_index_and_thread(
                    service, tracker, [d.file_id for d in uploads]
                )
                self._attach_in_background(service, session, vector_store_id)

                result = await self._run_turn(
                    service, session, thread_id, primary.id, message,
                    is_new_conversation=True,
                )
                result.uploaded_documents = uploads
                result.message = "Files processed successfully"
                return result

            except RunTimeoutError:
                raise
            except DocChatError as e:
                logger.error(f"Error starting conversation: {e}", extra={"session_id": session.session_id})
                await self._rollback_failed_start(session, tracker, service)
                raise
            except Exception as e:
                logger.error("Error starting conversation", exc_info=True, extra={"session_id": session.session_id})
                await self._rollback_failed_start(session, tracker, service)
                raise OrchestrationError(
                    f"Starting conversation failed: {e}",
                    operation="start_new",
                    session_id=session.session_id,
                ) from e

    async def continue_conversation(self, session: SessionState, message: str) -> TurnResult:
        """
        Answer ``message`` on the session's existing thread.

        Raises:
            StateError: No active conversation
            SessionExpiredError: The thread no longer exists (session goes Idle)
            RunTimeoutError: The run did not finish in time (session unchanged)
            RunFailedError: The run failed (session unchanged)
            OrchestrationError: Any other failure
        """
        tracker = ResourceTracker(session)
        async with self._turn_guard(session):
            conversation = await tracker.load()
            if not conversation.is_active or not conversation.thread_id:
                raise StateError(
                    "No active conversation. Please start a new one.",
                    is_active=conversation.is_active,
                    session_id=session.session_id,
                )

            thread_id = conversation.thread_id
            try:
                service = (await self.connections.acquire()).service
                primary = await service.get_agent(self.settings.primary_agent_id)

                try:
                    await service.get_thread(thread_id)
                    logger.info(f"Retrieved existing thread: {thread_id}")
                except Exception as e:
                    logger.error(f"Failed to retrieve thread {thread_id}: {e}")
                    await self._expire_session(session, tracker, service, conversation)
                    raise SessionExpiredError(
                        f"Thread {thread_id} could not be retrieved: {e}",
                        thread_id=thread_id,
                        session_id=session.session_id,
                    ) from e

                result = await self._run_turn(
                    service, session, thread_id, primary.id, message,
                    is_new_conversation=False,
                )
                result.message = "Conversation continued successfully"
                return result

            except DocChatError:
                raise
            except Exception as e:
                logger.error("Error continuing conversation", exc_info=True, extra={"session_id": session.session_id})
                raise OrchestrationError(
                    f"Continuing conversation failed: {e}",
                    operation="continue_conversation",
                    session_id=session.session_id,
                ) from e

    async def end(self, session: SessionState) -> CleanupReport:
        """
        End the conversation and delete its remote objects.

        Idle sessions are left alone (no remote calls). Individual deletion
        failures are recorded in the returned report; only a failure to reach
        the service at all is raised.
        """
        tracker = ResourceTracker(session)
        async with self._turn_guard(session):
            conversation = await tracker.load()
            if not conversation.is_active:
                return CleanupReport()

            try:
                service = (await self.connections.acquire()).service
                await self.drain(session)
                report = await CleanupCoordinator(service, self.settings.connected_agent_id).teardown(
                    conversation, session_id=session.session_id
                )
                await tracker.reset()
                logger.info("Ended conversation", extra={"session_id": session.session_id})
                return report
            except DocChatError:
                logger.error("Error ending conversation", exc_info=True, extra={"session_id": session.session_id})
                raise
            except Exception as e:
                logger.error("Error ending conversation", exc_info=True, extra={"session_id": session.session_id})
                raise OrchestrationError(
                    f"Ending conversation failed: {e}",
                    operation="end",
                    session_id=session.session_id,
                ) from e

    async def run_conversation(
        self,
        session: SessionState,
        message: str,
        document_paths: Optional[Iterable[PathLike]] = None,
        is_new_conversation: bool = True,
    ) -> TurnResult:
        """Start or continue a conversation, reporting every failure as an unsuccessful result."""
        try:
            if is_new_conversation:
                return await self.start_new(session, document_paths, message)
            return await self.continue_conversation(session, message)
        except Exception as e:
            logger.error(f"Error during agent conversation: {e}")
            return TurnResult.from_error(e)

    async def end_conversation(self, session: SessionState) -> TurnResult:
        """``end`` reported as a result instead of raising."""
        try:
            report = await self.end(session)
        except Exception as e:
            result = TurnResult.from_error(e)
            result.message = f"Failed to end conversation: {result.message}"
            return result

        text = "Conversation ended"
        if report.failures:
            text += f" ({len(report.failures)} resource(s) could not be deleted)"
        return TurnResult(success=True, message=text)

    async def drain(self, session: SessionState) -> bool:
        """Wait (bounded) for the session's detached work; True if none is left."""
        return await self.background.drain(self._session_key(session), self.config.background_drain_timeout_s)

    async def shutdown(self) -> None:
        await self.background.shutdown()

    # ------------------------------------------------------------------
    # Turn steps
    # ------------------------------------------------------------------

    def _existing_paths(self, document_paths: Iterable[PathLike]) -> List[str]:
        paths = []
        for path in document_paths:
            path = os.fspath(path)
            if os.path.isfile(path):
                paths.append(path)
            else:
                logger.warning(f"File not found: {path}")
        return paths

    async def _upload_documents(self, service: AgentServiceClient, paths: Sequence[str]) -> List[UploadedDocument]:
        """Upload all paths concurrently; failed uploads are logged and skipped."""
        results = await asyncio.gather(
            *(service.upload_file(path) for path in paths),
            return_exceptions=True,
        )

        uploads: List[UploadedDocument] = []
        for path, result in zip(paths, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to upload {path}: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            logger.info(f"Uploaded file, ID: {result.file_id}, name: {result.filename}")
            uploads.append(result)
        return uploads

    async def _create_index_and_thread(
        self,
        service: AgentServiceClient,
        tracker: ResourceTracker,
        file_ids: List[str],
    ):
        """Create the vector store and the thread concurrently and track whichever succeeded."""
        name = f"{self.config.vector_store_name_prefix}_{utcnow():%Y%m%d_%H%M%S}"
        vector_store_result, thread_result = await asyncio.gather(
            service.create_vector_store(file_ids, name),
            service.create_thread(),
            return_exceptions=True,
        )

        if not isinstance(vector_store_result, BaseException):
            await tracker.track_vector_store(vector_store_result)
            logger.info(f"Created vector store, ID: {vector_store_result}")
        if not isinstance(thread_result, BaseException):
            await tracker.set_thread_id(thread_result)
            logger.info(f"Created thread, ID: {thread_result}")

        for result in (vector_store_result, thread_result):
            if isinstance(result, BaseException):
                raise result
        return vector_store_result, thread_result

    def _attach_in_background(self, service: AgentServiceClient, session: SessionState, vector_store_id: str) -> None:
        """
        Wire the vector store into the connected agent without blocking the turn.

        Until this finishes, a reply may be produced without document search.
        """
        agent_id = self.settings.connected_agent_id
        if not agent_id:
            logger.debug("No connected agent configured; skipping vector store attachment")
            return
        self.background.spawn(
            self._session_key(session),
            service.set_file_search_vector_stores(agent_id, [vector_store_id]),
            description=f"attach vector store {vector_store_id} to connected agent {agent_id}",
        )

    async def _run_turn(
        self,
        service: AgentServiceClient,
        session: SessionState,
        thread_id: str,
        agent_id: str,
        message: str,
        is_new_conversation: bool,
    ) -> TurnResult:
        user_record = AgentMessage(role=MessageRole.USER, content=message)
        await service.create_message(thread_id, MessageRole.USER, message)
        run = await service.create_run(thread_id, agent_id)
        logger.info(f"Created run {run.id} on thread {thread_id}")

        poller = RunPoller(service, sleep=self._sleep, clock=self._clock)
        await poller.wait_for_completion(
            run,
            self.config.polling.for_turn(is_new_conversation),
            session_id=session.session_id,
        )

        recent = await service.list_recent_messages(thread_id, limit=1)
        reply = extract_response(recent, self.config.no_response_text)
        logger.info(f"{reply.timestamp:%Y-%m-%d %H:%M:%S} - {reply.role.value}: {reply.content[:200]}")

        return TurnResult(
            success=True,
            response=reply.content if reply.role == MessageRole.ASSISTANT else "",
            messages=[user_record, reply],
            thread_id=thread_id,
        )

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def _rollback_failed_start(
        self,
        session: SessionState,
        tracker: ResourceTracker,
        service: Optional[AgentServiceClient],
    ) -> None:
        """Undo a failed start: delete what was already created remotely, then go Idle."""
        try:
            conversation = await tracker.load()
            if (
                service is not None
                and self.config.rollback_remote_on_failed_start
                and conversation.has_tracked_resources
            ):
                await self.drain(session)
                # Only detach if this start could have attached something
                coordinator = CleanupCoordinator(
                    service,
                    self.settings.connected_agent_id if conversation.vector_store_ids else None,
                )
                report = await coordinator.teardown(conversation, session_id=session.session_id)
                logger.info(f"Rolled back failed start: removed {len(report.deleted)} remote object(s)")
        except Exception as e:
            logger.error(f"Remote rollback of failed start did not complete: {e}")
        finally:
            await tracker.reset()

    async def _expire_session(
        self,
        session: SessionState,
        tracker: ResourceTracker,
        service: AgentServiceClient,
        conversation: ConversationSession,
    ) -> None:
        """Go Idle after the thread vanished; orphaned files and stores are removed in the background."""
        await tracker.reset()

        orphans = ConversationSession(
            file_ids=conversation.file_ids,
            vector_store_ids=conversation.vector_store_ids,
        )
        if not orphans.has_tracked_resources:
            return
        coordinator = CleanupCoordinator(
            service,
            self.settings.connected_agent_id if orphans.vector_store_ids else None,
        )
        self.background.spawn(
            self._session_key(session),
            coordinator.teardown(orphans, session_id=session.session_id),
            description=f"clean up resources of expired session {session.session_id}",
        )

    # ------------------------------------------------------------------
    # Concurrency
    # ------------------------------------------------------------------

    @staticmethod
    def _session_key(session: SessionState) -> str:
        store_id, session_id = session.identity
        return f"{store_id:x}:{session_id}"

    @asynccontextmanager
    async def _turn_guard(self, session: SessionState):
        key = self._session_key(session)
        if key in self._in_flight:
            raise ConcurrentTurnError(
                f"Session {session.session_id} already has a request in flight",
                session_id=session.session_id,
            )
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)
