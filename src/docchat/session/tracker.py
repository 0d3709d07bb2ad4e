"""Session-scoped ledger of the remote objects a conversation created."""

import logging
from typing import List, Optional

from ..models import ConversationSession
from .store import SessionState

logger = logging.getLogger(__name__)

# Session state keys
SESSION_THREAD_ID = "PA_ThreadId"
SESSION_IS_ACTIVE = "PA_IsActive"
SESSION_FILE_IDS = "PA_FileIds"
SESSION_VECTOR_STORE_IDS = "PA_VectorStoreIds"


class ResourceTracker:
    """
    Reads and writes a conversation's bookkeeping through a ``SessionState``.

    Appends are not deduplicated: tracking the same id twice records it twice,
    and teardown will attempt to delete it twice.
    """

    def __init__(self, session: SessionState):
        self.session = session

    @property
    def session_id(self) -> str:
        return self.session.session_id

    async def load(self) -> ConversationSession:
        return ConversationSession(
            thread_id=await self.get_thread_id(),
            is_active=await self.is_active(),
            file_ids=await self.file_ids(),
            vector_store_ids=await self.vector_store_ids(),
        )

    async def is_active(self) -> bool:
        return bool(await self.session.get(SESSION_IS_ACTIVE, False))

    async def set_active(self, active: bool) -> None:
        await self.session.set(SESSION_IS_ACTIVE, active)

    async def get_thread_id(self) -> Optional[str]:
        # An empty string means "cleared"
        return await self.session.get(SESSION_THREAD_ID) or None

    async def set_thread_id(self, thread_id: Optional[str]) -> None:
        if thread_id:
            await self.session.set(SESSION_THREAD_ID, thread_id)
        else:
            await self.session.delete(SESSION_THREAD_ID)

    async def file_ids(self) -> List[str]:
        return list(await self.session.get(SESSION_FILE_IDS, []))

    async def vector_store_ids(self) -> List[str]:
        return list(await self.session.get(SESSION_VECTOR_STORE_IDS, []))

    async def track_file(self, file_id: str) -> None:
        files = await self.file_ids()
        files.append(file_id)
        await self.session.set(SESSION_FILE_IDS, files)
        logger.debug(f"Tracking file {file_id} for session {self.session_id}")

    async def track_vector_store(self, vector_store_id: str) -> None:
        stores = await self.vector_store_ids()
        stores.append(vector_store_id)
        await self.session.set(SESSION_VECTOR_STORE_IDS, stores)
        logger.debug(f"Tracking vector store {vector_store_id} for session {self.session_id}")

    async def forget_resources(self) -> None:
        await self.session.set(SESSION_FILE_IDS, [])
        await self.session.set(SESSION_VECTOR_STORE_IDS, [])

    async def reset(self) -> None:
        """Return the session to Idle with nothing tracked."""
        await self.forget_resources()
        await self.set_thread_id(None)
        await self.set_active(False)
