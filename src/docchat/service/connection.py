"""
Process-wide cache for the remote agent service handle.

The handle is expensive to build (credential discovery, transport setup), so
it is created at most once per process and shared by every session. Concurrent
first use is single-flight: one caller builds, the others wait for it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..config import AgentServiceSettings
from ..exceptions import ServiceConnectionError
from .client import AgentServiceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionHandle:
    """The project-level client and the agent service sub-client derived from it."""

    project_client: Any
    service: AgentServiceClient
    credential: Any = None


HandleFactory = Callable[[AgentServiceSettings], Awaitable[ConnectionHandle]]


def create_credential(settings: AgentServiceSettings):
    """Managed identity when hosted, the local Azure CLI login otherwise."""
    from azure.identity.aio import AzureCliCredential, ManagedIdentityCredential

    if settings.is_hosted:
        logger.info(f"Using ManagedIdentityCredential ({settings.environment} environment)")
        return ManagedIdentityCredential()
    logger.info(f"Using AzureCliCredential ({settings.environment} environment)")
    return AzureCliCredential()


async def create_azure_handle(settings: AgentServiceSettings) -> ConnectionHandle:
    """Default factory: an ``AIProjectClient`` and its agents sub-client."""
    from azure.ai.projects.aio import AIProjectClient

    from .azure_client import AzureAgentServiceClient

    credential = create_credential(settings)
    project_client = AIProjectClient(endpoint=settings.endpoint, credential=credential)
    service = AzureAgentServiceClient(project_client.agents)
    return ConnectionHandle(project_client=project_client, service=service, credential=credential)


class ConnectionCache:
    """
    Lazily creates and caches the ``ConnectionHandle``.

    A failed build leaves the cache empty so a later ``acquire()`` can try
    again. The handle is never invalidated once built.
    """

    def __init__(self, settings: AgentServiceSettings, factory: Optional[HandleFactory] = None):
        self.settings = settings
        self._factory = factory or create_azure_handle
        self._handle: Optional[ConnectionHandle] = None
        self._lock = asyncio.Lock()
        self.build_count = 0

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    async def acquire(self) -> ConnectionHandle:
        handle = self._handle
        if handle is not None:
            return handle

        async with self._lock:
            # Another caller may have finished building while we waited
            if self._handle is not None:
                return self._handle

            try:
                handle = await self._factory(self.settings)
            except Exception as e:
                logger.error(f"Failed to connect to agent service at {self.settings.endpoint}: {e}")
                raise ServiceConnectionError(
                    f"Could not create agent service client: {e}",
                    endpoint=self.settings.endpoint,
                ) from e

            self.build_count += 1
            self._handle = handle
            logger.info(f"Connected to agent service at {self.settings.endpoint}")
            return handle

    async def prewarm(self) -> bool:
        """Build the handle ahead of the first request; failures are only logged."""
        try:
            await self.acquire()
            return True
        except ServiceConnectionError as e:
            logger.warning(f"Connection pre-warm failed: {e}")
            return False

    async def close(self) -> None:
        async with self._lock:
            handle, self._handle = self._handle, None
        if handle is None:
            return

        for resource in (handle.service, handle.project_client, handle.credential):
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.warning(f"Error closing {type(resource).__name__}: {e}")
        logger.debug("Closed agent service connection")
