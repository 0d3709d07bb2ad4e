"""Drives a remote run to a terminal state."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from ..config import PollingPolicy
from ..exceptions import RunFailedError, RunTimeoutError
from ..models import RemoteRun, RunStatus
from ..service.client import AgentServiceClient

logger = logging.getLogger(__name__)


class RunPoller:
    """
    Polls a run with an adaptive delay until it finishes or its deadline passes.

    On timeout the remote run is left outstanding; it is not cancelled.
    ``sleep`` and ``clock`` are injectable so callers can drive time in tests.
    """

    def __init__(
        self,
        service: AgentServiceClient,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service = service
        self._sleep = sleep
        self._clock = clock

    async def wait_for_completion(
        self,
        run: RemoteRun,
        policy: PollingPolicy,
        session_id: Optional[str] = None,
    ) -> RemoteRun:
        """
        Wait until ``run`` is terminal.

        Returns:
            The completed run

        Raises:
            RunTimeoutError: The deadline passed while the run was still queued or in progress
            RunFailedError: The run ended failed or cancelled
        """
        started = self._clock()
        deadline = started + policy.deadline_s
        delay = policy.base_delay_s
        polls = 0

        while not run.status.is_terminal:
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.warning(
                    f"Run {run.id} still {run.status.value} after {policy.deadline_s:g}s "
                    f"({polls} polls); abandoning wait"
                )
                raise RunTimeoutError(
                    f"Run {run.id} did not finish within {policy.deadline_s:g}s",
                    run_id=run.id,
                    deadline_seconds=policy.deadline_s,
                    last_status=run.status.value,
                    session_id=session_id,
                )

            await self._sleep(min(delay, remaining))
            run = await self.service.get_run(run.thread_id, run.id)
            polls += 1
            delay = policy.next_delay(delay, polls)

        elapsed = self._clock() - started
        if run.status == RunStatus.COMPLETED:
            logger.debug(f"Run {run.id} completed after {polls} polls ({elapsed:.1f}s)")
            return run

        logger.error(f"Run {run.id} ended with status {run.status.value}: {run.error_message}")
        raise RunFailedError(
            f"Run {run.id} ended with status {run.status.value}",
            run_id=run.id,
            status=run.status.value,
            remote_message=run.error_message,
            session_id=session_id,
        )
