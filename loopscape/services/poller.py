"""
Generation Poller

Waits for a Luma generation to finish by reading its status at a fixed
interval.

By default this polls forever and only "completed" ends the wait: a job that
settles into "failed" keeps the caller waiting. Set abort_on_failed to raise
RemoteFailureStatus instead, or max_attempts to bound the wait.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from loopscape.models.schemas import GenerationJob, GenerationStatus
from loopscape.services.errors import PollCancelledError, PollTimeoutError, RemoteFailureStatus
from loopscape.services.luma_service import LumaService

logger = logging.getLogger(__name__)

POLL_INTERVAL_MS = 5000

# Marks "use the poller's own setting" where None already means "no limit"
_DEFAULT = object()


class GenerationPoller:

    def __init__(
        self,
        luma_service: LumaService,
        interval_ms: int = POLL_INTERVAL_MS,
        max_attempts: Optional[int] = None,
        abort_on_failed: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.luma_service = luma_service
        self.interval_ms = interval_ms
        self.max_attempts = max_attempts
        self.abort_on_failed = abort_on_failed
        self.cancel_event = cancel_event or asyncio.Event()
        self._sleep = sleep

    def cancel(self):
        """Stop every in-flight wait at its next attempt."""
        self.cancel_event.set()

    def reset(self):
        """Allow polling again after cancel()."""
        self.cancel_event.clear()

    async def await_completion(
        self,
        job_id: str,
        interval_ms: Optional[int] = None,
        max_attempts: Union[Optional[int], object] = _DEFAULT,
    ) -> GenerationJob:
        """
        Poll job_id until Luma reports it completed.

        Args:
            job_id: Generation to wait for
            interval_ms: Wait between attempts (defaults to the poller's)
            max_attempts: Give up after this many reads. Omit to use the
                          poller's limit; pass None to poll until completed
                          even if the poller has a limit

        Returns:
            The completed GenerationJob
        """
        interval_ms = self.interval_ms if interval_ms is None else interval_ms
        max_attempts = self.max_attempts if max_attempts is _DEFAULT else max_attempts

        attempt = 0
        while True:
            if self.cancel_event.is_set():
                raise PollCancelledError(f"Polling for {job_id} cancelled after {attempt} attempts")

            job = await self.luma_service.fetch_status(job_id)
            attempt += 1

            if job.status == GenerationStatus.COMPLETED:
                logger.info(f"Generation {job_id} completed after {attempt} attempt(s)")
                return job

            if job.status == GenerationStatus.FAILED:
                if self.abort_on_failed:
                    raise RemoteFailureStatus(job_id, job.failure_reason)
                logger.warning(f"Generation {job_id} reports failed ({job.failure_reason}), still waiting")

            if max_attempts is not None and attempt >= max_attempts:
                raise PollTimeoutError(f"Generation {job_id} not completed after {attempt} attempts")

            await self._sleep(interval_ms / 1000)
