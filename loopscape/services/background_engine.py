"""
Background Refresh Engine

Produces the evolving background video:

initialize()     prompt -> generation -> wait -> publish
refresh_cycle()  prompt -> generation -> wait -> interpolate(previous, new)
                 -> wait -> publish

Only one of these runs at a time. A call made while another is in flight is
skipped, not queued. Failures are logged and leave the published state as it
was; the next timer tick simply tries again.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from loopscape.models.schemas import BackgroundState, EngineStatus, GenerationJob
from loopscape.services.errors import MalformedResponseError
from loopscape.services.luma_service import LumaService
from loopscape.services.poller import GenerationPoller
from loopscape.services.prompt_service import PromptService
from loopscape.services.state import StatePublisher

logger = logging.getLogger(__name__)

LAST_ERROR_MAX_CHARS = 200


def summarize_error(error: Exception) -> str:
    """Exception type plus the first line of its message, safe to expose."""
    lines = str(error).splitlines()
    summary = f"{type(error).__name__}: {lines[0]}" if lines else type(error).__name__
    return summary[:LAST_ERROR_MAX_CHARS]


class BackgroundEngine:

    def __init__(
        self,
        prompt_service: PromptService,
        luma_service: LumaService,
        poller: GenerationPoller,
        publisher: StatePublisher,
        seed_image_url: str,
        default_prompt: str,
        interpolation_prompt: str,
    ):
        self.prompt_service = prompt_service
        self.luma_service = luma_service
        self.poller = poller
        self.publisher = publisher
        self.seed_image_url = seed_image_url
        self.default_prompt = default_prompt
        self.interpolation_prompt = interpolation_prompt

        self._cycle_in_progress = False
        self._completed_cycles = 0
        self._failed_cycles = 0
        self._skipped_ticks = 0
        self._last_error: Optional[str] = None
        self._last_refreshed_at: Optional[datetime] = None

    @property
    def busy(self) -> bool:
        return self._cycle_in_progress

    def record_skipped_tick(self):
        self._skipped_ticks += 1
        logger.info(f"Refresh still in progress, skipping tick ({self._skipped_ticks} skipped so far)")

    async def initialize(self) -> bool:
        """Generate and publish the first background. Returns True on success."""
        return await self._run("initial background generation", self._initialize)

    async def refresh_cycle(self) -> bool:
        """
        Generate a new video and publish the transition from the current one.

        Falls back to the initialize procedure if nothing has been published
        yet, since there is no previous video to interpolate from.
        """
        if not self.publisher.is_ready():
            return await self._run("background generation (not initialized yet)", self._initialize)
        return await self._run("background update", self._refresh)

    def status(self) -> EngineStatus:
        state = self.publisher.current()
        return EngineStatus(
            ready=state is not None,
            cycle_in_progress=self._cycle_in_progress,
            completed_cycles=self._completed_cycles,
            failed_cycles=self._failed_cycles,
            skipped_ticks=self._skipped_ticks,
            last_error=self._last_error,
            active_prompt=state.active_prompt if state else None,
            last_refreshed_at=self._last_refreshed_at,
        )

    async def _run(self, name: str, procedure: Callable[[], Awaitable[BackgroundState]]) -> bool:
        if self._cycle_in_progress:
            self.record_skipped_tick()
            return False

        # Set before the first await so a second caller sees it
        self._cycle_in_progress = True
        try:
            new_state = await procedure()
        except Exception as e:
            self._failed_cycles += 1
            self._last_error = summarize_error(e)
            logger.exception(f"Error during {name}: {e}")
            return False
        finally:
            self._cycle_in_progress = False

        self.publisher.commit(new_state)
        self._completed_cycles += 1
        self._last_refreshed_at = datetime.now(timezone.utc)
        return True

    async def _initialize(self) -> BackgroundState:
        prompt = await self.prompt_service.generate_prompt(self.default_prompt)
        logger.info(f"Initial Luma prompt: {prompt}")

        job = await self.luma_service.submit_generation(prompt, self.seed_image_url)
        result = await self.poller.await_completion(job.id)
        video_url = self._result_url(result)
        logger.info(f"Initial video ready: {video_url}")

        return BackgroundState(
            active_video_id=job.id,
            active_video_url=video_url,
            active_prompt=prompt,
        )

    async def _refresh(self) -> BackgroundState:
        # Everything below works off this snapshot, not whatever is current later
        previous = self.publisher.current()

        new_prompt = await self.prompt_service.generate_prompt(previous.active_prompt)
        logger.info(f"New prompt for update: {new_prompt}")

        new_job = await self.luma_service.submit_generation(new_prompt, self.seed_image_url)
        new_result = await self.poller.await_completion(new_job.id)
        logger.info(f"New video generation ready: {self._result_url(new_result)}")

        interp_job = await self.luma_service.submit_interpolation(
            previous.active_video_id,
            new_job.id,
            self.interpolation_prompt
        )
        interp_result = await self.poller.await_completion(interp_job.id)
        video_url = self._result_url(interp_result)
        logger.info(f"Interpolated video ready: {video_url}")

        return BackgroundState(
            active_video_id=interp_job.id,
            active_video_url=video_url,
            active_prompt=new_prompt,
        )

    @staticmethod
    def _result_url(job: GenerationJob) -> str:
        if not job.result_url:
            raise MalformedResponseError(f"Generation {job.id} completed without a video URL")
        return job.result_url
