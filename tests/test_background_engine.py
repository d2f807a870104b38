import asyncio

import pytest

from loopscape.models.schemas import BackgroundState, GenerationJob, GenerationStatus
from loopscape.services.background_engine import LAST_ERROR_MAX_CHARS, BackgroundEngine, summarize_error
from loopscape.services.errors import TransportError
from loopscape.services.poller import GenerationPoller
from loopscape.services.state import StatePublisher

SEED_IMAGE = "https://cdn.test/seed.jpg"
INTERP_PROMPT = "Interpolate between current background and new variation"


class EchoPrompts:
    def __init__(self):
        self.calls = []

    async def generate_prompt(self, base_prompt):
        self.calls.append(base_prompt)
        return base_prompt


class FakeLuma:
    """
    Hands out job ids in order; every job completes on its first status check
    with the URL from `urls`. A job listed in `gates` blocks its status check
    until the matching event is set.
    """

    def __init__(self, job_ids, urls, gates=None):
        self.job_ids = list(job_ids)
        self.urls = urls
        self.gates = gates or {}
        self.generations = []
        self.interpolations = []
        self.fail_next_submit = None
        self.reached = {job_id: asyncio.Event() for job_id in self.gates}

    async def submit_generation(self, prompt, source_image_url):
        if self.fail_next_submit:
            error, self.fail_next_submit = self.fail_next_submit, None
            raise error
        self.generations.append((prompt, source_image_url))
        return GenerationJob(id=self.job_ids.pop(0))

    async def submit_interpolation(self, job_id_a, job_id_b, prompt):
        self.interpolations.append((job_id_a, job_id_b, prompt))
        return GenerationJob(id=self.job_ids.pop(0))

    async def fetch_status(self, job_id):
        if job_id in self.gates:
            self.reached[job_id].set()
            await self.gates[job_id].wait()
        return GenerationJob(id=job_id, status=GenerationStatus.COMPLETED, result_url=self.urls.get(job_id))


async def no_sleep(seconds):
    pass


def make_engine(luma, prompts=None, publisher=None):
    return BackgroundEngine(
        prompts or EchoPrompts(),
        luma,
        GenerationPoller(luma, interval_ms=10, sleep=no_sleep),
        publisher or StatePublisher(),
        seed_image_url=SEED_IMAGE,
        default_prompt="Ocean waves at sunset",
        interpolation_prompt=INTERP_PROMPT,
    )


URLS = {
    "A": "http://x/a.mp4",
    "B": "http://x/b.mp4",
    "C": "http://x/c.mp4",
}


@pytest.mark.asyncio
async def test_initialize_then_refresh_end_to_end():
    luma = FakeLuma(["A", "B", "C"], URLS)
    engine = make_engine(luma)

    assert await engine.initialize() is True
    assert engine.publisher.current().active_video_url == "http://x/a.mp4"
    assert luma.generations == [("Ocean waves at sunset", SEED_IMAGE)]

    assert await engine.refresh_cycle() is True

    state = engine.publisher.current()
    assert state == BackgroundState(
        active_video_id="C",
        active_video_url="http://x/c.mp4",
        active_prompt="Ocean waves at sunset",
    )
    assert luma.interpolations == [("A", "B", INTERP_PROMPT)]


@pytest.mark.asyncio
async def test_failed_initialize_leaves_state_unset():
    luma = FakeLuma(["A"], URLS)
    luma.fail_next_submit = TransportError("connection reset")
    engine = make_engine(luma)

    assert await engine.initialize() is False

    assert engine.publisher.current() is None
    status = engine.status()
    assert not status.ready
    assert status.failed_cycles == 1
    assert "connection reset" in status.last_error
    assert not engine.busy


@pytest.mark.asyncio
async def test_failed_refresh_keeps_previous_video():
    luma = FakeLuma(["A", "B"], URLS)
    engine = make_engine(luma)
    await engine.initialize()
    before = engine.publisher.current()

    luma.fail_next_submit = TransportError("HTTP 500")
    assert await engine.refresh_cycle() is False

    assert engine.publisher.current() is before
    assert engine.publisher.current().active_video_url == "http://x/a.mp4"


@pytest.mark.asyncio
async def test_completed_job_without_url_is_not_published():
    luma = FakeLuma(["A", "B", "C"], {"A": "http://x/a.mp4", "B": "http://x/b.mp4"})
    engine = make_engine(luma)
    await engine.initialize()

    assert await engine.refresh_cycle() is False

    assert engine.publisher.current().active_video_id == "A"
    assert "MalformedResponseError" in engine.status().last_error


@pytest.mark.asyncio
async def test_refresh_uses_previous_prompt_as_base():
    class SuffixPrompts(EchoPrompts):
        async def generate_prompt(self, base_prompt):
            self.calls.append(base_prompt)
            return base_prompt + "!"

    prompts = SuffixPrompts()
    engine = make_engine(FakeLuma(["A", "B", "C"], URLS), prompts=prompts)

    await engine.initialize()
    await engine.refresh_cycle()

    assert prompts.calls == ["Ocean waves at sunset", "Ocean waves at sunset!"]
    assert engine.publisher.current().active_prompt == "Ocean waves at sunset!!"


@pytest.mark.asyncio
async def test_refresh_before_initialize_generates_first_video():
    luma = FakeLuma(["A"], URLS)
    engine = make_engine(luma)

    assert await engine.refresh_cycle() is True

    assert engine.publisher.current().active_video_id == "A"
    assert luma.interpolations == []


@pytest.mark.asyncio
async def test_state_is_unchanged_mid_cycle_and_interpolation_uses_it():
    release_b = asyncio.Event()
    luma = FakeLuma(["A", "B", "C"], URLS, gates={"B": release_b})
    engine = make_engine(luma)
    await engine.initialize()
    before = engine.publisher.current()

    cycle = asyncio.create_task(engine.refresh_cycle())
    await luma.reached["B"].wait()

    # Mid-cycle: readers still see the pre-cycle video
    assert engine.busy
    assert engine.publisher.current() == before

    release_b.set()
    assert await cycle is True

    assert luma.interpolations[0][0] == before.active_video_id
    assert engine.publisher.current().active_video_url == "http://x/c.mp4"


@pytest.mark.asyncio
async def test_overlapping_call_is_skipped():
    release_a = asyncio.Event()
    luma = FakeLuma(["A"], URLS, gates={"A": release_a})
    engine = make_engine(luma)

    first = asyncio.create_task(engine.initialize())
    await luma.reached["A"].wait()

    assert await engine.refresh_cycle() is False
    assert engine.status().skipped_ticks == 1

    release_a.set()
    assert await first is True
    assert luma.generations == [("Ocean waves at sunset", SEED_IMAGE)]
    assert engine.status().completed_cycles == 1


@pytest.mark.asyncio
async def test_last_error_is_short_summary():
    luma = FakeLuma(["A"], URLS)
    luma.fail_next_submit = TransportError("POST /generations returned HTTP 500\n" + "body line " * 200)
    engine = make_engine(luma)

    await engine.initialize()

    last_error = engine.status().last_error
    assert last_error == "TransportError: POST /generations returned HTTP 500"
    assert len(last_error) <= LAST_ERROR_MAX_CHARS


def test_summarize_error_truncates_long_messages():
    summary = summarize_error(TransportError("x" * 1000))

    assert summary.startswith("TransportError: xxx")
    assert len(summary) == LAST_ERROR_MAX_CHARS
    assert summarize_error(TransportError()) == "TransportError"
