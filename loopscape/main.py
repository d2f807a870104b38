import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from loopscape.config import settings
from loopscape.models.schemas import CurrentVideoResponse, EngineStatus
from loopscape.services.background_engine import BackgroundEngine
from loopscape.services.luma_service import LumaService
from loopscape.services.poller import GenerationPoller
from loopscape.services.prompt_service import PromptService
from loopscape.services.scheduler import RefreshScheduler
from loopscape.services.state import StatePublisher

VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize services
if settings.PROMPT_ENGINE == "anthropic":
    prompt_service = PromptService(
        settings.ANTHROPIC_API_KEY,
        engine="anthropic",
        model=settings.ANTHROPIC_MODEL
    )
else:
    prompt_service = PromptService(
        settings.OPENAI_API_KEY,
        engine="openai",
        model=settings.OPENAI_MODEL,
        api_url=settings.OPENAI_API_URL
    )
luma_service = LumaService(settings.LUMA_AI_API_KEY, settings.LUMA_API_URL, settings.LUMA_MODEL)
poller = GenerationPoller(
    luma_service,
    interval_ms=settings.POLL_INTERVAL_MS,
    max_attempts=settings.MAX_POLL_ATTEMPTS,
    abort_on_failed=settings.ABORT_ON_FAILED
)
publisher = StatePublisher()
engine = BackgroundEngine(
    prompt_service,
    luma_service,
    poller,
    publisher,
    seed_image_url=settings.SEED_IMAGE_URL,
    default_prompt=settings.DEFAULT_PROMPT,
    interpolation_prompt=settings.INTERPOLATION_PROMPT
)
scheduler = RefreshScheduler(engine, interval_ms=settings.REFRESH_INTERVAL_MS)


@asynccontextmanager
async def lifespan(application: FastAPI):
    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.warning("SCHEDULER_ENABLED is off, background will not be generated")
    yield
    await scheduler.stop()


app = FastAPI(
    title="Loopscape",
    description="Ever-evolving ambient background video",
    version=VERSION,
    lifespan=lifespan
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": VERSION}


@app.get("/api/current-video", response_model=CurrentVideoResponse)
async def current_video():
    """
    Return the URL of the background video to play.

    The frontend polls this; 503 means no video has been generated yet.
    """
    state = publisher.current()
    if state is None:
        return JSONResponse(status_code=503, content={"error": "Video not ready yet"})
    return CurrentVideoResponse(video_url=state.active_video_url)


@app.get("/api/background/status", response_model=EngineStatus)
async def background_status():
    return engine.status()


# Mounted last so the API routes above take precedence over static files
if settings.STATIC_DIR.exists():
    app.mount("/", StaticFiles(directory=str(settings.STATIC_DIR), html=True), name="static")


def run():
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
