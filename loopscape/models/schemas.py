from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerationStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Luma reports its own state names; anything else is treated as in-flight
LUMA_STATES = {
    "queued": GenerationStatus.PENDING,
    "pending": GenerationStatus.PENDING,
    "dreaming": GenerationStatus.PROCESSING,
    "processing": GenerationStatus.PROCESSING,
    "completed": GenerationStatus.COMPLETED,
    "failed": GenerationStatus.FAILED,
}


class GenerationJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: GenerationStatus = GenerationStatus.PENDING
    result_url: Optional[str] = Field(
        default=None,
        description="Video URL, only set once the job has completed"
    )
    failure_reason: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == GenerationStatus.COMPLETED


class BackgroundState(BaseModel):
    """The video currently served as the background. Replaced, never edited."""
    model_config = ConfigDict(frozen=True)

    active_video_id: str
    active_video_url: str
    active_prompt: str


class CurrentVideoResponse(BaseModel):
    video_url: str


class EngineStatus(BaseModel):
    ready: bool
    cycle_in_progress: bool
    completed_cycles: int = 0
    failed_cycles: int = 0
    skipped_ticks: int = 0
    last_error: Optional[str] = None
    active_prompt: Optional[str] = None
    last_refreshed_at: Optional[datetime] = None
