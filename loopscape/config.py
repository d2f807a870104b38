from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Prompt generation (text completion service)
    PROMPT_ENGINE: Literal["openai", "anthropic"] = "openai"
    OPENAI_API_KEY: str = ""
    OPENAI_API_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"

    # Luma Dream Machine (video generation + interpolation)
    # Get API key from: https://lumalabs.ai/dream-machine/api
    LUMA_AI_API_KEY: str = ""
    LUMA_API_URL: str = "https://api.lumalabs.ai/dream-machine/v1"
    LUMA_MODEL: str = "ray-2"

    # Background loop
    REFRESH_INTERVAL_MS: int = 20000
    POLL_INTERVAL_MS: int = 5000
    MAX_POLL_ATTEMPTS: Optional[int] = None  # None = poll until completed
    ABORT_ON_FAILED: bool = False
    SEED_IMAGE_URL: str = (
        "https://storage.cdn-luma.com/dream_machine/"
        "7e4fe07f-1dfd-4921-bc97-4bcf5adea39a/video_0_thumb.jpg"
    )
    DEFAULT_PROMPT: str = "A peaceful dynamic nature background"
    INTERPOLATION_PROMPT: str = "Interpolate between current background and new variation"
    SCHEDULER_ENABLED: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Paths
    BASE_DIR: Path = Path(__file__).parent.parent
    STATIC_DIR: Path = BASE_DIR / "public"

    class Config:
        env_file = ".env"


settings = Settings()
