"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str | None = None

    # Queue backend (in-process queues when unset)
    redis_url: str | None = None

    # Text generation
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o-mini"
    script_max_tokens: int = 4000

    # Speech synthesis
    elevenlabs_api_key: SecretStr | None = None
    elevenlabs_voice_id: str = ""
    elevenlabs_model_id: str = "eleven_multilingual_v2"
    elevenlabs_base_url: str = "https://api.elevenlabs.io"
    tts_timeout_seconds: float = 120.0
    tts_max_chars: int = 4500

    # Media transcoding
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # Filesystem layout
    work_root: str = "temp"
    audio_storage_root: str = "temp-audio"
    uploads_root: str = "uploads"
    audio_file_name: str = "final.mp3"

    # Segmentation
    paragraph_chunk_max_chars: int = 2000
    min_content_chars: int = 10

    # Stage concurrency ceilings
    content_concurrency: int = 5
    script_concurrency: int = 3
    audio_concurrency: int = 2

    # Job retry policy
    job_attempts: int = 3
    job_backoff_seconds: float = 2.0
    job_lease_seconds: float = 30.0
    completed_job_retention_seconds: int = 24 * 3600
    completed_job_retention_count: int = 100
    dead_job_retention_seconds: int = 7 * 24 * 3600

    # Progress stream
    progress_poll_interval_seconds: float = 5.0

    # Cleanup sweeper
    cleanup_max_age_hours: float = 24.0
    cleanup_interval_seconds: float = 3600.0

    # Run stage workers inside the API process (unset: only when REDIS_URL is unset)
    run_workers_in_api: bool | None = None

    log_level: str = "INFO"

    @property
    def workers_in_api(self) -> bool:
        if self.run_workers_in_api is None:
            return not self.redis_url
        return self.run_workers_in_api


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
