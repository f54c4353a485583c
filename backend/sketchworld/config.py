"""Application configuration from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    google_api_key: str = ""
    google_cloud_project: str = ""
    google_cloud_location: str = "us-central1"

    sketchworld_env: str = "development"
    sketchworld_log_level: str = "debug"

    # CORS
    cors_origins: list[str] = ["http://localhost:4200"]

    # Model routing
    model_classifier: str = "claude-haiku-4-5-20251001"
    model_imagen: str = "imagen-3.0-fast-generate-001"
    model_gemini_image: str = "gemini-2.0-flash-exp-image-generation"
    model_veo: str = "veo-2.0-generate-001"

    # Media cache
    cache_dir: Path = Path("generated")
    cache_pool_size: int = 3
    thumbnail_size: int = 64

    # Animation pipeline
    frame_count: int = 4
    video_duration_s: float = 5.0
    frame_epsilon_s: float = 0.05
    video_poll_delay_s: float = 10.0
    video_poll_max_attempts: int = 30

    # Game catalog override (types, attributes, verbs, prompts)
    ai_config_path: Path | None = None

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
