"""Configuration management."""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

POLL_STRATEGY_ENV_PREFIX = "RENDER_POLL_STRATEGY_"
PROJECT_ENV_KEYS = ("GOOGLE_CLOUD_PROJECT", "GCLOUD_PROJECT", "GOOGLE_PROJECT_ID", "GCP_PROJECT")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def project_from_env() -> str | None:
    """First non-empty Google Cloud project variable."""
    for key in PROJECT_ENV_KEYS:
        value = os.getenv(key, "").strip()
        if value:
            return value
    return None


def _env_poll_strategies() -> dict[str, str]:
    strategies: dict[str, str] = {}
    for key, value in os.environ.items():
        if key.startswith(POLL_STRATEGY_ENV_PREFIX) and value.strip():
            provider = key[len(POLL_STRATEGY_ENV_PREFIX):].lower()
            strategies[provider] = value.strip().lower()
    return strategies


class Settings(BaseModel):
    """Runtime settings for the video renderer, read from the environment."""

    # Sora
    openai_api_key: str = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", ""),
        description="OpenAI API key for Sora",
    )
    sora_base_url: str = Field(
        default_factory=lambda: os.getenv("SORA_BASE_URL", "https://api.openai.com/v1"),
        description="OpenAI API base URL",
    )
    sora_default_model: str = Field(
        default_factory=lambda: os.getenv("SORA_DEFAULT_MODEL", "sora-2-pro"),
        description="Sora model used when a request does not name one",
    )

    # Veo
    google_cloud_project: str = Field(
        default_factory=lambda: project_from_env() or "",
        description="Google Cloud project ID for Vertex AI",
    )
    google_cloud_location: str = Field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1"),
        description="Vertex AI region",
    )
    veo_model_id: str = Field(
        default_factory=lambda: os.getenv("VEO_MODEL_ID", "veo-3.1-generate-preview"),
        description="Veo model identifier",
    )
    vertex_access_token: str = Field(
        default_factory=lambda: os.getenv("VERTEX_ACCESS_TOKEN", ""),
        description="Static Vertex bearer token; ADC is used when empty",
    )

    # Polling
    poll_interval_seconds: float = Field(
        default_factory=lambda: _env_float("RENDER_POLL_INTERVAL_SECONDS", 2.0), gt=0
    )
    poll_timeout_seconds: float = Field(
        default_factory=lambda: _env_float("RENDER_POLL_TIMEOUT_SECONDS", 600.0), gt=0
    )
    poll_max_interval_seconds: float = Field(
        default_factory=lambda: _env_float("RENDER_POLL_MAX_INTERVAL_SECONDS", 30.0), gt=0
    )
    poll_strategies: dict[str, str] = Field(
        default_factory=_env_poll_strategies,
        description="Per-provider poll strategy names (constant, exponential)",
    )

    # Output and persistence
    output_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("VIDEO_RENDER_OUTPUT_DIR", "./tmp/video-renders")),
        description="Local directory for rendered videos, served under /video-assets",
    )
    public_base_url: str = Field(
        default_factory=lambda: os.getenv("VIDEO_RENDER_PUBLIC_BASE_URL", ""),
        description="Origin used to turn relative video URLs into absolute ones",
    )
    storage_bucket: str = Field(
        default_factory=lambda: os.getenv("VIDEO_STORAGE_BUCKET", ""),
        description="GCS bucket for persisted videos; local disk when empty",
    )
    storage_base_url: str = Field(
        default_factory=lambda: os.getenv("VIDEO_STORAGE_BASE_URL", ""),
        description="Public base URL of the storage bucket",
    )
    storage_make_public: bool = Field(
        default_factory=lambda: _env_flag("VIDEO_STORAGE_MAKE_PUBLIC")
    )
    persist_download_timeout_seconds: float = Field(
        default_factory=lambda: _env_float("VIDEO_PERSIST_DOWNLOAD_TIMEOUT_SECONDS", 300.0), gt=0
    )
    traffic_log_path: Path = Field(
        default_factory=lambda: Path(os.getenv("LLM_TRAFFIC_LOG_PATH", "./logs/llm_traffic_audit.jsonl")),
        description="JSONL audit log of provider requests and responses",
    )

    # Defaults for the render service
    default_provider: str = Field(
        default_factory=lambda: os.getenv("VIDEO_DEFAULT_PROVIDER", "veo").strip().lower() or "veo"
    )
    video_model: str = Field(
        default_factory=lambda: os.getenv("VIDEO_MODEL", ""),
        description="Model name reported in render metrics",
    )

    def poll_strategy_for(self, provider: str) -> str | None:
        return self.poll_strategies.get(provider.lower())


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once."""
    return Settings()
