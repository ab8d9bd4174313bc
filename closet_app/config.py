"""Configuration helpers for the Smart Closet app."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_TEXT_MODEL = "gemini-3-flash-preview"
DEFAULT_IMAGE_MODEL = "gemini-2.5-flash-image"
DEFAULT_VIDEO_MODEL = "veo-3.1-fast-generate-preview"
STORAGE_BACKENDS = ("sqlite", "json", "memory")


@dataclass
class ClosetConfig:
    """Configuration values for the closet app.

    Defaults describe a local run: SQLite storage under ``data/`` and the
    enrichment throttle used by the product (poll every 3 seconds, at least
    5 seconds between background-removal calls).
    """

    api_key: Optional[str] = None
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    video_model: str = DEFAULT_VIDEO_MODEL
    storage_backend: str = "sqlite"
    storage_path: Optional[str] = None
    storage_quota_bytes: Optional[int] = None
    queue_poll_seconds: float = 3.0
    enrichment_cooldown_seconds: float = 5.0
    ai_retries: int = 2
    ai_retry_delay_seconds: float = 1.5
    environment: str | None = None

    def __post_init__(self) -> None:
        self.storage_backend = self.storage_backend.lower()
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unsupported storage backend '{self.storage_backend}'. Allowed: {STORAGE_BACKENDS}"
            )

    @classmethod
    def from_env(cls) -> "ClosetConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that the API key
        can be injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("CLOSET_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        api_key = get_value("google_api_key") or get_value("gemini_api_key")
        quota = get_value("storage_quota_bytes")

        return cls(
            api_key=api_key,
            text_model=str(get_value("text_model", DEFAULT_TEXT_MODEL)),
            image_model=str(get_value("image_model", DEFAULT_IMAGE_MODEL)),
            video_model=str(get_value("video_model", DEFAULT_VIDEO_MODEL)),
            storage_backend=str(get_value("storage_backend", "sqlite")),
            storage_path=get_value("storage_path"),
            storage_quota_bytes=int(quota) if quota else None,
            queue_poll_seconds=float(get_value("queue_poll_seconds", "3.0")),
            enrichment_cooldown_seconds=float(get_value("enrichment_cooldown_seconds", "5.0")),
            ai_retries=int(get_value("ai_retries", "2")),
            ai_retry_delay_seconds=float(get_value("ai_retry_delay_seconds", "1.5")),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a flat ``key: value`` YAML file."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
