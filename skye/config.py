"""Simplified configuration management."""

import os
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Optional

from pydantic import BaseModel, Field


def _load_env_file() -> None:
    """Load .env from root directory if present."""
    env_path = Path(__file__).parent.parent / ".env"
    if not env_path.is_file():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped and not stripped.startswith("#") and "=" in stripped:
                key, value = stripped.split("=", 1)
                key, value = key.strip(), value.strip().strip("'\"")
                if key and value and key not in os.environ:
                    os.environ[key] = value
    except OSError:
        pass


_load_env_file()


DEFAULT_APP_NAME = "Skye Server"
DEFAULT_APP_VERSION = "0.4.0"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _env_float(name: str, fallback: float) -> float:
    try:
        return float(os.getenv(name, str(fallback)))
    except (TypeError, ValueError):
        return fallback


def _get_port() -> int:
    """Get server port, checking the platform's PORT first, then SKYE_PORT."""
    port = os.getenv("PORT") or os.getenv("SKYE_PORT")
    if port:
        try:
            return int(port)
        except ValueError:
            pass
    return 8001


def parse_allowed_ids(raw: Optional[str]) -> FrozenSet[int]:
    """Parse a comma-separated list of chat ids, skipping anything that is not an integer."""
    allowed = set()
    for item in (raw or "").split(","):
        candidate = item.strip()
        if not candidate:
            continue
        try:
            allowed.add(int(candidate))
        except ValueError:
            continue
    return frozenset(allowed)


def _get_data_dir() -> Path:
    raw = os.getenv("SKYE_DATA_DIR")
    return Path(raw) if raw else DEFAULT_DATA_DIR


class Settings(BaseModel):
    """Application settings with lightweight env fallbacks."""

    # App metadata
    app_name: str = Field(default=DEFAULT_APP_NAME)
    app_version: str = Field(default=DEFAULT_APP_VERSION)

    # Server runtime
    server_host: str = Field(default=os.getenv("SKYE_HOST", "0.0.0.0"))
    server_port: int = Field(default_factory=_get_port)
    data_dir: Path = Field(default_factory=_get_data_dir)
    timezone: str = Field(default=os.getenv("SKYE_TIMEZONE", "UTC"))
    log_level: str = Field(default=os.getenv("SKYE_LOG_LEVEL", "INFO"))

    # Telegram transport
    bot_token: str = Field(default=os.getenv("BOT_TOKEN", ""))
    bot_username: str = Field(default=os.getenv("BOT_USERNAME", ""))
    telegram_webhook_secret: Optional[str] = Field(default=os.getenv("TELEGRAM_WEBHOOK_SECRET"))
    telegram_webhook_url: Optional[str] = Field(default=os.getenv("TELEGRAM_WEBHOOK_URL"))

    # Global model credentials
    openai_key: Optional[str] = Field(default=os.getenv("OPENAI_KEY"))
    base_url: str = Field(default=os.getenv("BASE_URL", DEFAULT_BASE_URL))
    model: str = Field(default=os.getenv("MODEL", "openai/gpt-oss-120b"))
    image_model: str = Field(default=os.getenv("IMAGE_MODEL", "google/gemini-2.5-flash-image-preview"))
    max_completion_tokens: int = Field(default_factory=lambda: _env_int("MAX_COMPLETION_TOKENS", 500))
    allowed_ids: FrozenSet[int] = Field(default_factory=lambda: parse_allowed_ids(os.getenv("ALLOWED_IDS")))
    request_timeout: float = Field(default=60.0)

    # Streaming replies
    stream_responses: bool = Field(default=os.getenv("STREAM_RESPONSES", "0") == "1")
    stream_edit_interval: float = Field(default_factory=lambda: _env_float("STREAM_EDIT_INTERVAL", 1.5))

    # Conversation controls
    chat_log_max_buffer: int = Field(default=50)
    chat_log_recent_count: int = Field(default=20)
    summarize_interval: int = Field(default=10)
    context_window: int = Field(default=20)
    rolling_history_limit: int = Field(default=40)
    rate_limit_cooldown: float = Field(default=2.0)
    max_tool_rounds: int = Field(default=5)

    @property
    def telegram_enabled(self) -> bool:
        """Flag indicating a bot token is configured."""
        return bool(self.bot_token.strip())

    @property
    def memories_path(self) -> Path:
        return self.data_dir / "memories.json"

    @property
    def chat_configs_path(self) -> Path:
        return self.data_dir / "chat-configs.json"

    @property
    def chat_summaries_path(self) -> Path:
        return self.data_dir / "chat-summaries.json"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
