"""
================================================================================
WR TACTICIAN — CONFIGURATION
================================================================================
All tunables in one place, read from the environment (and an optional .env
file next to main.py). The API credential is required: building the model
client without it fails immediately.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from schemas.errors import ConfigError

logger = logging.getLogger("wr_tactician.config")

CAPTURE_MODES = ("auto", "camera", "display")


def load_env_file(path: Path) -> int:
    """Load KEY=VALUE lines into os.environ without overriding existing keys."""
    if not path.exists():
        return 0
    loaded = 0
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            key, _, value = line.partition("=")
            key = key.strip()
            if key not in os.environ:
                os.environ[key] = value.strip().strip('"').strip("'")
                loaded += 1
    return loaded


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CompanionConfig:
    """Configuration for the companion service and the live sync loop."""
    # API
    anthropic_api_key: str = ""
    vision_model: str = "claude-sonnet-4-20250514"      # Screenshot recognition
    coaching_model: str = "claude-haiku-4-5-20251001"    # Matchup analysis
    request_timeout: float = 30.0
    max_tokens: int = 2048

    # Capture
    capture_mode: str = "auto"            # auto / camera / display
    rear_camera_index: int = 1            # 0 is the default (front) camera
    all_screens: bool = False
    jpeg_quality: int = 80

    # Live sync timing
    warmup_delay: float = 1.0             # Let the stream settle before the first cycle
    sync_interval: float = 15.0           # Seconds between recognition cycles

    # Manual upload merge policy
    upload_filters_sentinels: bool = True

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    def __post_init__(self):
        if self.capture_mode not in CAPTURE_MODES:
            raise ConfigError(
                f"capture_mode must be one of {CAPTURE_MODES}, got {self.capture_mode!r}"
            )
        if not 1 <= self.jpeg_quality <= 95:
            raise ConfigError(f"jpeg_quality out of range: {self.jpeg_quality}")
        if self.sync_interval <= 0 or self.warmup_delay < 0:
            raise ConfigError("sync_interval must be > 0 and warmup_delay >= 0")

    @classmethod
    def from_env(cls) -> "CompanionConfig":
        try:
            return cls(
                anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                vision_model=os.getenv("WR_VISION_MODEL", "claude-sonnet-4-20250514"),
                coaching_model=os.getenv("WR_COACH_MODEL", "claude-haiku-4-5-20251001"),
                request_timeout=float(os.getenv("WR_REQUEST_TIMEOUT", "30")),
                capture_mode=os.getenv("WR_CAPTURE_MODE", "auto").strip().lower(),
                rear_camera_index=int(os.getenv("WR_REAR_CAMERA_INDEX", "1")),
                all_screens=_env_bool("WR_ALL_SCREENS", False),
                jpeg_quality=int(os.getenv("WR_JPEG_QUALITY", "80")),
                warmup_delay=float(os.getenv("WR_WARMUP_DELAY", "1")),
                sync_interval=float(os.getenv("WR_SYNC_INTERVAL", "15")),
                upload_filters_sentinels=_env_bool("WR_UPLOAD_FILTERS_SENTINELS", True),
                host=os.getenv("WR_HOST", "127.0.0.1"),
                port=int(os.getenv("WR_PORT", "8080")),
                log_level=os.getenv("WR_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid environment setting: {e}") from e


def build_llm_client(config: CompanionConfig, client_factory: Optional[type] = None):
    """
    Construct the async Anthropic client.

    Raises ConfigError when no API key is configured. Retries are disabled:
    the live loop's next cycle (or the user's next click) is the retry.
    """
    if not config.anthropic_api_key:
        raise ConfigError("ANTHROPIC_API_KEY is not set")

    if client_factory is None:
        import anthropic
        client_factory = anthropic.AsyncAnthropic

    client = client_factory(
        api_key=config.anthropic_api_key,
        max_retries=0,
        timeout=config.request_timeout,
    )
    logger.info("✅ Anthropic client initialized")
    return client
