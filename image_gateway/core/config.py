import os
import logging
from datetime import datetime
from typing import Optional

import psutil


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logging.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


class Config:
    """Configuration class for the application."""

    def __init__(self):
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        self.log_dir = os.getenv("LOG_DIR", "logs")
        self.log_to_file = _env_bool("LOG_TO_FILE", True)
        self._setup_logging()

        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = _env_int("PORT", 8000)

        # Vision description client
        self.openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY") or None
        self.openai_base_url: Optional[str] = os.getenv("OPENAI_BASE_URL") or None
        self.openai_model = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.describe_language = os.getenv("DESCRIBE_LANGUAGE", "Vietnamese")
        self.describe_timeout_seconds = _env_int("DESCRIBE_TIMEOUT_SECONDS", 30)

        # WebP encoder quality per route
        self.json_webp_quality = _env_int("JSON_WEBP_QUALITY", 80)
        self.file_webp_quality = _env_int("FILE_WEBP_QUALITY", 50)

        self.max_file_size_mb = _env_int("MAX_FILE_SIZE_MB", 50)
        self.max_transcode_workers = _env_int(
            "MAX_TRANSCODE_WORKERS", max(1, (psutil.cpu_count() or 2) - 1)
        )
        self.request_timeout_seconds = _env_int("REQUEST_TIMEOUT_SECONDS", 30)
        self.convert_timeout_seconds = _env_int("CONVERT_TIMEOUT_SECONDS", 60)
        self.cancel_on_disconnect = _env_bool("CANCEL_ON_DISCONNECT", True)
        self.memory_threshold_mb = _env_int("MEMORY_THRESHOLD_MB", 800)

        self._validate()

        logging.info(
            f"Config initialized: model={self.openai_model}, "
            f"webp_quality(json={self.json_webp_quality}, file={self.file_webp_quality}), "
            f"workers={self.max_transcode_workers}, max_file_size={self.max_file_size_mb}MB, "
            f"api_key={'set' if self.openai_api_key else 'missing'}"
        )

    @property
    def max_file_size_bytes(self) -> Optional[int]:
        if self.max_file_size_mb <= 0:
            return None
        return self.max_file_size_mb * 1024 * 1024

    def _validate(self):
        """Clamp settings into the ranges the encoder and pool accept."""
        for name in ("json_webp_quality", "file_webp_quality"):
            value = getattr(self, name)
            clamped = _clamp(value, 1, 100)
            if clamped != value:
                logging.warning(f"{name}={value} is outside 1-100, clamped to {clamped}")
                setattr(self, name, clamped)

        if self.max_transcode_workers < 1:
            self.max_transcode_workers = 1
        if self.describe_timeout_seconds < 1:
            self.describe_timeout_seconds = 1
        if self.request_timeout_seconds < 1:
            self.request_timeout_seconds = 1
        if self.convert_timeout_seconds < 1:
            self.convert_timeout_seconds = 1

    def _get_log_file_path(self) -> str:
        """Get the path for the log file."""
        os.makedirs(self.log_dir, exist_ok=True)
        return os.path.join(self.log_dir, f"app_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log")

    def _setup_logging(self):
        """Set up logging configuration."""
        # basicConfig is a no-op once the root logger has handlers
        if logging.getLogger().handlers:
            return

        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.log_to_file:
            handlers.append(logging.FileHandler(self._get_log_file_path()))
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format='%(asctime)s - %(levelname)s - %(message)s',
            handlers=handlers,
        )
