"""Pydantic models describing scrapevault runtime configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)


class GlobalConfig(BaseModel):
    """Process-wide controls shared by every acquisition."""

    # Acquisition
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = 30.0
    viewport_size: tuple[int, int] = (1280, 720)
    navigation_timeout_ms: int = 30000
    headless_mode: bool = True
    default_wait_ms: int = 5000

    # Concurrency
    batch_workers: int = 8
    browser_workers: int = 2
    job_drain_timeout: float = 300.0

    # Storage and export
    database_path: Path = Field(default=Path("data/scrapevault.db"))
    outputs_dir: Path = Field(default=Path("data/outputs"))
    export_limit: int = 10000
    preview_length: int = 200

    @field_validator("viewport_size", mode="before")
    @classmethod
    def _coerce_viewport(cls, value: Any) -> tuple[int, int]:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            width, height = int(value[0]), int(value[1])
            if width <= 0 or height <= 0:
                raise ValueError("viewport_size values must be positive")
            return (width, height)
        raise ValueError("viewport_size expects two items [width, height]")

    @field_validator("database_path", "outputs_dir", mode="before")
    @classmethod
    def _coerce_paths(cls, value: Any) -> Path:
        return Path(value)

    @model_validator(mode="after")
    def _validate_limits(self) -> "GlobalConfig":
        if self.batch_workers < 1:
            raise ValueError("batch_workers must be >= 1")
        if self.browser_workers < 1:
            raise ValueError("browser_workers must be >= 1")
        if self.http_timeout <= 0:
            raise ValueError("http_timeout must be > 0")
        if self.navigation_timeout_ms <= 0:
            raise ValueError("navigation_timeout_ms must be > 0")
        if self.default_wait_ms < 0:
            raise ValueError("default_wait_ms must be >= 0")
        if self.export_limit < 1:
            raise ValueError("export_limit must be >= 1")
        if self.preview_length < 0:
            raise ValueError("preview_length must be >= 0")
        return self


__all__ = ["DEFAULT_USER_AGENT", "GlobalConfig"]
