# fitwright/utils/config.py
from __future__ import annotations

import functools
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# ---------- Enums ----------

class BrowserType(str, Enum):
    chromium = "chromium"
    firefox = "firefox"
    webkit = "webkit"


class ScreenshotFormat(str, Enum):
    png = "png"
    jpeg = "jpeg"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ---------- Settings ----------

class Settings(BaseSettings):
    """
    Central configuration for fitwright.

    Values load in this order of precedence:
      1) Environment variables
      2) .env file in project root
      3) Defaults below

    The session-level values (timeout, stop-on-first-failure, screenshots) only
    seed a new SessionState; script commands may change them afterwards.
    """

    # ---- Browser configuration ----
    HEADLESS: bool = Field(default=True, description="Run the browser headless")
    BROWSER_TYPE: BrowserType = Field(default=BrowserType.chromium, description="Default Playwright browser")
    VIEWPORT_WIDTH: int = Field(default=1366, ge=320, le=7680)
    VIEWPORT_HEIGHT: int = Field(default=768, ge=320, le=4320)
    SLOW_MO: int = Field(default=0, ge=0, description="Slow down actions (ms) for debugging")
    USER_AGENT: Optional[str] = Field(default=None)

    # ---- Wait engine ----
    TIMEOUT_SECONDS: int = Field(default=20, ge=0, description="Deadline for every command")
    POLL_INTERVAL_MS: int = Field(default=500, ge=0, description="Pause between attempts")
    ATTEMPT_TIMEOUT_MS: int = Field(default=1000, ge=0, description="Playwright timeout for a single attempt")

    # ---- Failure policy ----
    STOP_ON_FIRST_FAILURE: bool = Field(default=False)
    TAKE_SCREENSHOT_ON_FAILURE: bool = Field(default=True)

    # ---- Screenshots ----
    SCREENSHOT_FORMAT: ScreenshotFormat = Field(default=ScreenshotFormat.png)
    SCREENSHOT_QUALITY: int = Field(default=90, ge=1, le=100)
    FULL_PAGE_SCREENSHOT: bool = Field(default=False, description="Capture the whole page, not only the viewport")

    # ---- Scripts ----
    SCRIPTS_DIR: Path = Field(default=Path("./scripts"))
    OUTPUT_DIR: Path = Field(default=Path("./runs"))

    # ---- Logging ----
    LOG_LEVEL: LogLevel = Field(default=LogLevel.INFO)
    LOG_TO_FILE: bool = Field(default=False)
    LOG_FILE: Path = Field(default=Path("./fitwright.log"))
    COLORIZED_OUTPUT: bool = Field(default=True)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("SCRIPTS_DIR", "OUTPUT_DIR", "LOG_FILE", mode="before")
    @classmethod
    def _coerce_to_path(cls, v):
        if isinstance(v, Path):
            return v
        return Path(str(v)) if v is not None else v

    @field_validator("SCRIPTS_DIR", "OUTPUT_DIR", "LOG_FILE", mode="after")
    @classmethod
    def _absolutize(cls, v: Path, info):
        return v if v.is_absolute() else Path.cwd() / v

    @field_validator("VIEWPORT_WIDTH", "VIEWPORT_HEIGHT")
    @classmethod
    def _viewport_bounds(cls, val: int):
        return max(320, min(val, 10000))

    # Convenience: Playwright launch options dict
    def playwright_launch_kwargs(self) -> dict:
        return {
            "headless": self.HEADLESS,
            "slow_mo": self.SLOW_MO,
        }

    # Convenience: Playwright new_context kwargs
    def playwright_context_kwargs(self) -> dict:
        ctx = {"viewport": {"width": self.VIEWPORT_WIDTH, "height": self.VIEWPORT_HEIGHT}}
        if self.USER_AGENT:
            ctx["user_agent"] = self.USER_AGENT
        return ctx


# --------- Public accessor (memoized) ---------

@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache settings once per process.
    Call `get_settings.cache_clear()` if you need to reload after changing env.
    """
    return Settings()
