"""Service configuration utilities."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, ClassVar

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

LOGGER = logging.getLogger(__name__)

DEFAULT_THEME_KEYWORDS: tuple[str, ...] = (
    "home",
    "dashboard",
    "profile",
    "settings",
    "login",
    "register",
    "about",
    "contact",
    "feed",
    "explore",
)


def _default_data_dir() -> Path:
    """Return the default directory for ledger data."""

    return Path.cwd() / "designlens_data"


class ServiceSettings(BaseSettings):
    """Runtime configuration for the FastAPI services."""

    ENV_PREFIX: ClassVar[str] = "DESIGNLENS_"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding designs, versions, evaluations, and job progress.",
    )
    max_request_body_bytes: int = Field(
        default=512 * 1024,
        ge=16 * 1024,
        description="Maximum allowed size in bytes for incoming request bodies.",
    )
    figma_api_base: str = Field(
        default="https://api.figma.com",
        description="Base URL of the design document API.",
    )
    figma_access_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DESIGNLENS_FIGMA_ACCESS_TOKEN", "FIGMA_ACCESS_TOKEN"),
        description="Personal access token sent with design document requests.",
    )
    figma_image_scale: float = Field(
        default=2.0,
        gt=0.0,
        le=4.0,
        description="Render scale requested for frame snapshots sent to the critique model.",
    )
    design_source_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        description="HTTP timeout for design document requests.",
    )
    placeholder_image_url: str = Field(
        default="https://placehold.co/600x400?text=Preview+unavailable",
        description="Image reference used when a frame snapshot cannot be rendered.",
    )
    parse_cache_ttl_seconds: float = Field(
        default=300.0,
        ge=0.0,
        description="Seconds a parsed design preview stays cached.",
    )
    critique_api_base: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible chat completions API.",
    )
    critique_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DESIGNLENS_CRITIQUE_API_KEY", "OPENAI_API_KEY"),
        description="Bearer key for the critique model API.",
    )
    critique_model: str = Field(
        default="gpt-4o-mini",
        min_length=1,
        description="Model name used for frame critiques.",
    )
    critique_temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    critique_timeout_seconds: float = Field(
        default=90.0,
        gt=0.0,
        description="Per-frame bound on a single critique model call.",
    )
    detector_max_workers: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Upper bound on parallel button detection workers.",
    )
    theme_keywords: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_THEME_KEYWORDS),
        description="Keywords marking a frame as a theme-relevant screen.",
    )
    log_level: str = Field(default="INFO")

    @field_validator("data_dir")
    @classmethod
    def _ensure_data_dir(cls, value: Path) -> Path:
        """Create the data directory when it does not exist yet."""

        if value.exists() and not value.is_dir():
            raise ValueError(f"Data directory is not a directory: {value}")
        value.mkdir(parents=True, exist_ok=True)
        return value

    @field_validator("theme_keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split(",")
        if isinstance(value, (list, tuple, set, frozenset)):
            cleaned = [str(item).strip().lower() for item in value]
            return [item for item in cleaned if item]
        return value

    @field_validator("figma_api_base", "critique_api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @classmethod
    def from_environment(cls) -> "ServiceSettings":
        """Load settings from environment variables or a `.env` file."""

        return cls()

    @property
    def designs_dir(self) -> Path:
        """Root directory for design, version, and evaluation records."""

        return self.data_dir / "designs"

    @property
    def jobs_dir(self) -> Path:
        """Root directory for evaluation job progress records."""

        return self.data_dir / "jobs"


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    """Return a cached settings instance."""

    return ServiceSettings.from_environment()


__all__: list[str] = ["DEFAULT_THEME_KEYWORDS", "ServiceSettings", "get_settings"]
