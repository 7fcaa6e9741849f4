# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.settings",
#   "purpose": "Pydantic run configuration and environment-driven ambient settings.",
#   "sections": [
#     {"id": "enginesettings", "name": "EngineSettings", "anchor": "class-enginesettings", "kind": "class"},
#     {"id": "httpsettings", "name": "HttpSettings", "anchor": "class-httpsettings", "kind": "class"},
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "settings", "name": "Settings", "anchor": "class-settings", "kind": "class"},
#     {"id": "pipelineconfig", "name": "PipelineConfig", "anchor": "class-pipelineconfig", "kind": "class"},
#     {"id": "get-settings", "name": "get_settings", "anchor": "function-get-settings", "kind": "function"},
#     {"id": "build-pipeline-config", "name": "build_pipeline_config", "anchor": "function-build-pipeline-config", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the snapshot changelog pipeline.

Two layers are kept apart:

* :class:`PipelineConfig` captures the inputs of a single ``process`` run
  (versions, directories, LLM and webhook endpoints, dry-run flag).  The CLI
  builds it from flags and their environment fallbacks.
* :class:`Settings` holds ambient knobs that rarely change between runs (the
  engine command templates, HTTP retry policy, log destinations).  It is read
  from ``SNAPLOG_*`` environment variables via ``pydantic-settings`` using
  ``__`` as the nested delimiter, e.g. ``SNAPLOG_ENGINE__STRICT=true``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "DEFAULT_CHANGELOG",
    "DEFAULT_LLM_MODEL",
    "EngineSettings",
    "HttpSettings",
    "LoggingSettings",
    "PipelineConfig",
    "Settings",
    "build_pipeline_config",
    "get_settings",
    "reset_settings",
]

DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_CHANGELOG = Path("CHANGELOG.md")


class EngineSettings(BaseModel):
    """Command templates and exit-status policy for the diff/patch engine."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    diff_command: str = Field(
        default="jd -f patch {source} {target}",
        description="Command producing a JSON Patch between {source} and {target}",
    )
    apply_command: str = Field(
        default="jd -p -f patch {patch} {target}",
        description="Command applying {patch} to {target} and printing the result",
    )
    strict: bool = Field(
        default=False,
        description="Raise when the engine exits with a status outside ok_exit_codes",
    )
    ok_exit_codes: Tuple[int, ...] = Field(
        default=(0, 1),
        description="Exit statuses treated as success in strict mode (jd exits 1 on a diff)",
    )
    timeout_sec: Optional[float] = Field(
        default=None,
        description="Optional subprocess timeout in seconds",
    )

    @field_validator("diff_command", "apply_command")
    @classmethod
    def require_command(cls, v: str) -> str:
        """Reject blank command templates."""
        if not v or not v.strip():
            raise ValueError("engine command template must not be empty")
        return v.strip()

    @field_validator("ok_exit_codes", mode="before")
    @classmethod
    def parse_exit_codes(cls, v: Any) -> Any:
        """Accept ``"0,1"`` style strings from the environment."""
        if isinstance(v, str):
            return tuple(int(part) for part in v.replace(" ", "").split(",") if part)
        return v


class HttpSettings(BaseModel):
    """HTTP client configuration shared by the summarizer and notifier."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    timeout_sec: float = Field(default=30.0, gt=0, description="Read timeout (seconds)")
    connect_timeout_sec: float = Field(default=5.0, gt=0, description="Connect timeout (seconds)")
    retry_total: int = Field(default=2, ge=0, description="Retries after the first attempt")
    retry_backoff: float = Field(default=0.5, ge=0, description="Backoff multiplier (seconds)")
    status_forcelist: Tuple[int, ...] = Field(
        default=(429, 500, 502, 503, 504),
        description="Response statuses that trigger a retry",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[Path] = Field(default=None, description="Optional JSON-lines log file")
    max_log_size_mb: int = Field(default=10, ge=1, description="Rotate the log file at this size")
    backup_count: int = Field(default=3, ge=0, description="Rotated log files to keep")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class Settings(BaseSettings):
    """Ambient settings sourced from ``SNAPLOG_*`` environment variables."""

    engine: EngineSettings = Field(default_factory=EngineSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix="SNAPLOG_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


_SETTINGS_LOCK = threading.Lock()
_SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the process-wide :class:`Settings`, loading it on first use."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        if _SETTINGS is None:
            try:
                _SETTINGS = Settings()
            except PydanticValidationError as exc:
                raise ConfigurationError(f"Invalid SNAPLOG_* settings: {exc}") from exc
        return _SETTINGS


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        _SETTINGS = None


class PipelineConfig(BaseModel):
    """Validated inputs for a single ``process`` invocation."""

    model_config = ConfigDict(frozen=True)

    from_version: str
    to_version: str
    base_dir: Path = Path(".")
    output_dir: Optional[Path] = None
    llm_endpoint: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_model: str = DEFAULT_LLM_MODEL
    webhook_url: Optional[str] = None
    webhook_token: Optional[str] = None
    changelog_path: Path = DEFAULT_CHANGELOG
    dry_run: bool = False
    verbose: bool = False

    @field_validator("from_version", "to_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Version labels end up in file names, so keep them path-safe."""
        value = v.strip()
        if not value:
            raise ValueError("version label must not be empty")
        if "/" in value or "\\" in value or value in {".", ".."}:
            raise ValueError(f"version label '{v}' must not contain path separators")
        if value.endswith("-fix"):
            raise ValueError(f"version label '{v}' must not end with '-fix'")
        return value

    @field_validator(
        "llm_endpoint", "llm_api_key", "webhook_url", "webhook_token", mode="before"
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        """Treat empty flags and environment values as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("llm_endpoint", "webhook_url")
    @classmethod
    def validate_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"'{v}' is not an http(s) URL")
        return v

    @field_validator("llm_model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        if not v or not v.strip():
            return DEFAULT_LLM_MODEL
        return v.strip()

    @property
    def resolved_output_dir(self) -> Path:
        """Directory receiving the patch artifacts (defaults to the base dir)."""
        return self.output_dir if self.output_dir is not None else self.base_dir


def build_pipeline_config(values: Mapping[str, Any]) -> PipelineConfig:
    """Validate ``values`` into a :class:`PipelineConfig`.

    Raises:
        ConfigurationError: If any value fails validation.
    """

    try:
        return PipelineConfig(**dict(values))
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigurationError(f"Invalid arguments: {problems}") from exc
