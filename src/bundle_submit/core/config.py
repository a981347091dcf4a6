"""Core configuration.

Why here:
- Centralizes environment variables (pydantic-settings) without polluting the CLI.
- Lets adapters (HTTP transport) and services read config consistently.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from bundle_submit.core.domain.enums import SubmissionMode


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "fhir-bundle-submit"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "fhir-bundle-submit"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "fhir-bundle-submit"
    return Path.home() / ".config" / "fhir-bundle-submit"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if key:
            data[key] = value.strip().strip('"').strip("'")
    return data


def write_user_env_vars(values: dict[str, str | None], env_path: Path | None = None) -> Path:
    """Write/update variables in the user-wide .env; None values are skipped."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# fhir-bundle-submit user config (.env)"]
    for key in sorted(existing):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Central application configuration.

    Why pydantic-settings:
    - Typing + validation at the edge (env vars) without leaking into the Core.
    - A single configuration contract for CLI, services and adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="FHIR_SUBMIT_",
        extra="ignore",
        case_sensitive=False,
        # Project first (dev), then the user-wide config.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    server_url: str | None = Field(
        default=None,
        description="Base URL of the FHIR server (must be absolute).",
    )
    bearer_token: str | None = Field(
        default=None,
        description="Optional bearer token sent as Authorization header on every call.",
    )

    http_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout per request (seconds).",
    )
    user_agent: str = Field(
        default="fhir-bundle-submit/0.1",
        min_length=1,
        description="User-Agent sent to the FHIR server.",
    )

    max_concurrency: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Maximum number of in-flight submissions per bundle.",
    )
    max_waiters: int | None = Field(
        default=None,
        ge=1,
        description="Optional bound on submissions parked waiting for a slot.",
    )
    throttle_backoff_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Fixed delay before the single retry of a throttled submission.",
    )

    default_mode: SubmissionMode = Field(
        default=SubmissionMode.SPLIT,
        description="Submission mode used when the CLI flag is omitted.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Logging level for the application loggers.",
    )
