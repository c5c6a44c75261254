"""
Centralized application settings.

The configuration is shared across the API server, the CLI, and the import
pipeline. Values come from ``REPOIMPORT_*`` environment variables, optionally
seeded from a grouped TOML file.
"""
from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Project-wide settings loaded from env or .env files."""

    model_config = SettingsConfigDict(
        env_prefix="REPOIMPORT_",
        env_nested_delimiter="__",
        extra="allow",
    )

    workspace_root: Path = Path("./workspace")
    github_api_base: str = "https://api.github.com"
    github_archive_base: str = "https://github.com"
    github_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("REPOIMPORT_GITHUB_TOKEN", "GITHUB_TOKEN", "github_token"),
    )
    user_agent: str = "Kabada-GitHub-Import/1.0"
    request_timeout: float = 30.0
    max_redirects: int = 5
    max_repo_size_mb: int = 100
    max_file_bytes: int = 10 * 1024 * 1024
    max_file_count: int = 500
    upload_batch_size: int = 10
    rate_limit_max: int = 5
    rate_limit_window_seconds: float = 60.0
    rate_limit_sweep_seconds: float = 300.0
    public_base_url: str = "http://localhost:8000"
    content_folder: str = "kabada-uploads"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_key: Optional[str] = None
    telemetry_enabled: bool = True
    trust_forwarded_for: bool = False

    @property
    def max_repo_size_bytes(self) -> int:
        return self.max_repo_size_mb * 1024 * 1024


_CONFIG_ENV_VAR = "REPOIMPORT_CONFIG_PATH"
_DEFAULT_CONFIG_FILE = Path("repoimport_settings.toml")


def _load_toml_config() -> Dict[str, Any]:
    """Load configuration from the primary TOML file on disk."""
    candidates: List[Path] = []
    config_override = os.getenv(_CONFIG_ENV_VAR)
    if config_override:
        candidates.append(Path(config_override))
    candidates.append(_DEFAULT_CONFIG_FILE)

    for candidate in candidates:
        if candidate.is_file():
            with candidate.open("rb") as handle:
                return tomllib.load(handle)
    return {}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _flatten_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Translate grouped TOML sections into AppSettings keyword arguments."""
    data: Dict[str, Any] = {}

    workspace = raw.get("workspace", {})
    if "root" in workspace:
        data["workspace_root"] = workspace["root"]

    github = raw.get("github", {})
    if "api_base" in github:
        data["github_api_base"] = github["api_base"]
    if "archive_base" in github:
        data["github_archive_base"] = github["archive_base"]
    if "token" in github:
        data["github_token"] = _blank_to_none(github["token"])
    if "user_agent" in github:
        data["user_agent"] = github["user_agent"]
    if "request_timeout" in github:
        data["request_timeout"] = float(github["request_timeout"])
    if "max_redirects" in github:
        data["max_redirects"] = int(github["max_redirects"])

    limits = raw.get("limits", {})
    if "max_repo_size_mb" in limits:
        data["max_repo_size_mb"] = int(limits["max_repo_size_mb"])
    if "max_file_bytes" in limits:
        data["max_file_bytes"] = int(limits["max_file_bytes"])
    if "max_file_count" in limits:
        data["max_file_count"] = int(limits["max_file_count"])
    if "upload_batch_size" in limits:
        data["upload_batch_size"] = int(limits["upload_batch_size"])

    rate_limit = raw.get("rate_limit", {})
    if "max" in rate_limit:
        data["rate_limit_max"] = int(rate_limit["max"])
    if "window_seconds" in rate_limit:
        data["rate_limit_window_seconds"] = float(rate_limit["window_seconds"])
    if "sweep_seconds" in rate_limit:
        data["rate_limit_sweep_seconds"] = float(rate_limit["sweep_seconds"])

    storage = raw.get("storage", {})
    if "public_base_url" in storage:
        data["public_base_url"] = storage["public_base_url"]
    if "folder" in storage:
        data["content_folder"] = storage["folder"]

    api_section = raw.get("api", {})
    if api_section:
        if "host" in api_section:
            data["api_host"] = api_section["host"]
        if "port" in api_section:
            data["api_port"] = int(api_section["port"])
        if "trust_forwarded_for" in api_section:
            data["trust_forwarded_for"] = bool(api_section["trust_forwarded_for"])

    general = raw.get("general", {})
    if "api_key" in general:
        data["api_key"] = _blank_to_none(general["api_key"])
    if "telemetry_enabled" in general:
        data["telemetry_enabled"] = bool(general["telemetry_enabled"])

    return data


def load_settings() -> AppSettings:
    raw = _load_toml_config()
    flattened = _flatten_config(raw)
    return AppSettings(**flattened)


settings = load_settings()
