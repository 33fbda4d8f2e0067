"""Configuration management for task-agent."""

import json
import logging
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

# Use tomllib on Python 3.11+, fall back to tomli for 3.10
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w
from filelock import FileLock

from .providers import DEFAULT_PROVIDERS, Provider

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "./task-outputs"

# Config file path
CONFIG_DIR = Path.home() / ".task-agent"
CONFIG_FILE = CONFIG_DIR / "config.toml"

_TRUE_VALUES = ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    """User-editable settings.

    Frozen: edits produce a new value with ``dataclasses.replace`` so a copy
    handed to a background job can never change underneath it.
    """

    workspace_id: str = ""
    project_id: str = ""
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-6"
    output_dir: str = DEFAULT_OUTPUT_DIR
    api_keys: Mapping[str, str] = field(default_factory=dict)
    cli_path: str = ""
    theme: str = "dark"
    debug_logging: bool = False


def _env_key_for(provider_id: str) -> str:
    for p in DEFAULT_PROVIDERS:
        if p.id == provider_id:
            return p.env_key
    return ""


def get_api_key(settings: Settings, provider: Provider | str) -> str:
    """Return the API key for a provider, checking env vars first."""
    if isinstance(provider, Provider):
        provider_id, env_key = provider.id, provider.env_key
    else:
        provider_id, env_key = provider, _env_key_for(provider)
    if env_key:
        value = os.getenv(env_key)
        if value:
            return value
    return settings.api_keys.get(provider_id, "")


def set_api_key(settings: Settings, provider_id: str, key: str) -> Settings:
    """Return settings with an API key stored (or removed when blank)."""
    keys = dict(settings.api_keys)
    if key:
        keys[provider_id] = key
    else:
        keys.pop(provider_id, None)
    return replace(settings, api_keys=keys)


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from parsed file data, ignoring unknown keys."""
    defaults = Settings()
    api_keys = data.get("api_keys")
    if not isinstance(api_keys, dict):
        api_keys = {}
    return Settings(
        workspace_id=str(data.get("workspace_id", defaults.workspace_id)),
        project_id=str(data.get("project_id", defaults.project_id)),
        provider=data.get("provider", defaults.provider),
        model=data.get("model", defaults.model),
        output_dir=data.get("output_dir") or defaults.output_dir,
        api_keys={str(k): str(v) for k, v in api_keys.items() if v},
        cli_path=data.get("cli_path", data.get("asana_cli_path", defaults.cli_path)),
        theme=data.get("theme", defaults.theme),
        debug_logging=bool(data.get("debug_logging", defaults.debug_logging)),
    )


def settings_to_dict(settings: Settings) -> dict[str, Any]:
    data: dict[str, Any] = {
        "workspace_id": settings.workspace_id,
        "project_id": settings.project_id,
        "provider": settings.provider,
        "model": settings.model,
        "output_dir": settings.output_dir,
        "theme": settings.theme,
        "debug_logging": settings.debug_logging,
    }
    if settings.cli_path:
        data["cli_path"] = settings.cli_path
    if settings.api_keys:
        data["api_keys"] = dict(settings.api_keys)
    return data


def apply_env_overrides(settings: Settings) -> Settings:
    """Environment variables (TASK_AGENT_*) override file values."""
    overrides: dict[str, Any] = {}
    for env, attr in (
        ("TASK_AGENT_PROVIDER", "provider"),
        ("TASK_AGENT_MODEL", "model"),
        ("TASK_AGENT_OUTPUT_DIR", "output_dir"),
        ("TASK_AGENT_THEME", "theme"),
        ("TASK_AGENT_WORKSPACE", "workspace_id"),
        ("TASK_AGENT_PROJECT", "project_id"),
    ):
        value = os.getenv(env)
        if value:
            overrides[attr] = value
    debug_env = os.getenv("TASK_AGENT_DEBUG_LOGGING")
    if debug_env is not None:
        overrides["debug_logging"] = debug_env.lower() in _TRUE_VALUES
    return replace(settings, **overrides) if overrides else settings


class SettingsStore:
    """Loads and saves Settings as TOML.

    ``load`` never fails: a missing or unreadable file yields defaults.
    ``save`` raises OSError on failure and leaves in-memory state alone.
    """

    def __init__(self, path: Path = CONFIG_FILE, legacy_path: Path | None = None) -> None:
        self.path = path
        self.legacy_path = legacy_path if legacy_path is not None else path.with_suffix(".json")
        self._lock_file = path.with_name(f"{path.name}.lock")

    def _migrate_json(self) -> None:
        """Migrate legacy JSON config to TOML format."""
        if not self.legacy_path.exists() or self.path.exists():
            return
        try:
            with open(self.legacy_path) as f:
                data = json.load(f)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "wb") as f:
                tomli_w.dump(settings_to_dict(settings_from_dict(data)), f)
            self.legacy_path.unlink()
            logger.info(f"Migrated {self.legacy_path} -> {self.path}")
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to migrate legacy config: {e}")

    def read(self) -> Settings:
        """Read the file without environment overrides."""
        self._migrate_json()
        if not self.path.exists():
            return Settings()
        try:
            with open(self.path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning(f"Could not load config {self.path}: {e}")
            return Settings()
        return settings_from_dict(data)

    def load(self) -> Settings:
        """Load configuration from environment, file, or defaults.

        Priority (highest to lowest):
        1. Environment variables (TASK_AGENT_*)
        2. Config file (~/.task-agent/config.toml)
        3. Hardcoded defaults
        """
        return apply_env_overrides(self.read())

    def save(self, settings: Settings) -> None:
        """Write settings to disk with restricted permissions."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(self._lock_file):
            with open(self.path, "wb") as f:
                tomli_w.dump(settings_to_dict(settings), f)
            os.chmod(self.path, 0o600)
