"""Configuration loading from YAML and environment.

Every section is a pydantic-settings model with its own env prefix, so
ZAP_ISSUES_DIR, ZAP_RECENT_CLOSED_MINUTES, ZAP_WATCH_DEBOUNCE_MS and
LOGGING_LEVEL work without any config file. Values from the YAML file win
over the environment.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path(".zap.yaml")


class StoreConfig(BaseSettings):
    """Issues directory and store behavior."""

    model_config = SettingsConfigDict(env_prefix="ZAP_", extra="ignore")

    issues_dir: Path = Field(default=Path(".issues"), description="Directory holding NNN-slug.md issue files")
    recent_closed_minutes: int = Field(
        default=5,
        ge=0,
        description="How long done/closed issues count as recently closed (0 disables)",
    )
    use_git: bool = Field(default=True, description="Use git history and git mv/rm when inside a checkout")


class WatchConfig(BaseSettings):
    """Directory watcher settings."""

    model_config = SettingsConfigDict(env_prefix="ZAP_WATCH_", extra="ignore")

    debounce_ms: int = Field(default=100, ge=1, description="Trailing debounce before a reload signal")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    store: StoreConfig = Field(default_factory=StoreConfig)
    watch: WatchConfig = Field(default_factory=WatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def recent_closed_seconds(self) -> int:
        return self.store.recent_closed_minutes * 60


def _substitute_env(value: Any, env: dict[str, str]) -> Any:
    """Replace ${VAR} and $VAR in strings with values from env."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v, env) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    A missing file is not an error: defaults plus environment are used.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    raw = _substitute_env(raw, dict(os.environ))

    store = StoreConfig(**(raw.get("store") or {}))
    watch = WatchConfig(**(raw.get("watch") or {}))
    logging = LoggingConfig(**(raw.get("logging") or {}))

    # Relative issues_dir is resolved against the config file location
    if not store.issues_dir.is_absolute():
        store.issues_dir = (path.parent / store.issues_dir).resolve()

    return AppConfig(store=store, watch=watch, logging=logging)
