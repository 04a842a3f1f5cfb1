"""Vault application configuration.

Loads settings from two YAML files:
  * vault.settings.yaml: non-secret configuration
  * vault.secrets.yaml: secrets (never committed)

Both files are looked up in the working directory first, then in ./config/.
A handful of environment variables override the YAML values so container
deployments can be configured without files:

  PORT                 server.port
  ACCESS_CODE          secrets.access_code
  VAULT_DATABASE_PATH  storage.database_path
  VAULT_LOG_LEVEL      logging.level
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = "vault.settings.yaml"
SECRETS_FILE  = "vault.secrets.yaml"

DEFAULT_ACCESS_CODE = "Neeku endhuku bro"


class ConfigError(ValueError):
    """Raised when a setting cannot be turned into a usable value."""


def _load_yaml(path: Optional[Path]) -> Dict[str, Any]:
    if path is None or not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def _find_file(name: str) -> Optional[Path]:
    for candidate in (Path(name), Path("config") / name):
        if candidate.exists():
            return candidate
    return None


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host:            str   = "0.0.0.0"
    port:            int   = 3000
    allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    # uvicorn WebSocket keepalive: ping every 25 s, drop after 60 s of silence
    ws_ping_interval: float = 25.0
    ws_ping_timeout:  float = 60.0
    static_dir:      Optional[str] = None


class ChatSettings(BaseModel):
    """Limits applied by the session engine and the message stores."""
    max_message_length:   int = 2000
    max_username_length:  int = 32
    memory_history_size:  int = 50
    durable_history_size: int = 200

    @field_validator(
        "max_message_length",
        "max_username_length",
        "memory_history_size",
        "durable_history_size",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value


class StorageSettings(BaseModel):
    """Durable history storage.

    When ``database_path`` is unset the durable backend is never attempted
    and the bounded in-memory store is used for the process lifetime.
    """
    database_path: Optional[str] = None


class LoggingSettings(BaseModel):
    level: str = "info"


class Secrets(BaseModel):
    access_code: str = DEFAULT_ACCESS_CODE


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    secrets: Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Environment overrides and path resolution
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any]) -> None:
    port = os.environ.get("PORT")
    if port:
        try:
            data.setdefault("server", {})["port"] = int(port)
        except ValueError:
            raise ConfigError(f"PORT must be an integer, got {port!r}") from None
    if os.environ.get("ACCESS_CODE"):
        data.setdefault("secrets", {})["access_code"] = os.environ["ACCESS_CODE"]
    if os.environ.get("VAULT_DATABASE_PATH"):
        data.setdefault("storage", {})["database_path"] = os.environ["VAULT_DATABASE_PATH"]
    if os.environ.get("VAULT_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = os.environ["VAULT_LOG_LEVEL"]


def _resolve_database_path(config: AppConfig, settings_path: Optional[Path]) -> None:
    """Resolve a relative database path against the settings file directory."""
    raw = config.storage.database_path
    if not raw or raw == ":memory:" or settings_path is None:
        return
    path = Path(raw)
    if path.is_absolute():
        return
    config.storage.database_path = str(settings_path.resolve().parent / path)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
) -> AppConfig:
    """Load and merge settings + secrets into a single *AppConfig* object."""
    settings_path = Path(settings_path) if settings_path else _find_file(SETTINGS_FILE)
    secrets_path = Path(secrets_path) if secrets_path else _find_file(SECRETS_FILE)

    data = _load_yaml(settings_path)
    secrets_data = _load_yaml(secrets_path)

    # Merge: secrets live under the "secrets" key in AppConfig
    data["secrets"] = secrets_data
    _apply_env_overrides(data)

    config = AppConfig(**data)
    _resolve_database_path(config, settings_path)

    logger.info(
        "Settings loaded (server=%s:%s, durable_storage=%s)",
        config.server.host,
        config.server.port,
        "configured" if config.storage.database_path else "disabled",
    )
    return config


_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
