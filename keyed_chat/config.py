"""Shared configuration loader for keyed-chat."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .encryption import SUPPORTED_ALGORITHMS


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".keyed-chat.yaml"
DEFAULT_STORAGE_DIR = Path.home() / ".keyed-chat" / "chat_sessions"
SUPPORTED_BACKENDS = ("file", "sqlite")


@dataclass
class ChatConfig:
    """Where and how session logs are stored."""

    storage_dir: Path = DEFAULT_STORAGE_DIR
    backend: str = "file"
    cipher: str = "aes-256-gcm"
    sqlite_path: Path | None = None
    log_level: str = "INFO"

    @property
    def resolved_sqlite_path(self) -> Path:
        return self.sqlite_path or self.storage_dir / "sessions.sqlite"


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'chat' section")
    return loaded


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _choice(raw: Any, allowed: tuple[str, ...], *, name: str) -> str:
    value = str(raw).strip().lower()
    if value not in allowed:
        raise ConfigurationError(f"Invalid {name}: {raw} (expected one of {', '.join(allowed)})")
    return value


def _log_level(raw: Any) -> str:
    level = str(raw).strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"Invalid log level: {raw}")
    return level


def load_chat_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ChatConfig:
    """Load chat configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None
    path = Path(config_path).expanduser() if explicit_path else DEFAULT_CONFIG_PATH

    file_config = _load_config_file(path, required=explicit_path)
    chat_section = file_config.get("chat", {}) or {}
    if not isinstance(chat_section, dict):
        raise ConfigurationError(f"Expected 'chat' to be a mapping in {path}")

    override_map = dict(overrides or {})

    def resolve(name: str) -> Any:
        return _first_value(
            override_map.get(name),
            env_map.get(f"KEYED_CHAT_{name.upper()}") or None,
            chat_section.get(name),
        )

    storage_dir = Path(str(resolve("storage_dir") or DEFAULT_STORAGE_DIR)).expanduser()
    sqlite_raw = resolve("sqlite_path")

    return ChatConfig(
        storage_dir=storage_dir,
        backend=_choice(resolve("backend") or "file", SUPPORTED_BACKENDS, name="backend"),
        cipher=_choice(resolve("cipher") or "aes-256-gcm", SUPPORTED_ALGORITHMS, name="cipher"),
        sqlite_path=Path(str(sqlite_raw)).expanduser() if sqlite_raw else None,
        log_level=_log_level(resolve("log_level") or "INFO"),
    )
