"""Global configuration management for nodecache."""

from __future__ import annotations

import json
import os
from contextlib import contextmanager
from contextvars import ContextVar
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

from .errors import ConfigurationError
from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".nodecache"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "nodecache_config_dir_override",
    default=None,
)
DEFAULT_UPDATE_INTERVAL = 1e9
DEFAULT_SEARCH_LIMIT = 100
ENV_CACHE_DIR = "NODECACHE_CACHE_DIR"


@dataclass
class Config:
    cache_dir: str | None = None
    update_interval: float = DEFAULT_UPDATE_INTERVAL
    search_cols: list[str] = field(default_factory=list)
    tree_cols: list[str] = field(default_factory=list)
    tree: list[str | list[str]] = field(default_factory=list)
    inventory: str | None = None


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def resolve_cache_dir(config: Config) -> Path:
    """Return the directory holding the per-user cache files."""

    env_value = (os.environ.get(ENV_CACHE_DIR) or "").strip()
    if env_value:
        return Path(env_value).expanduser()
    if config.cache_dir:
        return Path(config.cache_dir).expanduser()
    return _resolve_config_dir() / "cache"


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    try:
        raw = json.loads(config_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            Messages.ERROR_CONFIG_INVALID.format(reason=exc)
        ) from exc
    config = Config()
    _apply_config_payload(config, _coerce_config_payload(raw))
    return config


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {}
    if config.cache_dir:
        data["cache_dir"] = config.cache_dir
    data["update_interval"] = config.update_interval
    data["search_cols"] = list(config.search_cols)
    data["tree_cols"] = list(config.tree_cols)
    data["tree"] = [
        entry if isinstance(entry, str) else list(entry) for entry in config.tree
    ]
    if config.inventory:
        data["inventory"] = config.inventory
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else _clone_config(base)
    _apply_config_payload(config, data)
    return config


def update_config(**changes: object) -> Config:
    """Apply keyword updates to the stored config and persist it."""
    config = load_config()
    _apply_config_payload(config, changes)
    save_config(config)
    return config


def _clone_config(config: Config) -> Config:
    return Config(
        cache_dir=config.cache_dir,
        update_interval=config.update_interval,
        search_cols=list(config.search_cols),
        tree_cols=list(config.tree_cols),
        tree=[entry if isinstance(entry, str) else list(entry) for entry in config.tree],
        inventory=config.inventory,
    )


def _coerce_config_payload(payload: str | Mapping[str, object] | object) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                Messages.ERROR_CONFIG_INVALID.format(reason=exc)
            ) from exc
    if not isinstance(payload, Mapping):
        raise ConfigurationError(
            Messages.ERROR_CONFIG_INVALID.format(reason="expected a JSON object")
        )
    return payload


def _apply_config_payload(config: Config, data: Mapping[str, object]) -> None:
    if "cache_dir" in data:
        config.cache_dir = _coerce_optional_str(data["cache_dir"])
    if "inventory" in data:
        config.inventory = _coerce_optional_str(data["inventory"])
    if "update_interval" in data:
        config.update_interval = _coerce_interval(data["update_interval"])
    if "search_cols" in data:
        config.search_cols = _coerce_columns(data["search_cols"], "search_cols")
    if "tree_cols" in data:
        config.tree_cols = _coerce_columns(data["tree_cols"], "tree_cols")
    if "tree" in data:
        config.tree = _coerce_tree(data["tree"])


def _coerce_optional_str(value: object) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _coerce_interval(value: object) -> float:
    if value is None:
        return DEFAULT_UPDATE_INTERVAL
    try:
        interval = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(
            Messages.ERROR_CONFIG_INVALID.format(reason=f"update_interval={value!r}")
        ) from exc
    if interval < 0:
        raise ConfigurationError(Messages.ERROR_INTERVAL_NEGATIVE)
    return interval


def _coerce_columns(value: object, name: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(
            Messages.ERROR_CONFIG_INVALID.format(reason=f"{name} must be a list")
        )
    return [str(item) for item in value]


def _coerce_tree(value: object) -> list[str | list[str]]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise ConfigurationError(
            Messages.ERROR_CONFIG_INVALID.format(reason="tree must be a list")
        )
    entries: list[str | list[str]] = []
    for entry in value:
        if isinstance(entry, str):
            entries.append(entry)
        elif isinstance(entry, (list, tuple)) and entry:
            entries.append([str(part) for part in entry])
        else:
            raise ConfigurationError(
                Messages.ERROR_GROUPING_INVALID.format(value=entry)
            )
    return entries
