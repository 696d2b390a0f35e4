"""nodecache package initialization."""

from __future__ import annotations

__version__ = "0.1.0"

from .api import NodeCache
from .errors import (
    ConfigurationError,
    InvalidSearchExpression,
    NodeCacheError,
    RecordIngestFailure,
    StorageFailure,
)
from .grouping import attribute_paths, register_grouping
from .inventory import JsonFileInventory, StaticInventory
from .services.refresh_service import CacheState, RefreshResult, RefreshStatus

__all__ = [
    "__version__",
    "CacheState",
    "ConfigurationError",
    "InvalidSearchExpression",
    "JsonFileInventory",
    "NodeCache",
    "NodeCacheError",
    "RecordIngestFailure",
    "RefreshResult",
    "RefreshStatus",
    "StaticInventory",
    "StorageFailure",
    "attribute_paths",
    "get_version",
    "register_grouping",
]


def get_version() -> str:
    """Return the current package version."""
    return __version__
