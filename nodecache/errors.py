"""Exception types raised by the node cache."""

from __future__ import annotations

from typing import Any


class NodeCacheError(Exception):
    """Base class for node cache failures."""


class ConfigurationError(NodeCacheError, ValueError):
    """Raised when the cache is constructed with missing or invalid arguments."""


class InvalidSearchExpression(NodeCacheError, ValueError):
    """Raised when a full-text expression cannot be parsed by the match engine."""

    def __init__(self, message: str, expression: str | None = None) -> None:
        super().__init__(message)
        self.expression = expression


class RecordIngestFailure(NodeCacheError):
    """A single record could not be stored during a rebuild."""

    def __init__(self, message: str, raw_key: str, data: Any = None) -> None:
        super().__init__(message)
        self.raw_key = raw_key
        self.data = data


class StorageFailure(NodeCacheError):
    """Raised for storage engine errors outside search parsing and record ingest."""
