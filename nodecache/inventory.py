"""Inventory collaborators feeding records into the cache."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from .errors import ConfigurationError
from .text import Messages


class RecordSink(Protocol):
    def add_record(self, raw_key: str, data: Mapping[str, Any]) -> int | None:
        raise NotImplementedError


class Inventory(Protocol):
    def get_version(self, user: str) -> str:
        raise NotImplementedError

    def walk_inventory(self, sink: RecordSink, user: str) -> None:
        raise NotImplementedError


class StaticInventory:
    """Serve a fixed version tag and record set, the same for every user."""

    def __init__(
        self,
        version: str,
        records: Mapping[str, Mapping[str, Any]] | Iterable[tuple[str, Mapping[str, Any]]] = (),
    ) -> None:
        self.version = version
        if isinstance(records, Mapping):
            self.records = list(records.items())
        else:
            self.records = list(records)
        self.version_calls = 0
        self.walk_calls = 0

    def get_version(self, user: str) -> str:
        self.version_calls += 1
        return self.version

    def walk_inventory(self, sink: RecordSink, user: str) -> None:
        self.walk_calls += 1
        for raw_key, data in self.records:
            sink.add_record(raw_key, data)


class JsonFileInventory:
    """Read nodes from a JSON document on disk.

    The document is ``{"version": "...", "nodes": {...}}``. ``nodes`` is either
    a mapping of raw key to record or a list of ``{"key": ..., "data": ...}``
    entries. Without an explicit version the SHA-1 of the file is used, so any
    edit to the file triggers a rebuild.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> tuple[bytes, Mapping[str, Any]]:
        if not self.path.is_file():
            raise ConfigurationError(
                Messages.ERROR_INVENTORY_NOT_FOUND.format(path=self.path)
            )
        raw = self.path.read_bytes()
        try:
            document = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ConfigurationError(
                Messages.ERROR_INVENTORY_INVALID.format(path=self.path, reason=exc)
            ) from exc
        if not isinstance(document, Mapping):
            raise ConfigurationError(
                Messages.ERROR_INVENTORY_INVALID.format(
                    path=self.path, reason="expected a JSON object"
                )
            )
        return raw, document

    def get_version(self, user: str) -> str:
        raw, document = self._read()
        version = document.get("version")
        if version is not None and str(version).strip():
            return str(version)
        return hashlib.sha1(raw).hexdigest()

    def walk_inventory(self, sink: RecordSink, user: str) -> None:
        _, document = self._read()
        for raw_key, data in _iter_nodes(document.get("nodes"), self.path):
            sink.add_record(raw_key, data)


def _iter_nodes(nodes: object, path: Path) -> Iterable[tuple[str, Any]]:
    if nodes is None:
        return []
    if isinstance(nodes, Mapping):
        return [(str(key), value) for key, value in nodes.items()]
    if isinstance(nodes, list):
        entries: list[tuple[str, Any]] = []
        for entry in nodes:
            if not isinstance(entry, Mapping) or "key" not in entry:
                raise ConfigurationError(
                    Messages.ERROR_INVENTORY_INVALID.format(
                        path=path, reason="node entries need a 'key'"
                    )
                )
            entries.append((str(entry["key"]), entry.get("data") or {}))
        return entries
    raise ConfigurationError(
        Messages.ERROR_INVENTORY_INVALID.format(
            path=path, reason="'nodes' must be an object or a list"
        )
    )
