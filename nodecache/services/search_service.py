"""Full-text search over the cached node records."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Sequence

from ..cache import (
    NODE_ID_FIELD,
    count_nodes,
    has_index_tables,
    inject_node_id,
    load_node,
    search_nodes,
    storage_errors,
)
from ..config import DEFAULT_SEARCH_LIMIT


@dataclass(slots=True)
class SearchRequest:
    expression: str | None
    limit: int = DEFAULT_SEARCH_LIMIT
    offset: int = 0


def normalize_paging(limit: int | None, offset: int | None) -> tuple[int, int]:
    clean_limit = int(limit) if limit else DEFAULT_SEARCH_LIMIT
    if clean_limit <= 0:
        clean_limit = DEFAULT_SEARCH_LIMIT
    clean_offset = max(int(offset or 0), 0)
    return clean_limit, clean_offset


def project(record: dict[str, Any], columns: Sequence[str]) -> dict[str, Any]:
    entry = {column: record.get(column) for column in columns}
    entry[NODE_ID_FIELD] = record[NODE_ID_FIELD]
    return entry


def perform_search(
    conn: sqlite3.Connection,
    request: SearchRequest,
    columns: Sequence[str],
) -> list[dict[str, Any]]:
    """Run *request* and project each hit onto *columns* plus ``__nodeId``."""

    if request.expression is None or not str(request.expression).strip():
        return []
    limit, offset = normalize_paging(request.limit, request.offset)
    with storage_errors():
        if not has_index_tables(conn):
            return []
    hits = search_nodes(conn, request.expression, limit=limit, offset=offset)
    return [project(inject_node_id(data, node_id), columns) for node_id, data in hits]


def count_matches(conn: sqlite3.Connection, expression: str | None) -> int:
    if expression is None or not str(expression).strip():
        return 0
    with storage_errors():
        if not has_index_tables(conn):
            return 0
    return count_nodes(conn, expression)


def fetch_node(conn: sqlite3.Connection, node_id: int) -> dict[str, Any] | None:
    with storage_errors():
        if not has_index_tables(conn):
            return None
        data = load_node(conn, node_id)
    if data is None:
        return None
    return inject_node_id(data, int(node_id))
