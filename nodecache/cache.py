"""Node cache storage helpers backed by SQLite.

One database file per user holds five tables:

* ``stable``: raw key to stable integer id, never dropped by a rebuild
* ``node``: FTS4 table, ``docid`` is the stable id, ``data`` the record JSON
* ``branch``: tree index nodes, ``parent = 0`` is the synthetic root
* ``leaf``: membership of node ids under branch ids
* ``meta``: ``version`` and ``lastup`` bookkeeping
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping

from .errors import (
    InvalidSearchExpression,
    NodeCacheError,
    RecordIngestFailure,
    StorageFailure,
)
from .text import Messages

logger = logging.getLogger(__name__)

DB_SUFFIX = ".sqlite"
NODE_ID_FIELD = "__nodeId"
ROOT_BRANCH_ID = 0
INDEX_TABLES = ("branch", "leaf", "node")

# Error text emitted by the FTS engines for unparsable MATCH expressions.
_MATCH_ERROR_MARKERS = (
    "malformed match",
    "fts5: syntax error",
    "unterminated string",
    "unknown special query",
)


def cache_db_path(cache_root: Path | str, user: str) -> Path:
    """Return the absolute path of the cache database for *user*."""

    return Path(cache_root).expanduser() / f"{user}{DB_SUFFIX}"


def _connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA journal_mode = WAL;")
    except sqlite3.OperationalError as exc:
        if "readonly" not in str(exc).lower():
            raise
    conn.execute("PRAGMA synchronous = NORMAL;")
    conn.execute("PRAGMA temp_store = MEMORY;")
    conn.execute("PRAGMA busy_timeout = 5000;")
    return conn


@contextmanager
def storage_errors() -> Iterator[None]:
    """Translate raw ``sqlite3`` errors into :class:`StorageFailure`."""

    try:
        yield
    except sqlite3.Error as exc:
        raise StorageFailure(Messages.ERROR_STORAGE.format(reason=exc)) from exc


def classify_match_error(exc: sqlite3.Error, expression: str | None) -> NodeCacheError:
    """Return the typed error for a failed ``MATCH`` query."""

    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        if any(marker in message for marker in _MATCH_ERROR_MARKERS):
            return InvalidSearchExpression(
                Messages.ERROR_SEARCH_INVALID.format(expression=expression),
                expression,
            )
    return StorageFailure(Messages.ERROR_STORAGE.format(reason=exc))


def _table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
        (table,),
    ).fetchone()
    return row is not None


def has_index_tables(conn: sqlite3.Connection) -> bool:
    return all(_table_exists(conn, table) for table in INDEX_TABLES)


def create_tables(conn: sqlite3.Connection) -> None:
    # Statements run one by one: executescript() would commit the open
    # rebuild transaction.
    for statement in (
        "CREATE TABLE branch ( id INTEGER PRIMARY KEY, name TEXT NOT NULL, parent INTEGER NOT NULL )",
        "CREATE UNIQUE INDEX branch_idx ON branch ( parent, name )",
        "CREATE TABLE leaf ( parent INTEGER NOT NULL, node INTEGER NOT NULL )",
        "CREATE INDEX leaf_idx ON leaf ( parent )",
        "CREATE VIRTUAL TABLE node USING fts4(data TEXT)",
        "CREATE TABLE IF NOT EXISTS meta ( key TEXT PRIMARY KEY, value TEXT )",
        "CREATE TABLE IF NOT EXISTS stable ( numid INTEGER PRIMARY KEY, textkey TEXT NOT NULL )",
        "CREATE UNIQUE INDEX IF NOT EXISTS stable_idx ON stable ( textkey )",
    ):
        conn.execute(statement)


def drop_index_tables(conn: sqlite3.Connection) -> None:
    for table in INDEX_TABLES:
        conn.execute(f"DROP TABLE IF EXISTS {table}")


def load_meta(conn: sqlite3.Connection) -> dict[str, str]:
    """Return the meta table as a dict; a store without one yields ``{}``."""

    if not _table_exists(conn, "meta"):
        return {}
    rows = conn.execute("SELECT key, value FROM meta").fetchall()
    return {row["key"]: row["value"] for row in rows}


def store_meta(conn: sqlite3.Connection, key: str, value: object) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS meta ( key TEXT PRIMARY KEY, value TEXT )"
    )
    conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (key, None if value is None else str(value)),
    )


def resolve_stable_id(conn: sqlite3.Connection, raw_key: str) -> int:
    """Return the stable id for *raw_key*, allocating one when missing."""

    row = conn.execute(
        "SELECT numid FROM stable WHERE textkey = ?",
        (raw_key,),
    ).fetchone()
    if row is not None:
        return int(row["numid"])
    cursor = conn.execute("INSERT INTO stable (textkey) VALUES (?)", (raw_key,))
    return int(cursor.lastrowid)


def encode_record(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, sort_keys=True, allow_nan=False)


def decode_record(text: str) -> dict[str, Any]:
    value = json.loads(text)
    return value if isinstance(value, dict) else {"value": value}


def store_node(
    conn: sqlite3.Connection,
    node_id: int,
    data: Any,
    *,
    raw_key: str = "",
) -> None:
    """Insert *data* into the node table under *node_id*.

    Encoding problems and per-row constraint violations raise
    :class:`RecordIngestFailure`; anything else is a storage failure.
    """

    try:
        payload = encode_record(data)
    except (TypeError, ValueError) as exc:
        raise RecordIngestFailure(
            Messages.ERROR_RECORD_INGEST.format(raw_key=raw_key, reason=exc),
            raw_key,
            data,
        ) from exc
    try:
        conn.execute(
            "INSERT INTO node (docid, data) VALUES (?, ?)",
            (node_id, payload),
        )
    except (sqlite3.IntegrityError, sqlite3.InterfaceError, sqlite3.DataError, ValueError) as exc:
        raise RecordIngestFailure(
            Messages.ERROR_RECORD_INGEST.format(raw_key=raw_key, reason=exc),
            raw_key,
            data,
        ) from exc


def search_nodes(
    conn: sqlite3.Connection,
    expression: str,
    *,
    limit: int,
    offset: int,
) -> list[tuple[int, dict[str, Any]]]:
    try:
        rows = conn.execute(
            "SELECT docid, data FROM node WHERE data MATCH ? LIMIT ? OFFSET ?",
            (expression, limit, offset),
        ).fetchall()
    except sqlite3.Error as exc:
        raise classify_match_error(exc, expression) from exc
    return [(int(row["docid"]), decode_record(row["data"])) for row in rows]


def count_nodes(conn: sqlite3.Connection, expression: str) -> int:
    try:
        row = conn.execute(
            "SELECT count(docid) AS total FROM node WHERE data MATCH ?",
            (expression,),
        ).fetchone()
    except sqlite3.Error as exc:
        raise classify_match_error(exc, expression) from exc
    return int(row["total"] if row is not None else 0)


def load_node(conn: sqlite3.Connection, node_id: int) -> dict[str, Any] | None:
    row = conn.execute(
        "SELECT data FROM node WHERE docid = ?",
        (int(node_id),),
    ).fetchone()
    if row is None:
        return None
    return decode_record(row["data"])


def find_branch(conn: sqlite3.Connection, parent: int, name: str) -> int | None:
    row = conn.execute(
        "SELECT id FROM branch WHERE name = ? AND parent = ?",
        (name, parent),
    ).fetchone()
    return None if row is None else int(row["id"])


def insert_branch(conn: sqlite3.Connection, parent: int, name: str) -> int:
    cursor = conn.execute(
        "INSERT INTO branch (name, parent) VALUES (?, ?)",
        (name, parent),
    )
    return int(cursor.lastrowid)


def insert_leaf(conn: sqlite3.Connection, parent: int, node_id: int) -> None:
    conn.execute(
        "INSERT INTO leaf (node, parent) VALUES (?, ?)",
        (node_id, parent),
    )


def list_child_branches(
    conn: sqlite3.Connection, parent: int
) -> list[tuple[int, str, bool]]:
    rows = conn.execute(
        """
        SELECT DISTINCT a.id AS id, a.name AS name, b.id IS NOT NULL AS has_children
        FROM branch AS a
        LEFT JOIN branch AS b ON b.parent = a.id
        WHERE a.parent = ?
        """,
        (parent,),
    ).fetchall()
    return [(int(row["id"]), row["name"], bool(row["has_children"])) for row in rows]


def list_leaf_records(
    conn: sqlite3.Connection, parent: int
) -> list[tuple[int, dict[str, Any]]]:
    rows = conn.execute(
        """
        SELECT node.docid AS docid, node.data AS data
        FROM node
        JOIN leaf ON node.docid = leaf.node AND leaf.parent = ?
        """,
        (parent,),
    ).fetchall()
    return [(int(row["docid"]), decode_record(row["data"])) for row in rows]


def count_rows(conn: sqlite3.Connection, table: str) -> int:
    if not _table_exists(conn, table):
        return 0
    row = conn.execute(f"SELECT COUNT(*) AS total FROM {table}").fetchone()
    return int(row["total"] if row is not None else 0)


def inject_node_id(data: Mapping[str, Any], node_id: int) -> dict[str, Any]:
    record = dict(data)
    record[NODE_ID_FIELD] = node_id
    return record
