"""Staleness checks and the rebuild transaction."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Mapping

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    REBUILDING = "rebuilding"
    COMMITTED = "committed"


class RefreshStatus(str, Enum):
    SKIPPED = "skipped"
    UP_TO_DATE = "up_to_date"
    REBUILT = "rebuilt"


@dataclass(slots=True)
class RefreshResult:
    status: RefreshStatus
    version: str
    previous_version: str = ""
    records_added: int = 0
    records_skipped: int = 0
    branches_created: int = 0
    leaves_created: int = 0


def _parse_timestamp(value: str | None) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def needs_version_check(
    meta: Mapping[str, str],
    *,
    now: float,
    update_interval: float,
) -> bool:
    """Return True when the inventory version should be consulted."""

    if not meta.get("version"):
        return True
    return now - _parse_timestamp(meta.get("lastup")) > update_interval


@contextmanager
def rebuild_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the body in one ``BEGIN IMMEDIATE`` transaction with sync writes off.

    On error the transaction rolls back and durability is restored before the
    exception propagates. On success the caller is expected to run
    :func:`compact_store`.
    """

    conn.execute("PRAGMA synchronous = OFF;")
    try:
        with conn:
            conn.execute("BEGIN IMMEDIATE;")
            yield conn
    except BaseException:
        logger.info("rebuild rolled back")
        conn.execute("PRAGMA synchronous = NORMAL;")
        raise


def compact_store(conn: sqlite3.Connection) -> None:
    try:
        conn.execute("VACUUM;")
    finally:
        conn.execute("PRAGMA synchronous = NORMAL;")
