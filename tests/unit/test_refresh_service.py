import sqlite3

import pytest

import nodecache.cache as cache
from nodecache.services.refresh_service import (
    compact_store,
    needs_version_check,
    rebuild_transaction,
)


def test_needs_version_check_without_version():
    assert needs_version_check({}, now=0, update_interval=1e9) is True
    assert needs_version_check({"lastup": "5"}, now=5, update_interval=1e9) is True


def test_needs_version_check_respects_interval():
    meta = {"version": "v1", "lastup": "100"}

    assert needs_version_check(meta, now=150, update_interval=60) is False
    assert needs_version_check(meta, now=161, update_interval=60) is True
    assert needs_version_check(meta, now=100, update_interval=0) is False
    assert needs_version_check({"version": "v1", "lastup": "junk"}, now=10, update_interval=5) is True


def test_rebuild_transaction_rolls_back(tmp_path):
    conn = cache._connect(tmp_path / "tx.sqlite")
    try:
        with pytest.raises(RuntimeError):
            with rebuild_transaction(conn):
                cache.create_tables(conn)
                cache.store_meta(conn, "version", "v1")
                raise RuntimeError("walk failed")

        assert cache.has_index_tables(conn) is False
        assert cache.load_meta(conn) == {}
    finally:
        conn.close()


def test_rebuild_transaction_commits(tmp_path):
    conn = cache._connect(tmp_path / "tx.sqlite")
    try:
        with rebuild_transaction(conn):
            cache.create_tables(conn)
            cache.store_meta(conn, "version", "v1")
        compact_store(conn)

        synchronous = conn.execute("PRAGMA synchronous").fetchone()[0]
        assert synchronous == 1
        assert cache.load_meta(conn) == {"version": "v1"}
    finally:
        conn.close()



class DiskFullConnection:
    def __init__(self):
        self.statements = []

    def execute(self, statement):
        self.statements.append(statement)
        if statement.startswith("VACUUM"):
            raise sqlite3.OperationalError("database or disk is full")


def test_compact_store_restores_sync_when_vacuum_fails():
    conn = DiskFullConnection()

    with pytest.raises(sqlite3.OperationalError):
        compact_store(conn)

    assert conn.statements == ["VACUUM;", "PRAGMA synchronous = NORMAL;"]
