"""Public Python API for nodecache."""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Mapping, Sequence

from .cache import (
    _connect,
    cache_db_path,
    count_rows,
    create_tables,
    drop_index_tables,
    has_index_tables,
    load_meta,
    resolve_stable_id,
    store_meta,
    store_node,
    storage_errors,
)
from .config import DEFAULT_SEARCH_LIMIT, DEFAULT_UPDATE_INTERVAL, Config, resolve_cache_dir
from .errors import ConfigurationError, RecordIngestFailure, StorageFailure
from .grouping import resolve_tree
from .inventory import Inventory
from .services.refresh_service import (
    CacheState,
    RefreshResult,
    RefreshStatus,
    compact_store,
    needs_version_check,
    rebuild_transaction,
)
from .services.search_service import SearchRequest, count_matches, fetch_node, perform_search
from .services.tree_service import TreeBuilder, get_branch
from .text import Messages

logger = logging.getLogger(__name__)


def _validate_user(user: object) -> str:
    if not isinstance(user, str) or not user.strip():
        raise ConfigurationError(Messages.ERROR_USER_MISSING)
    clean = user.strip()
    # the user name becomes a file name under the cache root
    if "/" in clean or "\\" in clean or clean in {".", ".."}:
        raise ConfigurationError(Messages.ERROR_USER_INVALID.format(user=user))
    return clean


def _validate_interval(value: object) -> float:
    try:
        interval = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(Messages.ERROR_INTERVAL_NEGATIVE) from exc
    if interval < 0:
        raise ConfigurationError(Messages.ERROR_INTERVAL_NEGATIVE)
    return interval


class NodeCache:
    """Per-user node cache with a tree index and full-text search.

    Opening the cache checks the inventory version when the store has never
    been built or ``update_interval`` seconds have passed since the last
    check. A changed version triggers a full rebuild inside one transaction;
    the inventory walks its records into :meth:`add_record`.

    Example::

        cache = NodeCache(
            user="alice",
            inventory=inventory,
            cache_root="/var/cache/nodes",
            search_cols=["name", "type"],
            tree_cols=["__nodeId", "name"],
            tree=[("country", "city"), ("type",)],
        )
        cache.search("router", limit=20)
        cache.get_branch(0)
    """

    def __init__(
        self,
        *,
        user: str,
        inventory: Inventory,
        cache_root: Path | str | None = None,
        search_cols: Sequence[str] = (),
        tree_cols: Sequence[str] = (),
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        tree: object = None,
        refresh: bool = True,
        now: float | None = None,
    ) -> None:
        self.user = _validate_user(user)
        if inventory is None:
            raise ConfigurationError(Messages.ERROR_INVENTORY_MISSING)
        self.inventory = inventory
        self.update_interval = _validate_interval(update_interval)
        self.grouping = resolve_tree(tree)
        self.search_cols = tuple(search_cols or ())
        self.tree_cols = tuple(tree_cols or ())
        self.cache_root = (
            Path(cache_root).expanduser()
            if cache_root is not None
            else resolve_cache_dir(Config())
        )
        self.path = cache_db_path(self.cache_root, self.user)
        self.last_refresh: RefreshResult | None = None
        self._state = CacheState.FRESH
        self._builder: TreeBuilder | None = None
        self._records_added = 0
        self._records_skipped = 0

        logger.debug("connecting to sqlite cache %s", self.path)
        with storage_errors():
            self._conn = _connect(self.path)
            try:
                self._meta = load_meta(self._conn)
            except sqlite3.Error:
                self._conn.close()
                raise
        if refresh:
            try:
                self.refresh(now=now)
            except BaseException:
                self.close()
                raise

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        user: str,
        inventory: Inventory,
        **kwargs: Any,
    ) -> "NodeCache":
        """Build a cache from a stored :class:`Config`."""

        return cls(
            user=user,
            inventory=inventory,
            cache_root=resolve_cache_dir(config),
            search_cols=config.search_cols,
            tree_cols=config.tree_cols,
            update_interval=config.update_interval,
            tree=config.tree,
            **kwargs,
        )

    def __enter__(self) -> "NodeCache":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        conn = getattr(self, "_conn", None)
        if conn is not None:
            conn.close()
            self._conn = None

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageFailure(Messages.ERROR_STORAGE.format(reason="cache is closed"))
        return self._conn

    @property
    def meta(self) -> dict[str, str]:
        return dict(self._meta)

    @property
    def state(self) -> CacheState:
        return self._state

    # refresh

    def refresh(self, *, force: bool = False, now: float | None = None) -> RefreshResult:
        """Check the inventory version and rebuild when it changed.

        Returns a :class:`RefreshResult`. A failed rebuild leaves the previous
        version in place, sets the state to ``STALE`` and re-raises.
        """

        conn = self.connection
        current = time.time() if now is None else float(now)
        old_version = self._meta.get("version") or ""
        if not force and not needs_version_check(
            self._meta, now=current, update_interval=self.update_interval
        ):
            result = RefreshResult(RefreshStatus.SKIPPED, old_version, old_version)
            self.last_refresh = result
            return result

        version = str(self.inventory.get_version(self.user) or "")
        logger.debug("checking inventory version '%s' vs '%s'", version, old_version)
        if version != old_version:
            self._state = CacheState.STALE
            result = self._rebuild(version, old_version)
        else:
            self._state = CacheState.FRESH
            result = RefreshResult(RefreshStatus.UP_TO_DATE, version, old_version)
        with storage_errors(), conn:
            self.set_meta("lastup", int(current))
        self.last_refresh = result
        if result.status is RefreshStatus.REBUILT:
            with storage_errors():
                compact_store(conn)
        return result

    def _rebuild(self, version: str, old_version: str) -> RefreshResult:
        conn = self.connection
        logger.info("loading nodes into %s for %s", self.cache_root, self.user)
        previous_meta = dict(self._meta)
        builder = TreeBuilder(conn, self.grouping)
        self._records_added = 0
        self._records_skipped = 0
        try:
            with storage_errors(), rebuild_transaction(conn):
                self._state = CacheState.REBUILDING
                self._builder = builder
                if old_version:
                    logger.info("dropping old tables")
                drop_index_tables(conn)
                create_tables(conn)
                self.set_meta("version", version)
                self.inventory.walk_inventory(self, self.user)
                logger.debug("nodes for %s loaded", self.user)
        except BaseException:
            self._meta = previous_meta
            self._state = CacheState.STALE
            raise
        finally:
            self._builder = None
        self._state = CacheState.COMMITTED
        logger.info(
            "cache for %s rebuilt at version %s: %d nodes, %d skipped",
            self.user,
            version,
            self._records_added,
            self._records_skipped,
        )
        return RefreshResult(
            RefreshStatus.REBUILT,
            version,
            old_version,
            records_added=self._records_added,
            records_skipped=self._records_skipped,
            branches_created=builder.branches_created,
            leaves_created=builder.leaves_created,
        )

    # sink

    def add_record(self, raw_key: str, data: Mapping[str, Any]) -> int | None:
        """Store one inventory record; return its stable id or None if skipped."""

        builder = self._builder
        if builder is None:
            raise StorageFailure(Messages.ERROR_NOT_REBUILDING)
        conn = self.connection
        key = str(raw_key)
        with storage_errors():
            node_id = resolve_stable_id(conn, key)
        logger.debug("keygen %s => %s", key, node_id)
        try:
            with storage_errors():
                store_node(conn, node_id, data, raw_key=key)
        except RecordIngestFailure as exc:
            logger.warning("%s", exc)
            logger.warning("Skipping (%s) %r", key, data)
            self._records_skipped += 1
            return None
        with storage_errors():
            builder.add(node_id, data, raw_key=key)
        self._records_added += 1
        return node_id

    def set_meta(self, key: str, value: object) -> None:
        """Save a key/value pair to the meta table, replacing any old value."""

        conn = self.connection
        with storage_errors():
            if self._builder is None:
                # outside a rebuild each write commits on its own
                with conn:
                    store_meta(conn, key, value)
            else:
                store_meta(conn, key, value)
        self._meta[key] = None if value is None else str(value)

    # reads

    def search(
        self,
        expression: str | None,
        limit: int = DEFAULT_SEARCH_LIMIT,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Return records matching *expression*, projected onto ``search_cols``."""

        request = SearchRequest(expression=expression, limit=limit, offset=offset)
        return perform_search(self.connection, request, self.search_cols)

    def count(self, expression: str | None) -> int:
        return count_matches(self.connection, expression)

    def get_node(self, node_id: int) -> dict[str, Any]:
        """Return the full stored record for *node_id* including ``__nodeId``."""

        record = fetch_node(self.connection, node_id)
        if record is None:
            raise KeyError(Messages.ERROR_NODE_MISSING.format(node_id=node_id))
        return record

    def get_branch(self, parent: int = 0) -> list[list[Any]]:
        """Return ``[id, name, has_children, leaves]`` rows below *parent*."""

        conn = self.connection
        with storage_errors():
            if not has_index_tables(conn):
                return []
            return get_branch(conn, parent, self.tree_cols)

    def stats(self) -> dict[str, Any]:
        conn = self.connection
        with storage_errors():
            return {
                "path": str(self.path),
                "user": self.user,
                "state": self._state.value,
                "version": self._meta.get("version"),
                "lastup": self._meta.get("lastup"),
                "nodes": count_rows(conn, "node"),
                "branches": count_rows(conn, "branch"),
                "leaves": count_rows(conn, "leaf"),
                "stable_ids": count_rows(conn, "stable"),
            }
