"""Command line interface for nodecache."""

from __future__ import annotations

import getpass
import json
import logging
from pathlib import Path
from typing import Any, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .api import NodeCache
from .cache import NODE_ID_FIELD
from .config import (
    Config,
    load_config,
    resolve_cache_dir,
    update_config,
)
from .errors import NodeCacheError
from .inventory import JsonFileInventory
from .services.refresh_service import RefreshStatus
from .text import Messages, Styles

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

GROUPING_PREFIX = "grouping:"

UserOption = typer.Option(None, "--user", "-u", envvar="NODECACHE_USER", help=Messages.HELP_USER)
InventoryOption = typer.Option(None, "--inventory", "-i", help=Messages.HELP_INVENTORY)
CacheDirOption = typer.Option(None, "--cache-dir", help=Messages.HELP_CACHE_DIR)


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"nodecache v{__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    package_logger = logging.getLogger("nodecache")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(handler, RichHandler) for handler in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, markup=False)
        )


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "default"


def _open_cache(
    user: str | None,
    inventory: Path | None,
    cache_dir: Path | None,
    *,
    refresh: bool = True,
) -> NodeCache:
    config = load_config()
    inventory_path = inventory or (Path(config.inventory) if config.inventory else None)
    if inventory_path is None:
        console.print(_styled(Messages.ERROR_INVENTORY_UNCONFIGURED, Styles.ERROR))
        raise typer.Exit(code=1)
    cache = NodeCache(
        user=user or _default_user(),
        inventory=JsonFileInventory(inventory_path),
        cache_root=cache_dir or resolve_cache_dir(config),
        search_cols=config.search_cols,
        tree_cols=config.tree_cols,
        update_interval=config.update_interval,
        tree=config.tree,
        refresh=refresh,
    )
    return cache


def _fail(exc: Exception) -> None:
    console.print(_styled(str(exc), Styles.ERROR))
    raise typer.Exit(code=1) from exc


def _format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def _records_table(title: str, columns: Sequence[str], rows: Sequence[Sequence[Any]]) -> Table:
    table = Table(title=title, header_style=Styles.TABLE_HEADER)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(_format_value(value) for value in row))
    return table


def _key_value_table(title: str, data: dict[str, Any]) -> Table:
    table = Table(title=title, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_KEY, style=Styles.TITLE)
    table.add_column(Messages.TABLE_HEADER_VALUE)
    for key, value in data.items():
        table.add_row(key, _format_value(value))
    return table


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help=Messages.HELP_VERBOSE),
) -> None:
    """Global Typer callback for shared options."""
    _configure_logging(verbose)


@app.command()
def refresh(
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
    force: bool = typer.Option(False, "--force", "-f", help=Messages.HELP_FORCE),
) -> None:
    """Check the inventory and rebuild the cache when its version changed."""
    try:
        with _open_cache(user, inventory, cache_dir, refresh=False) as cache:
            result = cache.refresh(force=force)
    except NodeCacheError as exc:
        _fail(exc)
        return
    if result.status is RefreshStatus.REBUILT:
        console.print(
            _styled(Messages.INFO_REFRESH_REBUILT.format(version=result.version), Styles.SUCCESS)
        )
    elif result.status is RefreshStatus.UP_TO_DATE:
        console.print(
            _styled(Messages.INFO_REFRESH_UP_TO_DATE.format(version=result.version), Styles.INFO)
        )
    else:
        console.print(_styled(Messages.INFO_REFRESH_SKIPPED, Styles.INFO))


@app.command()
def search(
    expression: str = typer.Argument(..., help=Messages.HELP_EXPRESSION),
    limit: int = typer.Option(100, "--limit", "-n", min=1, help=Messages.HELP_LIMIT),
    offset: int = typer.Option(0, "--offset", min=0, help=Messages.HELP_OFFSET),
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
) -> None:
    """Run a full-text search against the cached nodes."""
    try:
        with _open_cache(user, inventory, cache_dir) as cache:
            results = cache.search(expression, limit=limit, offset=offset)
            columns = [NODE_ID_FIELD, *cache.search_cols]
    except NodeCacheError as exc:
        _fail(exc)
        return
    if not results:
        console.print(_styled(Messages.INFO_NO_RESULTS, Styles.WARNING))
        return
    rows = [[entry.get(column) for column in columns] for entry in results]
    console.print(_records_table(Messages.TABLE_TITLE_SEARCH, columns, rows))


@app.command()
def count(
    expression: str = typer.Argument(..., help=Messages.HELP_EXPRESSION),
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
) -> None:
    """Count the nodes matching an expression."""
    try:
        with _open_cache(user, inventory, cache_dir) as cache:
            total = cache.count(expression)
    except NodeCacheError as exc:
        _fail(exc)
        return
    console.print(Messages.INFO_COUNT.format(count=total, plural="" if total == 1 else "s"))


@app.command()
def node(
    node_id: int = typer.Argument(..., help=Messages.HELP_NODE_ID),
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
) -> None:
    """Show the full record stored for a node."""
    try:
        with _open_cache(user, inventory, cache_dir) as cache:
            record = cache.get_node(node_id)
    except NodeCacheError as exc:
        _fail(exc)
        return
    except KeyError:
        console.print(_styled(Messages.ERROR_NODE_MISSING.format(node_id=node_id), Styles.ERROR))
        raise typer.Exit(code=1)
    console.print(_key_value_table(Messages.TABLE_TITLE_NODE.format(node_id=node_id), record))


@app.command()
def branch(
    parent: int = typer.Argument(0, help=Messages.HELP_PARENT),
    leaves: bool = typer.Option(False, "--leaves", "-l", help="Also list the leaf records."),
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
) -> None:
    """Expand one level of the tree index."""
    try:
        with _open_cache(user, inventory, cache_dir) as cache:
            rows = cache.get_branch(parent)
            tree_cols = list(cache.tree_cols)
    except NodeCacheError as exc:
        _fail(exc)
        return
    if not rows:
        console.print(_styled(Messages.INFO_EMPTY_BRANCH.format(parent=parent), Styles.WARNING))
        return
    table = _records_table(
        Messages.TABLE_TITLE_BRANCH.format(parent=parent),
        [
            Messages.TABLE_HEADER_ID,
            Messages.TABLE_HEADER_NAME,
            Messages.TABLE_HEADER_CHILDREN,
            Messages.TABLE_HEADER_LEAVES,
        ],
        [
            [branch_id, name, "yes" if has_children else "no", len(leaf_rows)]
            for branch_id, name, has_children, leaf_rows in rows
        ],
    )
    console.print(table)
    if leaves and tree_cols:
        for branch_id, name, _has_children, leaf_rows in rows:
            if leaf_rows:
                console.print(_records_table(f"{name} ({branch_id})", tree_cols, leaf_rows))


@app.command()
def info(
    user: str | None = UserOption,
    inventory: Path | None = InventoryOption,
    cache_dir: Path | None = CacheDirOption,
) -> None:
    """Show statistics for the cache without contacting the inventory."""
    try:
        with _open_cache(user, inventory, cache_dir, refresh=False) as cache:
            stats = cache.stats()
    except NodeCacheError as exc:
        _fail(exc)
        return
    console.print(_key_value_table(Messages.TABLE_TITLE_INFO.format(path=stats["path"]), stats))


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
    set_inventory: str | None = typer.Option(None, "--set-inventory", help=Messages.HELP_SET_INVENTORY),
    set_cache_dir: str | None = typer.Option(None, "--set-cache-dir", help=Messages.HELP_SET_CACHE_DIR),
    set_interval: float | None = typer.Option(None, "--set-interval", help=Messages.HELP_SET_INTERVAL),
    set_search_cols: str | None = typer.Option(None, "--set-search-cols", help=Messages.HELP_SET_SEARCH_COLS),
    set_tree_cols: str | None = typer.Option(None, "--set-tree-cols", help=Messages.HELP_SET_TREE_COLS),
    add_tree: list[str] | None = typer.Option(None, "--add-tree", help=Messages.HELP_ADD_TREE),
    clear_tree: bool = typer.Option(False, "--clear-tree", help=Messages.HELP_CLEAR_TREE),
) -> None:
    """Show or update the stored configuration."""
    changes: dict[str, object] = {}
    if set_inventory is not None:
        changes["inventory"] = set_inventory
    if set_cache_dir is not None:
        changes["cache_dir"] = set_cache_dir
    if set_interval is not None:
        changes["update_interval"] = set_interval
    if set_search_cols is not None:
        changes["search_cols"] = set_search_cols
    if set_tree_cols is not None:
        changes["tree_cols"] = set_tree_cols
    try:
        if clear_tree or add_tree:
            current = [] if clear_tree else list(load_config().tree)
            for entry in add_tree or []:
                current.append(_parse_tree_entry(entry))
            changes["tree"] = current
        if changes:
            update_config(**changes)
            console.print(_styled(Messages.INFO_CONFIG_SAVED, Styles.SUCCESS))
        if show or not changes:
            _print_config(load_config())
    except NodeCacheError as exc:
        _fail(exc)


def _parse_tree_entry(value: str) -> str | list[str]:
    clean = value.strip()
    if clean.startswith(GROUPING_PREFIX):
        return clean[len(GROUPING_PREFIX) :].strip()
    parts = [part.strip() for part in clean.split(",") if part.strip()]
    if not parts:
        raise typer.BadParameter(Messages.ERROR_GROUPING_INVALID.format(value=value))
    return parts


def _print_config(config: Config) -> None:
    console.print(
        _key_value_table(
            Messages.HELP_SHOW_CONFIG.rstrip("."),
            {
                "inventory": config.inventory,
                "cache_dir": str(resolve_cache_dir(config)),
                "update_interval": config.update_interval,
                "search_cols": config.search_cols,
                "tree_cols": config.tree_cols,
                "tree": config.tree,
            },
        )
    )


def run() -> None:
    """Entry point used by the console script."""
    app()
