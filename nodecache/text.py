"""Centralized user-facing text for nodecache."""

from __future__ import annotations

class Styles:
    ERROR = "red"
    WARNING = "yellow"
    SUCCESS = "green"
    INFO = "dim"
    TITLE = "bold cyan"
    TABLE_HEADER = "bold magenta"


class Messages:
    APP_HELP = "nodecache - inspect and refresh the per-user node cache."
    HELP_USER = "User identity whose cache file should be opened."
    HELP_INVENTORY = "JSON inventory file (defaults to the configured one)."
    HELP_CACHE_DIR = "Directory holding the per-user cache databases."
    HELP_VERBOSE = "Log cache activity to stderr."
    HELP_FORCE = "Check the inventory version even if the cache is not stale."
    HELP_EXPRESSION = "Full-text MATCH expression."
    HELP_LIMIT = "Maximum number of results to return."
    HELP_OFFSET = "Number of results to skip."
    HELP_NODE_ID = "Stable node id (the __nodeId field)."
    HELP_PARENT = "Branch id to expand (0 is the root)."
    HELP_SHOW_CONFIG = "Show current configuration."
    HELP_SET_INVENTORY = "Persist the default inventory file."
    HELP_SET_CACHE_DIR = "Persist the cache directory."
    HELP_SET_INTERVAL = "Persist the staleness interval in seconds."
    HELP_SET_SEARCH_COLS = "Persist the columns reported for search results (comma separated)."
    HELP_SET_TREE_COLS = "Persist the columns reported for tree leaves (comma separated)."
    HELP_ADD_TREE = (
        "Append a grouping path: comma separated attribute names, "
        "or grouping:<name> for a registered grouping."
    )
    HELP_CLEAR_TREE = "Remove all configured grouping paths."

    ERROR_USER_MISSING = "user is a mandatory argument"
    ERROR_USER_INVALID = "user {user!r} cannot be used as a cache file name"
    ERROR_INVENTORY_MISSING = "inventory is a mandatory argument"
    ERROR_INVENTORY_UNCONFIGURED = (
        "No inventory file configured. Pass --inventory or run "
        "`nodecache config --set-inventory <file>`."
    )
    ERROR_INVENTORY_NOT_FOUND = "Inventory file not found: {path}"
    ERROR_INVENTORY_INVALID = "Inventory file {path} is not a valid inventory document: {reason}"
    ERROR_INTERVAL_NEGATIVE = "update interval must be >= 0"
    ERROR_GROUPING_UNKNOWN = "Unknown grouping: {name}. Available: {allowed}"
    ERROR_GROUPING_INVALID = "Invalid grouping definition: {value!r}"
    ERROR_GROUPING_DUPLICATE = "Grouping already registered: {name}"
    ERROR_SEARCH_INVALID = "Invalid search expression: {expression}"
    ERROR_STORAGE = "Cache storage failure: {reason}"
    ERROR_NOT_REBUILDING = "Records can only be added while the cache is rebuilding."
    ERROR_NODE_MISSING = "No node with id {node_id}."
    ERROR_RECORD_INGEST = "Failed to store node {raw_key}: {reason}"
    ERROR_CONFIG_INVALID = "Invalid configuration: {reason}"

    INFO_REFRESH_SKIPPED = "Cache is fresh; no inventory check needed."
    INFO_REFRESH_UP_TO_DATE = "Inventory version {version} unchanged."
    INFO_REFRESH_REBUILT = "Cache rebuilt for inventory version {version}."
    INFO_NO_RESULTS = "No matching nodes found."
    INFO_EMPTY_BRANCH = "Branch {parent} has no children."
    INFO_COUNT = "{count} matching node{plural}."
    INFO_CONFIG_SAVED = "Configuration saved."

    TABLE_TITLE_SEARCH = "Search results"
    TABLE_TITLE_BRANCH = "Branch {parent}"
    TABLE_TITLE_NODE = "Node {node_id}"
    TABLE_TITLE_INFO = "Cache {path}"
    TABLE_HEADER_ID = "Id"
    TABLE_HEADER_NAME = "Name"
    TABLE_HEADER_CHILDREN = "Children"
    TABLE_HEADER_LEAVES = "Leaves"
    TABLE_HEADER_KEY = "Key"
    TABLE_HEADER_VALUE = "Value"
