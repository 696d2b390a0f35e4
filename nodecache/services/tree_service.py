"""Tree index building and branch listing."""

from __future__ import annotations

import logging
import re
import sqlite3
from functools import cmp_to_key
from typing import Any, Mapping, Sequence

from ..cache import (
    ROOT_BRANCH_ID,
    find_branch,
    inject_node_id,
    insert_branch,
    insert_leaf,
    list_child_branches,
    list_leaf_records,
)
from ..grouping import GroupingFunc

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"^(\d+)")

BranchRow = list[Any]


def natural_compare(left: str, right: str) -> int:
    """Compare branch names, numerically when both start with digits."""

    left_match = _LEADING_DIGITS.match(left)
    right_match = _LEADING_DIGITS.match(right)
    if left_match and right_match:
        left_num = int(left_match.group(1))
        right_num = int(right_match.group(1))
        if left_num != right_num:
            return -1 if left_num < right_num else 1
    if left == right:
        return 0
    return -1 if left < right else 1


class TreeBuilder:
    """Route records into the branch and leaf tables during one rebuild.

    The ``(parent, name) -> id`` memo lives only as long as the builder, so a
    new rebuild starts from an empty map.
    """

    def __init__(self, conn: sqlite3.Connection, grouping: GroupingFunc) -> None:
        self._conn = conn
        self._grouping = grouping
        self._memo: dict[tuple[int, str], int] = {}
        self.branches_created = 0
        self.leaves_created = 0

    def add(self, node_id: int, record: Mapping[str, Any], *, raw_key: str = "") -> int:
        """File *record* under every complete grouping path; return the leaf count."""

        try:
            paths = self._grouping(record) or []
        except Exception as exc:
            logger.warning("Grouping failed for node %s (%s): %s", raw_key, node_id, exc)
            return 0
        added = 0
        for path in paths:
            segments = [path] if isinstance(path, str) else list(path)
            # partial paths are never indexed
            if not segments or not all(segments):
                continue
            parent = ROOT_BRANCH_ID
            for value in segments:
                parent = self._resolve_branch(parent, str(value))
            insert_leaf(self._conn, parent, node_id)
            added += 1
        self.leaves_created += added
        return added

    def _resolve_branch(self, parent: int, name: str) -> int:
        key = (parent, name)
        branch_id = self._memo.get(key)
        if branch_id is not None:
            return branch_id
        branch_id = find_branch(self._conn, parent, name)
        if branch_id is None:
            branch_id = insert_branch(self._conn, parent, name)
            self.branches_created += 1
        self._memo[key] = branch_id
        return branch_id


def get_branch(
    conn: sqlite3.Connection,
    parent: int,
    tree_cols: Sequence[str],
) -> list[BranchRow]:
    """Return ``[id, name, has_children, leaves]`` for each child of *parent*.

    Children are sorted with :func:`natural_compare`. Leaves keep storage
    order and are projected onto *tree_cols*; ``__nodeId`` may be listed as a
    column.
    """

    children = list_child_branches(conn, int(parent))
    children.sort(key=cmp_to_key(lambda a, b: natural_compare(a[1], b[1])))
    result: list[BranchRow] = []
    for branch_id, name, has_children in children:
        leaves: list[list[Any]] = []
        for node_id, data in list_leaf_records(conn, branch_id):
            record = inject_node_id(data, node_id)
            leaves.append([record.get(column) for column in tree_cols])
        result.append([branch_id, name, has_children, leaves])
    return result
