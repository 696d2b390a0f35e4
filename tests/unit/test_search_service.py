import pytest

import nodecache.cache as cache
from nodecache.services.search_service import (
    SearchRequest,
    count_matches,
    fetch_node,
    normalize_paging,
    perform_search,
    project,
)


@pytest.fixture()
def conn(tmp_path):
    connection = cache._connect(tmp_path / "search.sqlite")
    yield connection
    connection.close()


@pytest.mark.parametrize(
    ("limit", "offset", "expected"),
    [(None, None, (100, 0)), (0, 5, (100, 5)), (-3, -1, (100, 0)), (20, 40, (20, 40))],
)
def test_normalize_paging(limit, offset, expected):
    assert normalize_paging(limit, offset) == expected


def test_project_always_includes_node_id():
    record = {"name": "edge", "type": "router", cache.NODE_ID_FIELD: 4}

    assert project(record, ["name", "missing"]) == {
        "name": "edge",
        "missing": None,
        cache.NODE_ID_FIELD: 4,
    }


def test_reads_without_index_tables_are_empty(conn):
    assert perform_search(conn, SearchRequest("edge"), ["name"]) == []
    assert count_matches(conn, "edge") == 0
    assert fetch_node(conn, 1) is None


def test_perform_search_projects_hits(conn):
    cache.create_tables(conn)
    cache.store_node(conn, 3, {"name": "edge", "type": "router"})
    cache.store_node(conn, 5, {"name": "core", "type": "router"})

    hits = perform_search(conn, SearchRequest("router", limit=0), ["name"])

    assert hits == [
        {"name": "edge", cache.NODE_ID_FIELD: 3},
        {"name": "core", cache.NODE_ID_FIELD: 5},
    ]
    assert count_matches(conn, "  ") == 0
    assert fetch_node(conn, 5) == {"name": "core", "type": "router", cache.NODE_ID_FIELD: 5}
