from functools import cmp_to_key

import pytest

import nodecache.cache as cache
from nodecache.grouping import attribute_paths
from nodecache.services.tree_service import TreeBuilder, get_branch, natural_compare


@pytest.fixture()
def conn(tmp_path):
    connection = cache._connect(tmp_path / "tree.sqlite")
    cache.create_tables(connection)
    yield connection
    connection.close()


def _add(conn, builder, node_id, record):
    cache.store_node(conn, node_id, record)
    return builder.add(node_id, record)


def test_natural_sort_orders_leading_numbers_numerically():
    names = ["alpha", "10-foo", "2-bar"]

    assert sorted(names, key=cmp_to_key(natural_compare)) == ["2-bar", "10-foo", "alpha"]


def test_natural_compare_falls_back_to_lexical():
    assert natural_compare("beta", "alpha") == 1
    assert natural_compare("9", "10") == -1
    assert natural_compare("10a", "10b") == -1
    assert natural_compare("same", "same") == 0
    # only one side numeric: plain string comparison
    assert natural_compare("10", "x9") == -1
    assert natural_compare("10-foo", "9-bar") == 1


def test_partial_paths_are_not_indexed(conn):
    builder = TreeBuilder(conn, attribute_paths(("country", "city"), ("type",)))

    added = _add(conn, builder, 1, {"country": "ch", "city": "", "type": "router"})

    assert added == 1
    assert [row[1] for row in get_branch(conn, 0, [])] == ["router"]
    assert cache.find_branch(conn, 0, "ch") is None
    assert cache.count_rows(conn, "leaf") == 1


def test_missing_attribute_skips_path(conn):
    builder = TreeBuilder(conn, attribute_paths(("country", "city")))

    assert _add(conn, builder, 1, {"country": "ch"}) == 0
    assert cache.count_rows(conn, "branch") == 0


def test_builder_reuses_branches(conn):
    builder = TreeBuilder(conn, attribute_paths(("country", "city")))

    _add(conn, builder, 1, {"country": "ch", "city": "zurich"})
    _add(conn, builder, 2, {"country": "ch", "city": "bern"})
    _add(conn, builder, 3, {"country": "ch", "city": "zurich"})

    assert builder.branches_created == 3
    assert builder.leaves_created == 3
    assert cache.count_rows(conn, "branch") == 3


def test_new_builder_finds_existing_branches(conn):
    first = TreeBuilder(conn, attribute_paths(("type",)))
    _add(conn, first, 1, {"type": "router"})
    second = TreeBuilder(conn, attribute_paths(("type",)))
    _add(conn, second, 2, {"type": "router"})

    assert second.branches_created == 0
    assert cache.count_rows(conn, "branch") == 1


def test_node_under_multiple_paths(conn):
    builder = TreeBuilder(conn, attribute_paths(("country",), ("type",)))

    _add(conn, builder, 1, {"country": "ch", "type": "router"})

    rows = get_branch(conn, 0, ["__nodeId"])
    assert sorted(row[1] for row in rows) == ["ch", "router"]
    assert all(row[3] == [[1]] for row in rows)


def test_grouping_errors_do_not_abort(conn, caplog):
    def broken(record):
        raise KeyError("type")

    builder = TreeBuilder(conn, broken)
    with caplog.at_level("WARNING", logger="nodecache.services.tree_service"):
        assert builder.add(1, {"name": "x"}, raw_key="x") == 0
    assert "Grouping failed" in caplog.text


def test_segment_values_are_stringified(conn):
    builder = TreeBuilder(conn, lambda record: [[record["rack"], "slot"]])

    _add(conn, builder, 1, {"rack": 3})
    _add(conn, builder, 2, {"rack": "3"})

    rows = get_branch(conn, 0, [])
    assert [row[1] for row in rows] == ["3"]


def test_get_branch_reports_children_and_leaves(conn):
    builder = TreeBuilder(conn, attribute_paths(("region", "site"), ("region",)))

    _add(conn, builder, 1, {"region": "10-west", "site": "a", "name": "one"})
    _add(conn, builder, 2, {"region": "2-east", "site": "b", "name": "two"})
    _add(conn, builder, 3, {"region": "alpha", "name": "three"})

    rows = get_branch(conn, 0, ["__nodeId", "name"])

    assert [row[1] for row in rows] == ["2-east", "10-west", "alpha"]
    by_name = {row[1]: row for row in rows}
    assert by_name["2-east"][2] is True
    assert by_name["alpha"][2] is False
    assert by_name["2-east"][3] == [[2, "two"]]
    assert by_name["alpha"][3] == [[3, "three"]]

    west_id = by_name["10-west"][0]
    children = get_branch(conn, west_id, ["name", "missing"])
    assert [(row[1], row[2], row[3]) for row in children] == [("a", False, [["one", None]])]
