import hashlib
import json

import pytest

from nodecache.errors import ConfigurationError
from nodecache.inventory import JsonFileInventory, StaticInventory


class Sink:
    def __init__(self):
        self.records = []

    def add_record(self, raw_key, data):
        self.records.append((raw_key, data))
        return len(self.records)


def test_static_inventory_counts_calls():
    inventory = StaticInventory("v1", {"a": {"name": "a"}})
    sink = Sink()

    assert inventory.get_version("alice") == "v1"
    inventory.walk_inventory(sink, "alice")

    assert sink.records == [("a", {"name": "a"})]
    assert inventory.version_calls == 1
    assert inventory.walk_calls == 1


def test_json_inventory_reads_mapping(tmp_path):
    path = tmp_path / "nodes.json"
    path.write_text(json.dumps({"version": "7", "nodes": {"a": {"name": "a"}, "b": {"name": "b"}}}))
    inventory = JsonFileInventory(path)
    sink = Sink()

    inventory.walk_inventory(sink, "alice")

    assert inventory.get_version("alice") == "7"
    assert sink.records == [("a", {"name": "a"}), ("b", {"name": "b"})]


def test_json_inventory_reads_list_entries(tmp_path):
    path = tmp_path / "nodes.json"
    path.write_text(json.dumps({"nodes": [{"key": 1, "data": {"name": "one"}}, {"key": "two"}]}))
    sink = Sink()

    JsonFileInventory(path).walk_inventory(sink, "alice")

    assert sink.records == [("1", {"name": "one"}), ("two", {})]


def test_json_inventory_hashes_file_without_version(tmp_path):
    path = tmp_path / "nodes.json"
    path.write_text(json.dumps({"nodes": {}}))
    inventory = JsonFileInventory(path)

    assert inventory.get_version("alice") == hashlib.sha1(path.read_bytes()).hexdigest()

    path.write_text(json.dumps({"nodes": {"a": {}}}))
    assert inventory.get_version("alice") == hashlib.sha1(path.read_bytes()).hexdigest()


@pytest.mark.parametrize(
    "content",
    ["not json", "[1, 2]", '{"nodes": 3}', '{"nodes": [{"data": {}}]}'],
)
def test_json_inventory_rejects_bad_documents(tmp_path, content):
    path = tmp_path / "nodes.json"
    path.write_text(content)
    inventory = JsonFileInventory(path)

    with pytest.raises(ConfigurationError):
        inventory.get_version("alice")
        inventory.walk_inventory(Sink(), "alice")


def test_json_inventory_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        JsonFileInventory(tmp_path / "missing.json").get_version("alice")
