import json

import pytest

from nodecache import config as config_module
from nodecache.errors import ConfigurationError


def _prepare_config(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    monkeypatch.delenv(config_module.ENV_CACHE_DIR, raising=False)
    return config_file


def test_load_config_defaults(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    cfg = config_module.load_config()

    assert cfg.cache_dir is None
    assert cfg.inventory is None
    assert cfg.update_interval == config_module.DEFAULT_UPDATE_INTERVAL
    assert cfg.search_cols == []
    assert cfg.tree_cols == []
    assert cfg.tree == []


def test_save_and_load_round_trip(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    cfg = config_module.Config(
        cache_dir="/tmp/nodes",
        update_interval=600,
        search_cols=["name", "type"],
        tree_cols=["__nodeId", "name"],
        tree=["none", ["country", "city"]],
        inventory="inventory.json",
    )

    config_module.save_config(cfg)

    data = json.loads(config_file.read_text())
    assert data["tree"] == ["none", ["country", "city"]]
    assert config_module.load_config() == cfg


def test_load_config_rejects_bad_json(tmp_path, monkeypatch):
    config_file = _prepare_config(tmp_path, monkeypatch)
    config_file.parent.mkdir(parents=True)
    config_file.write_text("{not json")

    with pytest.raises(ConfigurationError):
        config_module.load_config()


def test_update_config_persists_changes(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    config_module.update_config(search_cols="name, type ,", update_interval="30")
    cfg = config_module.load_config()

    assert cfg.search_cols == ["name", "type"]
    assert cfg.update_interval == 30.0


def test_update_config_rejects_negative_interval(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)

    with pytest.raises(ConfigurationError):
        config_module.update_config(update_interval=-5)


def test_config_from_json_keeps_base(tmp_path, monkeypatch):
    base = config_module.Config(search_cols=["name"], tree=[["type"]])

    cfg = config_module.config_from_json('{"tree_cols": ["name"]}', base=base)

    assert cfg.search_cols == ["name"]
    assert cfg.tree_cols == ["name"]
    assert cfg.tree == [["type"]]
    assert cfg.tree is not base.tree


@pytest.mark.parametrize("payload", ['["a"]', '{"tree": "country"}', '{"tree": [[]]}'])
def test_config_from_json_rejects_bad_payloads(payload):
    with pytest.raises(ConfigurationError):
        config_module.config_from_json(payload)


def test_resolve_cache_dir_precedence(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    cfg = config_module.Config()

    assert config_module.resolve_cache_dir(cfg) == tmp_path / "config" / "cache"

    cfg.cache_dir = str(tmp_path / "explicit")
    assert config_module.resolve_cache_dir(cfg) == tmp_path / "explicit"

    monkeypatch.setenv(config_module.ENV_CACHE_DIR, str(tmp_path / "env"))
    assert config_module.resolve_cache_dir(cfg) == tmp_path / "env"


def test_config_dir_context_overrides_location(tmp_path, monkeypatch):
    _prepare_config(tmp_path, monkeypatch)
    override = tmp_path / "override"

    with config_module.config_dir_context(override):
        config_module.update_config(inventory="nodes.json")
        assert (override.resolve() / "config.json").exists()

    assert config_module.load_config().inventory is None
