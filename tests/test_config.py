from __future__ import annotations

import json
from pathlib import Path

from orbfield.config import DEFAULTS, TOOLTIPS, env_overrides, load_config, merge_config


def test_merge_is_deep_and_does_not_touch_base() -> None:
    merged = merge_config(DEFAULTS, {"swarm": {"count": 10}, "cloud": {"warp": [1.0, 1.0, 1.0]}})
    assert merged["swarm"]["count"] == 10
    assert merged["swarm"]["rMax"] == 30.0
    assert merged["cloud"]["warp"] == [1.0, 1.0, 1.0]
    assert DEFAULTS["swarm"]["count"] == 500


def test_env_overrides_select_remote_backend() -> None:
    overrides = env_overrides({"ORBFIELD_NOTES_URL": " https://x.example/api/notes "})
    assert overrides == {"notes": {"backend": "remote", "url": "https://x.example/api/notes"}}
    assert env_overrides({}) == {}


def test_load_config_merges_file_then_environment(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"system": {"mode": "orbs"}, "notes": {"backend": "memory"}}), encoding="utf-8")
    config = load_config(path, environ={"ORBFIELD_NOTES_PATH": "/tmp/n.json"})
    assert config["system"]["mode"] == "orbs"
    assert config["notes"]["backend"] == "memory"
    assert config["notes"]["path"] == "/tmp/n.json"
    assert config["camera"]["fov"] == 60.0


def test_load_config_skips_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("[1, 2", encoding="utf-8")
    config = load_config(path, environ={})
    assert config["swarm"] == DEFAULTS["swarm"]


def test_tooltips_describe_existing_keys() -> None:
    for dotted in TOOLTIPS:
        section, key = dotted.split(".", 1)
        assert key in DEFAULTS[section], dotted
