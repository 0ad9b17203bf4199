from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
pytest.importorskip("PyQt5.QtWidgets")

from orbfield.main import config_from_args, main, parse_args  # noqa: E402
from orbfield.notes import MemoryNoteStore  # noqa: E402
from orbfield.view.view_widget import OrbfieldEngine  # noqa: E402

SMALL = {
    "system": {"seed": 5},
    "swarm": {"count": 40},
    "cloud": {
        "shells": [
            {"name": "core", "count": 60, "jitter": 0.04, "pointSize": 0.05, "opacity": 0.55},
        ]
    },
}


def _engine(mode: str = "both") -> OrbfieldEngine:
    config = dict(SMALL)
    config["system"] = {"seed": 5, "mode": mode}
    return OrbfieldEngine(config, store=MemoryNoteStore())


def test_engine_renders_depth_sorted_items() -> None:
    engine = _engine()
    engine.camera.resize(640, 480)
    engine.camera.zoom(10.0)
    engine.advance(0.016)
    items = engine.render_items()
    roles = {item.role for item in items}
    assert "cloud" in roles
    depths = [item.depth for item in items]
    assert depths == sorted(depths, reverse=True)
    for item in items:
        if item.role == "orb":
            assert item.orb_id is not None


def test_modes_select_what_is_drawn() -> None:
    orbs_only = _engine("orbs")
    assert orbs_only.layers == []
    cloud_only = _engine("cloud")
    assert cloud_only.layers
    assert all(item.role == "cloud" for item in cloud_only.render_items())
    assert cloud_only.advance(0.016) == 0.0
    assert cloud_only.swarm.elapsed == 0.0


def test_engine_hover_and_click_open_editor() -> None:
    engine = _engine("orbs")
    engine.camera.resize(640, 480)
    target = engine.swarm.position(0)
    # Look straight at orb 0 from the camera and hover the viewport center.
    engine.camera.target = target
    sx, sy, _depth = engine.camera.project(target)
    assert engine.pointer_move(sx, sy) == 0
    assert engine.click() is True
    assert engine.interaction.open_orb_id == 0
    engine.pointer_leave()
    assert engine.interaction.hovered_orb_id is None


def test_command_line_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("ORBFIELD_NOTES_URL", raising=False)
    monkeypatch.delenv("ORBFIELD_NOTES_BACKEND", raising=False)
    args = parse_args(
        ["--mode", "cloud", "--orbs", "50", "--seed", "3", "--notes", "memory", "--config", str(tmp_path / "none.json")]
    )
    config = config_from_args(args)
    assert config["system"]["mode"] == "cloud"
    assert config["system"]["seed"] == 3
    assert config["swarm"]["count"] == 50
    assert config["notes"]["backend"] == "memory"


def test_main_headless_returns_without_qt(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "none.json")], headless=True) == 0


def test_set_params_resamples_cloud() -> None:
    engine = _engine("cloud")
    before = engine.layers
    engine.set_params({"cloud": {"shells": [{"name": "only", "count": 10, "pointSize": 0.05}]}, "swarm": {"opacity": 0.5}})
    assert engine.layers is not before
    assert [layer.spec.name for layer in engine.layers] == ["only"]
    assert len(engine.layers[0].points) <= 10


def test_main_leaves_standard_streams_alone(tmp_path: Path) -> None:
    stdout, stderr = sys.stdout, sys.stderr
    main(["--config", str(tmp_path / "none.json")], headless=True)
    assert sys.stdout is stdout
    assert sys.stderr is stderr
