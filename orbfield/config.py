from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from . import log

DEFAULTS = dict(
    camera=dict(
        fov=60.0, near=0.1, far=200.0, position=[0.0, 0.5, 5.0],
        minDistance=2.0, maxDistance=12.0, minPolar=0.05, maxPolar=3.0916,
        damping=0.05, dragSpeed=0.005, zoomStep=1.1,
    ),
    swarm=dict(
        count=500, rMin=12.0, rMax=30.0, speed=0.35,
        turnRate=0.15, maxDt=0.033, epsilon=0.001,
        baseScaleMin=0.7, baseScaleMax=1.3,
        pointSize=0.18, pickScale=3.0, hoverScale=1.6,
        color="#FFF4D6", opacity=0.9,
    ),
    cloud=dict(
        octaves=4, warp=[1.6, 0.85, 1.1],
        noiseScale=1.8, detailWeight=0.6, threshold=0.02, attemptFactor=8,
        lobes=[
            dict(center=[0.0, 0.0, 0.0], radius=1.0),
            dict(center=[0.75, 0.1, 0.0], radius=0.65),
        ],
        shells=[
            dict(name="core", count=2400, jitter=0.04, pointSize=0.05, opacity=0.55),
            dict(name="mid", count=1600, jitter=0.12, pointSize=0.075, opacity=0.32),
            dict(name="fringe", count=1000, jitter=0.28, pointSize=0.11, opacity=0.16),
        ],
    ),
    notes=dict(backend="local", path=None, url="", timeout=10.0),
    system=dict(mode="both", seed=None, frameIntervalMs=16, depthSort=True, background="#05070C"),
)

TOOLTIPS = {
    "camera.fov": "Vertical field of view in degrees.",
    "camera.position": "Initial camera position; the camera always looks at the origin.",
    "camera.minDistance": "Closest zoom distance to the origin.",
    "camera.maxDistance": "Farthest zoom distance from the origin.",
    "camera.damping": "Fraction of the pending drag rotation applied each frame.",
    "swarm.count": "Number of orbs.",
    "swarm.rMin": "Inner radius of the spawn shell; orbs bounce at half this radius.",
    "swarm.rMax": "Outer radius of the shell; orbs bounce off it.",
    "swarm.speed": "Constant orb speed in world units per second.",
    "swarm.turnRate": "Steering rotation rate in radians per second.",
    "swarm.maxDt": "Largest simulation step; longer frame gaps are clamped.",
    "swarm.pointSize": "World-space sprite size of an orb at base scale 1.",
    "swarm.pickScale": "Enlarges the hover target relative to the sprite.",
    "swarm.hoverScale": "Scale multiplier applied to the hovered orb.",
    "cloud.octaves": "Number of noise octaves used for cloud detail.",
    "cloud.warp": "Anisotropic stretch applied to the sampling ball (x, y, z).",
    "cloud.noiseScale": "Spatial frequency of the noise detail.",
    "cloud.detailWeight": "How strongly noise perturbs the lobe density.",
    "cloud.threshold": "Minimum density for a candidate point to be kept.",
    "cloud.attemptFactor": "Candidate budget per shell, as a multiple of its point count.",
    "cloud.shells": "Cloud layers from dense core to sparse fringe.",
    "notes.backend": "Where notes live: local, remote or memory.",
    "notes.path": "JSON file used by the local backend.",
    "notes.url": "Base URL of the remote note service (…/api/notes).",
    "system.mode": "What to draw: orbs, cloud or both.",
    "system.seed": "Random seed for the swarm and the cloud; empty for a fresh scene.",
    "system.frameIntervalMs": "Refresh interval of the render timer.",
}

CONFIG_PATH = Path.home() / ".orbfield" / "config.json"


def merge_config(base: Mapping[str, object], overrides: Mapping[str, object]) -> Dict[str, object]:
    """Deep-merge ``overrides`` into a copy of ``base``; lists are replaced."""

    merged: Dict[str, object] = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, dict]:
    env = os.environ if environ is None else environ
    overrides: Dict[str, dict] = {}
    url = env.get("ORBFIELD_NOTES_URL", "").strip()
    if url:
        overrides.setdefault("notes", {}).update(backend="remote", url=url)
    path = env.get("ORBFIELD_NOTES_PATH", "").strip()
    if path:
        overrides.setdefault("notes", {})["path"] = path
    backend = env.get("ORBFIELD_NOTES_BACKEND", "").strip().lower()
    if backend:
        overrides.setdefault("notes", {})["backend"] = backend
    return overrides


def load_config(
    path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, object]:
    """Return the defaults merged with the config file and the environment.

    A missing file is fine; an unreadable one is reported and skipped.
    """

    config = copy.deepcopy(DEFAULTS)
    config_path = Path(path) if path is not None else CONFIG_PATH
    if config_path.exists():
        try:
            payload = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            log.warn(f"ignoring config file {config_path}: {exc}")
        else:
            if isinstance(payload, dict):
                config = merge_config(config, payload)
            else:
                log.warn(f"ignoring config file {config_path}: top-level value is not an object")
    return merge_config(config, env_overrides(environ))
