from __future__ import annotations

import math

import pytest

from orbfield.cloud import (
    DEFAULT_SHELLS,
    CloudSampler,
    Lobe,
    ShapeField,
    ShellSpec,
    build_cloud,
)
from orbfield.config import DEFAULTS


def test_shape_field_density_is_min_normalised_distance() -> None:
    shape = ShapeField.default()
    assert shape.density((0.0, 0.0, 0.0)) == pytest.approx(0.0)
    assert shape.density((0.75, 0.1, 0.0)) == pytest.approx(0.0)
    assert shape.density((0.0, 2.0, 0.0)) == pytest.approx(2.0)


def test_shape_field_requires_lobes() -> None:
    with pytest.raises(ValueError):
        ShapeField([])


@pytest.mark.parametrize("radius", [0.0, -1.0, math.nan])
def test_lobe_rejects_bad_radius(radius: float) -> None:
    with pytest.raises(ValueError):
        Lobe((0.0, 0.0, 0.0), radius)


def test_lobe_rejects_non_finite_center() -> None:
    with pytest.raises(ValueError):
        Lobe((math.inf, 0.0, 0.0), 1.0)


def test_shell_spec_validation() -> None:
    with pytest.raises(ValueError):
        ShellSpec(count=-1, jitter=0.1, point_size=0.1, opacity=0.5)
    with pytest.raises(ValueError):
        ShellSpec(count=10, jitter=-0.1, point_size=0.1, opacity=0.5)
    with pytest.raises(ValueError):
        ShellSpec(count=10, jitter=0.1, point_size=0.0, opacity=0.5)
    with pytest.raises(ValueError):
        ShellSpec(count=10, jitter=0.1, point_size=0.1, opacity=1.5)


def test_default_shells_layer_from_dense_core_to_sparse_fringe() -> None:
    core, mid, fringe = DEFAULT_SHELLS
    assert core.jitter < mid.jitter < fringe.jitter
    assert core.opacity > mid.opacity > fringe.opacity


def test_sampler_is_seeded_and_bounded() -> None:
    spec = ShellSpec(count=200, jitter=0.12, point_size=0.075, opacity=0.3)
    first = CloudSampler(seed=3).sample_shell(spec)
    second = CloudSampler(seed=3).sample_shell(spec)
    assert first == second
    assert 0 < len(first) <= spec.count


def test_sampler_terminates_when_nothing_is_accepted() -> None:
    # A vanishing lobe plus an impossible threshold rejects every candidate.
    shape = ShapeField([Lobe((50.0, 50.0, 50.0), 1e-9)])
    sampler = CloudSampler(shape, seed=1, threshold=1e9, attempt_factor=8)
    spec = ShellSpec(count=500, jitter=0.1, point_size=0.1, opacity=0.2)
    assert sampler.sample_shell(spec) == []


def test_zero_count_shell_is_empty() -> None:
    layer = CloudSampler(seed=1).sample([ShellSpec(count=0, jitter=0.0, point_size=0.1, opacity=0.1)])[0]
    assert layer.points == ()
    assert layer.filled == 1.0


def test_colors_interpolate_bottom_to_top() -> None:
    sampler = CloudSampler(seed=5, bottom_color=(0.0, 0.0, 0.0), top_color=(1.0, 1.0, 1.0))
    points = sampler.sample_shell(ShellSpec(count=300, jitter=0.04, point_size=0.05, opacity=0.5))
    for point in points:
        r, g, b = point.color
        assert 0.0 <= r <= 1.0
        assert r == g == b
    lowest = min(points, key=lambda p: p.position[1])
    highest = max(points, key=lambda p: p.position[1])
    assert lowest.color[0] < highest.color[0]


def test_base_bias_is_clamped() -> None:
    assert CloudSampler.base_bias(10.0) == 0.0
    assert CloudSampler.base_bias(-10.0) == 0.25
    assert CloudSampler.base_bias(0.0) == pytest.approx(0.06)


def test_build_cloud_from_config_section() -> None:
    cfg = dict(DEFAULTS["cloud"])
    cfg["shells"] = [
        dict(name="core", count=120, jitter=0.04, pointSize=0.05, opacity=0.55),
        dict(name="fringe", count=60, jitter=0.28, pointSize=0.11, opacity=0.16),
    ]
    layers = build_cloud(cfg, seed=11)
    assert [layer.spec.name for layer in layers] == ["core", "fringe"]
    assert all(len(layer.points) <= layer.spec.count for layer in layers)
    assert layers[1].spec.point_size == pytest.approx(0.11)
