from __future__ import annotations

import math

import pytest

from orbfield.noise import NoiseField, fbm, lattice_hash, smooth_weight, value_noise


def test_lattice_hash_is_deterministic_and_in_unit_range() -> None:
    for triple in [(0, 0, 0), (1, -2, 3), (-17, 40, 9), (1000, 1000, -1000)]:
        first = lattice_hash(*triple)
        assert first == lattice_hash(*triple)
        assert 0.0 <= first < 1.0


def test_value_noise_matches_corner_hash_on_lattice_points() -> None:
    assert value_noise(2.0, -1.0, 5.0) == pytest.approx(lattice_hash(2, -1, 5))


def test_smooth_weight_endpoints() -> None:
    assert smooth_weight(0.0) == 0.0
    assert smooth_weight(1.0) == 1.0
    assert smooth_weight(0.5) == pytest.approx(0.5)


def test_fbm_is_deterministic() -> None:
    assert fbm(0.3, 1.7, -2.2) == fbm(0.3, 1.7, -2.2)
    field = NoiseField()
    assert field.sample((0.3, 1.7, -2.2)) == fbm(0.3, 1.7, -2.2)


def test_fbm_is_continuous_across_cell_boundaries() -> None:
    eps = 1e-6
    for x in (0.999999, 1.0, 2.5, -3.0):
        a = fbm(x, 0.25, 0.75)
        b = fbm(x + eps, 0.25, 0.75)
        assert abs(a - b) < 1e-3


@pytest.mark.parametrize(
    "point",
    [(0.3, 1.7, -2.2), (1.0, 2.0, 3.0), (-4.0, 0.5, 0.0), (2.71, -0.13, 5.5)],
)
def test_fbm_differences_shrink_with_step(point) -> None:
    x, y, z = point
    base = fbm(x, y, z)
    steps = [10.0 ** -k for k in range(1, 7)]
    diffs = [abs(fbm(x + eps, y, z) - base) for eps in steps]
    for eps, diff in zip(steps, diffs):
        # Octave slopes sum to at most 1.5 * (0.5 + 0.25*2 + 0.125*4 + 0.0625*8) = 3.
        assert diff <= 3.0 * eps + 1e-12
    tail = diffs[1:]
    assert all(a > b for a, b in zip(tail, tail[1:]))


def test_fbm_stays_in_expected_range() -> None:
    for i in range(200):
        value = fbm(i * 0.37, i * -0.11, i * 0.05)
        assert 0.0 <= value <= 0.9375 + 1e-9


@pytest.mark.parametrize("bad", [math.nan, math.inf, -math.inf])
def test_non_finite_input_yields_nan(bad: float) -> None:
    assert math.isnan(value_noise(bad, 0.0, 0.0))
    assert math.isnan(fbm(0.0, bad, 0.0))
    assert math.isnan(NoiseField().fbm(0.0, 0.0, bad))


def test_noise_field_rejects_invalid_parameters() -> None:
    with pytest.raises(ValueError):
        NoiseField(octaves=0)
    with pytest.raises(ValueError):
        NoiseField(gain=0.0)
    with pytest.raises(ValueError):
        NoiseField(lacunarity=math.nan)
