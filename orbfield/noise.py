"""Deterministic 3D value noise and its fractal (fbm) composition.

The lattice hash is the classic ``fract(sin(dot) * 43758.5453)`` trick: cheap,
stable for a given integer triple and without visible periodicity at the
scales the cloud sampler uses.  Corner values are blended with a smoothstep
weight on every axis so the field is C1 continuous across cell boundaries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .vecmath import Vec3

__all__ = [
    "lattice_hash",
    "smooth_weight",
    "value_noise",
    "fbm",
    "NoiseField",
]

_K1 = 127.1
_K2 = 311.7
_K3 = 74.7
_K4 = 43758.5453


def _fract(value: float) -> float:
    return value - math.floor(value)


def lattice_hash(xi: int, yi: int, zi: int) -> float:
    """Map an integer lattice coordinate to a pseudo random value in ``[0, 1)``."""

    return _fract(math.sin(xi * _K1 + yi * _K2 + zi * _K3) * _K4)


def smooth_weight(t: float) -> float:
    return t * t * (3.0 - 2.0 * t)


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def value_noise(x: float, y: float, z: float) -> float:
    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        return math.nan
    xi = math.floor(x)
    yi = math.floor(y)
    zi = math.floor(z)
    u = smooth_weight(x - xi)
    v = smooth_weight(y - yi)
    w = smooth_weight(z - zi)

    c000 = lattice_hash(xi, yi, zi)
    c100 = lattice_hash(xi + 1, yi, zi)
    c010 = lattice_hash(xi, yi + 1, zi)
    c110 = lattice_hash(xi + 1, yi + 1, zi)
    c001 = lattice_hash(xi, yi, zi + 1)
    c101 = lattice_hash(xi + 1, yi, zi + 1)
    c011 = lattice_hash(xi, yi + 1, zi + 1)
    c111 = lattice_hash(xi + 1, yi + 1, zi + 1)

    x00 = _lerp(c000, c100, u)
    x10 = _lerp(c010, c110, u)
    x01 = _lerp(c001, c101, u)
    x11 = _lerp(c011, c111, u)
    y0 = _lerp(x00, x10, v)
    y1 = _lerp(x01, x11, v)
    return _lerp(y0, y1, w)


def fbm(
    x: float,
    y: float,
    z: float,
    octaves: int = 4,
    frequency: float = 1.0,
    lacunarity: float = 2.0,
    gain: float = 0.5,
) -> float:
    """Sum ``octaves`` layers of value noise.

    Each octave doubles the frequency (``lacunarity``) and halves the
    amplitude (``gain``), starting at amplitude 0.5, so the default output
    sits in roughly ``[0, 0.94]``.  The result is not renormalised.
    Non-finite coordinates yield ``nan``.
    """

    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
        return math.nan
    total = 0.0
    amplitude = 0.5
    freq = frequency
    for _ in range(octaves):
        total += amplitude * value_noise(x * freq, y * freq, z * freq)
        freq *= lacunarity
        amplitude *= gain
    return total


@dataclass(frozen=True)
class NoiseField:
    """Fractal noise parameters bundled with the evaluation entry points."""

    octaves: int = 4
    frequency: float = 1.0
    lacunarity: float = 2.0
    gain: float = 0.5

    def __post_init__(self) -> None:
        if int(self.octaves) != self.octaves or self.octaves < 1:
            raise ValueError(f"octaves must be a positive integer, got {self.octaves!r}")
        for name in ("frequency", "lacunarity", "gain"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0.0:
                raise ValueError(f"{name} must be a positive finite number, got {value!r}")

    def fbm(self, x: float, y: float, z: float) -> float:
        return fbm(x, y, z, self.octaves, self.frequency, self.lacunarity, self.gain)

    def sample(self, point: Vec3) -> float:
        return self.fbm(point[0], point[1], point[2])
