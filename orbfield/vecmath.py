"""Small tuple-based 3D vector helpers used by the swarm, the camera and picking."""

from __future__ import annotations

import math
import random
from typing import Optional, Tuple

Vec3 = Tuple[float, float, float]

__all__ = [
    "Vec3",
    "add",
    "sub",
    "scale",
    "dot",
    "cross",
    "length",
    "normalize",
    "with_length",
    "rotate_about_axis",
    "reflect",
    "lerp",
    "clamp",
    "clamp01",
    "is_finite",
    "random_unit",
]

FALLBACK_AXIS: Vec3 = (0.0, 1.0, 0.0)


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(a: Vec3, k: float) -> Vec3:
    return (a[0] * k, a[1] * k, a[2] * k)


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Vec3) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def is_finite(a: Vec3) -> bool:
    return math.isfinite(a[0]) and math.isfinite(a[1]) and math.isfinite(a[2])


def normalize(a: Vec3, fallback: Optional[Vec3] = None) -> Vec3:
    """Return ``a`` scaled to unit length.

    A zero-length (or non-finite) vector has no direction; ``fallback`` is
    returned instead, or the +Y axis when no fallback is given.
    """

    n = length(a)
    if n <= 1e-12 or not math.isfinite(n):
        return fallback if fallback is not None else FALLBACK_AXIS
    inv = 1.0 / n
    return (a[0] * inv, a[1] * inv, a[2] * inv)


def with_length(a: Vec3, target: float, fallback: Optional[Vec3] = None) -> Vec3:
    return scale(normalize(a, fallback), target)


def rotate_about_axis(v: Vec3, axis: Vec3, angle: float) -> Vec3:
    """Rodrigues rotation of ``v`` around the unit vector ``axis``."""

    c = math.cos(angle)
    s = math.sin(angle)
    k_dot_v = dot(axis, v)
    kx, ky, kz = axis
    return (
        v[0] * c + (ky * v[2] - kz * v[1]) * s + kx * k_dot_v * (1.0 - c),
        v[1] * c + (kz * v[0] - kx * v[2]) * s + ky * k_dot_v * (1.0 - c),
        v[2] * c + (kx * v[1] - ky * v[0]) * s + kz * k_dot_v * (1.0 - c),
    )


def reflect(v: Vec3, normal: Vec3) -> Vec3:
    """Mirror ``v`` about the plane whose unit normal is ``normal``."""

    d = 2.0 * dot(v, normal)
    return (v[0] - d * normal[0], v[1] - d * normal[1], v[2] - d * normal[2])


def random_unit(rng: random.Random) -> Vec3:
    """Uniform direction on the unit sphere (uniform solid angle)."""

    theta = 2.0 * math.pi * rng.random()
    phi = math.acos(2.0 * rng.random() - 1.0)
    sin_phi = math.sin(phi)
    return (sin_phi * math.cos(theta), math.cos(phi), sin_phi * math.sin(theta))
