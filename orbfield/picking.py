"""Ray picking against the live orb positions.

Orbs are drawn as camera-facing sprites, so a sphere of the sprite's
half-size is an exact stand-in for the billboard from any viewing angle.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .camera import OrbitCamera, Ray
from .vecmath import Vec3

__all__ = ["intersect_sphere", "HitTester"]


def intersect_sphere(ray: Ray, center: Vec3, radius: float) -> Optional[float]:
    """Return the smallest non-negative ray parameter hitting the sphere.

    ``ray.direction`` must be a unit vector.  A ray starting inside the sphere
    reports ``0.0``.
    """

    ox = ray.origin[0] - center[0]
    oy = ray.origin[1] - center[1]
    oz = ray.origin[2] - center[2]
    dx, dy, dz = ray.direction
    b = ox * dx + oy * dy + oz * dz
    c = ox * ox + oy * oy + oz * oz - radius * radius
    if c <= 0.0:
        return 0.0
    if b > 0.0:
        return None
    disc = b * b - c
    if disc < 0.0:
        return None
    return -b - math.sqrt(disc)


class HitTester:
    """Find the nearest orb under a pointer ray."""

    def __init__(self, point_size: float = 0.18, pick_scale: float = 1.0) -> None:
        if point_size <= 0.0 or pick_scale <= 0.0:
            raise ValueError("point_size and pick_scale must be positive")
        self.point_size = float(point_size)
        self.pick_scale = float(pick_scale)

    def radius_for(self, scale: float) -> float:
        return 0.5 * self.point_size * scale * self.pick_scale

    def pick(self, ray: Ray, positions: Sequence[Vec3], scales: Sequence[float]) -> Optional[int]:
        best_id: Optional[int] = None
        best_t = math.inf
        for orb_id, center in enumerate(positions):
            t = intersect_sphere(ray, center, self.radius_for(scales[orb_id]))
            if t is not None and t < best_t:
                best_t = t
                best_id = orb_id
        return best_id

    def pick_ndc(
        self,
        camera: OrbitCamera,
        nx: float,
        ny: float,
        positions: Sequence[Vec3],
        scales: Sequence[float],
    ) -> Optional[int]:
        return self.pick(camera.ray_from_ndc(nx, ny), positions, scales)
