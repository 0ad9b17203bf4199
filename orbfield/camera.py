"""Perspective orbit camera used by the renderer and the hit tester."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .vecmath import Vec3, add, clamp, cross, dot, normalize, scale, sub

__all__ = ["Ray", "OrbitCamera"]

WORLD_UP: Vec3 = (0.0, 1.0, 0.0)


@dataclass(frozen=True)
class Ray:
    origin: Vec3
    direction: Vec3

    def at(self, t: float) -> Vec3:
        return add(self.origin, scale(self.direction, t))


class OrbitCamera:
    """Camera orbiting a target on a sphere, with damped rotation and zoom limits.

    Angles follow the usual spherical convention: ``polar`` is measured from
    +Y and ``azimuth`` around Y starting at +Z, so ``polar = pi / 2`` and
    ``azimuth = 0`` look at the target from the +Z side.
    """

    def __init__(
        self,
        *,
        fov_deg: float = 60.0,
        near: float = 0.1,
        far: float = 200.0,
        position: Vec3 = (0.0, 0.5, 5.0),
        target: Vec3 = (0.0, 0.0, 0.0),
        min_distance: float = 2.0,
        max_distance: float = 12.0,
        min_polar: float = 0.05,
        max_polar: float = math.pi - 0.05,
        damping: float = 0.05,
        width: int = 1,
        height: int = 1,
    ) -> None:
        if not (0.0 < fov_deg < 180.0):
            raise ValueError(f"fov must lie in (0, 180), got {fov_deg!r}")
        if not (0.0 < near < far):
            raise ValueError(f"invalid clip planes near={near!r} far={far!r}")
        if not (0.0 < min_distance <= max_distance):
            raise ValueError(f"invalid distance limits [{min_distance}, {max_distance}]")
        self.fov_deg = float(fov_deg)
        self.near = float(near)
        self.far = float(far)
        self.target = target
        self.min_distance = float(min_distance)
        self.max_distance = float(max_distance)
        self.min_polar = float(min_polar)
        self.max_polar = float(max_polar)
        self.damping = clamp(float(damping), 0.0, 1.0)
        self.width = max(1, int(width))
        self.height = max(1, int(height))

        offset = sub(position, target)
        distance = math.sqrt(dot(offset, offset))
        self.distance = clamp(distance, self.min_distance, self.max_distance)
        self.polar = clamp(math.acos(clamp(offset[1] / max(distance, 1e-9), -1.0, 1.0)), self.min_polar, self.max_polar)
        self.azimuth = math.atan2(offset[0], offset[2])
        self._pending_azimuth = 0.0
        self._pending_polar = 0.0

    # ------------------------------------------------------------------ state
    @property
    def aspect(self) -> float:
        return self.width / self.height

    @property
    def focal(self) -> float:
        """Focal length in pixels for the current viewport height."""

        return (self.height * 0.5) / math.tan(math.radians(self.fov_deg) * 0.5)

    @property
    def position(self) -> Vec3:
        sin_polar = math.sin(self.polar)
        offset = (
            self.distance * sin_polar * math.sin(self.azimuth),
            self.distance * math.cos(self.polar),
            self.distance * sin_polar * math.cos(self.azimuth),
        )
        return add(self.target, offset)

    def basis(self) -> Tuple[Vec3, Vec3, Vec3]:
        """Return ``(right, up, forward)`` unit vectors of the view frame."""

        forward = normalize(sub(self.target, self.position))
        right = normalize(cross(forward, WORLD_UP), fallback=(1.0, 0.0, 0.0))
        up = cross(right, forward)
        return right, up, forward

    def resize(self, width: int, height: int) -> None:
        self.width = max(1, int(width))
        self.height = max(1, int(height))

    # ------------------------------------------------------------------ controls
    def rotate(self, d_azimuth: float, d_polar: float) -> None:
        if self.damping > 0.0:
            self._pending_azimuth += d_azimuth
            self._pending_polar += d_polar
        else:
            self.azimuth += d_azimuth
            self.polar = clamp(self.polar + d_polar, self.min_polar, self.max_polar)

    def zoom(self, factor: float) -> None:
        if factor > 0.0 and math.isfinite(factor):
            self.distance = clamp(self.distance * factor, self.min_distance, self.max_distance)

    def update(self) -> None:
        """Apply a fraction of the pending rotation, like damped orbit controls."""

        if self.damping <= 0.0:
            return
        self.azimuth += self._pending_azimuth * self.damping
        self.polar = clamp(self.polar + self._pending_polar * self.damping, self.min_polar, self.max_polar)
        keep = 1.0 - self.damping
        self._pending_azimuth *= keep
        self._pending_polar *= keep
        if abs(self._pending_azimuth) < 1e-6:
            self._pending_azimuth = 0.0
        if abs(self._pending_polar) < 1e-6:
            self._pending_polar = 0.0

    # ------------------------------------------------------------------ projection
    def project(self, point: Vec3) -> Optional[Tuple[float, float, float]]:
        """Project a world point to ``(sx, sy, depth)`` in pixels.

        Points outside the near/far range return ``None``.
        """

        right, up, forward = self.basis()
        rel = sub(point, self.position)
        depth = dot(rel, forward)
        if depth < self.near or depth > self.far:
            return None
        inv = self.focal / depth
        sx = self.width * 0.5 + dot(rel, right) * inv
        sy = self.height * 0.5 - dot(rel, up) * inv
        return sx, sy, depth

    def project_many(self, points) -> List[Optional[Tuple[float, float, float]]]:
        """Batch :meth:`project` sharing one view frame for all points."""

        right, up, forward = self.basis()
        px, py, pz = self.position
        rx, ry, rz = right
        ux, uy, uz = up
        fx, fy, fz = forward
        focal = self.focal
        cx = self.width * 0.5
        cy = self.height * 0.5
        near = self.near
        far = self.far
        out: List[Optional[Tuple[float, float, float]]] = []
        for x, y, z in points:
            dx = x - px
            dy = y - py
            dz = z - pz
            depth = dx * fx + dy * fy + dz * fz
            if depth < near or depth > far:
                out.append(None)
                continue
            inv = focal / depth
            out.append((cx + (dx * rx + dy * ry + dz * rz) * inv, cy - (dx * ux + dy * uy + dz * uz) * inv, depth))
        return out

    def pixel_scale(self, depth: float) -> float:
        """Pixels covered by one world unit at ``depth``."""

        return self.focal / max(depth, self.near)

    def ndc_from_pixel(self, x: float, y: float) -> Tuple[float, float]:
        return (x / self.width) * 2.0 - 1.0, 1.0 - (y / self.height) * 2.0

    def ray_from_ndc(self, nx: float, ny: float) -> Ray:
        right, up, forward = self.basis()
        half = math.tan(math.radians(self.fov_deg) * 0.5)
        direction = add(forward, add(scale(right, nx * half * self.aspect), scale(up, ny * half)))
        return Ray(self.position, normalize(direction, fallback=forward))
