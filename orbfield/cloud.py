"""Procedural cloud volume sculpted by rejection sampling a noisy lobe field.

A :class:`ShapeField` is a blobby union of spherical lobes.  The
:class:`CloudSampler` draws candidates inside a warped unit ball, scores them
with the lobe field plus fractal noise detail and keeps those whose density
clears a small threshold.  Each accepted point is pushed along its own
direction by the noise value which gives the ragged "cauliflower" rim.

Three shells (core, mid, fringe) with increasing jitter and decreasing opacity
are layered to fake the density falloff of a real cloud.  The sampler runs
once per rebuild; nothing here belongs to the per-frame path.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from . import log
from .noise import NoiseField
from .vecmath import Vec3, clamp, clamp01, is_finite, lerp, normalize

RGB = Tuple[float, float, float]

__all__ = [
    "RGB",
    "Lobe",
    "ShapeField",
    "ShellSpec",
    "CloudPoint",
    "CloudLayer",
    "CloudSampler",
    "DEFAULT_SHELLS",
    "build_cloud",
]


@dataclass(frozen=True)
class Lobe:
    """Spherical puff contributing to the cloud silhouette."""

    center: Vec3
    radius: float

    def __post_init__(self) -> None:
        if not is_finite(self.center):
            raise ValueError(f"lobe center must be finite, got {self.center!r}")
        if not math.isfinite(self.radius) or self.radius <= 0.0:
            raise ValueError(f"lobe radius must be positive, got {self.radius!r}")


class ShapeField:
    """Ordered set of lobes evaluated as ``min(‖p - c‖ / r)``.

    Values below 1 are inside at least one lobe.  This is a cheap estimate,
    not an exact signed distance.
    """

    def __init__(self, lobes: Sequence[Lobe]):
        self.lobes: Tuple[Lobe, ...] = tuple(lobes)
        if not self.lobes:
            raise ValueError("a shape field needs at least one lobe")

    @classmethod
    def default(cls) -> "ShapeField":
        return cls([Lobe((0.0, 0.0, 0.0), 1.0), Lobe((0.75, 0.1, 0.0), 0.65)])

    @classmethod
    def from_config(cls, raw: Sequence[Mapping[str, object]]) -> "ShapeField":
        lobes = []
        for entry in raw:
            center = entry.get("center", (0.0, 0.0, 0.0))
            cx, cy, cz = (float(c) for c in center)  # type: ignore[union-attr]
            lobes.append(Lobe((cx, cy, cz), float(entry.get("radius", 1.0))))  # type: ignore[arg-type]
        return cls(lobes)

    def density(self, point: Vec3) -> float:
        best = math.inf
        px, py, pz = point
        for lobe in self.lobes:
            cx, cy, cz = lobe.center
            dx = px - cx
            dy = py - cy
            dz = pz - cz
            d = math.sqrt(dx * dx + dy * dy + dz * dz) / lobe.radius
            if d < best:
                best = d
        return best


@dataclass(frozen=True)
class ShellSpec:
    """One layer of the cloud (core, mid or fringe)."""

    count: int
    jitter: float
    point_size: float
    opacity: float
    name: str = ""

    def __post_init__(self) -> None:
        if int(self.count) != self.count or self.count < 0:
            raise ValueError(f"shell count must be a non-negative integer, got {self.count!r}")
        if not math.isfinite(self.jitter) or self.jitter < 0.0:
            raise ValueError(f"shell jitter must be >= 0, got {self.jitter!r}")
        if not math.isfinite(self.point_size) or self.point_size <= 0.0:
            raise ValueError(f"shell point size must be > 0, got {self.point_size!r}")
        if not (0.0 <= self.opacity <= 1.0):
            raise ValueError(f"shell opacity must lie in [0, 1], got {self.opacity!r}")


DEFAULT_SHELLS: Tuple[ShellSpec, ...] = (
    ShellSpec(count=2400, jitter=0.04, point_size=0.05, opacity=0.55, name="core"),
    ShellSpec(count=1600, jitter=0.12, point_size=0.075, opacity=0.32, name="mid"),
    ShellSpec(count=1000, jitter=0.28, point_size=0.11, opacity=0.16, name="fringe"),
)


@dataclass(frozen=True)
class CloudPoint:
    position: Vec3
    color: RGB


@dataclass(frozen=True)
class CloudLayer:
    """Accepted points of one shell together with its render settings."""

    spec: ShellSpec
    points: Tuple[CloudPoint, ...] = field(default_factory=tuple)

    @property
    def filled(self) -> float:
        if self.spec.count == 0:
            return 1.0
        return len(self.points) / self.spec.count


class CloudSampler:
    """Rejection sampler turning a shape field and noise into point layers."""

    def __init__(
        self,
        shape: Optional[ShapeField] = None,
        noise: Optional[NoiseField] = None,
        *,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        warp: Vec3 = (1.6, 0.85, 1.1),
        noise_scale: float = 1.8,
        detail_weight: float = 0.6,
        threshold: float = 0.02,
        attempt_factor: int = 8,
        bottom_color: RGB = (0.62, 0.66, 0.74),
        top_color: RGB = (1.0, 1.0, 1.0),
    ) -> None:
        if not is_finite(warp) or min(warp) <= 0.0:
            raise ValueError(f"warp factors must be positive, got {warp!r}")
        if attempt_factor < 1:
            raise ValueError(f"attempt_factor must be >= 1, got {attempt_factor!r}")
        self.shape = shape if shape is not None else ShapeField.default()
        self.noise = noise if noise is not None else NoiseField()
        self.rng = rng if rng is not None else random.Random(seed)
        self.warp = warp
        self.noise_scale = float(noise_scale)
        self.detail_weight = float(detail_weight)
        self.threshold = float(threshold)
        self.attempt_factor = int(attempt_factor)
        self.bottom_color = bottom_color
        self.top_color = top_color

    def _random_in_unit_ball(self) -> Vec3:
        rnd = self.rng.random
        while True:
            x = rnd() * 2.0 - 1.0
            y = rnd() * 2.0 - 1.0
            z = rnd() * 2.0 - 1.0
            if x * x + y * y + z * z <= 1.0:
                return (x, y, z)

    @staticmethod
    def base_bias(y: float) -> float:
        """Extra density granted to low points so the cloud sits on a heavy base."""

        return clamp((0.2 - y) * 0.3, 0.0, 0.25)

    def _color_for_height(self, y: float) -> RGB:
        span = self.warp[1]
        t = clamp01((y + span) / (2.0 * span))
        bottom = self.bottom_color
        top = self.top_color
        return (lerp(bottom[0], top[0], t), lerp(bottom[1], top[1], t), lerp(bottom[2], top[2], t))

    def sample_shell(self, spec: ShellSpec) -> List[CloudPoint]:
        points: List[CloudPoint] = []
        target = spec.count
        budget = target * self.attempt_factor
        wx, wy, wz = self.warp
        ns = self.noise_scale
        attempts = 0
        while len(points) < target and attempts < budget:
            attempts += 1
            bx, by, bz = self._random_in_unit_ball()
            p = (bx * wx, by * wy, bz * wz)
            sdf = self.shape.density(p)
            n3 = self.noise.fbm(p[0] * ns, p[1] * ns, p[2] * ns)
            density = (1.2 - sdf) + (n3 - 0.5) * self.detail_weight
            if density + self.base_bias(p[1]) < self.threshold:
                continue
            push = (n3 - 0.5) * spec.jitter
            dx, dy, dz = normalize(p)
            pos = (p[0] + dx * push, p[1] + dy * push, p[2] + dz * push)
            points.append(CloudPoint(pos, self._color_for_height(pos[1])))
        return points

    def sample(self, shells: Sequence[ShellSpec] = DEFAULT_SHELLS) -> List[CloudLayer]:
        layers = []
        for spec in shells:
            layer = CloudLayer(spec, tuple(self.sample_shell(spec)))
            log.debug(
                "cloud shell %s: %d/%d points (%.0f%%)"
                % (spec.name or "?", len(layer.points), spec.count, layer.filled * 100.0)
            )
            layers.append(layer)
        return layers


def build_cloud(cloud_cfg: Mapping[str, object], seed: Optional[int] = None) -> List[CloudLayer]:
    """Build the cloud layers described by the ``cloud`` configuration section."""

    raw_lobes = cloud_cfg.get("lobes")
    shape = ShapeField.from_config(raw_lobes) if raw_lobes else ShapeField.default()  # type: ignore[arg-type]
    noise = NoiseField(octaves=int(cloud_cfg.get("octaves", 4)))  # type: ignore[arg-type]
    raw_warp = cloud_cfg.get("warp", (1.6, 0.85, 1.1))
    wx, wy, wz = (float(v) for v in raw_warp)  # type: ignore[union-attr]
    sampler = CloudSampler(
        shape,
        noise,
        seed=seed,
        warp=(wx, wy, wz),
        noise_scale=float(cloud_cfg.get("noiseScale", 1.8)),  # type: ignore[arg-type]
        detail_weight=float(cloud_cfg.get("detailWeight", 0.6)),  # type: ignore[arg-type]
        threshold=float(cloud_cfg.get("threshold", 0.02)),  # type: ignore[arg-type]
        attempt_factor=int(cloud_cfg.get("attemptFactor", 8)),  # type: ignore[arg-type]
    )
    raw_shells = cloud_cfg.get("shells")
    if raw_shells:
        shells = [
            ShellSpec(
                count=int(entry["count"]),
                jitter=float(entry.get("jitter", 0.1)),
                point_size=float(entry.get("pointSize", 0.08)),
                opacity=float(entry.get("opacity", 0.3)),
                name=str(entry.get("name", "")),
            )
            for entry in raw_shells  # type: ignore[union-attr]
        ]
    else:
        shells = list(DEFAULT_SHELLS)
    layers = sampler.sample(shells)
    total = sum(len(layer.points) for layer in layers)
    log.info(f"cloud built: {total} points across {len(layers)} shells")
    return layers
