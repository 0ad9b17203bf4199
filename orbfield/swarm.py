"""Constant-speed orb swarm confined to a spherical shell.

Every orb keeps ``‖velocity‖ == speed``.  Heading changes come only from a
slow rotation around a per-orb axis that drifts with time, and the shell is a
hard reflective wall: an orb leaving ``[r_min / 2, r_max]`` has its velocity
mirrored about the radial normal and its position clamped back onto the
boundary.

The swarm owns its state.  Callers advance it with :meth:`OrbSwarm.step` and
read it back through immutable snapshots.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, replace
from typing import List, Mapping, Optional, Sequence, Tuple

from .vecmath import (
    Vec3,
    dot,
    length,
    lerp,
    normalize,
    random_unit,
    reflect,
    rotate_about_axis,
    with_length,
)

__all__ = ["SwarmConfig", "Orb", "OrbSwarm", "steering_axis"]


@dataclass(frozen=True)
class SwarmConfig:
    count: int = 500
    r_min: float = 12.0
    r_max: float = 30.0
    speed: float = 0.35
    turn_rate: float = 0.15
    max_dt: float = 0.033
    epsilon: float = 0.001
    base_scale_range: Tuple[float, float] = (0.7, 1.3)

    def __post_init__(self) -> None:
        if int(self.count) != self.count or self.count < 0:
            raise ValueError(f"orb count must be a non-negative integer, got {self.count!r}")
        for name in ("r_min", "r_max", "speed", "turn_rate", "max_dt", "epsilon"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
        if self.r_min <= 0.0 or self.r_max < self.r_min:
            raise ValueError(f"invalid shell radii [{self.r_min}, {self.r_max}]")
        if self.speed <= 0.0:
            raise ValueError(f"speed must be positive, got {self.speed!r}")
        if self.max_dt <= 0.0:
            raise ValueError(f"max_dt must be positive, got {self.max_dt!r}")
        if not (0.0 <= self.epsilon < self.r_min * 0.5):
            raise ValueError(f"epsilon must lie in [0, r_min / 2), got {self.epsilon!r}")
        low, high = self.base_scale_range
        if not (0.0 < low <= high):
            raise ValueError(f"invalid base scale range {self.base_scale_range!r}")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> "SwarmConfig":
        """Build a config from the camelCase ``swarm`` configuration section."""

        def _num(key: str, fallback: float) -> float:
            value = raw.get(key, fallback)
            return float(value) if value is not None else fallback  # type: ignore[arg-type]

        defaults = cls()
        return cls(
            count=int(_num("count", defaults.count)),
            r_min=_num("rMin", defaults.r_min),
            r_max=_num("rMax", defaults.r_max),
            speed=_num("speed", defaults.speed),
            turn_rate=_num("turnRate", defaults.turn_rate),
            max_dt=_num("maxDt", defaults.max_dt),
            epsilon=_num("epsilon", defaults.epsilon),
            base_scale_range=(
                _num("baseScaleMin", defaults.base_scale_range[0]),
                _num("baseScaleMax", defaults.base_scale_range[1]),
            ),
        )

    @property
    def inner_limit(self) -> float:
        return self.r_min * 0.5


@dataclass(frozen=True)
class Orb:
    """Read-only snapshot of one orb."""

    id: int
    position: Vec3
    velocity: Vec3
    base_scale: float


def steering_axis(index: int, t: float) -> Vec3:
    """Unit axis that varies smoothly with time and differs between orbs."""

    axis = (
        math.sin(0.37 * index + t * 0.9),
        math.cos(0.23 * index + t * 1.1),
        math.sin(0.19 * index - t * 0.7),
    )
    return normalize(axis)


class OrbSwarm:
    def __init__(
        self,
        config: Optional[SwarmConfig] = None,
        *,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ) -> None:
        self.config = config if config is not None else SwarmConfig()
        self._rng = rng if rng is not None else random.Random(seed)
        self._elapsed = 0.0
        self._positions: List[Vec3] = []
        self._velocities: List[Vec3] = []
        self._base_scales: List[float] = []
        self._populate()

    def _populate(self) -> None:
        cfg = self.config
        rng = self._rng
        low, high = cfg.base_scale_range
        for _ in range(cfg.count):
            # Radius is interpolated, not volume-uniform: outer radii end up
            # slightly sparser than a true shell distribution.
            direction = random_unit(rng)
            radius = lerp(cfg.r_min, cfg.r_max, rng.random())
            self._positions.append((direction[0] * radius, direction[1] * radius, direction[2] * radius))
            self._velocities.append(with_length(random_unit(rng), cfg.speed))
            self._base_scales.append(lerp(low, high, rng.random()))

    @classmethod
    def from_state(
        cls,
        config: SwarmConfig,
        positions: Sequence[Vec3],
        velocities: Sequence[Vec3],
        base_scales: Optional[Sequence[float]] = None,
    ) -> "OrbSwarm":
        """Rebuild a swarm from explicit positions and velocities.

        Velocities are rescaled to the configured speed.
        """

        if len(positions) != len(velocities):
            raise ValueError("positions and velocities must have the same length")
        if base_scales is not None and len(base_scales) != len(positions):
            raise ValueError("base_scales must match the number of positions")
        swarm = cls(replace(config, count=0))
        swarm.config = replace(config, count=len(positions))
        swarm._positions = [(float(p[0]), float(p[1]), float(p[2])) for p in positions]
        swarm._velocities = [with_length(v, config.speed) for v in velocities]
        if base_scales is None:
            swarm._base_scales = [1.0] * len(positions)
        else:
            swarm._base_scales = [float(s) for s in base_scales]
        return swarm

    # ------------------------------------------------------------------ access
    @property
    def count(self) -> int:
        return len(self._positions)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def speed(self) -> float:
        return self.config.speed

    def positions(self) -> Tuple[Vec3, ...]:
        return tuple(self._positions)

    def velocities(self) -> Tuple[Vec3, ...]:
        return tuple(self._velocities)

    def base_scales(self) -> Tuple[float, ...]:
        return tuple(self._base_scales)

    def position(self, orb_id: int) -> Vec3:
        return self._positions[orb_id]

    def base_scale(self, orb_id: int) -> float:
        return self._base_scales[orb_id]

    def orb(self, orb_id: int) -> Orb:
        return Orb(orb_id, self._positions[orb_id], self._velocities[orb_id], self._base_scales[orb_id])

    def orbs(self) -> Tuple[Orb, ...]:
        return tuple(self.orb(i) for i in range(self.count))

    # ------------------------------------------------------------------ simulation
    def step(self, dt: float) -> float:
        """Advance every orb by ``dt`` seconds and return the dt actually used.

        ``dt`` is clamped to ``[0, max_dt]`` so a long frame gap cannot push
        orbs far past the walls in a single integration step.
        """

        cfg = self.config
        if not math.isfinite(dt) or dt <= 0.0:
            return 0.0
        dt = min(dt, cfg.max_dt)
        self._elapsed += dt
        t = self._elapsed
        speed = cfg.speed
        angle = cfg.turn_rate * dt
        outer = cfg.r_max
        inner = cfg.inner_limit
        eps = cfg.epsilon
        positions = self._positions
        velocities = self._velocities

        for i in range(len(positions)):
            v = velocities[i]
            axis = steering_axis(i, t)
            v = rotate_about_axis(v, axis, angle)
            v = with_length(v, speed, fallback=axis)

            p = positions[i]
            p = (p[0] + v[0] * dt, p[1] + v[1] * dt, p[2] + v[2] * dt)

            radius = length(p)
            if radius > outer:
                p, v = self._bounce(p, v, outer - eps)
            elif radius < inner:
                p, v = self._bounce(p, v, inner + eps)

            positions[i] = p
            velocities[i] = v
        return dt

    def _bounce(self, p: Vec3, v: Vec3, target_radius: float) -> Tuple[Vec3, Vec3]:
        speed = self.config.speed
        # An orb sitting exactly on the origin has no outward normal; push it
        # along its own heading instead.
        n = normalize(p, fallback=normalize(v))
        v = with_length(reflect(v, n), speed, fallback=n)
        p = (n[0] * target_radius, n[1] * target_radius, n[2] * target_radius)
        return p, v

    # ------------------------------------------------------------------ diagnostics
    def speed_error(self) -> float:
        """Largest deviation of any orb speed from the configured speed."""

        speed = self.config.speed
        return max((abs(length(v) - speed) for v in self._velocities), default=0.0)

    def radius_bounds(self) -> Tuple[float, float]:
        if not self._positions:
            return 0.0, 0.0
        radii = [length(p) for p in self._positions]
        return min(radii), max(radii)

    def radial_speed(self, orb_id: int) -> float:
        p = self._positions[orb_id]
        return dot(self._velocities[orb_id], normalize(p))
