from __future__ import annotations

import math

import pytest

from orbfield.swarm import OrbSwarm, SwarmConfig, steering_axis
from orbfield.vecmath import dot, length, normalize


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        SwarmConfig(count=-1)
    with pytest.raises(ValueError):
        SwarmConfig(r_min=0.0)
    with pytest.raises(ValueError):
        SwarmConfig(r_min=30.0, r_max=12.0)
    with pytest.raises(ValueError):
        SwarmConfig(speed=0.0)
    with pytest.raises(ValueError):
        SwarmConfig(speed=math.nan)


def test_config_from_mapping_reads_camel_case_keys() -> None:
    cfg = SwarmConfig.from_mapping({"count": 12, "rMin": 2.0, "rMax": 4.0, "speed": 1.5, "maxDt": 0.05})
    assert cfg.count == 12
    assert (cfg.r_min, cfg.r_max) == (2.0, 4.0)
    assert cfg.speed == 1.5
    assert cfg.max_dt == 0.05
    assert cfg.turn_rate == SwarmConfig().turn_rate


def test_initial_state_respects_shell_and_speed() -> None:
    swarm = OrbSwarm(SwarmConfig(), seed=42)
    assert swarm.count == 500
    low, high = swarm.radius_bounds()
    assert 12.0 - 1e-9 <= low and high <= 30.0 + 1e-9
    assert swarm.speed_error() < 1e-9
    for scale in swarm.base_scales():
        assert 0.7 <= scale <= 1.3


def test_seeded_swarms_are_identical() -> None:
    a = OrbSwarm(SwarmConfig(count=20), seed=9)
    b = OrbSwarm(SwarmConfig(count=20), seed=9)
    for _ in range(10):
        a.step(0.016)
        b.step(0.016)
    assert a.positions() == b.positions()
    assert a.velocities() == b.velocities()


def test_steering_axis_is_unit_length() -> None:
    for i in range(50):
        assert length(steering_axis(i, i * 0.13)) == pytest.approx(1.0)


def test_speed_and_containment_hold_over_long_run() -> None:
    swarm = OrbSwarm(SwarmConfig(), seed=1)
    cfg = swarm.config
    for _ in range(1000):
        swarm.step(0.016)
        assert swarm.speed_error() < 1e-9
        low, high = swarm.radius_bounds()
        assert low >= cfg.inner_limit - 1e-9
        assert high <= cfg.r_max + 1e-9
    assert swarm.elapsed == pytest.approx(16.0)


def test_reflection_at_outer_wall() -> None:
    cfg = SwarmConfig(count=1, speed=0.35)
    swarm = OrbSwarm.from_state(cfg, [(29.999, 0.0, 0.0)], [(1.0, 0.0, 0.0)])
    swarm.step(0.033)
    p = swarm.position(0)
    assert length(p) == pytest.approx(cfg.r_max - cfg.epsilon)
    # Heading now points back inward.
    assert swarm.radial_speed(0) < 0.0
    assert length(swarm.velocities()[0]) == pytest.approx(0.35)


def test_reflection_at_inner_wall() -> None:
    cfg = SwarmConfig(count=1, speed=0.35)
    swarm = OrbSwarm.from_state(cfg, [(0.0, 6.0005, 0.0)], [(0.0, -1.0, 0.0)])
    swarm.step(0.033)
    assert length(swarm.position(0)) == pytest.approx(cfg.inner_limit + cfg.epsilon)
    assert swarm.radial_speed(0) > 0.0


def test_reflection_mirrors_about_radial_normal() -> None:
    cfg = SwarmConfig(count=1, speed=1.0, turn_rate=0.0)
    v = normalize((1.0, 1.0, 0.0))
    swarm = OrbSwarm.from_state(cfg, [(29.9999, 0.0, 0.0)], [v])
    swarm.step(0.01)
    vx, vy, vz = swarm.velocities()[0]
    # Tangential component is kept, the radial one flips.
    assert vx == pytest.approx(-v[0], abs=1e-3)
    assert vy == pytest.approx(v[1], abs=1e-3)
    assert vz == pytest.approx(0.0, abs=1e-3)


@pytest.mark.parametrize("dt", [0.0, -1.0, math.nan, math.inf])
def test_non_positive_or_non_finite_dt_does_not_move(dt: float) -> None:
    swarm = OrbSwarm(SwarmConfig(count=5), seed=2)
    before = swarm.positions()
    assert swarm.step(dt) == 0.0
    assert swarm.positions() == before
    assert swarm.elapsed == 0.0


def test_large_dt_is_clamped() -> None:
    swarm = OrbSwarm(SwarmConfig(count=3), seed=2)
    assert swarm.step(5.0) == pytest.approx(0.033)
    assert swarm.elapsed == pytest.approx(0.033)


def test_zero_velocity_and_origin_fall_back_to_unit_directions() -> None:
    cfg = SwarmConfig(count=2)
    swarm = OrbSwarm.from_state(cfg, [(0.0, 0.0, 0.0), (20.0, 0.0, 0.0)], [(0.0, 0.0, 0.0), (0.0, 0.0, 0.0)])
    for _ in range(5):
        swarm.step(0.016)
    for p, v in zip(swarm.positions(), swarm.velocities()):
        assert all(math.isfinite(c) for c in p + v)
        assert length(v) == pytest.approx(cfg.speed)
    assert length(swarm.position(0)) >= cfg.inner_limit - 1e-9


def test_snapshots_are_read_only() -> None:
    swarm = OrbSwarm(SwarmConfig(count=3), seed=4)
    orb = swarm.orb(1)
    with pytest.raises(AttributeError):
        orb.position = (0.0, 0.0, 0.0)  # type: ignore[misc]
    assert isinstance(swarm.positions(), tuple)
    assert [o.id for o in swarm.orbs()] == [0, 1, 2]
    assert dot(orb.velocity, orb.velocity) == pytest.approx(swarm.speed ** 2)
