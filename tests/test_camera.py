from __future__ import annotations

import math

import pytest

from orbfield.camera import OrbitCamera
from orbfield.vecmath import cross, length, sub


def _camera() -> OrbitCamera:
    camera = OrbitCamera(damping=0.0)
    camera.resize(800, 600)
    return camera


def test_initial_position_matches_requested_eye() -> None:
    camera = OrbitCamera()
    px, py, pz = camera.position
    assert px == pytest.approx(0.0, abs=1e-9)
    assert py == pytest.approx(0.5)
    assert pz == pytest.approx(5.0)


def test_target_projects_to_viewport_center() -> None:
    sx, sy, depth = _camera().project((0.0, 0.0, 0.0))
    assert sx == pytest.approx(400.0)
    assert sy == pytest.approx(300.0)
    assert depth == pytest.approx(math.sqrt(25.25))


def test_points_behind_the_camera_are_culled() -> None:
    camera = _camera()
    assert camera.project((0.0, 1.0, 50.0)) is None
    assert camera.project_many([(0.0, 1.0, 50.0), (0.0, 0.0, 0.0)])[0] is None


def test_project_many_matches_project() -> None:
    camera = _camera()
    points = [(0.5, -0.2, 1.0), (-1.0, 0.7, -2.0), (3.0, 0.0, 0.0)]
    for single, batch in zip((camera.project(p) for p in points), camera.project_many(points)):
        assert batch == pytest.approx(single)


def test_ray_through_projected_pixel_hits_the_point() -> None:
    camera = _camera()
    point = (0.8, -0.4, 1.2)
    sx, sy, _depth = camera.project(point)
    ray = camera.ray_from_ndc(*camera.ndc_from_pixel(sx, sy))
    offset = sub(point, ray.origin)
    # Distance from the point to the ray line.
    assert length(cross(offset, ray.direction)) == pytest.approx(0.0, abs=1e-6)
    assert length(ray.direction) == pytest.approx(1.0)


def test_zoom_is_clamped() -> None:
    camera = _camera()
    camera.zoom(100.0)
    assert camera.distance == pytest.approx(12.0)
    camera.zoom(0.001)
    assert camera.distance == pytest.approx(2.0)
    camera.zoom(math.nan)
    assert camera.distance == pytest.approx(2.0)


def test_polar_angle_is_clamped() -> None:
    camera = _camera()
    camera.rotate(0.0, 10.0)
    assert camera.polar == pytest.approx(math.pi - 0.05)
    camera.rotate(0.0, -10.0)
    assert camera.polar == pytest.approx(0.05)


def test_damped_rotation_converges() -> None:
    camera = OrbitCamera(damping=0.1)
    start = camera.azimuth
    camera.rotate(1.0, 0.0)
    assert camera.azimuth == start
    for _ in range(300):
        camera.update()
    assert camera.azimuth == pytest.approx(start + 1.0, abs=1e-4)


def test_invalid_construction() -> None:
    with pytest.raises(ValueError):
        OrbitCamera(fov_deg=0.0)
    with pytest.raises(ValueError):
        OrbitCamera(near=10.0, far=1.0)
