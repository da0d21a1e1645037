import numpy as np
import pytest

from autorig.discretization import (
    connect_samples,
    max_dist,
    min_dot,
    pack_spheres,
    sample_medial_surface,
)
from autorig.geometry import Sphere


def unit_ball(p):
    return float(np.linalg.norm(np.asarray(p, dtype=float))) - 1.0


def dumbbell(p):
    p = np.asarray(p, dtype=float)
    a = np.linalg.norm(p - np.array([1.0, 0.0, 0.0])) - 0.5
    b = np.linalg.norm(p + np.array([1.0, 0.0, 0.0])) - 0.5
    return float(min(a, b))


def test_min_dot_far_from_centre_is_near_one():
    assert min_dot(unit_ball, (0.5, 0.0, 0.0), 0.01) > 0.99


def test_min_dot_at_centre_is_minus_one():
    assert min_dot(unit_ball, (0.0, 0.0, 0.0), 0.1) == pytest.approx(-1.0, abs=1e-6)


def test_min_dot_uses_gradient_method():
    class Field:
        def __call__(self, p):
            return 0.0

        def gradient(self, p):
            return np.array([0.0, 0.0, 1.0])

    assert min_dot(Field(), (0.0, 0.0, 0.0), 0.5) == pytest.approx(1.0)


def test_sample_medial_surface_finds_ball_centre():
    out = sample_medial_surface(unit_ball, [((0.0, 0.0, 0.0), (0.2, 0.2, 0.2))], 0.05)
    assert len(out) == 1
    assert np.allclose(out[0].center, 0.0)
    assert out[0].radius == pytest.approx(1.0)


def test_sample_medial_surface_skips_cells_off_the_axis():
    assert sample_medial_surface(unit_ball, [((0.5, 0.5, 0.5), (0.6, 0.6, 0.6))], 0.05) == []


def test_sample_medial_surface_sorted_by_radius():
    cells = [
        ((0.0, 0.0, 0.0), (0.2, 0.2, 0.2)),
        ((1.0, 0.0, 0.0), (1.2, 0.2, 0.2)),
    ]
    field = lambda p: min(unit_ball(p), unit_ball(np.asarray(p) - (1.0, 0.0, 0.0)) + 0.5)
    out = sample_medial_surface(field, cells, 0.05)
    radii = [s.radius for s in out]
    assert radii == sorted(radii, reverse=True)
    assert len(out) >= 1


def test_sample_medial_surface_rejects_non_positive_tol():
    with pytest.raises(ValueError):
        sample_medial_surface(unit_ball, [((0, 0, 0), (1, 1, 1))], 0.0)


def test_pack_spheres_drops_covered_centres():
    samples = [
        Sphere(np.array([0.0, 0.0, 0.0]), 0.5),
        Sphere(np.array([0.1, 0.0, 0.0]), 0.4),
        Sphere(np.array([2.0, 0.0, 0.0]), 0.3),
    ]
    out = pack_spheres(samples, 10)
    assert [s.radius for s in out] == [0.5, 0.3]


def test_pack_spheres_stops_one_past_limit():
    samples = [Sphere(np.array([float(i) * 3, 0.0, 0.0]), 0.5) for i in range(5)]
    out = pack_spheres(samples, 1)
    assert len(out) == 2
    assert out[0] is samples[0]


def test_max_dist_whole_segment():
    assert max_dist(unit_ball, (0, 0, 0), (0.5, 0, 0), 10.0) == pytest.approx(-0.5)


def test_max_dist_stops_when_exceeded():
    result = max_dist(unit_ball, (0, 0, 0), (0.5, 0, 0), -0.9)
    assert -0.9 < result < -0.85


def test_connect_overlapping_and_inside_pairs():
    spheres = [
        Sphere(np.array([-0.3, 0.0, 0.0]), 0.1),
        Sphere(np.array([0.3, 0.0, 0.0]), 0.1),
    ]
    g = connect_samples(unit_ball, spheres)
    assert g.edges == [[1], [0]]
    assert g.integrity_check()


def test_connect_skips_pairs_through_outside():
    spheres = [
        Sphere(np.array([1.0, 0.0, 0.0]), 0.4),
        Sphere(np.array([-1.0, 0.0, 0.0]), 0.4),
    ]
    g = connect_samples(dumbbell, spheres)
    assert g.edges == [[], []]


def test_connect_respects_gabriel_condition():
    spheres = [
        Sphere(np.array([-0.4, 0.0, 0.0]), 0.1),
        Sphere(np.array([0.0, 0.0, 0.0]), 0.1),
        Sphere(np.array([0.4, 0.0, 0.0]), 0.1),
    ]
    g = connect_samples(unit_ball, spheres)
    assert sorted(g.edges[0]) == [1]
    assert sorted(g.edges[1]) == [0, 2]
    assert sorted(g.edges[2]) == [1]
    assert g.integrity_check()