import itertools

import numpy as np
import pytest

from autorig.attachment import Attachment, VisibilityTester, vector_in_cone, vertex_rings
from autorig.geometry import Quaternion, Transform


def octahedron():
    positions = np.array(
        [[1, 0, 0], [-1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1], [0, 0, -1]], dtype=float
    )
    triangles = []
    for sx, sy, sz in itertools.product((1, -1), repeat=3):
        tri = [0 if sx > 0 else 1, 2 if sy > 0 else 3, 4 if sz > 0 else 5]
        if sx * sy * sz < 0:
            tri.reverse()
        triangles.append(tri)
    return positions, triangles


class AlwaysVisible:
    def can_see(self, v1, v2):
        return True


PREV = [-1, 0, 0]
MATCH = [(0.0, 0.0, 0.0), (0.0, 0.5, 0.0), (0.0, -0.5, 0.0)]


@pytest.fixture
def attachment():
    positions, triangles = octahedron()
    return Attachment(positions, triangles, PREV, MATCH, AlwaysVisible(), 1.0)


def unit_ball(p):
    return float(np.linalg.norm(np.asarray(p, dtype=float))) - 1.0


def test_can_see_from_inside():
    assert VisibilityTester(unit_ball).can_see((0.5, 0, 0), (0, 0, 0)) is True


def test_cannot_see_from_outside():
    assert VisibilityTester(unit_ball).can_see((2.0, 0, 0), (0, 0, 0)) is False


def test_vector_in_cone():
    normals = [(1.0, 0.1, 0.0), (1.0, -0.1, 0.0)]
    assert vector_in_cone((1.0, 0.0, 0.0), normals) is True
    assert vector_in_cone((0.0, 1.0, 0.0), normals) is False


def test_vertex_rings_follow_triangles():
    positions, triangles = octahedron()
    rings = vertex_rings(positions, triangles)
    faces = {tuple(np.roll(t, -k)) for t in triangles for k in range(3)}
    for v, ring in enumerate(rings):
        assert len(ring) == 4
        for a, b in zip(ring, ring[1:] + ring[:1]):
            assert (v, a, b) in faces


def test_vertex_rings_reject_open_mesh():
    with pytest.raises(ValueError):
        vertex_rings(np.eye(3), [[0, 1, 2]])


def test_weights_sum_to_one(attachment):
    for i in range(6):
        assert attachment.weights(i).sum() == pytest.approx(1.0)
        assert len(attachment.weights(i)) == 2


def test_nearest_bone_dominates(attachment):
    top = attachment.weights(2)
    bottom = attachment.weights(3)
    assert top[0] > top[1]
    assert bottom[1] > bottom[0]
    assert top[0] == pytest.approx(bottom[1])


def test_nonzero_weights_match_dense(attachment):
    pairs = attachment.nonzero_weights(0)
    dense = attachment.weights(0)
    assert sum(w for _, w in pairs) == pytest.approx(1.0)
    for bone, w in pairs:
        assert dense[bone] == pytest.approx(w)


def test_deform_identity_keeps_positions(attachment):
    positions, _ = octahedron()
    out = attachment.deform(positions, [Transform(), Transform()])
    assert np.allclose(out, positions)


def test_deform_common_rigid_motion(attachment):
    positions, _ = octahedron()
    t = Transform(Quaternion.from_axis_angle((0, 0, 1), 0.7), 1.0, np.array([1.0, 2.0, 3.0]))
    out = attachment.deform(positions, [t, t])
    assert np.allclose(out, [t.apply(p) for p in positions])


def test_deform_mismatched_mesh_returned_unchanged(attachment):
    positions, _ = octahedron()
    out = attachment.deform(positions[:3], [Transform.translation((5, 5, 5))] * 2)
    assert np.array_equal(out, positions[:3])


def test_mismatched_skeleton_rejected():
    positions, triangles = octahedron()
    with pytest.raises(ValueError):
        Attachment(positions, triangles, [-1, 0], MATCH, AlwaysVisible(), 1.0)