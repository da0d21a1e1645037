"""Keeps a skeleton's feet and pelvis on target while it follows motion data."""

from __future__ import annotations

import numpy as np

from .geometry import Quaternion, Transform

# Joints tracked by the filter: two feet, then the pelvis.
FEET_JOINTS = (7, 11, 2)


def _pt(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


def get_feet(transforms, joints, prev) -> np.ndarray:
    """Positions of the tracked joints, concatenated, after posing the skeleton."""
    pts = [_pt(j) for j in joints]
    results = [transforms[0].apply(pts[0])]
    for i in range(1, len(pts)):
        p = prev[i]
        results.append(results[p] + transforms[i - 1].rot.rotate(pts[i] - pts[p]))
    return np.concatenate([results[i] for i in FEET_JOINTS])


def to_vector(transforms) -> np.ndarray:
    """Root translation followed by every rotation as ``(w, x, y, z)``."""
    if not transforms:
        raise ValueError("at least one transform is needed")
    out = np.empty(3 + 4 * len(transforms))
    out[:3] = transforms[0].trans
    for i, t in enumerate(transforms):
        out[3 + 4 * i: 7 + 4 * i] = (t.rot.w, t.rot.x, t.rot.y, t.rot.z)
    return out


def from_vector(v) -> list:
    """Transforms from a vector made by :func:`to_vector`; quaternions are normalised."""
    v = _pt(v)
    trans0 = v[:3]
    out = []
    for i in range(3, len(v) - 3, 4):
        rot = Quaternion.from_components(float(v[i]), v[i + 1:i + 4])
        out.append(Transform(rot, 1.0, trans0) if i == 3 else Transform(rot))
    return out


def adjust_vector(v, dirs) -> np.ndarray:
    """Flip each quaternion in ``v`` that points away from its match in ``dirs``."""
    v = _pt(v)
    dirs = _pt(dirs)
    out = v.copy()
    for i in range(3, len(v) - 3, 4):
        if float(v[i:i + 4] @ dirs[i:i + 4]) < 0.0:
            out[i:i + 4] = -out[i:i + 4]
    return out


def _skew(p) -> np.ndarray:
    return np.array([[0.0, -p[2], p[1]], [p[2], 0.0, -p[0]], [-p[1], p[0], 0.0]])


def _rotation_jacobian(q, p) -> np.ndarray:
    """Derivative of rotating ``p`` by the normalised quaternion ``q`` with respect to ``q``."""
    norm = float(np.linalg.norm(q))
    u = q / norm
    w, v = u[0], u[1:]
    d_w = 2.0 * np.cross(v, p)
    d_v = -2.0 * w * _skew(p) + 2.0 * (
        np.outer(v, p) + float(v @ p) * np.eye(3) - 2.0 * np.outer(p, v)
    )
    d_unit = np.column_stack([d_w, d_v])
    return d_unit @ (np.eye(4) - np.outer(u, u)) / norm


class MotionFilter:
    """Adjusts incoming bone rotations so tracked joints follow target positions."""

    def __init__(self, joints, prev):
        self._joints = [_pt(j).copy() for j in joints]
        self._prev = list(prev)
        self._prev_trans = np.zeros(3)
        self._prev_feet = np.zeros(0)
        self._current = []

    @property
    def transforms(self) -> list:
        """The filtered bone transforms."""
        return list(self._current)

    def jacobian(self, transforms) -> np.ndarray:
        """Derivative of the tracked joints with respect to :func:`to_vector` of ``transforms``."""
        x = to_vector(transforms)
        n = len(x)
        joints, prev = self._joints, self._prev
        quats = [x[3 + 4 * k: 7 + 4 * k] for k in range(len(transforms))]

        root = np.zeros((3, n))
        root[:, :3] = np.eye(3)
        root[:, 3:7] = _rotation_jacobian(quats[0], joints[0])
        derivs = [root]
        for i in range(1, len(joints)):
            p = prev[i]
            d = derivs[p].copy()
            col = 3 + 4 * (i - 1)
            d[:, col:col + 4] += _rotation_jacobian(quats[i - 1], joints[i] - joints[p])
            derivs.append(d)
        return np.vstack([derivs[j] for j in FEET_JOINTS])

    def step(self, transforms, feet):
        """Advance by one frame toward ``transforms`` with tracked joints at ``feet``."""
        feet_v = np.concatenate([_pt(f) for f in feet])

        if not self._current:
            self._prev_feet = feet_v
            self._prev_trans = _pt(feet[-1]).copy()
            self._current = list(transforms)
            self._add_translation()
            return

        current_vec = to_vector(self._current)
        # flip incoming quaternions to lie near the current ones
        targets = from_vector(adjust_vector(to_vector(transforms), current_vec))

        jac = self.jacobian(self._current)
        regularizer = np.eye(jac.shape[0]) * 1e-4
        for k in (6, 7, 8):
            regularizer[k, k] = 1e-2
        jac_pi = jac.T @ np.linalg.inv(jac @ jac.T + regularizer)

        delta = feet_v - self._prev_feet
        length = float(np.linalg.norm(delta))
        if length > 0.1:
            delta = delta / length * 0.1
        error = (feet_v - get_feet(self._current, self._joints, self._prev)) * 0.5
        delta = delta + error

        t_delta = jac_pi @ delta
        projection = np.eye(jac.shape[1]) - jac_pi @ jac

        toward = to_vector(targets) - current_vec
        toward[:3] = 0.0 * (targets[0].trans - self._prev_trans)
        t_delta = t_delta + projection @ toward * 0.8

        self._current = from_vector(current_vec + t_delta)
        self._add_translation()

        self._prev_feet = feet_v
        self._prev_trans = targets[0].trans.copy()

    def _add_translation(self):
        """Rebuild bone translations so every bone pivots on its posed parent joint."""
        joints, prev = self._joints, self._prev
        cur = self._current
        pts = [j.copy() for j in joints]
        pts[0] = cur[0].apply(pts[0])
        pts[1] = cur[0].apply(pts[1])
        for i in range(1, len(cur)):
            pi = prev[i + 1]
            cur[i] = (
                Transform.translation(pts[pi])
                * Transform(cur[i].rot)
                * Transform.translation(-joints[pi])
            )
            pts[i + 1] = cur[i].apply(joints[i + 1])