"""Vectors, quaternions and similarity transforms in three dimensions."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np


def _vec(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


def normalize(v) -> np.ndarray:
    """Return ``v`` scaled to unit length; a zero vector yields NaN components."""
    arr = _vec(v)
    with np.errstate(invalid="ignore", divide="ignore"):
        return arr / np.sqrt(arr @ arr)


def dist_sq_to_segment(p, a, b) -> float:
    """Squared distance from point ``p`` to the segment from ``a`` to ``b``."""
    p, a, b = _vec(p), _vec(a), _vec(b)
    direction = b - a
    from_b = b - p
    if from_b @ direction <= 0.0:
        return float(from_b @ from_b)
    from_a = p - a
    dot = from_a @ direction
    if dot <= 0.0:
        return float(from_a @ from_a)
    return float(max(0.0, from_a @ from_a - dot * dot / (direction @ direction)))


def project_to_segment(p, a, b) -> np.ndarray:
    """Closest point to ``p`` on the segment from ``a`` to ``b``."""
    p, a, b = _vec(p), _vec(a), _vec(b)
    direction = b - a
    if direction @ (p - b) >= 0.0:
        return b.copy()
    dot = direction @ (p - a)
    if dot <= 0.0:
        return a.copy()
    return a + (dot / (direction @ direction)) * direction


@dataclass(frozen=True)
class Quaternion:
    """A rotation quaternion with scalar part ``w`` and vector part ``(x, y, z)``."""

    w: float = 1.0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_axis_angle(cls, axis, angle) -> Quaternion:
        """Rotation by ``angle`` radians about ``axis``; a zero axis gives the identity."""
        a = _vec(axis)
        lsq = float(a @ a)
        if lsq == 0.0:
            return cls()
        sin_half = math.sin(angle / 2.0) / math.sqrt(lsq)
        x, y, z = (float(c) for c in a * sin_half)
        return cls(math.cos(angle / 2.0), x, y, z)

    @classmethod
    def from_components(cls, w, v) -> Quaternion:
        """Build a quaternion from ``w`` and ``v`` scaled to unit norm."""
        vv = _vec(v)
        ratio = 1.0 / math.sqrt(w * w + float(vv @ vv))
        x, y, z = (float(c) for c in vv * ratio)
        return cls(float(w) * ratio, x, y, z)

    @property
    def vector(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])

    def __mul__(self, other):
        if isinstance(other, Quaternion):
            v1, v2 = self.vector, other.vector
            w = self.w * other.w - float(v1 @ v2)
            x, y, z = (float(c) for c in self.w * v2 + other.w * v1 + np.cross(v1, v2))
            return Quaternion(w, x, y, z)
        return self.rotate(other)

    def rotate(self, v) -> np.ndarray:
        """Rotate the vector ``v``."""
        p = _vec(v)
        q = self.vector
        t = 2.0 * np.cross(q, p)
        return p + self.w * t + np.cross(q, t)

    def inverse(self) -> Quaternion:
        """The conjugate, which undoes a unit rotation."""
        return Quaternion(self.w, -self.x, -self.y, -self.z)

    def angle(self) -> float:
        """Rotation angle in radians."""
        return 2.0 * math.atan2(float(np.linalg.norm(self.vector)), self.w)

    def axis(self) -> np.ndarray:
        """Unit rotation axis."""
        return normalize(self.vector)


@dataclass(frozen=True, eq=False)
class Transform:
    """Rotation, then uniform scale, then translation."""

    rot: Quaternion = Quaternion()
    scale: float = 1.0
    trans: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        object.__setattr__(self, "scale", float(self.scale))
        object.__setattr__(self, "trans", _vec(self.trans).copy())

    @classmethod
    def translation(cls, v) -> Transform:
        return cls(trans=_vec(v))

    @classmethod
    def scaling(cls, s) -> Transform:
        return cls(scale=s)

    def __mul__(self, other):
        if isinstance(other, Transform):
            return Transform(
                self.rot * other.rot,
                self.scale * other.scale,
                self.trans + self.rot.rotate(other.trans) * self.scale,
            )
        return self.apply(other)

    def apply(self, point) -> np.ndarray:
        """Map ``point`` through the transform."""
        return self.rot.rotate(point) * self.scale + self.trans

    def inverse(self) -> Transform:
        inv = self.rot.inverse()
        return Transform(inv, 1.0 / self.scale, inv.rotate(self.trans) * (-1.0 / self.scale))

    def linear_component(self) -> Transform:
        """The same rotation and scale without translation."""
        return Transform(self.rot, self.scale)


@dataclass
class LineSegment:
    """A coloured line to draw between two points."""

    p1: np.ndarray = field(default_factory=lambda: np.zeros(3))
    p2: np.ndarray = field(default_factory=lambda: np.zeros(3))
    color: np.ndarray = field(default_factory=lambda: np.ones(3))
    thickness: float = 1.0


@dataclass
class Sphere:
    """A sphere given by centre and radius."""

    center: np.ndarray
    radius: float