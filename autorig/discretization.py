"""Sampling the medial surface of a shape and linking the samples into a graph.

A distance field is any callable that maps a 3D point to a signed distance,
negative inside the shape. When it also has a ``gradient(point)`` method, that
is used for gradients; otherwise they come from central differences.
"""

from __future__ import annotations

import itertools
import logging

import numpy as np

from .geometry import Sphere, normalize
from .graph import PtGraph

log = logging.getLogger(__name__)


def _pt(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


def _gradient(field, point, h) -> np.ndarray:
    grad = getattr(field, "gradient", None)
    if grad is not None:
        return _pt(grad(point))
    out = np.empty(3)
    for axis in range(3):
        offset = np.zeros(3)
        offset[axis] = h
        out[axis] = (float(field(point + offset)) - float(field(point - offset))) / (2.0 * h)
    return out


def min_dot(field, center, step) -> float:
    """Smallest dot product between field gradients at the corners of a cube around ``center``."""
    c = _pt(center)
    h = abs(step) * 1e-3 if step else 1e-7
    dirs = [
        normalize(_gradient(field, c + np.array(signs) * step, h))
        for signs in itertools.product((1.0, -1.0), repeat=3)
    ]
    out = 1.0
    for i in range(1, len(dirs)):
        for j in range(i):
            out = min(out, float(dirs[i] @ dirs[j]))
    return out


def sample_medial_surface(field, leaves, tol) -> list:
    """Spheres near the medial surface, sorted by decreasing radius.

    ``leaves`` yields ``(lo, hi)`` corners of cubic cells covering the shape.
    """
    if tol <= 0:
        raise ValueError("tol must be positive")
    out = []
    for lo, hi in leaves:
        lo, hi = _pt(lo), _pt(hi)
        size = hi - lo
        rad = float(np.linalg.norm(size)) / 2.0
        if min_dot(field, (lo + hi) / 2.0, rad) > 0.0:
            continue

        step = tol
        sz = float(size[0])
        pts = []
        x = 0.0
        while x <= sz:
            y = 0.0
            while y <= sz:
                pts.append(lo + np.array([x, y, 0.0]))
                if y != 0.0:
                    pts.append(lo + np.array([x, 0.0, y]))
                if x != 0.0 and y != 0.0:
                    pts.append(lo + np.array([0.0, x, y]))
                y += step
            x += step

        for p in pts:
            dist = -float(field(p))
            if dist <= 2.0 * step:
                continue
            if min_dot(field, p, step * 0.001) > 0.0:
                continue
            out.append(Sphere(p, dist))

    log.debug("Medial axis points = %d", len(out))
    out.sort(key=lambda s: s.radius, reverse=True)
    return out


def pack_spheres(samples, max_spheres) -> list:
    """Keep samples, largest first, whose centres lie outside every sphere kept so far."""
    out = []
    for sample in samples:
        center = _pt(sample.center)
        if any(
            float((_pt(kept.center) - center) @ (_pt(kept.center) - center)) < kept.radius**2
            for kept in out
        ):
            continue
        out.append(sample)
        if len(out) > max_spheres:
            break
    return out


def max_dist(field, v1, v2, max_allowed) -> float:
    """Largest field value along the segment, stopping once it exceeds ``max_allowed``."""
    a, b = _pt(v1), _pt(v2)
    diff = (b - a) / 100.0
    out = -1e37
    for k in range(101):
        out = max(out, float(field(a + diff * float(k))))
        if out > max_allowed:
            break
    return out


def connect_samples(field, spheres) -> PtGraph:
    """Graph on sphere centres: overlapping spheres, or Gabriel pairs joined well inside."""
    centers = [_pt(s.center) for s in spheres]
    out = PtGraph(verts=[c.copy() for c in centers], edges=[[] for _ in spheres])
    n = len(spheres)
    for i in range(1, n):
        for j in range(i):
            ctr = (centers[i] + centers[j]) * 0.5
            diff = centers[i] - centers[j]
            radsq = float(diff @ diff) * 0.25
            if radsq < (spheres[i].radius + spheres[j].radius) ** 2 * 0.25:
                out.edges[i].append(j)
                out.edges[j].append(i)
                continue
            if any(
                float((centers[k] - ctr) @ (centers[k] - ctr)) < radsq
                for k in range(n)
                if k not in (i, j)
            ):
                continue
            allowed = -0.5 * min(spheres[i].radius, spheres[j].radius)
            if max_dist(field, centers[i], centers[j], allowed) < allowed:
                out.edges[i].append(j)
                out.edges[j].append(i)
    return out