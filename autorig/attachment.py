"""Skinning weights from heat diffusion over a triangle mesh."""

from __future__ import annotations

import math

import numpy as np
import scipy.sparse
import scipy.sparse.linalg

from .geometry import dist_sq_to_segment, normalize, project_to_segment


def _pt(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


class VisibilityTester:
    """Decides whether a straight line between two points stays inside a shape.

    ``field`` maps a point to a signed distance, negative inside.
    """

    def __init__(self, field, max_val=0.002):
        self.field = field
        self.max_val = max_val

    def can_see(self, v1, v2) -> bool:
        """Whether the segment stays inside; faster when ``v2`` lies deeper than ``v1``."""
        a, b = _pt(v1), _pt(v2)
        at_v2 = float(self.field(b))
        left = float(np.linalg.norm(b - a))
        left_inc = left / 100.0
        diff = (b - a) / 100.0
        cur = a + diff
        while left >= 0.0:
            cur_dist = float(self.field(cur))
            if cur_dist > self.max_val:
                return False
            if cur_dist + at_v2 + left <= self.max_val:
                return True
            cur = cur + diff
            left -= left_inc
        return True


def vector_in_cone(v, normals) -> bool:
    """Whether ``v`` is within 60 degrees of the average of ``normals``."""
    avg = np.sum([_pt(n) for n in normals], axis=0) if len(normals) else np.zeros(3)
    return float(normalize(v) @ normalize(avg)) > 0.5


def vertex_rings(positions, triangles) -> list:
    """Ordered neighbours of each vertex of a closed, consistently oriented mesh.

    Consecutive neighbours ``b, c`` of vertex ``i`` form the triangle ``(i, b, c)``.
    """
    n = len(positions)
    succ = [{} for _ in range(n)]
    for tri in triangles:
        a, b, c = (int(x) for x in tri)
        for i, j, k in ((a, b, c), (b, c, a), (c, a, b)):
            if j in succ[i]:
                raise ValueError(f"edge {i}-{j} is used twice in the same direction")
            succ[i][j] = k
    rings = []
    for v, nxt in enumerate(succ):
        if not nxt:
            raise ValueError(f"vertex {v} belongs to no triangle")
        start = next(iter(nxt))
        ring = [start]
        cur = nxt[start]
        while cur != start:
            if cur not in nxt:
                raise ValueError(f"mesh is open at vertex {v}")
            ring.append(cur)
            if len(ring) > len(nxt):
                raise ValueError(f"mesh is not manifold at vertex {v}")
            cur = nxt[cur]
        rings.append(ring)
    return rings


class Attachment:
    """Per-vertex bone weights for a mesh and an embedded skeleton.

    ``prev`` gives the parent of each joint, ``match`` the joint positions;
    bone ``j`` runs from joint ``j + 1`` to its parent.
    """

    def __init__(self, positions, triangles, prev, match, tester, initial_heat_weight=1.0):
        pos = np.asarray(positions, dtype=float).reshape(-1, 3)
        joints = [_pt(m) for m in match]
        if len(joints) != len(prev):
            raise ValueError("match and prev must describe the same joints")
        nv = len(pos)
        bones = len(prev) - 1
        if bones < 1:
            raise ValueError("the skeleton needs at least one bone")
        rings = vertex_rings(pos, triangles)

        self._weights = np.zeros((nv, bones))
        self._nz = [[] for _ in range(nv)]

        bone_dists = np.empty((nv, bones))
        bone_vis = np.zeros((nv, bones), dtype=bool)
        for i in range(nv):
            c_pos = pos[i]
            ring = rings[i]
            normals = [
                normalize(np.cross(pos[a] - c_pos, pos[b] - c_pos))
                for a, b in zip(ring, ring[1:] + ring[:1])
            ]
            for j in range(bones):
                bone_dists[i, j] = math.sqrt(
                    dist_sq_to_segment(c_pos, joints[j + 1], joints[prev[j + 1]])
                )
            min_dist = float(bone_dists[i].min())
            for j in range(bones):
                if bone_dists[i, j] > min_dist * 1.0001:
                    continue
                p = project_to_segment(c_pos, joints[j + 1], joints[prev[j + 1]])
                bone_vis[i, j] = bool(tester.can_see(c_pos, p)) and vector_in_cone(c_pos - p, normals)

        rows, cols, vals = [], [], []
        area = np.zeros(nv)
        heat = np.zeros(nv)
        closest = np.zeros(nv, dtype=int)
        for i in range(nv):
            ring = rings[i]
            k = len(ring)
            total = 0.0
            for j in range(k):
                total += float(np.linalg.norm(np.cross(pos[ring[j]] - pos[i], pos[ring[(j + 1) % k]] - pos[i])))
            area[i] = 1.0 / (1e-10 + total)

            best = 1e37
            for j in range(bones):
                if bone_dists[i, j] < best:
                    closest[i] = j
                    best = bone_dists[i, j]
            for j in range(bones):
                if bone_vis[i, j] and bone_dists[i, j] <= best * 1.00001:
                    heat[i] += initial_heat_weight / (1e-8 + bone_dists[i, closest[i]]) ** 2

            diag = 0.0
            for j in range(k):
                nb = ring[j]
                nj = ring[(j + 1) % k]
                pj = ring[(j + k - 1) % k]
                v1 = pos[i] - pos[pj]
                v2 = pos[nb] - pos[pj]
                v3 = pos[i] - pos[nj]
                v4 = pos[nb] - pos[nj]
                cot1 = float(v1 @ v2) / (1e-6 + float(np.linalg.norm(np.cross(v1, v2))))
                cot2 = float(v3 @ v4) / (1e-6 + float(np.linalg.norm(np.cross(v3, v4))))
                diag += cot1 + cot2
                if nb > i:
                    continue
                rows += [i, nb]
                cols += [nb, i]
                vals += [-cot1 - cot2, -cot1 - cot2]
            rows.append(i)
            cols.append(i)
            vals.append(diag + heat[i] / area[i])

        matrix = scipy.sparse.coo_matrix((vals, (rows, cols)), shape=(nv, nv)).tocsc()
        try:
            solver = scipy.sparse.linalg.splu(matrix)
        except RuntimeError:
            return

        closest_dist = bone_dists[np.arange(nv), closest]
        for j in range(bones):
            mask = bone_vis[:, j] & (bone_dists[:, j] <= closest_dist * 1.00001)
            rhs = np.where(mask, heat / area, 0.0)
            solution = np.minimum(solver.solve(rhs), 1.0)
            for i in np.nonzero(solution > 1e-8)[0]:
                self._nz[i].append((j, float(solution[i])))

        for i, pairs in enumerate(self._nz):
            total = sum(w for _, w in pairs)
            self._nz[i] = [(b, w / total) for b, w in pairs]
            for b, w in self._nz[i]:
                self._weights[i, b] = w

    def weights(self, i) -> np.ndarray:
        """Weight of every bone at vertex ``i``."""
        return self._weights[i].copy()

    def nonzero_weights(self, i) -> list:
        """``(bone, weight)`` pairs with non-zero weight at vertex ``i``."""
        return list(self._nz[i])

    def deform(self, positions, transforms) -> np.ndarray:
        """Blend each vertex through the bone transforms; mismatched input is returned unchanged."""
        pos = np.asarray(positions, dtype=float).reshape(-1, 3)
        if len(pos) != len(self._weights):
            return pos.copy()
        out = np.zeros_like(pos)
        for i, p in enumerate(pos):
            for bone, w in self._nz[i]:
                out[i] += transforms[bone].apply(p) * w
        return out