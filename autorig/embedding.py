"""Discrete embedding of a skeleton into a graph of medial-surface samples.

A skeleton is any object with these attributes, where the "c" members
describe the compressed skeleton (degree-two joints removed) and the "f"
members the full one:

``c_graph``      a :class:`~autorig.graph.PtGraph` of compressed joints
``c_prev``       parent of each compressed joint (-1 for the root)
``c_length``     length of the compressed bone ending at each joint
``c_sym``        symmetric partner of each compressed joint, or -1
``c_fat``        whether a compressed joint should sit in a thick part
``c_feet``       whether a compressed joint is a foot
``cf_map``       full-skeleton index of each compressed joint
``fc_map``       compressed index of each full joint, or -1
``f_prev``       parent of each full joint
``fc_fraction``  share of its compressed bone's length taken by each full bone
``f_graph``      a :class:`~autorig.graph.PtGraph` of full joints
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from .geometry import normalize
from .graph import AllShortestPather

log = logging.getLogger(__name__)

NOMATCH = 1e10
DIST_PLAY_FACTOR = 0.7
PENALTY_WEIGHTS = (0.027, 0.023, 0.007, 0.046, 0.014, 0.012, 0.072, 0.005, 0.033)


def _pt(v) -> np.ndarray:
    return np.asarray(v, dtype=float)


def _ratio(a: float, b: float) -> float:
    """IEEE-style division: a zero denominator gives an infinity or NaN."""
    if b != 0:
        return a / b
    if a > 0:
        return math.inf
    if a < 0:
        return -math.inf
    return math.nan


def smooth_interp(val, low, at_low, high, at_high) -> float:
    """Clamped linear interpolation from ``at_low`` at ``low`` to ``at_high`` at ``high``."""
    if val < low:
        return at_low
    if val > high:
        return at_high
    w = (val - low) / (high - low)
    return w * at_high + (1.0 - w) * at_low


class PenaltyContext:
    """Shared data that the penalty functions look at."""

    def __init__(self, graph, skeleton, spheres, foot_base=1.0):
        self.graph = graph
        self.given = skeleton
        self.spheres = list(spheres)
        self.paths = AllShortestPather(graph)
        self.foot_base = foot_base

    def radius(self, vertex) -> float:
        return self.spheres[vertex].radius

    def vert(self, vertex) -> np.ndarray:
        return _pt(self.graph.verts[vertex])


@dataclass
class PartialMatch:
    """Graph vertices chosen for the first few compressed joints."""

    match: list = field(default_factory=list)
    penalty: float = 0.0
    heuristic: float = 0.0
    taken: list = field(default_factory=list)

    @classmethod
    def start(cls, size) -> PartialMatch:
        """An empty match over a graph with ``size`` vertices."""
        return cls(taken=[False] * size)

    def extended(self, candidate, extra_penalty) -> PartialMatch:
        """A copy with ``candidate`` appended and the penalty raised."""
        penalty = self.penalty + extra_penalty
        return PartialMatch(self.match + [candidate], penalty, penalty, list(self.taken))


def _uncompressed_path(skeleton, joint) -> list:
    """Full-skeleton joints along the compressed bone ending at ``joint``, root first."""
    out = [skeleton.cf_map[joint]]
    while True:
        out.append(skeleton.f_prev[out[-1]])
        if skeleton.fc_map[out[-1]] != -1:
            break
    out.reverse()
    return out


class PenaltyFunction(ABC):
    """A weighted term that scores placing joint ``idx`` at a graph vertex."""

    def __init__(self, context, weight=0.01):
        self.context = context
        self.weight = weight

    @abstractmethod
    def get(self, cur, candidate, idx) -> float:
        """Unweighted penalty for matching joint ``idx`` to ``candidate``."""


class DistPenalty(PenaltyFunction):
    """Penalises bones whose graph path length differs from the skeleton's."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        prev_vertex = cur.match[ctx.given.c_prev[idx]]
        dist = ctx.paths.dist(candidate, prev_vertex)
        if dist < 0:
            return NOMATCH
        play = DIST_PLAY_FACTOR * (ctx.radius(candidate) + ctx.radius(prev_vertex))
        opt = ctx.given.c_length[idx]
        if dist + play < 0.5 * opt:
            return NOMATCH
        if dist + play == 0 and opt <= 0:
            return NOMATCH
        return smooth_interp(_ratio(opt, dist + play), 0.5, 0.0, 2.0, 3.0) ** 3


def compute_dirs(context, cur, candidate, idx=None) -> list:
    """Unit directions of the full bones when joint ``idx`` sits at ``candidate``."""
    if idx is None:
        idx = len(cur.match)
    if idx == 0:
        return []
    prev_vertex = cur.match[context.given.c_prev[idx]]
    if candidate == prev_vertex:
        return []
    pts = split_path(context, idx, candidate, prev_vertex)
    return [normalize(b - a) for a, b in zip(pts, pts[1:])]


class DotPenalty(PenaltyFunction):
    """Penalises local bone directions that disagree with the skeleton."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        sk = ctx.given
        prev = sk.c_prev[idx]
        prev_vertex = cur.match[prev]
        if candidate == prev_vertex:
            return 0.0

        if sk.fc_map[sk.f_prev[sk.cf_map[idx]]] == prev:
            s_dir = _pt(sk.c_graph.verts[idx]) - _pt(sk.c_graph.verts[prev])
            direction = ctx.vert(candidate) - ctx.vert(prev_vertex)
            dot = float(normalize(s_dir) @ normalize(direction))
            penalty = (1.0 - dot) * smooth_interp(dot, -0.5, 6.0, 0.0, 1.0)
            return float(s_dir @ s_dir) * 50.0 * penalty**2

        uncomp = _uncompressed_path(sk, idx)
        dirs = compute_dirs(ctx, cur, candidate, idx)
        out = 0.0
        for i, d in enumerate(dirs):
            s_dir = _pt(sk.f_graph.verts[uncomp[i + 1]]) - _pt(sk.f_graph.verts[uncomp[i]])
            dot = float(normalize(s_dir) @ d)
            cur_penalty = ((1.0 - dot) * smooth_interp(dot, -0.5, 6.0, 0.0, 1.0)) ** 2
            out += float(s_dir @ s_dir) * 50.0 * cur_penalty
        return out


class SymmetryPenalty(PenaltyFunction):
    """Penalises symmetric bones whose embedded lengths differ."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        sk = ctx.given
        sym = sk.c_sym[idx]
        if sym < 0 or sym >= len(cur.match):
            return 0.0
        prev_vertex = cur.match[sk.c_prev[idx]]
        dist = ctx.paths.dist(candidate, prev_vertex)
        play = DIST_PLAY_FACTOR * (ctx.radius(candidate) + ctx.radius(prev_vertex))
        v1 = cur.match[sym]
        v2 = cur.match[sk.c_prev[sym]]

        dist_c = dist + play
        s_dist = ctx.paths.dist(v1, v2)
        s_dist_c = s_dist + DIST_PLAY_FACTOR * (ctx.radius(v1) + ctx.radius(v2))

        noc_ratio = min(2.0, max(dist / (s_dist + 1e-8), s_dist / (dist + 1e-8)))
        ratio = max(_ratio(s_dist, dist_c), _ratio(dist, s_dist_c))
        return max(0.0, (noc_ratio * 0.2 + ratio * 0.8) ** 3 - 1.2)


class GlobalDotPenalty(PenaltyFunction):
    """Penalises directions to the parent and siblings that disagree with the skeleton."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        sk = ctx.given
        prev = sk.c_prev[idx]
        here = ctx.vert(candidate)
        out = 0.0
        for i, vertex in enumerate(cur.match):
            if i != prev and sk.c_prev[i] != prev:
                continue
            big_dir = here - ctx.vert(vertex)
            if float(big_dir @ big_dir) < 1e-16:
                continue
            given_dir = normalize(_pt(sk.c_graph.verts[idx]) - _pt(sk.c_graph.verts[i]))
            dot = float(normalize(big_dir) @ given_dir)
            if i == prev:
                if dot < 0.0:
                    return NOMATCH
                out += 0.5 * max(0.0, ((1.0 - dot) * 4.0) ** 2 - 0.1)
            else:
                if dot < -0.5:
                    return NOMATCH
                out += 0.5 * max(0.0, ((1.0 - dot) * 2.0) ** 2 - 0.5)
        return out


class DoublePathPenalty(PenaltyFunction):
    """Penalises bone paths that reuse vertices already taken."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        path = ctx.paths.path(candidate, cur.match[ctx.given.c_prev[idx]])
        out = 0.0
        for i in range(len(path) - 2, -1, -1):
            if cur.taken[path[i]]:
                if ctx.radius(path[i]) < 0.02:
                    return NOMATCH
                out += 0.5 / float(i + 1) ** 2
        return 0.0 if out == 0.0 else out + 0.5


class FootPenalty(PenaltyFunction):
    """Penalises feet placed above the lowest graph vertex."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        if ctx.given.c_feet[idx]:
            return float(ctx.vert(candidate)[1]) - ctx.foot_base
        return 0.0


class DuplicatePenalty(PenaltyFunction):
    """Penalises a joint placed at the same vertex as its parent."""

    def get(self, cur, candidate, idx):
        if candidate == cur.match[self.context.given.c_prev[idx]]:
            return 1.0
        return 0.0


class ExtremityPenalty(PenaltyFunction):
    """Penalises extremities that end in the middle of a path."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        prev_vertex = cur.match[ctx.given.c_prev[idx]]
        if len(ctx.given.c_graph.edges[idx]) != 1 or candidate == prev_vertex:
            return 0.0
        here = ctx.vert(candidate)
        base = ctx.vert(prev_vertex)
        big_dir = normalize(here - base)
        cur_rad = ctx.radius(candidate)
        for other in ctx.graph.edges[candidate]:
            if cur_rad > 2.0 * ctx.radius(other):
                continue
            there = ctx.vert(other)
            diff1 = normalize(there - base)
            diff2 = normalize(there - here)
            if diff1 @ big_dir > 0.95 and diff2 @ big_dir > 0.8:
                return 1.0
        return 0.0


class DisjointPenalty(PenaltyFunction):
    """Penalises joints closer in the graph than along their bone paths."""

    def get(self, cur, candidate, idx):
        ctx = self.context
        c_prev = ctx.given.c_prev
        prev = c_prev[idx]
        out = 0.0
        for i, vertex in enumerate(cur.match):
            if i == idx or i == prev:
                continue
            a1, a2 = idx, i
            while a1 != a2:
                if a1 < a2:
                    a2 = c_prev[a2]
                else:
                    a1 = c_prev[a1]
            ancestor = cur.match[a1]
            s_size = ctx.radius(candidate) + ctx.radius(vertex)
            g_dist = ctx.paths.dist(candidate, vertex)
            b_dist = ctx.paths.dist(candidate, ancestor) + ctx.paths.dist(ancestor, vertex)
            if _ratio(b_dist + s_size, g_dist + s_size) > 2.0:
                out += 1.0
        return out


def penalty_functions(context) -> list:
    """All penalty terms with their tuned weights."""
    classes = (
        DistPenalty,
        GlobalDotPenalty,
        SymmetryPenalty,
        DoublePathPenalty,
        FootPenalty,
        DuplicatePenalty,
        DotPenalty,
        ExtremityPenalty,
        DisjointPenalty,
    )
    return [cls(context, weight) for cls, weight in zip(classes, PENALTY_WEIGHTS)]


def compute_penalty(penalties, cur, candidate, idx=None) -> float:
    """Weighted penalty sum; 2 as soon as one weighted term exceeds 1."""
    if idx is None:
        idx = len(cur.match)
    if idx == 0:
        return 0.0
    out = 0.0
    for pf in penalties:
        penalty = pf.get(cur, candidate, idx) * pf.weight
        if penalty > 1.0:
            return 2.0
        out += penalty
    return out


def compute_possibilities(graph, spheres, skeleton) -> list:
    """Candidate graph vertices for every compressed joint."""
    n = len(graph.verts)
    all_verts = list(range(n))
    limb_verts = []
    for i in all_verts:
        neighbours = graph.edges[i]
        rad = spheres[i].radius
        cur = _pt(graph.verts[i])
        for e in neighbours:
            incoming = normalize(cur - _pt(graph.verts[e]))
            straight = any(
                rad <= 2.0 * spheres[k].radius
                and normalize(_pt(graph.verts[k]) - cur) @ incoming > 0.8
                for k in neighbours
            )
            if not straight:
                limb_verts.append(i)
                break

    rads = sorted(s.radius for s in spheres[:n])
    cutoff = 0.0 if len(rads) < 50 else rads[len(rads) - 50]
    fat_verts = [i for i in all_verts if spheres[i].radius >= cutoff]
    log.debug("Extrem, fat verts %d %d", len(limb_verts), len(fat_verts))

    out = []
    for i in range(len(skeleton.c_graph.verts)):
        if skeleton.c_fat[i]:
            out.append(list(fat_verts))
        elif len(skeleton.c_graph.edges[i]) == 1:
            out.append(list(limb_verts))
        else:
            out.append(list(all_verts))
    return out


def discrete_embed(graph, spheres, skeleton, possibilities) -> list:
    """Best-first search for a graph vertex per compressed joint; empty if none fits."""
    ctx = PenaltyContext(graph, skeleton, spheres)
    ctx.foot_base = min([1.0] + [float(_pt(v)[1]) for v in graph.verts])
    penalties = penalty_functions(ctx)
    to_match = len(skeleton.c_graph.verts)
    c_prev = skeleton.c_prev

    counter = itertools.count()
    todo = [(0.0, next(counter), PartialMatch.start(len(graph.verts)))]
    output = None
    max_size = 0

    while todo:
        _, _, cur = heapq.heappop(todo)
        idx = len(cur.match)

        if todo:
            size_level = int(math.log(len(todo)))
            if size_level > max_size:
                max_size = size_level
                if max_size > 3:
                    log.debug("Reached %d", len(todo))

        if idx == to_match:
            output = cur
            log.debug("Found: residual = %g", cur.penalty)
            break

        for candidate in possibilities[idx]:
            extra = compute_penalty(penalties, cur, candidate)
            if extra < 0:
                log.warning("ERR = %g", extra)
            if cur.penalty + extra >= 1.0:
                continue
            nxt = cur.extended(candidate, extra)

            if idx > 0:
                for v in ctx.paths.path(candidate, nxt.match[c_prev[idx]]):
                    nxt.taken[v] = True

            for j in range(idx + 1, to_match):
                if c_prev[j] > idx:
                    continue
                nxt.heuristic += min(
                    (compute_penalty(penalties, nxt, p, j) for p in possibilities[j]),
                    default=1e37,
                )
                if nxt.heuristic > 1.0:
                    break

            if nxt.heuristic > 1.0:
                continue
            heapq.heappush(todo, (nxt.heuristic, next(counter), nxt))

    if output is None:
        log.info("No Match")
        return []
    return output.match


def split_path(context, joint, cur_idx, prev_idx) -> list:
    """Points for the full joints along the compressed bone ending at ``joint``."""
    sk = context.given
    new_path = context.paths.path(prev_idx, cur_idx)
    uncomp = _uncompressed_path(sk, joint)
    start = context.vert(new_path[0])
    path_pts = [start.copy() for _ in uncomp]

    if len(new_path) > 1:
        dist = context.paths.dist(new_path[0], new_path[-1])
        lengths = [0.0]
        for f in uncomp[1:]:
            lengths.append(lengths[-1] + dist * sk.fc_fraction[f])

        pts = [context.vert(v) for v in new_path]
        so_far = 0.0
        cur_pt = 1
        i = 1
        while i < len(pts):
            seg = pts[i] - pts[i - 1]
            length = float(np.linalg.norm(seg))
            if length + so_far + 1e-6 <= lengths[cur_pt]:
                so_far += length
                i += 1
                continue
            ratio = (lengths[cur_pt] - so_far) / length if length > 0 else 0.0
            path_pts[cur_pt] = pts[i - 1] + ratio * seg
            cur_pt += 1
            if cur_pt >= len(lengths):
                break
    return path_pts


def split_paths(discrete_embedding, graph, skeleton) -> list:
    """Positions of every full-skeleton joint from a discrete embedding."""
    ctx = PenaltyContext(graph, skeleton, [])
    out = [_pt(graph.verts[discrete_embedding[0]])]
    for i in range(1, len(discrete_embedding)):
        prev = skeleton.c_prev[i]
        pts = split_path(ctx, i, discrete_embedding[i], discrete_embedding[prev])
        out.extend(pts[1:])
    return out