"""Point graphs and shortest paths over them."""

from __future__ import annotations

import heapq
import itertools
import logging
from dataclasses import dataclass, field

import numpy as np

log = logging.getLogger(__name__)


@dataclass
class PtGraph:
    """An undirected graph whose vertices are points in space."""

    verts: list = field(default_factory=list)
    edges: list = field(default_factory=list)

    def integrity_check(self) -> bool:
        """Check that adjacency lists are symmetric, in range, loop-free and unique."""
        if len(self.verts) != len(self.edges):
            log.warning("Graph integrity error: vertex and edge lists differ in size")
            return False
        n = len(self.edges)
        for i, neighbours in enumerate(self.edges):
            seen = set()
            for cur in neighbours:
                if not 0 <= cur < n:
                    log.warning("Graph integrity error: edge %d-%d out of range", i, cur)
                    return False
                if cur == i:
                    log.warning("Graph integrity error: self edge at %d", i)
                    return False
                if i not in self.edges[cur]:
                    log.warning("Graph integrity error: edge %d-%d not mirrored", i, cur)
                    return False
                if cur in seen:
                    log.warning("Graph integrity error: duplicate edge %d-%d", i, cur)
                    return False
                seen.add(cur)
        return True


class ShortestPather:
    """Dijkstra shortest paths from every vertex to a fixed root."""

    def __init__(self, graph, root):
        size = len(graph.verts)
        self._prev = [-1] * size
        self._dist = [-1.0] * size
        done = [False] * size
        counter = itertools.count()
        todo = [(0.0, next(counter), root, -1)]
        while todo:
            dist, _, node, prev = heapq.heappop(todo)
            if done[node]:
                continue
            done[node] = True
            self._prev[node] = prev
            self._dist[node] = dist
            here = np.asarray(graph.verts[node], dtype=float)
            for other in graph.edges[node]:
                if not done[other]:
                    step = float(np.linalg.norm(here - np.asarray(graph.verts[other], dtype=float)))
                    heapq.heappush(todo, (dist + step, next(counter), other, node))

    def path_from(self, vtx) -> list:
        """Vertices from ``vtx`` to the root, inclusive."""
        out = [vtx]
        while self._prev[vtx] >= 0:
            vtx = self._prev[vtx]
            out.append(vtx)
        return out

    def dist_from(self, vtx) -> float:
        """Path length from ``vtx`` to the root, or -1 when unreachable."""
        return self._dist[vtx]


class AllShortestPather:
    """Shortest paths between every pair of vertices."""

    def __init__(self, graph):
        self._paths = [ShortestPather(graph, i) for i in range(len(graph.verts))]

    def path(self, source, target) -> list:
        return self._paths[target].path_from(source)

    def dist(self, source, target) -> float:
        return self._paths[target].dist_from(source)