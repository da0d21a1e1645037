import numpy as np
import pytest

from autorig.graph import AllShortestPather, PtGraph, ShortestPather


def _square_graph():
    verts = [
        np.array([0.0, 0.0, 0.0]),
        np.array([1.0, 0.0, 0.0]),
        np.array([1.0, 1.0, 0.0]),
        np.array([0.0, 3.0, 0.0]),
        np.array([9.0, 9.0, 9.0]),
    ]
    edges = [[1, 3], [0, 2], [1, 3], [0, 2], []]
    return PtGraph(verts, edges)


def _path_length(graph, path):
    return sum(
        np.linalg.norm(graph.verts[a] - graph.verts[b]) for a, b in zip(path, path[1:])
    )


def test_integrity_check_accepts_valid_graph():
    assert _square_graph().integrity_check() is True


@pytest.mark.parametrize(
    "edges",
    [
        [[1], []],
        [[0], [0]],
        [[1, 1], [0]],
        [[5], [0]],
        [[1]],
    ],
)
def test_integrity_check_rejects_bad_graphs(edges):
    graph = PtGraph([np.zeros(3), np.ones(3)], edges)
    assert graph.integrity_check() is False


def test_root_has_zero_distance():
    sp = ShortestPather(_square_graph(), 0)
    assert sp.dist_from(0) == 0.0
    assert sp.path_from(0) == [0]


def test_shortest_path_prefers_short_route():
    graph = _square_graph()
    paths = AllShortestPather(graph)
    assert paths.path(2, 0) == [2, 1, 0]
    assert paths.dist(2, 0) == pytest.approx(_path_length(graph, [2, 1, 0]))


def test_paths_end_at_target_and_match_distance():
    graph = _square_graph()
    paths = AllShortestPather(graph)
    for source in range(4):
        for target in range(4):
            path = paths.path(source, target)
            assert path[0] == source and path[-1] == target
            assert paths.dist(source, target) == pytest.approx(_path_length(graph, path))


def test_distances_are_symmetric():
    paths = AllShortestPather(_square_graph())
    for a in range(4):
        for b in range(4):
            assert paths.dist(a, b) == pytest.approx(paths.dist(b, a))


def test_unreachable_vertex():
    sp = ShortestPather(_square_graph(), 0)
    assert sp.dist_from(4) == -1
    assert sp.path_from(4) == [4]