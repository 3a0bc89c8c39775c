import io

import numpy as np
import pytest

from vislidar.kdtree import KDTreeIndex
from vislidar.metrics import Metric
from vislidar.results import KNNResultSet, SearchParams
from vislidar.tree import ArrayDataset, KDTreeParams


def _points(n=200, d=3, seed=7):
    return np.random.default_rng(seed).uniform(-5.0, 5.0, size=(n, d))


def _build(points, leaf=10, metric=Metric.L2):
    index = KDTreeIndex(
        points.shape[1], ArrayDataset(points), KDTreeParams(leaf), metric
    )
    index.build_index()
    return index


def _leaves(node):
    if node.is_leaf():
        yield node
    else:
        yield from _leaves(node.child1)
        yield from _leaves(node.child2)


@pytest.mark.parametrize("leaf", [1, 3, 10])
def test_knn_matches_exhaustive_l2(leaf):
    pts = _points()
    index = _build(pts, leaf)
    for q in _points(20, seed=11):
        ids, dists = index.knn_search(q, 5)
        sq = ((pts - q) ** 2).sum(axis=1)
        expected = np.sort(sq)[:5]
        assert np.allclose(dists, expected)
        assert np.allclose(sq[ids], dists)


def test_knn_matches_exhaustive_l1():
    pts = _points(150, 4)
    index = _build(pts, 5, Metric.L1)
    for q in _points(10, 4, seed=3):
        ids, dists = index.knn_search(q, 4)
        l1 = np.abs(pts - q).sum(axis=1)
        assert np.allclose(dists, np.sort(l1)[:4])
        assert np.allclose(l1[ids], dists)


def test_small_worked_example():
    pts = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 2.0]])
    index = _build(pts, 1)
    ids, dists = index.knn_search([0.0, 0.0], 2)
    assert ids == [0, 1]
    assert dists == [0.0, 1.0]


def test_knn_more_than_available():
    pts = _points(6)
    index = _build(pts)
    ids, dists = index.knn_search(pts[0], 20)
    assert sorted(ids) == list(range(6))
    assert dists == sorted(dists)


def test_empty_dataset():
    index = KDTreeIndex(3, ArrayDataset(np.zeros((0, 3))))
    index.build_index()
    assert index.root_node is None
    assert len(index) == 0
    assert index.knn_search([0.0, 0.0, 0.0], 3) == ([], [])
    with pytest.raises(RuntimeError):
        index.compute_bounding_box()


def test_search_before_build_raises():
    index = KDTreeIndex(3, ArrayDataset(_points(10)))
    with pytest.raises(RuntimeError):
        index.find_neighbors(KNNResultSet(1), [0.0, 0.0, 0.0], SearchParams())


def test_radius_search_sorted_and_complete():
    pts = _points()
    index = _build(pts)
    q = np.array([0.5, -0.5, 1.0])
    radius = 4.0
    found = index.radius_search(q, radius)
    sq = ((pts - q) ** 2).sum(axis=1)
    assert {i for i, _ in found} == set(np.flatnonzero(sq < radius).tolist())
    dists = [d for _, d in found]
    assert dists == sorted(dists)
    assert all(d < radius for d in dists)


def test_radius_search_unsorted_same_set():
    pts = _points()
    index = _build(pts)
    q = np.zeros(3)
    a = index.radius_search(q, 6.0, SearchParams(sorted=False))
    b = index.radius_search(q, 6.0)
    assert sorted(a) == sorted(b)


def test_radius_is_strict():
    pts = np.array([[0.0, 0.0], [1.0, 0.0]])
    index = _build(pts)
    found = index.radius_search([0.0, 0.0], 1.0)
    assert [i for i, _ in found] == [0]


def test_tree_structure_invariants():
    pts = _points(300)
    index = _build(pts, 7)
    assert sorted(index.vind) == list(range(300))
    covered = []
    for leaf in _leaves(index.root_node):
        assert leaf.right - leaf.left <= 7
        covered.extend(range(leaf.left, leaf.right))
    assert sorted(covered) == list(range(300))


def test_bounding_box_covers_points():
    pts = _points(50)
    index = _build(pts)
    for i, box in enumerate(index.root_bbox):
        assert box.low == pytest.approx(pts[:, i].min())
        assert box.high == pytest.approx(pts[:, i].max())


class _BoxDataset(ArrayDataset):
    def kdtree_get_bbox(self, bbox):
        for box in bbox:
            box.low, box.high = -10.0, 10.0
        return True


def test_dataset_supplied_bbox_is_used():
    pts = _points(20)
    index = KDTreeIndex(3, _BoxDataset(pts))
    bbox = index.compute_bounding_box()
    assert [(b.low, b.high) for b in bbox] == [(-10.0, 10.0)] * 3


def test_duplicate_points():
    pts = np.ones((30, 2))
    index = _build(pts, 4)
    ids, dists = index.knn_search([1.0, 1.0], 5)
    assert len(ids) == 5
    assert dists == [0.0] * 5


def test_save_load_round_trip():
    pts = _points(120)
    index = _build(pts, 6)
    stream = io.BytesIO()
    index.save_index(stream)
    stream.seek(0)
    loaded = KDTreeIndex(3, ArrayDataset(pts), KDTreeParams(6))
    loaded.load_index(stream)
    assert loaded.vind == index.vind
    for q in _points(5, seed=99):
        assert loaded.knn_search(q, 3) == index.knn_search(q, 3)


def test_eps_search_returns_true_distances():
    pts = _points()
    index = _build(pts)
    q = np.array([1.0, 2.0, -1.0])
    result = KNNResultSet(4)
    assert index.find_neighbors(result, q, SearchParams(eps=0.5)) is True
    sq = ((pts - q) ** 2).sum(axis=1)
    assert np.allclose(sq[result.indices()], result.distances())