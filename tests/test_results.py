import math

import pytest

from vislidar.results import KNNResultSet, RadiusResultSet, SearchParams


def test_knn_keeps_closest_sorted():
    rs = KNNResultSet(3)
    for dist, idx in [(5.0, 0), (1.0, 1), (3.0, 2), (0.5, 3), (4.0, 4)]:
        assert rs.add_point(dist, idx) is True
    assert rs.indices() == [3, 1, 2]
    assert rs.distances() == [0.5, 1.0, 3.0]
    assert len(rs) == 3
    assert rs.full()


def test_knn_worst_dist_infinite_until_full():
    rs = KNNResultSet(2)
    assert rs.worst_dist() == math.inf
    rs.add_point(2.0, 7)
    assert rs.worst_dist() == math.inf
    assert not rs.full()
    rs.add_point(1.0, 8)
    assert rs.worst_dist() == 2.0


def test_knn_ties_keep_insertion_order():
    rs = KNNResultSet(3)
    rs.add_point(1.0, 10)
    rs.add_point(1.0, 4)
    rs.add_point(1.0, 6)
    assert rs.indices() == [10, 4, 6]


def test_knn_fewer_points_than_capacity():
    rs = KNNResultSet(5)
    rs.add_point(2.0, 1)
    rs.add_point(1.0, 0)
    assert len(rs) == 2
    assert rs.indices() == [0, 1]


def test_knn_zero_capacity():
    rs = KNNResultSet(0)
    rs.add_point(1.0, 0)
    assert len(rs) == 0
    assert rs.full()
    assert rs.worst_dist() == math.inf


def test_knn_negative_capacity_rejected():
    with pytest.raises(ValueError):
        KNNResultSet(-1)


def test_knn_distances_are_ascending():
    rs = KNNResultSet(4)
    for i, d in enumerate([9.0, 2.0, 7.0, 3.0, 8.0, 1.0, 6.0]):
        rs.add_point(d, i)
    dists = rs.distances()
    assert dists == sorted(dists)
    assert dists == [1.0, 2.0, 3.0, 6.0]


def test_radius_filters_strictly():
    rs = RadiusResultSet(2.0)
    rs.add_point(1.0, 0)
    rs.add_point(2.0, 1)
    rs.add_point(3.0, 2)
    rs.add_point(0.5, 3)
    assert rs.items == [(0, 1.0), (3, 0.5)]
    assert len(rs) == 2
    assert rs.full()
    assert rs.worst_dist() == 2.0


def test_radius_worst_item_and_clear():
    rs = RadiusResultSet(10.0)
    rs.add_point(1.0, 0)
    rs.add_point(4.0, 1)
    rs.add_point(2.0, 2)
    assert rs.worst_item() == (1, 4.0)
    rs.clear()
    assert len(rs) == 0


def test_radius_worst_item_empty_raises():
    rs = RadiusResultSet(1.0)
    with pytest.raises(RuntimeError):
        rs.worst_item()


def test_search_params_defaults_and_override():
    params = SearchParams()
    assert (params.checks, params.eps, params.sorted) == (32, 0.0, True)
    custom = SearchParams(eps=0.5, sorted=False)
    assert custom.eps == 0.5
    assert custom.sorted is False