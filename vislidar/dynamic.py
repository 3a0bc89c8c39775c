"""Dynamic k-d tree index built from a logarithmic set of static trees."""

from __future__ import annotations

import math

from vislidar.metrics import Metric
from vislidar.results import KNNResultSet, RadiusResultSet, SearchParams
from vislidar.tree import Interval, KDTreeBase, KDTreeParams


def _first_zero_bit(num):
    """Position of the least significant unset bit of ``num``."""
    pos = 0
    while num & 1:
        num >>= 1
        pos += 1
    return pos


class DynamicSubIndex(KDTreeBase):
    """One static tree of a dynamic index.

    The tree covers the dataset indices listed in ``vind``. ``tree_index`` is
    shared by every sub-index; an entry of -1 marks a removed point that
    searches skip.
    """

    def __init__(self, dim, dataset, tree_index, params=None, metric=Metric.L2):
        super().__init__(dim, dataset, params, metric)
        self.tree_index = tree_index
        self.size = 0
        self.size_at_index_build = 0

    def build_index(self):
        """Build the tree over the points currently listed in ``vind``."""
        self.size = len(self.vind)
        self.free_index()
        self.size_at_index_build = self.size
        if self.size == 0:
            return
        self.compute_bounding_box()
        self.root_node = self.divide_tree(0, self.size, self.root_bbox)

    def compute_bounding_box(self):
        """Compute and store the bounding box of the points in ``vind``."""
        bbox = [Interval(0.0, 0.0) for _ in range(self.veclen())]
        if not self.dataset.kdtree_get_bbox(bbox):
            if not self.size:
                raise RuntimeError(
                    "compute_bounding_box() called but no data points found."
                )
            first = self.vind[0]
            for i, box in enumerate(bbox):
                box.low = box.high = self._get(first, i)
            for idx in self.vind[1 : self.size]:
                for i, box in enumerate(bbox):
                    value = self._get(idx, i)
                    if value < box.low:
                        box.low = value
                    if value > box.high:
                        box.high = value
        self.root_bbox = bbox
        return bbox

    def find_neighbors(self, result, vec, search_params=None):
        """Feed the live points near ``vec`` into ``result``.

        Returns ``result.full()``, or False when the tree is empty or not built.
        """
        if len(self) == 0 or self.root_node is None:
            return False
        params = search_params if search_params is not None else SearchParams()
        eps_error = 1 + params.eps
        query = [float(v) for v in vec]
        distsq, dists = self.compute_initial_distances(query)
        self.search_level(result, query, self.root_node, distsq, dists, eps_error)
        return result.full()

    def search_level(self, result_set, vec, node, mindistsq, dists, eps_error):
        """Exact search below ``node``, skipping removed points."""
        if node.is_leaf():
            worst_dist = result_set.worst_dist()
            dim = self.veclen()
            for index in self.vind[node.left : node.right]:
                if self.tree_index[index] == -1:
                    continue
                dist = self.distance.eval_metric(vec, index, dim)
                if dist < worst_dist and not result_set.add_point(dist, index):
                    return
            return

        idx = node.divfeat
        val = vec[idx]
        diff1 = val - node.divlow
        diff2 = val - node.divhigh
        if diff1 + diff2 < 0:
            best_child, other_child = node.child1, node.child2
            cut_dist = self.distance.accum_dist(val, node.divhigh, idx)
        else:
            best_child, other_child = node.child2, node.child1
            cut_dist = self.distance.accum_dist(val, node.divlow, idx)

        self.search_level(result_set, vec, best_child, mindistsq, dists, eps_error)

        dst = dists[idx]
        mindistsq = mindistsq + cut_dist - dst
        dists[idx] = cut_dist
        if mindistsq * eps_error <= result_set.worst_dist():
            self.search_level(result_set, vec, other_child, mindistsq, dists, eps_error)
        dists[idx] = dst

    def knn_search(self, query_point, num_closest):
        """The ``num_closest`` nearest live points as ``(indices, distances)``."""
        result = KNNResultSet(num_closest)
        self.find_neighbors(result, query_point, SearchParams())
        return result.indices(), result.distances()

    def radius_search(self, query_point, radius, search_params=None):
        """All live ``(index, distance)`` pairs with distance below ``radius``."""
        params = search_params if search_params is not None else SearchParams()
        result = RadiusResultSet(radius)
        self.find_neighbors(result, query_point, params)
        items = list(result.items)
        if params.sorted:
            items.sort(key=lambda item: item[1])
        return items


class DynamicKDTreeIndex:
    """An index that supports adding and lazily removing points.

    Points are kept in ``log2(maximum_point_count)`` static trees whose sizes
    follow the binary representation of the number of points added; adding a
    point merges the smaller trees into the next free one and rebuilds it.
    """

    def __init__(
        self,
        dim,
        dataset,
        params=None,
        maximum_point_count=1000000000,
        metric=Metric.L2,
    ):
        if maximum_point_count < 1:
            raise ValueError("maximum_point_count must be positive")
        self.dataset = dataset
        self.params = params if params is not None else KDTreeParams()
        self.leaf_max_size = self.params.leaf_max_size
        self.dim = int(dim)
        self.tree_count = int(math.log2(maximum_point_count))
        self.point_count = 0
        self.tree_index: list[int] = []
        self.distance = metric.create(dataset)
        self._indices = [
            DynamicSubIndex(self.dim, dataset, self.tree_index, self.params, metric)
            for _ in range(self.tree_count)
        ]
        num_initial_points = dataset.kdtree_get_point_count()
        if num_initial_points > 0:
            self.add_points(0, num_initial_points - 1)

    def all_indices(self):
        """The internal static trees, smallest capacity first."""
        return list(self._indices)

    def add_points(self, start, end):
        """Insert the dataset points ``start`` to ``end`` inclusive."""
        if end < start:
            raise ValueError("end must not be smaller than start")
        count = end - start + 1
        if self.point_count + count > (1 << self.tree_count) - 1:
            raise ValueError("maximum point count of the index exceeded")
        self.tree_index.extend([0] * count)
        for idx in range(start, end + 1):
            pos = _first_zero_bit(self.point_count)
            target = self._indices[pos]
            target.vind.clear()
            self.tree_index[self.point_count] = pos
            for smaller in self._indices[:pos]:
                for point in smaller.vind:
                    target.vind.append(point)
                    if self.tree_index[point] != -1:
                        self.tree_index[point] = pos
                smaller.vind.clear()
                smaller.free_index()
            target.vind.append(idx)
            target.build_index()
            self.point_count += 1

    def remove_point(self, idx):
        """Mark a point as removed; unknown indices are ignored."""
        if idx >= self.point_count:
            return
        self.tree_index[idx] = -1

    def find_neighbors(self, result, vec, search_params=None):
        """Search every tree into ``result``; returns ``result.full()``."""
        for index in self._indices:
            index.find_neighbors(result, vec, search_params)
        return result.full()