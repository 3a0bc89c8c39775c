"""Static k-d tree index over a dataset adaptor."""

from __future__ import annotations

from vislidar.metrics import Metric
from vislidar.results import KNNResultSet, RadiusResultSet, SearchParams
from vislidar.tree import Interval, KDTreeBase


class KDTreeIndex(KDTreeBase):
    """A k-d tree built once over all points of a dataset.

    The dataset must provide ``kdtree_get_point_count()``,
    ``kdtree_get_pt(idx, dim)`` and ``kdtree_get_bbox(bbox)``; the latter may
    fill ``bbox`` and return True to skip the bounding-box computation.
    """

    def __init__(self, dim, dataset, params=None, metric=Metric.L2):
        super().__init__(dim, dataset, params, metric)
        self.size = dataset.kdtree_get_point_count()
        self.size_at_index_build = self.size
        self.init_vind()

    def init_vind(self):
        """Reset ``vind`` to the identity permutation of the current dataset."""
        self.size = self.dataset.kdtree_get_point_count()
        self.vind = list(range(self.size))

    def build_index(self):
        """Build the tree over every point currently in the dataset."""
        self.init_vind()
        self.free_index()
        self.size_at_index_build = self.size
        if self.size == 0:
            return
        self.compute_bounding_box()
        self.root_node = self.divide_tree(0, self.size, self.root_bbox)

    def compute_bounding_box(self):
        """Compute and store the bounding box of the dataset; returns it."""
        bbox = [Interval(0.0, 0.0) for _ in range(self.veclen())]
        if not self.dataset.kdtree_get_bbox(bbox):
            count = self.dataset.kdtree_get_point_count()
            if not count:
                raise RuntimeError(
                    "compute_bounding_box() called but no data points found."
                )
            for i, box in enumerate(bbox):
                box.low = box.high = self._get(0, i)
            for k in range(1, count):
                for i, box in enumerate(bbox):
                    value = self._get(k, i)
                    if value < box.low:
                        box.low = value
                    if value > box.high:
                        box.high = value
        self.root_bbox = bbox
        return bbox

    def find_neighbors(self, result, vec, search_params=None):
        """Feed the points near ``vec`` into ``result``.

        Returns ``result.full()``, or False for an empty index. Raises
        RuntimeError when the index has not been built.
        """
        if len(self) == 0:
            return False
        if self.root_node is None:
            raise RuntimeError("find_neighbors() called before building the index.")
        params = search_params if search_params is not None else SearchParams()
        eps_error = 1 + params.eps
        query = [float(v) for v in vec]
        distsq, dists = self.compute_initial_distances(query)
        self.search_level(result, query, self.root_node, distsq, dists, eps_error)
        return result.full()

    def search_level(self, result_set, vec, node, mindistsq, dists, eps_error):
        """Exact search below ``node``; returns False once the result set is done."""
        if node.is_leaf():
            worst_dist = result_set.worst_dist()
            dim = self.veclen()
            for index in self.vind[node.left : node.right]:
                dist = self.distance.eval_metric(vec, index, dim)
                if dist < worst_dist and not result_set.add_point(dist, index):
                    return False
            return True

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

        if not self.search_level(result_set, vec, best_child, mindistsq, dists, eps_error):
            return False

        dst = dists[idx]
        mindistsq = mindistsq + cut_dist - dst
        dists[idx] = cut_dist
        if mindistsq * eps_error <= result_set.worst_dist():
            if not self.search_level(
                result_set, vec, other_child, mindistsq, dists, eps_error
            ):
                return False
        dists[idx] = dst
        return True

    def knn_search(self, query_point, num_closest):
        """The ``num_closest`` nearest points as ``(indices, distances)``, closest first."""
        result = KNNResultSet(num_closest)
        self.find_neighbors(result, query_point, SearchParams())
        return result.indices(), result.distances()

    def radius_search(self, query_point, radius, search_params=None):
        """All ``(index, distance)`` pairs with distance below ``radius``.

        Sorted by ascending distance unless ``search_params.sorted`` is False.
        """
        params = search_params if search_params is not None else SearchParams()
        result = RadiusResultSet(radius)
        self.radius_search_custom_callback(query_point, result, params)
        items = list(result.items)
        if params.sorted:
            items.sort(key=lambda item: item[1])
        return items

    def radius_search_custom_callback(self, query_point, result_set, search_params=None):
        """Run a search into a caller-supplied result set; returns its size."""
        self.find_neighbors(result_set, query_point, search_params)
        return len(result_set)