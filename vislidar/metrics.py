"""Distance functors used by the k-d tree indices.

Each distance object wraps a dataset that exposes
``kdtree_get_pt(idx, dim)`` and measures the distance between a query
vector and the dataset point with a given index.
"""

from __future__ import annotations

import enum
import math


class L1Distance:
    """Manhattan distance, suited to high-dimensional data."""

    def __init__(self, dataset):
        self.dataset = dataset

    def eval_metric(self, a, b_idx, size, worst_dist=-1):
        """Sum of absolute differences over the first ``size`` components.

        Components are accumulated in groups of four; when ``worst_dist`` is
        positive and a partial sum already exceeds it, that partial sum is
        returned early.
        """
        get_pt = self.dataset.kdtree_get_pt
        result = 0.0
        d = 0
        while d < size - 3:
            result += sum(abs(a[d + j] - get_pt(b_idx, d + j)) for j in range(4))
            d += 4
            if worst_dist > 0 and result > worst_dist:
                return result
        result += sum(abs(a[j] - get_pt(b_idx, j)) for j in range(d, size))
        return result

    def accum_dist(self, a, b, dim):
        return abs(a - b)


class L2Distance:
    """Squared Euclidean distance, suited to high-dimensional data."""

    def __init__(self, dataset):
        self.dataset = dataset

    def eval_metric(self, a, b_idx, size, worst_dist=-1):
        """Sum of squared differences with the same early exit as L1."""
        get_pt = self.dataset.kdtree_get_pt
        result = 0.0
        d = 0
        while d < size - 3:
            for j in range(4):
                diff = a[d + j] - get_pt(b_idx, d + j)
                result += diff * diff
            d += 4
            if worst_dist > 0 and result > worst_dist:
                return result
        for j in range(d, size):
            diff = a[j] - get_pt(b_idx, j)
            result += diff * diff
        return result

    def accum_dist(self, a, b, dim):
        return (a - b) * (a - b)


class L2SimpleDistance:
    """Squared Euclidean distance for low-dimensional point clouds."""

    def __init__(self, dataset):
        self.dataset = dataset

    def eval_metric(self, a, b_idx, size, worst_dist=-1):
        """Sum of squared differences; ``worst_dist`` is ignored."""
        get_pt = self.dataset.kdtree_get_pt
        result = 0.0
        for i in range(size):
            diff = a[i] - get_pt(b_idx, i)
            result += diff * diff
        return result

    def accum_dist(self, a, b, dim):
        return (a - b) * (a - b)


class SO2Distance:
    """Signed angular difference on the last component, angles in [-pi, pi]."""

    def __init__(self, dataset):
        self.dataset = dataset

    def eval_metric(self, a, b_idx, size, worst_dist=-1):
        last = size - 1
        return self.accum_dist(a[last], self.dataset.kdtree_get_pt(b_idx, last), last)

    def accum_dist(self, a, b, dim):
        """``b - a`` wrapped into [-pi, pi]; inputs must already be in range."""
        result = b - a
        if result > math.pi:
            result -= 2 * math.pi
        elif result < -math.pi:
            result += 2 * math.pi
        return result


class SO3Distance:
    """Rotation distance computed with the simple squared Euclidean metric."""

    def __init__(self, dataset):
        self.dataset = dataset
        self._l2 = L2SimpleDistance(dataset)

    def eval_metric(self, a, b_idx, size, worst_dist=-1):
        return self._l2.eval_metric(a, b_idx, size)

    def accum_dist(self, a, b, dim):
        return self._l2.accum_dist(a, b, dim)


class Metric(enum.Enum):
    """Selects a distance functor for an index."""

    L1 = "l1"
    L2 = "l2"
    L2_SIMPLE = "l2_simple"
    SO2 = "so2"
    SO3 = "so3"

    def create(self, dataset):
        """Build the distance functor of this kind bound to ``dataset``."""
        return _METRIC_CLASSES[self](dataset)


_METRIC_CLASSES = {
    Metric.L1: L1Distance,
    Metric.L2: L2Distance,
    Metric.L2_SIMPLE: L2SimpleDistance,
    Metric.SO2: SO2Distance,
    Metric.SO3: SO3Distance,
}