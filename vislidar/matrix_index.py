"""A k-d tree over the rows (or columns) of a two-dimensional array."""

from __future__ import annotations

import numpy as np

from vislidar.kdtree import KDTreeIndex
from vislidar.metrics import Metric
from vislidar.tree import KDTreeParams


class MatrixKDTree:
    """Indexes the points stored in a matrix without copying them.

    With ``row_major`` each row is a point; otherwise each column is. The
    index is built on construction and is reachable as ``self.index``.
    """

    def __init__(
        self,
        dimensionality,
        matrix,
        leaf_max_size=10,
        metric=Metric.L2,
        row_major=True,
    ):
        mat = np.asarray(matrix, dtype=np.float64)
        if mat.ndim != 2:
            raise ValueError("matrix must be two-dimensional")
        self.matrix = mat
        self.row_major = bool(row_major)
        dims = mat.shape[1] if self.row_major else mat.shape[0]
        if dims != dimensionality:
            raise ValueError(
                "'dimensionality' must match column count in data matrix"
            )
        self.index = KDTreeIndex(dims, self, KDTreeParams(leaf_max_size), metric)
        self.index.build_index()

    def kdtree_get_point_count(self):
        return self.matrix.shape[0] if self.row_major else self.matrix.shape[1]

    def kdtree_get_pt(self, idx, dim):
        if self.row_major:
            return float(self.matrix[idx, dim])
        return float(self.matrix[dim, idx])

    def kdtree_get_bbox(self, bbox):
        """No precomputed bounding box; the index computes its own."""
        return False

    def query(self, query_point, num_closest):
        """The ``num_closest`` nearest points as ``(indices, distances)``."""
        return self.index.knn_search(query_point, num_closest)