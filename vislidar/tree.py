"""Core k-d tree construction shared by the static and dynamic indices."""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from vislidar.metrics import Metric


@dataclass
class KDTreeParams:
    """Construction parameters: the maximum number of points in a leaf."""

    leaf_max_size: int = 10


@dataclass
class Interval:
    """Extent of a bounding box along one dimension."""

    low: float
    high: float


@dataclass
class Node:
    """A tree node: a leaf holds ``vind[left:right]``, an inner node a split."""

    left: int = 0
    right: int = 0
    divfeat: int = 0
    divlow: float = 0.0
    divhigh: float = 0.0
    child1: Node | None = None
    child2: Node | None = None

    def is_leaf(self):
        return self.child1 is None and self.child2 is None


class ArrayDataset:
    """Dataset adaptor over an (N, D) array of points."""

    def __init__(self, points):
        arr = np.asarray(points, dtype=np.float64)
        if arr.ndim != 2:
            raise ValueError("points must be a 2-D array")
        self.points = arr

    def kdtree_get_point_count(self):
        return self.points.shape[0]

    def kdtree_get_pt(self, idx, dim):
        return float(self.points[idx, dim])

    def kdtree_get_bbox(self, bbox):
        """No precomputed bounding box; the index computes its own."""
        return False


_U64 = struct.Struct("<Q")
_I32 = struct.Struct("<i")
_INTERVAL = struct.Struct("<dd")
_FLAG = struct.Struct("<B")
_LEAF = struct.Struct("<QQ")
_SPLIT = struct.Struct("<idd")


def _read(stream, fmt):
    data = stream.read(fmt.size)
    if len(data) != fmt.size:
        raise EOFError("Cannot read from file")
    return fmt.unpack(data)


class KDTreeBase:
    """State and algorithms common to every k-d tree index.

    ``vind`` is the permutable list of dataset indices; tree leaves refer to
    contiguous ranges of it.
    """

    def __init__(self, dim, dataset, params=None, metric=Metric.L2):
        self.dataset = dataset
        self.params = params if params is not None else KDTreeParams()
        self.leaf_max_size = self.params.leaf_max_size
        self.dim = int(dim)
        self.distance = metric.create(dataset)
        self.vind: list[int] = []
        self.root_node: Node | None = None
        self.root_bbox: list[Interval] = []
        self.size = 0
        self.size_at_index_build = 0

    def __len__(self):
        return self.size

    def veclen(self):
        """Length of each point in the dataset."""
        return self.dim

    def _get(self, idx, component):
        return self.dataset.kdtree_get_pt(idx, component)

    def free_index(self):
        """Drop the built tree."""
        self.root_node = None
        self.size_at_index_build = 0

    def compute_min_max(self, start, count, element):
        """Minimum and maximum of one component over ``vind[start:start+count]``."""
        values = [self._get(i, element) for i in self.vind[start : start + count]]
        return min(values), max(values)

    def divide_tree(self, left, right, bbox):
        """Build the subtree over ``vind[left:right]``; ``bbox`` is updated in place."""
        node = Node()
        dim = self.veclen()
        if right - left <= self.leaf_max_size:
            node.left, node.right = left, right
            first = self.vind[left]
            for i in range(dim):
                value = self._get(first, i)
                bbox[i].low = bbox[i].high = value
            for idx in self.vind[left + 1 : right]:
                for i in range(dim):
                    value = self._get(idx, i)
                    if bbox[i].low > value:
                        bbox[i].low = value
                    if bbox[i].high < value:
                        bbox[i].high = value
            return node

        idx, cutfeat, cutval = self.middle_split(left, right - left, bbox)
        node.divfeat = cutfeat

        left_bbox = [Interval(b.low, b.high) for b in bbox]
        left_bbox[cutfeat].high = cutval
        node.child1 = self.divide_tree(left, left + idx, left_bbox)

        right_bbox = [Interval(b.low, b.high) for b in bbox]
        right_bbox[cutfeat].low = cutval
        node.child2 = self.divide_tree(left + idx, right, right_bbox)

        node.divlow = left_bbox[cutfeat].high
        node.divhigh = right_bbox[cutfeat].low

        for i in range(dim):
            bbox[i].low = min(left_bbox[i].low, right_bbox[i].low)
            bbox[i].high = max(left_bbox[i].high, right_bbox[i].high)
        return node

    def middle_split(self, start, count, bbox):
        """Choose a split; returns ``(index, cutfeat, cutval)``."""
        eps = 0.00001
        dim = self.veclen()
        max_span = max(b.high - b.low for b in bbox[:dim])
        max_spread = -1
        cutfeat = 0
        for i in range(dim):
            span = bbox[i].high - bbox[i].low
            if span > (1 - eps) * max_span:
                min_elem, max_elem = self.compute_min_max(start, count, i)
                spread = max_elem - min_elem
                if spread > max_spread:
                    cutfeat = i
                    max_spread = spread

        split_val = (bbox[cutfeat].low + bbox[cutfeat].high) / 2
        min_elem, max_elem = self.compute_min_max(start, count, cutfeat)
        if split_val < min_elem:
            cutval = min_elem
        elif split_val > max_elem:
            cutval = max_elem
        else:
            cutval = split_val

        lim1, lim2 = self.plane_split(start, count, cutfeat, cutval)
        half = count // 2
        if lim1 > half:
            index = lim1
        elif lim2 < half:
            index = lim2
        else:
            index = half
        return index, cutfeat, cutval

    def plane_split(self, start, count, cutfeat, cutval):
        """Partition ``vind[start:start+count]`` around ``cutval``.

        Returns ``(lim1, lim2)`` such that, relative to ``start``, entries before
        ``lim1`` are below ``cutval``, entries in ``[lim1, lim2)`` equal it and
        the rest are above it.
        """
        vind = self.vind

        def value(pos):
            return self._get(vind[start + pos], cutfeat)

        def swap(a, b):
            vind[start + a], vind[start + b] = vind[start + b], vind[start + a]

        left = 0
        right = count - 1
        while True:
            while left <= right and value(left) < cutval:
                left += 1
            while right and left <= right and value(right) >= cutval:
                right -= 1
            if left > right or not right:
                break
            swap(left, right)
            left += 1
            right -= 1
        lim1 = left

        right = count - 1
        while True:
            while left <= right and value(left) <= cutval:
                left += 1
            while right and left <= right and value(right) > cutval:
                right -= 1
            if left > right or not right:
                break
            swap(left, right)
            left += 1
            right -= 1
        lim2 = left
        return lim1, lim2

    def compute_initial_distances(self, vec):
        """Distance from ``vec`` to the root bounding box.

        Returns ``(distsq, dists)`` where ``dists`` holds the per-dimension terms.
        """
        dims = self.veclen()
        dists = [0.0] * dims
        distsq = 0.0
        for i in range(dims):
            box = self.root_bbox[i]
            if vec[i] < box.low:
                dists[i] = self.distance.accum_dist(vec[i], box.low, i)
                distsq += dists[i]
            if vec[i] > box.high:
                dists[i] = self.distance.accum_dist(vec[i], box.high, i)
                distsq += dists[i]
        return distsq, dists

    def _save_tree(self, stream, node):
        if node.is_leaf():
            stream.write(_FLAG.pack(1))
            stream.write(_LEAF.pack(node.left, node.right))
            return
        stream.write(_FLAG.pack(0))
        stream.write(_SPLIT.pack(node.divfeat, node.divlow, node.divhigh))
        self._save_tree(stream, node.child1)
        self._save_tree(stream, node.child2)

    def _load_tree(self, stream):
        (is_leaf,) = _read(stream, _FLAG)
        node = Node()
        if is_leaf:
            node.left, node.right = _read(stream, _LEAF)
            return node
        node.divfeat, node.divlow, node.divhigh = _read(stream, _SPLIT)
        node.child1 = self._load_tree(stream)
        node.child2 = self._load_tree(stream)
        return node

    def save_index(self, stream):
        """Write the index to a binary stream. The data points are not stored."""
        if self.root_node is None:
            raise RuntimeError("Cannot save an index that has not been built.")
        stream.write(_U64.pack(self.size))
        stream.write(_I32.pack(self.dim))
        stream.write(_U64.pack(len(self.root_bbox)))
        for box in self.root_bbox:
            stream.write(_INTERVAL.pack(box.low, box.high))
        stream.write(_U64.pack(self.leaf_max_size))
        stream.write(_U64.pack(len(self.vind)))
        stream.write(struct.pack(f"<{len(self.vind)}Q", *self.vind))
        self._save_tree(stream, self.root_node)

    def load_index(self, stream):
        """Read an index written by :meth:`save_index` over the same dataset."""
        (self.size,) = _read(stream, _U64)
        (self.dim,) = _read(stream, _I32)
        (nbox,) = _read(stream, _U64)
        self.root_bbox = [Interval(*_read(stream, _INTERVAL)) for _ in range(nbox)]
        (self.leaf_max_size,) = _read(stream, _U64)
        (nvind,) = _read(stream, _U64)
        self.vind = list(_read(stream, struct.Struct(f"<{nvind}Q")))
        self.root_node = self._load_tree(stream)