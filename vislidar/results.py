"""Result collectors used by k-d tree neighbour searches."""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass


class KNNResultSet:
    """Keeps the ``capacity`` closest points seen so far, sorted by distance."""

    def __init__(self, capacity):
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = int(capacity)
        self._dists: list[float] = []
        self._indices: list[int] = []

    def __len__(self):
        return len(self._dists)

    def full(self):
        """True once ``capacity`` points have been collected."""
        return len(self._dists) == self.capacity

    def add_point(self, dist, index):
        """Insert a candidate; returns True to tell the search to continue."""
        pos = bisect_right(self._dists, dist)
        if pos < self.capacity:
            self._dists.insert(pos, dist)
            self._indices.insert(pos, index)
            if len(self._dists) > self.capacity:
                self._dists.pop()
                self._indices.pop()
        return True

    def worst_dist(self):
        """Distance of the worst kept point, or infinity while not full."""
        if self.capacity == 0 or not self.full():
            return math.inf
        return self._dists[-1]

    def indices(self):
        """Indices of the collected points, closest first."""
        return list(self._indices)

    def distances(self):
        """Distances of the collected points, ascending."""
        return list(self._dists)


class RadiusResultSet:
    """Collects every point whose distance is strictly below ``radius``."""

    def __init__(self, radius):
        self.radius = radius
        self.items: list[tuple[int, float]] = []

    def __len__(self):
        return len(self.items)

    def clear(self):
        self.items.clear()

    def full(self):
        return True

    def add_point(self, dist, index):
        """Keep the point if it lies inside the radius; always continues."""
        if dist < self.radius:
            self.items.append((index, dist))
        return True

    def worst_dist(self):
        return self.radius

    def worst_item(self):
        """The (index, distance) pair with the largest distance."""
        if not self.items:
            raise RuntimeError(
                "Cannot invoke RadiusResultSet.worst_item() on an empty list of results."
            )
        return max(self.items, key=lambda item: item[1])


@dataclass
class SearchParams:
    """Options for neighbour searches.

    ``checks`` is ignored and kept only for interface compatibility.
    ``eps`` allows eps-approximate search; ``sorted`` orders radius results.
    """

    checks: int = 32
    eps: float = 0.0
    sorted: bool = True