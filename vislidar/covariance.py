"""Per-point covariance and normal estimation from neighbourhoods."""

from __future__ import annotations

import enum

import numpy as np


class RegularizationMethod(enum.Enum):
    """How an estimated covariance is conditioned."""

    NONE = "none"
    PLANE = "plane"
    NORMALIZED_MIN_EIG = "normalized_min_eig"
    FROBENIUS = "frobenius"


def _as_points(points):
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] not in (3, 4):
        raise ValueError("points must have shape (N, 3) or (N, 4)")
    if arr.shape[1] == 3:
        arr = np.hstack([arr, np.ones((arr.shape[0], 1))])
    return arr


def _neighbor_table(num_points, neighbors, k_neighbors):
    if num_points == 0:
        raise ValueError("points must not be empty")
    nbrs = np.asarray(neighbors, dtype=np.intp).reshape(-1)
    k_correspondences = nbrs.shape[0] // num_points
    if k_correspondences * num_points != nbrs.shape[0]:
        raise ValueError("k * len(points) != len(neighbors)")
    if k_neighbors is None:
        k_neighbors = k_correspondences
    if k_neighbors > k_correspondences:
        raise ValueError("k_neighbors exceeds the neighbours given per point")
    if k_neighbors < 1:
        raise ValueError("k_neighbors must be at least 1")
    return nbrs.reshape(num_points, k_correspondences)[:, :k_neighbors]


class CloudCovarianceEstimation:
    """Estimates regularised covariances (and normals) of point neighbourhoods.

    ``neighbors`` lists the same number of neighbour indices for every point;
    only the first ``k_neighbors`` of each point are used.
    """

    def __init__(self, num_threads=1):
        self.regularization_method = RegularizationMethod.PLANE
        self.num_threads = num_threads

    def _raw_covariances(self, points, neighbors, k_neighbors, unbiased):
        pts = _as_points(points)
        table = _neighbor_table(pts.shape[0], neighbors, k_neighbors)
        k = table.shape[1]
        selected = pts[table]
        sum_points = selected.sum(axis=1)
        sum_cross = np.einsum("nki,nkj->nij", selected, selected)
        mean = sum_points / k
        divisor = k - 1 if unbiased else k
        with np.errstate(divide="ignore", invalid="ignore"):
            covs = (sum_cross - mean[:, :, None] * sum_points[:, None, :]) / divisor
        return pts, covs

    def estimate(self, points, neighbors, k_neighbors=None):
        """Regularised 4x4 covariances, one per point (sample covariance, k-1)."""
        _, raw = self._raw_covariances(points, neighbors, k_neighbors, unbiased=True)
        covs = np.array([self.regularize(c) for c in raw])
        covs[:, 3, 3] = 0.0
        return covs

    def estimate_with_normals(self, points, neighbors, k_neighbors=None):
        """``(normals, covs)`` per point, using the population covariance.

        A normal is the eigenvector of the smallest eigenvalue, oriented to
        face the origin.
        """
        pts, raw = self._raw_covariances(points, neighbors, k_neighbors, unbiased=False)
        normals = np.zeros((pts.shape[0], 4))
        covs = np.zeros((pts.shape[0], 4, 4))
        for i, cov in enumerate(raw):
            covs[i], eigenvectors = self._regularize(cov)
            covs[i, 3, 3] = 0.0
            normal = np.append(eigenvectors[:, 0], 0.0)
            if pts[i] @ normal > 0.0:
                normal = -normal
            normals[i] = normal
        return normals, covs

    def regularize(self, cov):
        """Condition a 4x4 covariance according to ``regularization_method``."""
        return self._regularize(cov)[0]

    def _regularize(self, cov):
        cov = np.asarray(cov, dtype=np.float64)
        block = cov[:3, :3]
        eigenvalues, eigenvectors = np.linalg.eigh(block)
        method = self.regularization_method

        if method is RegularizationMethod.PLANE:
            values = np.array([1e-3, 1.0, 1.0])
        elif method is RegularizationMethod.NORMALIZED_MIN_EIG:
            values = np.maximum(eigenvalues / eigenvalues[2], 1e-3)
        elif method is RegularizationMethod.FROBENIUS:
            c = block + 1e-3 * np.eye(3)
            c_inv = np.linalg.inv(c)
            out = np.zeros((4, 4))
            out[:3, :3] = np.linalg.inv(c_inv / np.linalg.norm(c_inv))
            return out, eigenvectors
        else:
            return cov.copy(), eigenvectors

        out = np.zeros((4, 4))
        out[:3, :3] = eigenvectors @ np.diag(values) @ np.linalg.inv(eigenvectors)
        return out, eigenvectors