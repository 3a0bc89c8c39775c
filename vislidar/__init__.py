"""k-d tree nearest-neighbour search and point-neighbourhood covariance estimation."""

__version__ = "0.1.0"