# vislidar

k-d tree nearest-neighbour search over point sets, plus per-point
covariance and normal estimation from neighbourhoods.

- `vislidar.kdtree.KDTreeIndex` is a static k-d tree. It is built once over
  a dataset adaptor and offers k-nearest and radius search.
- `vislidar.dynamic.DynamicKDTreeIndex` accepts points after it is built
  and removes them lazily. It keeps a logarithmic set of static trees.
- `vislidar.matrix_index.MatrixKDTree` indexes the rows (or columns) of a
  two-dimensional array.
- `vislidar.metrics.Metric` selects the distance: `L1`, `L2`, `L2_SIMPLE`,
  `SO2` or `SO3`. The L2 metrics give squared Euclidean distances.
- `vislidar.results` provides `KNNResultSet`, `RadiusResultSet` and
  `SearchParams` for searches that feed a result collector directly.
- `vislidar.covariance.CloudCovarianceEstimation` computes regularised 4x4
  covariances and, if asked, normals that face the origin.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Nearest neighbours

```python
import numpy as np
from vislidar.tree import ArrayDataset, KDTreeParams
from vislidar.kdtree import KDTreeIndex

points = np.random.default_rng(0).random((1000, 3))
index = KDTreeIndex(3, ArrayDataset(points), KDTreeParams(leaf_max_size=10))
index.build_index()

indices, sq_dists = index.knn_search([0.5, 0.5, 0.5], 5)
pairs = index.radius_search([0.5, 0.5, 0.5], 0.01)
```

`radius_search` returns `(index, distance)` pairs whose distance is strictly
below the radius. The pairs are sorted by distance unless
`SearchParams(sorted=False)` is passed. A dataset adaptor can be any object
that has these three methods:

- `kdtree_get_point_count()`
- `kdtree_get_pt(idx, dim)`
- `kdtree_get_bbox(bbox)`

`kdtree_get_bbox` may fill `bbox` and return `True` to skip the bounding-box
computation.

`save_index(stream)` and `load_index(stream)` write the tree to a binary
stream and read it back. The data points are not stored, so load the tree
into an index over the same dataset.

## Matrices

```python
from vislidar.matrix_index import MatrixKDTree
from vislidar.metrics import Metric

tree = MatrixKDTree(3, points, leaf_max_size=10, metric=Metric.L1)
indices, dists = tree.query([0.2, 0.4, 0.6], 3)
```

Pass `row_major=False` to treat each column as a point.

## Dynamic index

```python
from vislidar.dynamic import DynamicKDTreeIndex
from vislidar.results import KNNResultSet

dyn = DynamicKDTreeIndex(3, ArrayDataset(points), maximum_point_count=4096)
dyn.remove_point(7)
result = KNNResultSet(4)
dyn.find_neighbors(result, [0.5, 0.5, 0.5])
print(result.indices(), result.distances())
```

The index takes in every point the dataset holds when it is built. Call
`add_points(start, end)` once the dataset has grown. The range is inclusive.
If adding the points would go past `maximum_point_count`, it raises
`ValueError`.

## Covariances and normals

```python
from vislidar.covariance import CloudCovarianceEstimation, RegularizationMethod

k = 5
neighbors = [index.knn_search(p, k)[0] for p in points]
est = CloudCovarianceEstimation()
est.regularization_method = RegularizationMethod.PLANE
covs = est.estimate(points, neighbors, k)
normals, covs_n = est.estimate_with_normals(points, neighbors, k)
```

`estimate` uses the sample covariance (divisor k-1). `estimate_with_normals`
uses the population covariance (divisor k).

## What this package does not do

The package has no point-cloud frame type. It also has no reader for point
cloud files and no downsampling or transformation of point clouds. Camera
models, field-of-view estimation, visibility culling and image-based
calibration costs are not included either. There is no command-line program.