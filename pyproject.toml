[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vislidar"
version = "0.1.0"
description = "k-d tree nearest-neighbour search and point-neighbourhood covariance estimation"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["kd-tree", "nearest-neighbour", "radius-search", "point-cloud", "covariance", "normals"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vislidar"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
