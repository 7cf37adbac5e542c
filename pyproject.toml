[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "silkcloth"
version = "0.1.0"
description = "Cloth simulation building blocks: solver data for cloth meshes, mesh colliders and a kd-tree / sweep-and-prune collision broadphase"
requires-python = ">=3.10"
keywords = ["cloth", "simulation", "physics", "collision", "broadphase", "kd-tree", "sweep-and-prune"]
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
    "Topic :: Scientific/Engineering :: Physics",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["silkcloth"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
