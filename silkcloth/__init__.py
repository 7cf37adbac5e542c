"""Cloth solver data, mesh colliders and kd-tree / sweep-and-prune collision broadphase."""

__version__ = "0.1.0"

__all__ = ["types", "sap", "kdtree", "solver_data", "colliders", "pipeline"]