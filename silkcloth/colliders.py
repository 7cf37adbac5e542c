"""Collision proxies for cloths and obstacles.

Every mesh contributes one collider per vertex, per edge and per triangle.
Each collider's box covers its primitive at the start and at the end of a
step, grown by the object's padding. An object's box starts from the origin
and grows to cover all of its colliders.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import reduce
from typing import Iterator

import numpy as np

from .kdtree import KDTree
from .sap import Bbox
from .solver_data import Pin, SolverData, TriMesh
from .types import CollisionConfig

PADDING_RATIO = 0.05


class MeshColliderType(enum.Enum):
    """Primitive a mesh collider stands for."""

    POINT = "point"
    EDGE = "edge"
    TRIANGLE = "triangle"

    @property
    def vertex_count(self) -> int:
        return _VERTEX_COUNT[self]


_VERTEX_COUNT = {
    MeshColliderType.POINT: 1,
    MeshColliderType.EDGE: 2,
    MeshColliderType.TRIANGLE: 3,
}


def _origin_bbox() -> Bbox:
    return Bbox(np.zeros(3), np.zeros(3))


@dataclass(eq=False)
class MeshCollider:
    """One point, edge or triangle of a mesh.

    ``position_t0`` and ``position_t1`` hold one vertex per column, at the
    start and at the end of the step. ``weight`` is the vertex mass, or zero
    for a pinned or obstacle vertex.
    """

    type: MeshColliderType
    index: np.ndarray
    weight: np.ndarray
    position_t0: np.ndarray
    position_t1: np.ndarray
    bbox: Bbox = field(default_factory=_origin_bbox)

    def __post_init__(self) -> None:
        k = self.type.vertex_count
        self.index = np.asarray(self.index, dtype=int).reshape(-1)
        self.weight = np.asarray(self.weight, dtype=float).reshape(-1)
        self.position_t0 = np.asarray(self.position_t0, dtype=float).reshape(3, -1)
        self.position_t1 = np.asarray(self.position_t1, dtype=float).reshape(3, -1)
        if self.index.shape != (k,) or self.weight.shape != (k,):
            raise ValueError(f"a {self.type.value} collider needs {k} indices and weights")
        if self.position_t0.shape != (3, k) or self.position_t1.shape != (3, k):
            raise ValueError(f"a {self.type.value} collider needs {k} position columns")


@dataclass(eq=False)
class ObstaclePosition:
    """Flat vertex positions of an obstacle, now and at the previous step."""

    position: np.ndarray
    prev_position: np.ndarray = field(default_factory=lambda: np.zeros(0))
    is_static: bool = True

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=float).reshape(-1)
        self.prev_position = np.asarray(self.prev_position, dtype=float).reshape(-1)


@dataclass(eq=False)
class ObjectCollider:
    """Collision data of one cloth or obstacle.

    ``group`` is -1 when collision is disabled; ``solver_offset`` is -1 for a
    pure obstacle.
    """

    bbox: Bbox
    group: int
    is_static: bool
    solver_offset: int
    is_self_collision_on: bool
    bbox_padding: float
    damping: float
    friction: float
    mesh_colliders: list[MeshCollider]
    mesh_collider_tree: KDTree = field(repr=False)


def _group_of(config: CollisionConfig) -> int:
    return config.group if config.is_collision_on else -1


def _primitives(mesh: TriMesh) -> Iterator[tuple[MeshColliderType, np.ndarray]]:
    for i in range(mesh.vert_num):
        yield MeshColliderType.POINT, np.array([i])
    for edge in mesh.edges:
        yield MeshColliderType.EDGE, np.asarray(edge, dtype=int)
    for face in mesh.faces:
        yield MeshColliderType.TRIANGLE, np.asarray(face, dtype=int)


def _swept_bbox(t0: np.ndarray, t1: np.ndarray, padding: float) -> Bbox:
    both = np.hstack((t0, t1))
    return Bbox(both.min(axis=1), both.max(axis=1)).padded(padding)


def _place(mc: MeshCollider, t0: np.ndarray, t1: np.ndarray, padding: float) -> None:
    mc.position_t0 = np.array(t0, dtype=float)
    mc.position_t1 = np.array(t1, dtype=float)
    mc.bbox = _swept_bbox(mc.position_t0, mc.position_t1, padding)


def _object_bbox(colliders: list[MeshCollider]) -> Bbox:
    return reduce(Bbox.merged, (mc.bbox for mc in colliders), _origin_bbox())


def _build_object(
    config: CollisionConfig,
    mesh: TriMesh,
    solver_offset: int,
    vertex_weights: np.ndarray,
) -> ObjectCollider:
    padding = PADDING_RATIO * mesh.avg_edge_length
    colliders = []
    for kind, index in _primitives(mesh):
        rest = mesh.vertices[index].T
        mc = MeshCollider(
            type=kind,
            index=index,
            weight=vertex_weights[index],
            position_t0=rest,
            position_t1=rest,
        )
        mc.bbox = _swept_bbox(mc.position_t0, mc.position_t1, padding)
        colliders.append(mc)

    return ObjectCollider(
        bbox=_object_bbox(colliders),
        group=_group_of(config),
        is_static=False,
        solver_offset=solver_offset,
        is_self_collision_on=config.is_self_collision_on,
        bbox_padding=padding,
        damping=config.damping,
        friction=config.friction,
        mesh_colliders=colliders,
        mesh_collider_tree=KDTree(colliders),
    )


def make_physical_object_collider(
    config: CollisionConfig, mesh: TriMesh, pin: Pin, solver_data: SolverData
) -> ObjectCollider:
    """Collider of a simulated cloth; pinned vertices get zero weight."""
    weights = np.asarray(solver_data.mass, dtype=float).reshape(-1).copy()
    if weights.shape != (mesh.vert_num,):
        raise ValueError("solver data mass must hold one entry per vertex")
    weights[np.asarray(pin.index, dtype=int)] = 0.0
    return _build_object(config, mesh, solver_data.state_offset, weights)


def make_obstacle_object_collider(config: CollisionConfig, mesh: TriMesh) -> ObjectCollider:
    """Collider of a pure obstacle: every weight is zero, no solver state."""
    return _build_object(config, mesh, -1, np.zeros(mesh.vert_num))


def _gather(vector: np.ndarray, offset: int, index: np.ndarray) -> np.ndarray:
    slots = offset + 3 * index[:, None] + np.arange(3)
    return vector[slots].T


def _refit_all(collider: ObjectCollider, offset: int, now: np.ndarray, before: np.ndarray) -> None:
    for mc in collider.mesh_colliders:
        _place(
            mc,
            _gather(before, offset, mc.index),
            _gather(now, offset, mc.index),
            collider.bbox_padding,
        )
    collider.bbox = _object_bbox(collider.mesh_colliders)
    collider.mesh_collider_tree.update(collider.bbox)


def update_physical_object_collider(
    collider: ObjectCollider,
    config: CollisionConfig,
    solver_data: SolverData,
    state: np.ndarray,
    prev_state: np.ndarray,
) -> None:
    """Refresh settings and sweep every collider from ``prev_state`` to ``state``."""
    collider.group = _group_of(config)
    collider.solver_offset = solver_data.state_offset
    collider.is_self_collision_on = config.is_self_collision_on
    collider.damping = config.damping
    collider.friction = config.friction
    _refit_all(
        collider,
        solver_data.state_offset,
        np.asarray(state, dtype=float).reshape(-1),
        np.asarray(prev_state, dtype=float).reshape(-1),
    )


def update_obstacle_object_collider(
    collider: ObjectCollider, config: CollisionConfig, position: ObstaclePosition
) -> None:
    """Refresh settings and, unless the obstacle is static, its colliders."""
    collider.group = _group_of(config)
    collider.is_static = position.is_static
    if collider.is_static:
        return
    _refit_all(collider, 0, position.position, position.prev_position)