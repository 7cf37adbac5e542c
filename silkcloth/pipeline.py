"""Collision candidate search across and within cloths and obstacles.

Objects are paired with sweep and prune over their boxes. Each object pair is
then matched primitive against primitive through the two objects' kd-trees.
Objects that allow self collision are also searched within their own tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from .colliders import MeshCollider, MeshColliderType, ObjectCollider
from .sap import sap_optimal_axis, sort_proxies, sorted_group_self_collision


@dataclass(frozen=True, eq=False)
class CandidatePair:
    """Two mesh colliders whose swept boxes overlap, with their owning objects."""

    object_a: ObjectCollider
    mesh_a: MeshCollider
    object_b: ObjectCollider
    mesh_b: MeshCollider

    @property
    def damping(self) -> float:
        """Mean damping of the two objects."""
        return 0.5 * (self.object_a.damping + self.object_b.damping)

    @property
    def friction(self) -> float:
        """Mean friction of the two objects."""
        return 0.5 * (self.object_a.friction + self.object_b.friction)

    @property
    def thickness(self) -> float:
        """The smaller of the two objects' box paddings."""
        return min(self.object_a.bbox_padding, self.object_b.bbox_padding)


def object_filter(a: Any, b: Any) -> bool:
    """Whether two objects may collide at all.

    Both must have collision enabled, share a group, and at least one of them
    must be simulated rather than a pure obstacle.
    """
    return (
        a.group != -1
        and b.group != -1
        and a.group == b.group
        and not (a.solver_offset == -1 and b.solver_offset == -1)
    )


def _point_triangle_ok(point: MeshCollider, triangle: MeshCollider) -> bool:
    is_neighbor = int(point.index[0]) in {int(i) for i in triangle.index}
    is_both_pinned = float(point.weight.sum() + triangle.weight.sum()) == 0.0
    return not is_neighbor and not is_both_pinned


def mesh_neighbor_filter(a: MeshCollider, b: MeshCollider) -> bool:
    """Whether two colliders of the same mesh are worth testing.

    Only point-triangle and edge-edge pairs are accepted, and only when they
    share no vertex and not every vertex involved is pinned.
    """
    if a.type is MeshColliderType.POINT and b.type is MeshColliderType.TRIANGLE:
        return _point_triangle_ok(a, b)
    if a.type is MeshColliderType.TRIANGLE and b.type is MeshColliderType.POINT:
        return _point_triangle_ok(b, a)
    if a.type is MeshColliderType.EDGE and b.type is MeshColliderType.EDGE:
        is_neighbor = bool({int(i) for i in a.index} & {int(i) for i in b.index})
        is_both_pinned = float(a.weight.sum() + b.weight.sum()) == 0.0
        return not is_neighbor and not is_both_pinned
    return False


def object_broadphase(
    object_colliders: Iterable[ObjectCollider],
) -> list[tuple[ObjectCollider, ObjectCollider]]:
    """Pairs of objects whose boxes overlap and that may collide."""
    proxies = list(object_colliders)
    if not proxies:
        return []
    axis = sap_optimal_axis(proxies)
    sort_proxies(proxies, axis)
    return list(sorted_group_self_collision(proxies, axis, object_filter))


def _object_object_pairs(objects: list[ObjectCollider]) -> Iterator[CandidatePair]:
    for oa, ob in object_broadphase(objects):
        for ma, mb in oa.mesh_collider_tree.collide_with(ob.mesh_collider_tree):
            yield CandidatePair(oa, ma, ob, mb)


def _self_pairs(objects: list[ObjectCollider]) -> Iterator[CandidatePair]:
    for o in objects:
        if o.solver_offset == -1 or not o.is_self_collision_on:
            continue
        for ma, mb in o.mesh_collider_tree.self_collisions(mesh_neighbor_filter):
            yield CandidatePair(o, ma, o, mb)


def find_candidate_pairs(object_colliders: Iterable[ObjectCollider]) -> list[CandidatePair]:
    """All primitive pairs to pass to narrow phase.

    Pairs between different objects come first, then each simulated object's
    self-collision pairs.
    """
    objects = list(object_colliders)
    return [*_object_object_pairs(objects), *_self_pairs(objects)]