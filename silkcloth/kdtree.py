"""Dynamic kd-tree broadphase over colliders that carry a ``bbox``.

Each node owns the proxies that straddle its split plane, or all of its
proxies when it is a leaf. Calling :meth:`KDTree.update` after the colliders
move refits the tree. It lifts proxies that left their node's region, then
splits, collapses, moves or erases planes so that nodes stay balanced.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Iterable, Iterator

import numpy as np

from .sap import (
    Accept,
    Bbox,
    proxy_mean_variance,
    sap_optimal_axis,
    sort_proxies,
    sorted_group_group_collision,
    sorted_group_self_collision,
)

DEFAULT_LEAF_SIZE = 1024


def _zero_bbox() -> Bbox:
    return Bbox(np.zeros(3), np.zeros(3))


@dataclass(eq=False)
class KDNode:
    """A tree node: a region, a split plane and the proxies it owns."""

    parent: KDNode | None = field(default=None, repr=False)
    left: KDNode | None = field(default=None, repr=False)
    right: KDNode | None = field(default=None, repr=False)
    bbox: Bbox = field(default_factory=_zero_bbox)
    axis: int = 0
    position: float = 0.0
    proxies: list[Any] = field(default_factory=list, repr=False)
    population: int = 0

    def is_leaf(self) -> bool:
        # children always come in pairs, so checking one is enough
        return self.left is None

    def is_left(self) -> bool:
        return self.parent is not None and self.parent.left is self


def _children(node: KDNode) -> tuple[KDNode, ...]:
    return () if node.is_leaf() else (node.left, node.right)


def _descendants(node: KDNode) -> Iterator[KDNode]:
    stack = list(_children(node))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(_children(current))


def _merged_bbox(proxies: Iterable[Any]) -> Bbox:
    return reduce(Bbox.merged, (p.bbox for p in proxies))


def _ieee_ratio(numerator: float, denominator: float) -> float:
    """Division that yields inf or nan instead of raising on a zero divisor."""
    if denominator != 0:
        return numerator / denominator
    if numerator > 0:
        return math.inf
    if numerator < 0:
        return -math.inf
    return math.nan


class KDTree:
    """Kd-tree of colliders for self and tree-tree broadphase queries."""

    def __init__(self, colliders: Iterable[Any], leaf_size: int = DEFAULT_LEAF_SIZE) -> None:
        colliders = list(colliders)
        if not colliders:
            raise ValueError("a kd-tree needs at least one collider")
        if leaf_size < 1:
            raise ValueError("leaf size must be positive")
        self.colliders = colliders
        self.leaf_size = leaf_size
        self.root = KDNode(proxies=list(colliders), population=len(colliders))

    # ------------------------------------------------------------------
    # structure maintenance
    # ------------------------------------------------------------------

    def update(self, root_bbox: Bbox) -> None:
        """Refit the tree to the colliders' current boxes."""
        self.root.bbox = root_bbox
        self._lift_unfit_up()
        self._optimize_structure()

    def _breadth_first(self) -> list[KDNode]:
        order = [self.root]
        for node in order:
            order.extend(_children(node))
        return order

    def _lift_unfit_up(self) -> None:
        # children come after their parent, so the reversed order is bottom-up
        for node in reversed(self._breadth_first()[1:]):
            if node.proxies:
                fit, unfit = [], []
                for p in node.proxies:
                    (fit if node.bbox.contains(p.bbox) else unfit).append(p)
                node.proxies = fit
                node.parent.proxies.extend(unfit)
            node.population = len(node.proxies) + sum(c.population for c in _children(node))
        root = self.root
        root.population = len(root.proxies) + sum(c.population for c in _children(root))

    def _optimize_structure(self) -> None:
        stack = [self.root]
        while stack:
            node = stack.pop()

            if node.is_leaf():
                if len(node.proxies) > self.leaf_size:
                    self._split_leaf(node)
                    stack.extend((node.right, node.left))
                continue

            if node.population < self.leaf_size:
                self._collapse(node)
                stack.append(node)
                continue

            # first try to keep the current plane
            if self._evaluate(node):
                self._apply_plane(node)
                stack.extend((node.right, node.left))
                continue

            # then try moving the plane to the mean of all subtree proxies
            keep_left = node.left.population > node.right.population
            self._lift_subtree(node)
            self._translate(node)
            if self._evaluate(node):
                self._apply_plane(node)
                stack.extend((node.right, node.left))
                continue

            self._erase(node, keep_left)
            stack.append(node)

    def _split_leaf(self, node: KDNode) -> None:
        mean, variance = proxy_mean_variance(node.proxies)
        node.axis = int(np.argmax(variance))
        node.position = float(mean[node.axis])
        node.left = KDNode(parent=node)
        node.right = KDNode(parent=node)
        self._apply_plane(node)

    def _apply_plane(self, node: KDNode) -> None:
        """Push proxies strictly off the plane down one level and resize children."""
        axis, position = node.axis, node.position
        left_side, middle, right_side = [], [], []
        for p in node.proxies:
            if p.bbox.max[axis] < position:
                left_side.append(p)
            elif p.bbox.min[axis] > position:
                right_side.append(p)
            else:
                middle.append(p)

        node.left.proxies.extend(left_side)
        node.left.population += len(left_side)
        node.right.proxies.extend(right_side)
        node.right.population += len(right_side)
        node.proxies = middle

        node.left.bbox = Bbox(node.bbox.min, node.bbox.max)
        node.left.bbox.max[axis] = position
        node.right.bbox = Bbox(node.bbox.min, node.bbox.max)
        node.right.bbox.min[axis] = position

    def _collapse(self, node: KDNode) -> None:
        for d in _descendants(node):
            node.proxies.extend(d.proxies)
        node.left = None
        node.right = None

    def _lift_subtree(self, node: KDNode) -> None:
        for d in _descendants(node):
            node.proxies.extend(d.proxies)
            d.proxies = []
            d.population = 0

    def _translate(self, node: KDNode) -> None:
        axis = node.axis
        node.position = float(np.mean([p.bbox.center()[axis] for p in node.proxies]))

    def _evaluate(self, node: KDNode) -> bool:
        """Whether the node's plane splits its proxies well enough to keep."""
        axis, position = node.axis, node.position
        left_num = middle_num = right_num = 0
        for p in node.proxies:
            if p.bbox.max[axis] < position:
                left_num += 1
            elif p.bbox.min[axis] > position:
                right_num += 1
            else:
                middle_num += 1
        left_num += node.left.population
        right_num += node.right.population

        num = len(node.proxies)
        t_min = 0.5 * num * (0.5 * num - 1.0)
        t_max = 0.5 * num * (num - 1.0)
        t = 0.5 * (
            (left_num**2 + middle_num**2 + right_num**2 - num)
            + middle_num * (left_num + right_num)
        )
        cost = _ieee_ratio(t - t_min, t_max - t_min)
        balance = _ieee_ratio(min(left_num, right_num), middle_num + max(left_num, right_num))
        return cost <= balance

    def _erase(self, node: KDNode, keep_left: bool) -> None:
        main, _ = (node.left, node.right) if keep_left else (node.right, node.left)
        node.left = main.left
        node.right = main.right
        node.axis = main.axis
        node.position = main.position
        for child in _children(node):
            child.parent = node

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def self_collisions(self, accept: Accept | None = None) -> list[tuple[Any, Any]]:
        """All overlapping collider pairs within the tree."""
        pairs: list[tuple[Any, Any]] = []
        stack: list[tuple[KDNode, list[Any]]] = [(self.root, [])]
        while stack:
            node, external = stack.pop()
            pairs.extend(self._node_collisions(node, external, accept))
            for child in (node.right, node.left) if not node.is_leaf() else ():
                stack.append((child, self._external_for(child, external)))
        return pairs

    @staticmethod
    def _external_for(child: KDNode, parent_external: list[Any]) -> list[Any]:
        parent = child.parent
        axis, position = parent.axis, parent.position
        candidates = parent_external + parent.proxies
        if child.is_left():
            return [p for p in candidates if p.bbox.min[axis] < position]
        return [p for p in candidates if p.bbox.max[axis] > position]

    @staticmethod
    def _node_collisions(
        node: KDNode, external: list[Any], accept: Accept | None
    ) -> list[tuple[Any, Any]]:
        if not node.proxies:
            return []
        axis = sap_optimal_axis(node.proxies)
        sort_proxies(node.proxies, axis)
        pairs = list(sorted_group_self_collision(node.proxies, axis, accept))
        if external:
            others = sorted(external, key=lambda p: p.bbox.min[axis])
            pairs.extend(sorted_group_group_collision(node.proxies, others, axis, accept))
        return pairs

    def collide_with(self, other: KDTree, accept: Accept | None = None) -> list[tuple[Any, Any]]:
        """All overlapping pairs with one collider from each tree.

        Each pair holds this tree's collider first; ``accept`` is called in
        the same order.
        """
        extents_b = _subtree_extents(other.root)
        if other.root not in extents_b:
            return []
        whole_b = extents_b[other.root]

        pairs: list[tuple[Any, Any]] = []
        for node_a in self._breadth_first():
            if not node_a.proxies:
                continue
            own_box = _merged_bbox(node_a.proxies)
            if not own_box.overlaps(whole_b):
                continue
            stack = [other.root]
            while stack:
                node_b = stack.pop()
                extent = extents_b.get(node_b)
                if extent is None or not own_box.overlaps(extent):
                    continue
                if node_b.proxies:
                    pairs.extend(_cross_collisions(node_a.proxies, node_b.proxies, accept))
                stack.extend(_children(node_b))
        return pairs


def _subtree_extents(root: KDNode) -> dict[KDNode, Bbox]:
    """Tight box of every subtree that holds at least one proxy."""
    order = [root]
    for node in order:
        order.extend(_children(node))
    extents: dict[KDNode, Bbox] = {}
    for node in reversed(order):
        boxes = [extents[c] for c in _children(node) if c in extents]
        if node.proxies:
            boxes.append(_merged_bbox(node.proxies))
        if boxes:
            extents[node] = reduce(Bbox.merged, boxes)
    return extents


def _cross_collisions(
    proxies_a: list[Any], proxies_b: list[Any], accept: Accept | None
) -> list[tuple[Any, Any]]:
    group_a, group_b = list(proxies_a), list(proxies_b)
    axis = sap_optimal_axis(group_a, group_b)
    sort_proxies(group_a, axis)
    sort_proxies(group_b, axis)
    b_ids = {id(p) for p in group_b}

    def oriented(x: Any, y: Any) -> tuple[Any, Any]:
        return (y, x) if id(x) in b_ids else (x, y)

    check = None if accept is None else (lambda x, y: accept(*oriented(x, y)))
    return [oriented(x, y) for x, y in sorted_group_group_collision(group_a, group_b, axis, check)]