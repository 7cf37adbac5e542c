from dataclasses import dataclass
from functools import reduce
from itertools import combinations

import numpy as np
import pytest

from silkcloth.kdtree import KDNode, KDTree
from silkcloth.sap import Bbox


@dataclass(eq=False)
class Box:
    tag: str
    index: int
    bbox: Bbox


def _boxes(seed, count, tag="a", spread=10.0, half=0.4, shift=0.0):
    rng = np.random.default_rng(seed)
    centers = rng.uniform(0.0, spread, (count, 3)) + shift
    return [Box(tag, i, Bbox(c - half, c + half)) for i, c in enumerate(centers)]


def _root_bbox(boxes):
    return reduce(Bbox.merged, (b.bbox for b in boxes))


def _nodes(tree):
    order = [tree.root]
    for node in order:
        if not node.is_leaf():
            order.extend((node.left, node.right))
    return order


def _brute_self(boxes, accept=lambda a, b: True):
    return {
        frozenset((a.index, b.index))
        for a, b in combinations(boxes, 2)
        if a.bbox.overlaps(b.bbox) and accept(a, b)
    }


def _pair_set(pairs):
    return {frozenset((a.index, b.index)) for a, b in pairs}


def _built(seed=1, count=300, leaf_size=8):
    boxes = _boxes(seed, count)
    tree = KDTree(boxes, leaf_size=leaf_size)
    tree.update(_root_bbox(boxes))
    return boxes, tree


def test_empty_colliders_rejected():
    with pytest.raises(ValueError):
        KDTree([])


def test_non_positive_leaf_size_rejected():
    with pytest.raises(ValueError):
        KDTree(_boxes(0, 3), leaf_size=0)


def test_default_leaf_size():
    assert KDTree(_boxes(0, 3)).leaf_size == 1024


def test_fresh_tree_is_single_leaf():
    boxes = _boxes(0, 20)
    tree = KDTree(boxes)
    assert tree.root.is_leaf()
    assert tree.root.population == 20
    assert {id(p) for p in tree.root.proxies} == {id(b) for b in boxes}


def test_update_splits_and_keeps_every_collider_once():
    boxes, tree = _built()
    assert not tree.root.is_leaf()
    held = [id(p) for node in _nodes(tree) for p in node.proxies]
    assert sorted(held) == sorted(id(b) for b in boxes)


def test_leaves_respect_leaf_size():
    _, tree = _built()
    leaves = [n for n in _nodes(tree) if n.is_leaf()]
    assert leaves
    assert all(len(n.proxies) <= tree.leaf_size for n in leaves)


def test_population_invariant():
    boxes, tree = _built()
    assert tree.root.population == len(boxes)
    for node in _nodes(tree):
        children = 0 if node.is_leaf() else node.left.population + node.right.population
        assert node.population == len(node.proxies) + children


def test_node_links():
    _, tree = _built()
    root = tree.root
    assert not root.is_left()
    assert root.left.is_left()
    assert not root.right.is_left()
    assert root.left.parent is root and root.right.parent is root
    for node in _nodes(tree):
        if not node.is_leaf():
            assert node.left.parent is node
            assert node.right.parent is node


def test_standalone_node_defaults():
    node = KDNode()
    assert node.is_leaf()
    assert not node.is_left()


def test_self_collisions_match_brute_force():
    boxes, tree = _built()
    pairs = tree.self_collisions()
    assert len(pairs) == len(_pair_set(pairs))
    assert _pair_set(pairs) == _brute_self(boxes)


def test_self_collisions_without_update():
    boxes = _boxes(3, 60)
    tree = KDTree(boxes)
    assert _pair_set(tree.self_collisions()) == _brute_self(boxes)


def test_self_collisions_after_motion():
    boxes, tree = _built(seed=5)
    rng = np.random.default_rng(11)
    for step in range(3):
        for b in boxes:
            d = rng.uniform(-1.0, 1.0, 3)
            b.bbox = Bbox(b.bbox.min + d, b.bbox.max + d)
        tree.update(_root_bbox(boxes))
        pairs = tree.self_collisions()
        assert len(pairs) == len(_pair_set(pairs))
        assert _pair_set(pairs) == _brute_self(boxes)
        held = [id(p) for node in _nodes(tree) for p in node.proxies]
        assert sorted(held) == sorted(id(b) for b in boxes)


def test_self_collisions_filter_rejecting_all():
    _, tree = _built()
    assert tree.self_collisions(lambda a, b: False) == []


def test_self_collisions_filter_subset():
    boxes, tree = _built()

    def odd_sum(a, b):
        return (a.index + b.index) % 2 == 1

    assert _pair_set(tree.self_collisions(odd_sum)) == _brute_self(boxes, odd_sum)


def test_small_self_collision():
    boxes = [
        Box("a", 0, Bbox([0, 0, 0], [1, 1, 1])),
        Box("a", 1, Bbox([0.5, 0.5, 0.5], [2, 2, 2])),
        Box("a", 2, Bbox([5, 5, 5], [6, 6, 6])),
    ]
    tree = KDTree(boxes)
    assert _pair_set(tree.self_collisions()) == {frozenset((0, 1))}


def _tree(boxes, leaf_size=8):
    tree = KDTree(boxes, leaf_size=leaf_size)
    tree.update(_root_bbox(boxes))
    return tree


def test_collide_with_matches_brute_force():
    boxes_a = _boxes(21, 200, tag="a")
    boxes_b = _boxes(22, 150, tag="b", shift=3.0)
    tree_a, tree_b = _tree(boxes_a), _tree(boxes_b)
    pairs = tree_a.collide_with(tree_b)
    found = {(x.index, y.index) for x, y in pairs}
    expected = {
        (a.index, b.index)
        for a in boxes_a
        for b in boxes_b
        if a.bbox.overlaps(b.bbox)
    }
    assert len(pairs) == len(found)
    assert found == expected
    assert all(x.tag == "a" and y.tag == "b" for x, y in pairs)


def test_collide_with_repeatable():
    tree_a = _tree(_boxes(31, 120, tag="a"))
    tree_b = _tree(_boxes(32, 120, tag="b"))
    first = {(x.index, y.index) for x, y in tree_a.collide_with(tree_b)}
    second = {(x.index, y.index) for x, y in tree_a.collide_with(tree_b)}
    assert first == second


def test_collide_with_disjoint_trees():
    tree_a = _tree(_boxes(41, 50, tag="a"))
    tree_b = _tree(_boxes(42, 50, tag="b", shift=100.0))
    assert tree_a.collide_with(tree_b) == []


def test_collide_with_accept_sees_own_collider_first():
    tree_a = _tree(_boxes(51, 100, tag="a"))
    tree_b = _tree(_boxes(52, 100, tag="b"))
    seen = []

    def accept(x, y):
        seen.append((x.tag, y.tag))
        return True

    pairs = tree_a.collide_with(tree_b, accept)
    assert seen
    assert set(seen) == {("a", "b")}
    assert len(seen) >= len(pairs)


def test_collide_with_accept_rejecting_all():
    tree_a = _tree(_boxes(61, 80, tag="a"))
    tree_b = _tree(_boxes(62, 80, tag="b"))
    assert tree_a.collide_with(tree_b, lambda x, y: False) == []