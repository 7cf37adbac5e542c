"""Axis-aligned boxes and sweep-and-prune broadphase collision queries.

A proxy is any object with a ``bbox`` attribute holding a :class:`Bbox`.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice
from typing import Any, Callable, Iterable, Iterator, Sequence

import numpy as np

Accept = Callable[[Any, Any], bool]


@dataclass
class Bbox:
    """Axis-aligned bounding box in 3D."""

    min: np.ndarray
    max: np.ndarray

    def __post_init__(self) -> None:
        self.min = np.array(self.min, dtype=float).reshape(-1)
        self.max = np.array(self.max, dtype=float).reshape(-1)
        if self.min.shape != (3,) or self.max.shape != (3,):
            raise ValueError("bbox corners must be 3D points")

    def center(self) -> np.ndarray:
        return 0.5 * (self.min + self.max)

    def overlaps(self, other: Bbox) -> bool:
        """True if the two boxes intersect, touching included."""
        return bool(np.all(self.min <= other.max) and np.all(other.min <= self.max))

    def contains(self, other: Bbox) -> bool:
        """True if ``other`` lies entirely inside this box."""
        return bool(np.all(self.min <= other.min) and np.all(other.max <= self.max))

    def merged(self, other: Bbox) -> Bbox:
        return Bbox(np.minimum(self.min, other.min), np.maximum(self.max, other.max))

    def padded(self, padding: float) -> Bbox:
        return Bbox(self.min - padding, self.max + padding)


def proxy_mean_variance(proxies: Iterable[Any]) -> tuple[np.ndarray, np.ndarray]:
    """Mean and variance of the proxies' box centers, per axis."""
    centers = np.array([p.bbox.center() for p in proxies], dtype=float)
    if centers.size == 0:
        raise ValueError("at least one proxy is required")
    mean = centers.mean(axis=0)
    variance = (centers**2).mean(axis=0) - mean**2
    return mean, variance


def sap_optimal_axis(proxies: Sequence[Any], others: Sequence[Any] | None = None) -> int:
    """Axis along which box centers spread the most.

    With ``others`` given, the spread of both groups together is used.
    """
    proxies = list(proxies)
    mean_a, var_a = proxy_mean_variance(proxies)
    if others is None:
        return int(np.argmax(var_a))

    others = list(others)
    mean_b, var_b = proxy_mean_variance(others)
    num_a, num_b = len(proxies), len(others)
    mean = (num_a * mean_a + num_b * mean_b) / (num_a + num_b)
    var = num_a * (var_a + (mean_a - mean) ** 2) + num_b * (var_b + (mean_b - mean) ** 2)
    return int(np.argmax(var))


def sort_proxies(proxies: list[Any], axis: int) -> None:
    """Sort a list of proxies in place by box minimum along ``axis``."""
    if not proxies:
        raise ValueError("at least one proxy is required")
    proxies.sort(key=lambda p: p.bbox.min[axis])


def sorted_collision(
    proxy: Any, proxies: Iterable[Any], axis: int, accept: Accept | None
) -> Iterator[tuple[Any, Any]]:
    """Yield ``(proxy, other)`` for each overlapping proxy in a sorted run."""
    reach = proxy.bbox.max[axis]
    for other in proxies:
        if reach < other.bbox.min[axis]:
            break
        if accept is not None and not accept(proxy, other):
            continue
        if proxy.bbox.overlaps(other.bbox):
            yield proxy, other


def sorted_group_self_collision(
    proxies: Sequence[Any], axis: int, accept: Accept | None
) -> Iterator[tuple[Any, Any]]:
    """Yield every overlapping pair inside one sorted group."""
    for i, proxy in enumerate(proxies):
        yield from sorted_collision(proxy, islice(proxies, i + 1, None), axis, accept)


def sorted_group_group_collision(
    proxies_a: Sequence[Any],
    proxies_b: Sequence[Any],
    axis: int,
    accept: Accept | None,
) -> Iterator[tuple[Any, Any]]:
    """Yield every overlapping pair with one member from each sorted group.

    The member whose box starts earlier along ``axis`` comes first in a pair.
    """
    a = b = 0
    while a < len(proxies_a) and b < len(proxies_b):
        pa, pb = proxies_a[a], proxies_b[b]
        if pa.bbox.min[axis] < pb.bbox.min[axis]:
            yield from sorted_collision(pa, islice(proxies_b, b, None), axis, accept)
            a += 1
        else:
            yield from sorted_collision(pb, islice(proxies_a, a, None), axis, accept)
            b += 1