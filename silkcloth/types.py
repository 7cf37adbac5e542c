"""Result codes, errors and configuration records shared by the simulator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

import numpy as np


class Result(enum.Enum):
    """Outcome of a world operation."""

    SUCCESS = enum.auto()
    INVALID_CONFIG = enum.auto()
    TOO_MANY_BODY = enum.auto()
    INVALID_HANDLE = enum.auto()
    INCORRECT_PIN_NUM = enum.auto()
    INCORRECT_POSITION_NUM = enum.auto()
    EIGEN_DECOMPOSITION_FAIL = enum.auto()
    NEED_INIT_SOLVER_FIRST = enum.auto()
    ITERATIVE_SOLVE_FAIL = enum.auto()


_RESULT_NAMES = {
    Result.SUCCESS: "Success",
    Result.INVALID_CONFIG: "InvalidConfig",
    Result.TOO_MANY_BODY: "TooManyBody",
    Result.INVALID_HANDLE: "InvalidHandle",
}


def to_string(result: Result) -> str:
    """Return the display name of a result, or "Unknown" for unnamed ones."""
    return _RESULT_NAMES.get(result, "Unknown")


class SilkError(Exception):
    """Raised when a world operation fails; carries the failing result."""

    def __init__(self, result: Result, message: str | None = None) -> None:
        self.result = result
        super().__init__(message or result.name)


class CollisionType(enum.Enum):
    """Kind of primitive pair involved in a collision."""

    POINT_TRIANGLE = enum.auto()
    EDGE_EDGE = enum.auto()


@dataclass
class Collision:
    """A detected collision between four vertices.

    ``offset`` holds the solver state offset of each vertex, or -1 for a
    pinned vertex or one that belongs to a pure obstacle. ``position`` holds
    one vertex per column.
    """

    type: CollisionType
    toi: float
    offset: np.ndarray = field(default_factory=lambda: np.full(4, -1, dtype=int))
    position: np.ndarray = field(default_factory=lambda: np.zeros((3, 4)))

    def __post_init__(self) -> None:
        self.offset = np.array(self.offset, dtype=int).reshape(-1)
        self.position = np.array(self.position, dtype=float)
        if self.offset.shape != (4,):
            raise ValueError("collision offset must hold exactly 4 entries")
        if self.position.shape != (3, 4):
            raise ValueError("collision position must be a 3x4 matrix")


@dataclass
class MeshConfig:
    """Triangle mesh given as vertex coordinates and vertex-index triples."""

    verts: np.ndarray
    faces: np.ndarray

    def __post_init__(self) -> None:
        verts = np.asarray(self.verts, dtype=float)
        faces = np.asarray(self.faces, dtype=int)
        if verts.size % 3 or faces.size % 3:
            raise ValueError("vertices and faces must come in groups of three")
        self.verts = verts.reshape(-1, 3).copy()
        self.faces = faces.reshape(-1, 3).copy()

    @property
    def vert_num(self) -> int:
        return self.verts.shape[0]

    @property
    def face_num(self) -> int:
        return self.faces.shape[0]


@dataclass
class CollisionConfig:
    """Collision behaviour of one object."""

    is_collision_on: bool = True
    is_self_collision_on: bool = True
    group: int = 0
    damping: float = 0.3
    friction: float = 0.3


@dataclass
class ClothConfig:
    """Material parameters of a cloth."""

    elastic_stiffness: float = 1.0
    bending_stiffness: float = 1.0
    density: float = 1.0


@dataclass
class GlobalConfig:
    """Simulation-wide settings."""

    acceleration_x: float = 0.0
    acceleration_y: float = 0.0
    acceleration_z: float = 0.0
    max_iteration: int = 5
    r: int = 30
    dt: float = 1.0 / 60.0
    ccd_walkback: float = 0.8
    toi_tolerance: float = 0.1
    toi_refine_iteration: int = 5
    eps: float = 1e-6