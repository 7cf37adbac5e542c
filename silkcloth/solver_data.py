"""Triangle meshes, pins and the per-cloth data the projective solver needs.

State vectors hold vertex coordinates interleaved as ``x0 y0 z0 x1 y1 z1 ...``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

import numpy as np
import scipy.sparse as sp

from .types import ClothConfig

DEFAULT_PIN_STIFFNESS = 1.0

_DISPLACEMENT = np.array([[-1.0, -1.0], [1.0, 0.0], [0.0, 1.0]])


@dataclass
class TriMesh:
    """Triangle mesh with its unique undirected edges."""

    vertices: np.ndarray
    faces: np.ndarray
    edges: np.ndarray
    avg_edge_length: float

    @property
    def vert_num(self) -> int:
        return self.vertices.shape[0]

    @property
    def face_num(self) -> int:
        return self.faces.shape[0]


@dataclass
class Pin:
    """Pinned vertex indices and their target positions, three floats each."""

    index: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    position: np.ndarray = field(default_factory=lambda: np.zeros(0))
    pin_stiffness: float = DEFAULT_PIN_STIFFNESS


@dataclass(eq=False)
class ClothElasticConstraint:
    """In-plane elastic constraint of one triangle."""

    jacobian_op: np.ndarray
    index: np.ndarray
    weight: float
    state_offset: int = 0

    def __post_init__(self) -> None:
        self.jacobian_op = np.asarray(self.jacobian_op, dtype=float)
        self.index = np.asarray(self.index, dtype=int).reshape(-1)
        if self.jacobian_op.shape != (6, 9):
            raise ValueError("jacobian operator must be a 6x9 matrix")
        if self.index.shape != (3,):
            raise ValueError("a triangle constraint needs exactly 3 vertex indices")

    def _slots(self) -> np.ndarray:
        starts = self.state_offset + 3 * self.index
        return (starts[:, None] + np.arange(3)).reshape(-1)

    def project(self, state: np.ndarray, out: np.ndarray) -> None:
        """Add this constraint's projected right-hand side to ``out``."""
        slots = self._slots()
        local = np.asarray(state, dtype=float)[slots]
        deformation = (self.jacobian_op @ local).reshape(3, 2, order="F")
        u, _, vh = np.linalg.svd(deformation, full_matrices=True)
        # closest rotation: the deformation with its stretch removed
        target = u[:, :2] @ vh
        out[slots] += self.weight * (self.jacobian_op.T @ target.reshape(-1, order="F"))


@dataclass(eq=False)
class SolverData:
    """Solver state layout, lumped mass and energy terms of one cloth."""

    state_num: int
    state_offset: int
    mass: np.ndarray
    weighted_AA: sp.csr_matrix
    constraints: list[ClothElasticConstraint] = field(default_factory=list)


def _unique_edges(faces: np.ndarray) -> np.ndarray:
    pairs = {
        (min(a, b), max(a, b))
        for face in faces.tolist()
        for a, b in ((face[0], face[1]), (face[1], face[2]), (face[2], face[0]))
        if a != b
    }
    ordered = sorted(pairs, key=lambda e: (e[1], e[0]))
    return np.array(ordered, dtype=int).reshape(-1, 2)


def make_tri_mesh(vertices: Iterable[float], faces: Iterable[int]) -> TriMesh:
    """Build a mesh from flat or row-shaped vertex coordinates and faces."""
    verts = np.asarray(vertices, dtype=float)
    tris = np.asarray(faces, dtype=int)
    if verts.size % 3 or tris.size % 3:
        raise ValueError("vertices and faces must come in groups of three")
    verts = verts.reshape(-1, 3).copy()
    tris = tris.reshape(-1, 3).copy()
    if tris.size and (tris.min() < 0 or tris.max() >= verts.shape[0]):
        raise ValueError("face refers to a vertex that does not exist")
    edges = _unique_edges(tris)
    if len(edges):
        lengths = np.linalg.norm(verts[edges[:, 0]] - verts[edges[:, 1]], axis=1)
        avg = float(lengths.mean())
    else:
        avg = float("nan")
    return TriMesh(vertices=verts, faces=tris, edges=edges, avg_edge_length=avg)


def make_pin(mesh: TriMesh, pin_index: Iterable[int] | None) -> Pin:
    """Pin the given vertices; an empty or missing index list pins nothing.

    Target positions are taken from the mesh's leading vertices, one per pin.
    """
    index = np.zeros(0, dtype=int) if pin_index is None else np.asarray(pin_index, dtype=int).reshape(-1)
    if index.size == 0:
        return Pin()
    if index.size > mesh.vert_num:
        raise ValueError("more pins than mesh vertices")
    position = mesh.vertices[: index.size].reshape(-1).copy()
    return Pin(index=index, position=position)


def _normalized(v: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(v)
    return v / norm if norm > 0 else v


def cloth_jacobian_operator(
    v0: Iterable[float], v1: Iterable[float], v2: Iterable[float], zero_threshold: float = 0.0
) -> np.ndarray | None:
    """Operator mapping stacked triangle vertices to its vectorized 3x2 deformation.

    Returns None when the triangle's area measure falls below ``zero_threshold``.
    """
    p0, p1, p2 = (np.asarray(v, dtype=float).reshape(3) for v in (v0, v1, v2))
    e0 = p1 - p0
    e1 = p2 - p0
    bx = _normalized(e0)
    e0xe1 = np.cross(e0, e1)
    if np.linalg.norm(e0xe1) < zero_threshold:
        return None
    by = _normalized(np.cross(e0xe1, e0))

    rest = np.array([[bx @ e0, bx @ e1], [0.0, by @ e1]])
    with np.errstate(divide="ignore", invalid="ignore"):
        try:
            rest_inv = np.linalg.inv(rest)
        except np.linalg.LinAlgError:
            rest_inv = np.full((2, 2), np.nan)
    b = (_DISPLACEMENT @ rest_inv).T
    return np.kron(b, np.eye(3))


def _squared_edge_lengths(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    """Column k holds the squared length of the edge opposite corner k."""
    a, b, c = (vertices[faces[:, k]] for k in range(3))
    return np.stack(
        [np.sum((b - c) ** 2, axis=1), np.sum((c - a) ** 2, axis=1), np.sum((a - b) ** 2, axis=1)],
        axis=1,
    )


def _double_areas(vertices: np.ndarray, faces: np.ndarray) -> np.ndarray:
    a, b, c = (vertices[faces[:, k]] for k in range(3))
    return np.linalg.norm(np.cross(b - a, c - a), axis=1)


def voronoi_mass_matrix(vertices: np.ndarray, faces: np.ndarray) -> sp.csr_matrix:
    """Diagonal lumped mass matrix from mixed Voronoi vertex areas."""
    verts = np.asarray(vertices, dtype=float).reshape(-1, 3)
    tris = np.asarray(faces, dtype=int).reshape(-1, 3)
    n = verts.shape[0]
    l2 = _squared_edge_lengths(verts, tris)
    area = 0.5 * _double_areas(verts, tris)

    with np.errstate(divide="ignore", invalid="ignore"):
        lengths = np.sqrt(l2)
        cosines = np.stack(
            [
                (l2[:, 2] + l2[:, 1] - l2[:, 0]) / (2 * lengths[:, 1] * lengths[:, 2]),
                (l2[:, 0] + l2[:, 2] - l2[:, 1]) / (2 * lengths[:, 2] * lengths[:, 0]),
                (l2[:, 1] + l2[:, 0] - l2[:, 2]) / (2 * lengths[:, 0] * lengths[:, 1]),
            ],
            axis=1,
        )
        barycentric = cosines * lengths
        barycentric = barycentric / barycentric.sum(axis=1, keepdims=True)
        partial = barycentric * area[:, None]
    quads = 0.5 * np.stack(
        [partial[:, 1] + partial[:, 2], partial[:, 0] + partial[:, 2], partial[:, 0] + partial[:, 1]],
        axis=1,
    )
    for corner in range(3):
        obtuse = cosines[:, corner] < 0
        quads[obtuse] = (area[obtuse] * 0.25)[:, None]
        quads[obtuse, corner] = area[obtuse] * 0.5

    diagonal = np.bincount(tris.reshape(-1), weights=quads.reshape(-1), minlength=n)
    return sp.diags(diagonal, format="csr")


def cotangent_matrix(vertices: np.ndarray, faces: np.ndarray) -> sp.csr_matrix:
    """Cotangent Laplacian: half-cotangent weights off the diagonal, rows summing to zero."""
    verts = np.asarray(vertices, dtype=float).reshape(-1, 3)
    tris = np.asarray(faces, dtype=int).reshape(-1, 3)
    n = verts.shape[0]
    l2 = _squared_edge_lengths(verts, tris)
    double_area = _double_areas(verts, tris)
    with np.errstate(divide="ignore", invalid="ignore"):
        half_cot = np.stack(
            [
                (l2[:, 1] + l2[:, 2] - l2[:, 0]) / double_area / 4.0,
                (l2[:, 2] + l2[:, 0] - l2[:, 1]) / double_area / 4.0,
                (l2[:, 0] + l2[:, 1] - l2[:, 2]) / double_area / 4.0,
            ],
            axis=1,
        )
    rows, cols, vals = [], [], []
    for corner, (s, d) in enumerate(((1, 2), (2, 0), (0, 1))):
        src, dst, w = tris[:, s], tris[:, d], half_cot[:, corner]
        rows += [src, dst, src, dst]
        cols += [dst, src, src, dst]
        vals += [w, w, -w, -w]
    return sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))), shape=(n, n)
    ).tocsr()


def make_cloth_solver_data(
    config: ClothConfig, mesh: TriMesh, pin: Pin, state_offset: int
) -> SolverData:
    """Assemble mass, elastic constraints and the weighted system matrix of a cloth.

    The bending term acts on each coordinate separately.
    """
    n = mesh.vert_num
    state_num = 3 * n
    mass = voronoi_mass_matrix(mesh.vertices, mesh.faces) * config.density
    mass_diag = mass.diagonal()

    laplacian = cotangent_matrix(mesh.vertices, mesh.faces)
    with np.errstate(divide="ignore"):
        inverse_mass = sp.diags(1.0 / mass_diag)
    bending = config.bending_stiffness * (laplacian.T @ inverse_mass @ laplacian)

    area = 0.5 * _double_areas(mesh.vertices, mesh.faces)
    constraints: list[ClothElasticConstraint] = []
    rows, cols, vals = [], [], []
    for face, face_area in zip(mesh.faces, area):
        jop = cloth_jacobian_operator(*mesh.vertices[face], zero_threshold=0.0)
        if jop is None:
            continue
        weight = config.elastic_stiffness * face_area
        constraints.append(ClothElasticConstraint(jop, face, weight))
        local = weight * (jop.T @ jop)
        slots = (3 * face[:, None] + np.arange(3)).reshape(-1)
        r, c = np.meshgrid(slots, slots, indexing="ij")
        keep = np.abs(local) != 0.0
        rows.append(r[keep])
        cols.append(c[keep])
        vals.append(local[keep])

    if pin.index.size:
        pinned = (3 * pin.index[:, None] + np.arange(3)).reshape(-1)
        rows.append(pinned)
        cols.append(pinned)
        vals.append(np.full(pinned.size, pin.pin_stiffness))

    if rows:
        aa = sp.coo_matrix(
            (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
            shape=(state_num, state_num),
        ).tocsr()
    else:
        aa = sp.csr_matrix((state_num, state_num))
    aa = (aa + sp.kron(bending, sp.identity(3))).tocsr()

    return SolverData(
        state_num=state_num,
        state_offset=state_offset,
        mass=np.asarray(mass_diag, dtype=float),
        weighted_AA=aa,
        constraints=constraints,
    )