# silkcloth

Building blocks for simulating cloth against obstacles: per-cloth data for a
projective-dynamics style solver, mesh-level collision proxies, and a
collision broadphase made of sweep and prune plus an incrementally
rebalanced kd-tree.

## Install

```
pip install silkcloth
```

To run the tests:

```
pip install "silkcloth[test]"
pytest
```

## Modules

- `silkcloth.types` — configuration dataclasses (`ClothConfig`,
  `CollisionConfig`, `MeshConfig`, `GlobalConfig`), the `Result` enum with
  `to_string`, the `SilkError` exception (which carries a `Result`), and the
  `Collision` record with its `CollisionType`.
- `silkcloth.sap` — the axis-aligned `Bbox` (`center`, `overlaps`,
  `contains`, `merged`, `padded`) and sweep-and-prune helpers:
  `proxy_mean_variance`, `sap_optimal_axis`, `sort_proxies`,
  `sorted_collision`, `sorted_group_self_collision` and
  `sorted_group_group_collision`. A proxy is any object with a `bbox`
  attribute.
- `silkcloth.kdtree` — `KDTree(colliders, leaf_size=1024)` and its
  `KDNode`s. The tree keeps its structure between calls: after colliders
  move, call `update(root_bbox)` to refit it, then `self_collisions(accept)`
  or `collide_with(other, accept)` for lists of overlapping pairs. `accept`
  is an optional filter called with both members of a candidate pair.
- `silkcloth.solver_data` — `make_tri_mesh` (a `TriMesh` with its unique
  edges and average edge length), `make_pin` (a `Pin`; target positions are
  taken from the mesh's leading vertices, one per pin), `voronoi_mass_matrix`,
  `cotangent_matrix`, `cloth_jacobian_operator`, and `make_cloth_solver_data`,
  which builds a `SolverData` holding the lumped mass per vertex, the weighted
  system matrix (elastic, pin and bending terms) and one
  `ClothElasticConstraint` per non-degenerate triangle. State vectors are laid
  out as `x0 y0 z0 x1 y1 z1 ...`.
- `silkcloth.colliders` — `MeshCollider` (one per vertex, edge and triangle,
  of type `MeshColliderType`), `ObjectCollider` and `ObstaclePosition`.
  Build them with `make_physical_object_collider` /
  `make_obstacle_object_collider`, and refresh them with
  `update_physical_object_collider` / `update_obstacle_object_collider`,
  which sweep each collider's box from the previous positions to the current
  ones. A static obstacle is not refitted.
- `silkcloth.pipeline` — `object_filter`, `mesh_neighbor_filter`,
  `object_broadphase` and `find_candidate_pairs`, which returns
  `CandidatePair` records: pairs between different objects first, then the
  self-collision pairs of each simulated object that has self collision on.
  A `CandidatePair` also gives the mean `damping` and `friction` of its two
  objects and the smaller padding as `thickness`.

## Example

```python
import numpy as np

from silkcloth.types import ClothConfig, CollisionConfig
from silkcloth.solver_data import make_tri_mesh, make_pin, make_cloth_solver_data
from silkcloth.colliders import make_physical_object_collider, make_obstacle_object_collider
from silkcloth.pipeline import find_candidate_pairs

vertices = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=float)
faces = np.array([[0, 1, 2], [1, 3, 2]])

mesh = make_tri_mesh(vertices, faces)
pin = make_pin(mesh, [0])
data = make_cloth_solver_data(ClothConfig(), mesh, pin, state_offset=0)

cloth = make_physical_object_collider(CollisionConfig(), mesh, pin, data)
floor = make_obstacle_object_collider(
    CollisionConfig(), make_tri_mesh(vertices - [0, 0, 0.01], faces)
)

for pair in find_candidate_pairs([cloth, floor]):
    print(pair.mesh_a.type, pair.mesh_a.index, pair.mesh_b.type, pair.mesh_b.index)
```

Malformed input (wrong shapes, face indices out of range, an empty kd-tree)
raises `ValueError`.

## What it does not do

- There is no narrow phase: `find_candidate_pairs` reports primitive pairs
  whose swept boxes overlap, but computes no time of impact and produces no
  `Collision` records.
- There is no time-stepping solver and no world object managing cloths and
  obstacles by handle. `GlobalConfig`, `Result` and `SilkError` are provided
  as records for such a layer, but nothing in the package steps a simulation.