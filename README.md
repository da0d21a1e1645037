# autorig

Building blocks for automatic rigging of 3D character meshes: sampling the
medial surface of a shape into a graph of spheres, embedding a template
skeleton into that graph, computing bone-heat skin weights over a triangle
mesh, deforming the mesh under per-bone transforms, and filtering bone
rotations so that the feet and pelvis follow target positions.

## Modules

- `autorig.geometry` – `Quaternion` (`from_axis_angle`, `from_components`,
  `rotate`, `inverse`, `angle`, `axis`, composition with `*`), `Transform`
  (rotation, then uniform scale, then translation; `apply`, `inverse`,
  `linear_component`, `translation`, `scaling`), the `Sphere` and
  `LineSegment` records and the helpers `normalize`, `dist_sq_to_segment`
  and `project_to_segment`.
- `autorig.graph` – `PtGraph`, a graph whose vertices are points, with
  `integrity_check` (symmetric, in range, no self edges, no duplicates;
  problems are logged), and Dijkstra shortest paths through
  `ShortestPather` and `AllShortestPather`. An unreachable vertex has
  distance `-1`.
- `autorig.indexer` – Morton interleaving (`interleave2`, `interleave3`,
  `morton_index` for points in the unit square or cube) and leaf location in
  quadtrees and octrees: `Indexer`, `ArrayIndexer`, `HashIndex` and
  `HashIndexer`. Tree nodes must expose a `children` sequence, empty or
  `None` for leaves.
- `autorig.discretization` – works on any callable distance field (negative
  inside; a `gradient(point)` method is used if present, otherwise central
  differences). `sample_medial_surface(field, leaves, tol)` takes the
  `(lo, hi)` corners of cubic cells and returns spheres sorted by decreasing
  radius; `pack_spheres`, `max_dist`, `min_dot` and `connect_samples`
  build the sphere graph.
- `autorig.embedding` – the penalty functions (`DistPenalty`,
  `DotPenalty`, `SymmetryPenalty`, `GlobalDotPenalty`,
  `DoublePathPenalty`, `FootPenalty`, `DuplicatePenalty`,
  `ExtremityPenalty`, `DisjointPenalty`) with their weights from
  `penalty_functions`, the best-first search `discrete_embed`, candidate
  selection `compute_possibilities`, and `split_path` / `split_paths`,
  which place every full-skeleton joint along the matched graph paths. The
  skeleton is any object with the attributes listed in the module docstring
  (`c_graph`, `c_prev`, `c_length`, `c_sym`, `c_fat`, `c_feet`, `cf_map`,
  `fc_map`, `f_prev`, `fc_fraction`, `f_graph`).
- `autorig.attachment` – `VisibilityTester` over a distance field,
  `vertex_rings` for closed, consistently oriented triangle meshes, and
  `Attachment`, which solves the bone-heat system with a sparse LU
  factorisation and offers `weights(i)`, `nonzero_weights(i)` and
  linear-blend `deform(positions, transforms)`.
- `autorig.filter` – `MotionFilter`, which steps bone transforms toward
  incoming ones while keeping joints 7, 11 (feet) and 2 (pelvis) at given
  targets, together with `get_feet`, `to_vector`, `from_vector` and
  `adjust_vector`.
- `autorig.cli` – parsing of the attach, demo and animal command lines
  (`parse_attach_args`, `parse_demo_args`, `parse_animal_args`, given the
  arguments without the program name and raising `UsageError` with the usage
  text), `read_animal_skeleton` for `index name x y z parent` files, and the
  writers `write_skeleton` and `write_attachment`.

## Examples

Shortest paths on a small point graph:

```python
from autorig.graph import PtGraph, AllShortestPather

graph = PtGraph(
    verts=[(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0)],
    edges=[[1], [0, 2], [1]],
)
assert graph.integrity_check()

paths = AllShortestPather(graph)
print(paths.path(0, 2))   # [0, 1, 2]
print(paths.dist(0, 2))   # 2.0
```

Rotations and transforms:

```python
import math
from autorig.geometry import Quaternion, Transform

q = Quaternion.from_axis_angle((0.0, 0.0, 1.0), math.pi / 2)
print(q.rotate((1.0, 0.0, 0.0)))   # approximately (0, 1, 0)
print(q.angle(), q.axis())         # pi/2, (0, 0, 1)

t = Transform(q, 2.0, (1.0, 0.0, 0.0))
print(t.apply((1.0, 0.0, 0.0)))    # approximately (1, 2, 0)
print((t.inverse() * t).apply((3.0, 4.0, 5.0)))
```

Parsing a command line and writing results:

```python
from autorig.cli import parse_attach_args, write_skeleton, write_attachment

opts = parse_attach_args(["model.obj", "-skel", "horse", "-fit"])
print(opts.skeleton, opts.fit, opts.skel_out)   # horse True skeleton.out

write_skeleton("skeleton.out", [(0.5, 0.2, 0.5), (0.5, 0.4, 0.5)], [-1, 0])
write_attachment("attachment.out", [[1.0, 0.0], [0.25, 0.75]])
```

`skeleton.out` has one line per joint: its index, three coordinates and the
index of its parent joint (`-1` for the root). `attachment.out` has one line
per mesh vertex with one weight per bone, rounded to four decimals.

## What the package does not do

- It reads no mesh files and builds no distance field or octree from a mesh;
  distance fields, cell lists and triangle arrays are supplied by the caller.
- It ships no built-in skeleton definitions; `parse_attach_args` and
  `parse_demo_args` only record the skeleton name, and embedding expects a
  caller-provided skeleton object.
- It reads no motion-capture files and has no viewer or window.
- It installs no command: the `cli` module parses arguments and writes
  output files, but running the whole rigging pipeline is left to the caller.

## Running the tests

Install the `test` extra and run `pytest` from the project root.