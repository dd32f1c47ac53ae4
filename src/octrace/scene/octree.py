"""Octree spatial index over the triangles of the geometry store.

The octree is built on the host with NumPy and flattened breadth-first into
index arrays, which are then uploaded into preallocated Taichi fields:

    node_box_min / node_box_max: the node's axis-aligned box
    node_first_child: index of the first of 8 contiguous children, -1 for a leaf
    node_item_start / node_item_count: the leaf's slice of leaf_items
    leaf_items: triangle indices of all leaves, concatenated

Construction starts from the (slightly padded) bounding box of the whole
scene and splits a node into 8 equal octants while it holds more than
max_triangles_per_leaf triangles and is shallower than max_depth. A triangle
is assigned to every child whose closed box its bounding box overlaps, so
triangles straddling a split plane are duplicated.

Traversal uses an explicit stack inside a @ti.func. Boxes are pruned when the
ray misses them or enters them beyond the closest hit found so far; leaves
test every triangle they hold. Equal-t hits are resolved by the lower
triangle index, which makes the result identical to a brute-force scan.

Example:
    >>> from src.octrace.scene.octree import OctreeConfig, build_octree
    >>> layout = build_octree(mins, maxs, OctreeConfig(max_triangles_per_leaf=4))
    >>> layout.stats()["leaf_count"]
"""


import logging
from collections import deque
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.octrace.geometry.aabb import boxes_overlap, hit_aabb, octant_bounds
from src.octrace.geometry.triangle import TriangleHit, is_closer_hit, make_miss
from src.octrace.scene.geometry import hit_stored_triangle

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Deepest tree the fixed-size traversal stack can hold
MAX_OCTREE_DEPTH = 12

# Each internal node popped pushes 8 children: at most 7 extra per level
TRAVERSAL_STACK_SIZE = 7 * MAX_OCTREE_DEPTH + 8

# Maximum sizes of the preallocated octree fields
MAX_OCTREE_NODES = 1 << 18
MAX_LEAF_ENTRIES = 1 << 21

# Relative padding of the root box, so no triangle lies exactly on its faces
ROOT_PADDING = 1e-4

# Octree storage: Structure of Arrays layout
node_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OCTREE_NODES)
node_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_OCTREE_NODES)
node_first_child = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
node_item_start = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
node_item_count = ti.field(dtype=ti.i32, shape=MAX_OCTREE_NODES)
leaf_items = ti.field(dtype=ti.i32, shape=MAX_LEAF_ENTRIES)
num_nodes = ti.field(dtype=ti.i32, shape=())


@dataclass
class OctreeConfig:
    """Configuration parameters for octree construction.

    Attributes:
        max_triangles_per_leaf: A node holding more triangles than this is
            subdivided (unless max_depth is reached).
        max_depth: Maximum depth of a node; the root has depth 0.
    """

    max_triangles_per_leaf: int = 8
    max_depth: int = 8

    def __post_init__(self) -> None:
        if self.max_triangles_per_leaf < 1:
            raise ValueError(
                f"max_triangles_per_leaf must be at least 1, got {self.max_triangles_per_leaf}"
            )
        if not 0 <= self.max_depth <= MAX_OCTREE_DEPTH:
            raise ValueError(
                f"max_depth must be in [0, {MAX_OCTREE_DEPTH}], got {self.max_depth}"
            )


@dataclass
class OctreeLayout:
    """A breadth-first flattened octree.

    Attributes:
        box_min: Per-node minimum corners, shape (N, 3).
        box_max: Per-node maximum corners, shape (N, 3).
        first_child: Per-node index of the first child, -1 for leaves, shape (N,).
        item_start: Per-node start offset into items, shape (N,).
        item_count: Per-node number of triangles (0 for internal nodes), shape (N,).
        items: Concatenated leaf triangle lists, shape (M,).
        depth: Per-node depth, shape (N,).
    """

    box_min: npt.NDArray[np.float64]
    box_max: npt.NDArray[np.float64]
    first_child: npt.NDArray[np.int32]
    item_start: npt.NDArray[np.int32]
    item_count: npt.NDArray[np.int32]
    items: npt.NDArray[np.int32]
    depth: npt.NDArray[np.int32]

    @property
    def node_count(self) -> int:
        """Total number of nodes."""
        return len(self.first_child)

    @property
    def leaf_count(self) -> int:
        """Number of leaf nodes."""
        return int(np.count_nonzero(self.first_child < 0))

    def leaf_indices(self) -> npt.NDArray[np.int64]:
        """Get the node indices of all leaves."""
        return np.flatnonzero(self.first_child < 0)

    def leaf_triangles(self, node: int) -> npt.NDArray[np.int32]:
        """Get the triangle indices held by one leaf."""
        start = self.item_start[node]
        return self.items[start : start + self.item_count[node]]

    def leaf_triangle_sets(self) -> list[set[int]]:
        """Get the triangle index set of every leaf, in node order."""
        return [set(self.leaf_triangles(n).tolist()) for n in self.leaf_indices()]

    def stats(self) -> dict[str, int]:
        """Summarize the tree for logging and inspection."""
        leaves = self.leaf_indices()
        counts = self.item_count[leaves]
        return {
            "node_count": self.node_count,
            "leaf_count": len(leaves),
            "max_depth": int(self.depth.max()) if self.node_count else 0,
            "leaf_entries": len(self.items),
            "max_leaf_size": int(counts.max()) if len(counts) else 0,
            "empty_leaves": int(np.count_nonzero(counts == 0)),
        }


# =============================================================================
# Construction (host side)
# =============================================================================


def scene_bounds(
    mins: npt.NDArray[np.float64],
    maxs: npt.NDArray[np.float64],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Compute the padded box containing every triangle bounding box.

    An empty scene gets a unit box around the origin.
    """
    if len(mins) == 0:
        return np.full(3, -0.5), np.full(3, 0.5)
    lo = mins.min(axis=0)
    hi = maxs.max(axis=0)
    pad = ROOT_PADDING * max(float(np.max(hi - lo)), 1.0)
    return lo - pad, hi + pad


def build_octree(
    mins: npt.ArrayLike,
    maxs: npt.ArrayLike,
    config: OctreeConfig | None = None,
) -> OctreeLayout:
    """Build an octree from per-triangle bounding boxes.

    Nodes are created breadth-first, so the 8 children of a node always
    occupy consecutive indices.

    Args:
        mins: Per-triangle minimum corners, shape (T, 3).
        maxs: Per-triangle maximum corners, shape (T, 3).
        config: Subdivision parameters. Defaults to OctreeConfig().

    Returns:
        The flattened OctreeLayout.

    Raises:
        RuntimeError: If the tree needs more than MAX_OCTREE_NODES nodes or
            MAX_LEAF_ENTRIES leaf entries.
    """
    config = config or OctreeConfig()
    mins = np.asarray(mins, dtype=np.float64).reshape(-1, 3)
    maxs = np.asarray(maxs, dtype=np.float64).reshape(-1, 3)

    root_min, root_max = scene_bounds(mins, maxs)

    box_min: list[npt.NDArray[np.float64]] = [root_min]
    box_max: list[npt.NDArray[np.float64]] = [root_max]
    first_child = [-1]
    item_start = [0]
    item_count = [0]
    depth = [0]
    items: list[npt.NDArray[np.int64]] = []
    total_items = 0

    queue = deque([(0, np.arange(len(mins)))])
    while queue:
        node, tris = queue.popleft()

        if len(tris) > config.max_triangles_per_leaf and depth[node] < config.max_depth:
            if len(first_child) + 8 > MAX_OCTREE_NODES:
                raise RuntimeError(f"Maximum number of octree nodes ({MAX_OCTREE_NODES}) exceeded")
            first_child[node] = len(first_child)
            for octant in range(8):
                child_min, child_max = octant_bounds(box_min[node], box_max[node], octant)
                inside = boxes_overlap(mins[tris], maxs[tris], child_min, child_max)
                queue.append((len(first_child), tris[inside]))
                box_min.append(child_min)
                box_max.append(child_max)
                first_child.append(-1)
                item_start.append(0)
                item_count.append(0)
                depth.append(depth[node] + 1)
        else:
            if total_items + len(tris) > MAX_LEAF_ENTRIES:
                raise RuntimeError(f"Maximum number of leaf entries ({MAX_LEAF_ENTRIES}) exceeded")
            item_start[node] = total_items
            item_count[node] = len(tris)
            items.append(tris)
            total_items += len(tris)

    layout = OctreeLayout(
        box_min=np.array(box_min),
        box_max=np.array(box_max),
        first_child=np.array(first_child, dtype=np.int32),
        item_start=np.array(item_start, dtype=np.int32),
        item_count=np.array(item_count, dtype=np.int32),
        items=np.concatenate(items).astype(np.int32) if items else np.zeros(0, dtype=np.int32),
        depth=np.array(depth, dtype=np.int32),
    )
    logger.info("Built octree: %s", layout.stats())
    return layout


# =============================================================================
# Upload
# =============================================================================


@ti.kernel
def _upload_nodes(
    lo: ti.types.ndarray(),
    hi: ti.types.ndarray(),
    first: ti.types.ndarray(),
    start: ti.types.ndarray(),
    count: ti.types.ndarray(),
    n: ti.i32,
):
    for i in range(n):
        for k in ti.static(range(3)):
            node_box_min[i][k] = lo[i, k]
            node_box_max[i][k] = hi[i, k]
        node_first_child[i] = first[i]
        node_item_start[i] = start[i]
        node_item_count[i] = count[i]


@ti.kernel
def _upload_items(items: ti.types.ndarray(), n: ti.i32):
    for i in range(n):
        leaf_items[i] = items[i]


def upload_octree(layout: OctreeLayout) -> None:
    """Write an OctreeLayout into the Taichi octree fields.

    Raises:
        RuntimeError: If the layout exceeds the preallocated field sizes.
    """
    if layout.node_count > MAX_OCTREE_NODES:
        raise RuntimeError(f"Maximum number of octree nodes ({MAX_OCTREE_NODES}) exceeded")
    if len(layout.items) > MAX_LEAF_ENTRIES:
        raise RuntimeError(f"Maximum number of leaf entries ({MAX_LEAF_ENTRIES}) exceeded")

    _upload_nodes(
        np.ascontiguousarray(layout.box_min, dtype=np.float32),
        np.ascontiguousarray(layout.box_max, dtype=np.float32),
        np.ascontiguousarray(layout.first_child, dtype=np.int32),
        np.ascontiguousarray(layout.item_start, dtype=np.int32),
        np.ascontiguousarray(layout.item_count, dtype=np.int32),
        layout.node_count,
    )
    if len(layout.items) > 0:
        _upload_items(np.ascontiguousarray(layout.items, dtype=np.int32), len(layout.items))
    num_nodes[None] = layout.node_count


def clear_octree() -> None:
    """Remove the uploaded octree. Traversal then reports no hits."""
    num_nodes[None] = 0


def get_node_count() -> int:
    """Get the number of uploaded octree nodes."""
    return int(num_nodes[None])


# =============================================================================
# Traversal (Taichi side)
# =============================================================================


@ti.func
def intersect_octree(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> TriangleHit:
    """Find the closest triangle hit along a ray using the octree.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest TriangleHit, or a miss with hit == 0.
    """
    best = make_miss(t_max)
    stack = ti.Vector([0] * TRAVERSAL_STACK_SIZE, dt=ti.i32)
    top = 0
    if num_nodes[None] > 0:
        top = 1

    while top > 0:
        top -= 1
        node = stack[top]
        if hit_aabb(ray_origin, ray_direction, node_box_min[node], node_box_max[node], best.t) == 1:
            first = node_first_child[node]
            if first < 0:
                start = node_item_start[node]
                for k in range(node_item_count[node]):
                    rec = hit_stored_triangle(ray_origin, ray_direction, leaf_items[start + k], best.t)
                    if rec.hit == 1 and is_closer_hit(rec, best) == 1:
                        best = rec
            else:
                # Reverse order so child 0 is popped first
                for c in ti.static(range(8)):
                    stack[top] = first + 7 - c
                    top += 1

    return best


@ti.func
def occluded_octree(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> ti.i32:
    """Test whether any triangle blocks a ray within (0, t_max].

    Stops at the first hit found, so it is cheaper than intersect_octree.

    Returns:
        1 if the ray is blocked, 0 otherwise.
    """
    occluded = 0
    stack = ti.Vector([0] * TRAVERSAL_STACK_SIZE, dt=ti.i32)
    top = 0
    if num_nodes[None] > 0:
        top = 1

    while top > 0:
        top -= 1
        node = stack[top]
        if hit_aabb(ray_origin, ray_direction, node_box_min[node], node_box_max[node], t_max) == 1:
            first = node_first_child[node]
            if first < 0:
                start = node_item_start[node]
                for k in range(node_item_count[node]):
                    if occluded == 0:
                        rec = hit_stored_triangle(ray_origin, ray_direction, leaf_items[start + k], t_max)
                        if rec.hit == 1:
                            occluded = 1
            else:
                for c in ti.static(range(8)):
                    stack[top] = first + 7 - c
                    top += 1
        if occluded == 1:
            top = 0

    return occluded
