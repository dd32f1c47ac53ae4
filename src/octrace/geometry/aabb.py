"""Axis-aligned bounding boxes: ray-box slab test and host-side helpers.

The slab test clips the ray's parameter interval against the three pairs of
axis-aligned planes bounding a box. Boxes are treated as closed and are
inflated by AABB_EPSILON on every side during the test, so a ray grazing a
face or an edge is never pruned from a box it actually touches. An axis whose
direction component is (numerically) zero is handled without dividing: the
ray either lies inside that slab for every t or misses the box entirely.

The NumPy helpers run on the host while the octree is being built.

Example:
    >>> import numpy as np
    >>> from src.octrace.geometry.aabb import boxes_overlap
    >>> boxes_overlap(np.zeros((1, 3)), np.ones((1, 3)), np.ones(3), 2 * np.ones(3))
    array([ True])
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

AABB_EPSILON = 1e-4
PARALLEL_EPSILON = 1e-30


@ti.func
def hit_aabb(
    ray_origin: vec3,
    ray_direction: vec3,
    box_min: vec3,
    box_max: vec3,
    t_max: ti.f32,
) -> ti.i32:
    """Test whether a ray enters a box somewhere in [0, t_max].

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        t_max: Boxes entered only beyond this parameter are reported as missed.

    Returns:
        1 if the ray overlaps the (inflated) box within [0, t_max], 0 otherwise.
    """
    t_enter = 0.0
    t_exit = t_max
    inside = 1

    for k in ti.static(range(3)):
        lo = box_min[k] - AABB_EPSILON
        hi = box_max[k] + AABB_EPSILON
        o = ray_origin[k]
        d = ray_direction[k]

        if ti.abs(d) < PARALLEL_EPSILON:
            # Parallel to this slab: inside for every t, or never
            if o < lo or o > hi:
                inside = 0
        else:
            inv_d = 1.0 / d
            t0 = (lo - o) * inv_d
            t1 = (hi - o) * inv_d
            t_enter = ti.max(t_enter, ti.min(t0, t1))
            t_exit = ti.min(t_exit, ti.max(t0, t1))

    result = 0
    if inside == 1 and t_enter <= t_exit:
        result = 1
    return result


# =============================================================================
# Host-side helpers (NumPy)
# =============================================================================


def triangle_bounds(
    v0: npt.NDArray[np.float64],
    v1: npt.NDArray[np.float64],
    v2: npt.NDArray[np.float64],
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Compute per-triangle bounding boxes.

    Args:
        v0: First vertices, shape (N, 3).
        v1: Second vertices, shape (N, 3).
        v2: Third vertices, shape (N, 3).

    Returns:
        Tuple (mins, maxs), each of shape (N, 3).
    """
    stacked = np.stack([v0, v1, v2], axis=0)
    return stacked.min(axis=0), stacked.max(axis=0)


def boxes_overlap(
    mins: npt.NDArray[np.float64],
    maxs: npt.NDArray[np.float64],
    box_min: npt.NDArray[np.float64],
    box_max: npt.NDArray[np.float64],
) -> npt.NDArray[np.bool_]:
    """Test many boxes against one box using closed intervals.

    Touching boxes count as overlapping.

    Args:
        mins: Minimum corners of the boxes to test, shape (N, 3).
        maxs: Maximum corners of the boxes to test, shape (N, 3).
        box_min: Minimum corner of the reference box, shape (3,).
        box_max: Maximum corner of the reference box, shape (3,).

    Returns:
        Boolean array of shape (N,).
    """
    return np.all((mins <= box_max) & (maxs >= box_min), axis=1)


def octant_bounds(
    box_min: npt.NDArray[np.float64],
    box_max: npt.NDArray[np.float64],
    octant: int,
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Compute one of the 8 equal sub-boxes of a box.

    Bit 0 of octant selects the upper half in x, bit 1 in y, bit 2 in z.

    Args:
        box_min: Minimum corner of the parent box.
        box_max: Maximum corner of the parent box.
        octant: Child index in [0, 8).

    Returns:
        Tuple (child_min, child_max).
    """
    mid = (box_min + box_max) * 0.5
    upper = np.array([(octant >> axis) & 1 for axis in range(3)], dtype=bool)
    child_min = np.where(upper, mid, box_min)
    child_max = np.where(upper, box_max, mid)
    return child_min, child_max
