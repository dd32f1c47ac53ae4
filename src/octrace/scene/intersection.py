"""Scene-level ray queries over the stored triangles.

Every query has two interchangeable implementations: the octree traversal and
a brute-force loop over all triangles. Both use the same tie-break on equal t
(lower triangle index wins), so they return identical results; the brute
force path is kept as the reference the octree is checked against.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.octrace.scene.intersection import cast_rays
    >>> triangle, t, u, v = cast_rays(origins, directions)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.octrace.core.ray import T_MAX
from src.octrace.geometry.triangle import TriangleHit, is_closer_hit, make_miss
from src.octrace.scene.geometry import hit_stored_triangle, num_triangles
from src.octrace.scene.octree import intersect_octree, occluded_octree

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# 0 = traverse the octree, 1 = test every triangle
_use_brute_force = ti.field(dtype=ti.i32, shape=())


def set_use_octree(enabled: bool) -> None:
    """Select octree traversal (True) or the brute-force scan (False)."""
    _use_brute_force[None] = 0 if enabled else 1


def get_use_octree() -> bool:
    """Whether scene queries currently traverse the octree."""
    return _use_brute_force[None] == 0


@ti.func
def intersect_brute_force(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> TriangleHit:
    """Test a ray against every stored triangle and keep the closest hit.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The closest TriangleHit, or a miss with hit == 0.
    """
    best = make_miss(t_max)
    for i in range(num_triangles[None]):
        rec = hit_stored_triangle(ray_origin, ray_direction, i, best.t)
        if rec.hit == 1 and is_closer_hit(rec, best) == 1:
            best = rec
    return best


@ti.func
def occluded_brute_force(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> ti.i32:
    """Test whether any stored triangle blocks a ray within (0, t_max]."""
    hit_any = 0
    for i in range(num_triangles[None]):
        if hit_any == 0:
            rec = hit_stored_triangle(ray_origin, ray_direction, i, t_max)
            if rec.hit == 1:
                hit_any = 1
    return hit_any


@ti.func
def intersect_scene(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> TriangleHit:
    """Find the closest triangle hit using the selected strategy."""
    result = make_miss(t_max)
    if _use_brute_force[None] == 1:
        result = intersect_brute_force(ray_origin, ray_direction, t_max)
    else:
        result = intersect_octree(ray_origin, ray_direction, t_max)
    return result


@ti.func
def intersect_scene_any(ray_origin: vec3, ray_direction: vec3, t_max: ti.f32) -> ti.i32:
    """Test if a ray hits any triangle (shadow ray query)."""
    result = 0
    if _use_brute_force[None] == 1:
        result = occluded_brute_force(ray_origin, ray_direction, t_max)
    else:
        result = occluded_octree(ray_origin, ray_direction, t_max)
    return result


# =============================================================================
# Batch queries from Python
# =============================================================================


@ti.kernel
def _cast_rays_kernel(
    origins: ti.types.ndarray(),
    directions: ti.types.ndarray(),
    t_max: ti.f32,
    out_triangle: ti.types.ndarray(),
    out_t: ti.types.ndarray(),
    out_u: ti.types.ndarray(),
    out_v: ti.types.ndarray(),
):
    for i in range(origins.shape[0]):
        o = vec3(origins[i, 0], origins[i, 1], origins[i, 2])
        d = vec3(directions[i, 0], directions[i, 1], directions[i, 2])
        rec = intersect_scene(o, d, t_max)
        out_triangle[i] = rec.triangle
        out_t[i] = rec.t
        out_u[i] = rec.u
        out_v[i] = rec.v


def cast_rays(
    origins: npt.ArrayLike,
    directions: npt.ArrayLike,
    t_max: float = T_MAX,
    use_octree: bool = True,
) -> tuple[npt.NDArray[np.int32], npt.NDArray[np.float32], npt.NDArray[np.float32], npt.NDArray[np.float32]]:
    """Intersect a batch of rays with the uploaded scene.

    Args:
        origins: Ray origins, shape (N, 3).
        directions: Ray directions, shape (N, 3).
        t_max: Maximum t value to consider a valid hit.
        use_octree: Traverse the octree (True) or scan every triangle (False).

    Returns:
        Tuple (triangle, t, u, v) of shape (N,) arrays. triangle is -1 for
        rays that hit nothing; t, u and v are only meaningful for hits.
    """
    origins = np.ascontiguousarray(origins, dtype=np.float32).reshape(-1, 3)
    directions = np.ascontiguousarray(directions, dtype=np.float32).reshape(-1, 3)
    if origins.shape != directions.shape:
        raise ValueError(
            f"origins and directions must have the same shape, got {origins.shape} and {directions.shape}"
        )

    n = len(origins)
    out_triangle = np.full(n, -1, dtype=np.int32)
    out_t = np.zeros(n, dtype=np.float32)
    out_u = np.zeros(n, dtype=np.float32)
    out_v = np.zeros(n, dtype=np.float32)
    if n == 0:
        return out_triangle, out_t, out_u, out_v

    previous = get_use_octree()
    set_use_octree(use_octree)
    try:
        _cast_rays_kernel(origins, directions, t_max, out_triangle, out_t, out_u, out_v)
    finally:
        set_use_octree(previous)
    return out_triangle, out_t, out_u, out_v
