"""Geometry module for primitive intersection routines.

This module provides the geometric tests used by scene queries:

Components:
    triangle: Möller–Trumbore ray-triangle intersection and triangle helpers
    aabb: The ray-box slab test and NumPy box helpers used while building
        the octree

All intersection routines are implemented as Taichi functions (@ti.func) so
they can run inside the per-pixel render kernels. They are pure and
read-only, and therefore safe to call from any number of parallel threads.

Ray-triangle intersection follows the pattern:
    rec = hit_triangle(ray_origin, ray_direction, v0, v1, v2, t_max)
"""

from .aabb import (
    AABB_EPSILON,
    boxes_overlap,
    hit_aabb,
    octant_bounds,
    triangle_bounds,
)
from .triangle import (
    BARYCENTRIC_EPSILON,
    DETERMINANT_EPSILON,
    T_EPSILON,
    TriangleHit,
    barycentric_mix,
    hit_triangle,
    is_closer_hit,
    make_miss,
    triangle_normal,
)

__all__ = [
    "AABB_EPSILON",
    "hit_aabb",
    "boxes_overlap",
    "octant_bounds",
    "triangle_bounds",
    "TriangleHit",
    "hit_triangle",
    "is_closer_hit",
    "make_miss",
    "triangle_normal",
    "barycentric_mix",
    "DETERMINANT_EPSILON",
    "BARYCENTRIC_EPSILON",
    "T_EPSILON",
]
