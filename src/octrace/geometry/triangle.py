"""Triangle primitive with Möller–Trumbore ray-triangle intersection.

A triangle is defined by three vertices v0, v1, v2. A point inside it is
written with barycentric weights as:

    P = w * v0 + u * v1 + v * v2,    w = 1 - u - v

The Möller–Trumbore test solves origin + t * direction = P directly from the
edge vectors e1 = v1 - v0 and e2 = v2 - v0, without building the plane
equation first.

Tolerances:
    DETERMINANT_EPSILON: relative to |e1| * |e2| * |direction|. A smaller
        |det| means the ray is parallel to the plane or the triangle is
        degenerate (collinear vertices). Both report a miss. The result does
        not depend on the triangle's size.
    BARYCENTRIC_EPSILON: u, v and u + v may overshoot [0, 1] by this much,
        which closes hairline cracks along edges shared by two triangles.
    T_EPSILON: hits at t <= T_EPSILON are treated as behind the origin. This
        also rejects a ray whose origin lies on the triangle's plane.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.octrace.geometry.triangle import hit_triangle, vec3
    >>> # Use hit_triangle within a Taichi kernel:
    >>> # rec = hit_triangle(origin, direction, v0, v1, v2, 1e10)
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

DETERMINANT_EPSILON = 1e-7
BARYCENTRIC_EPSILON = 1e-6
T_EPSILON = 1e-6


@ti.dataclass
class TriangleHit:
    """Record of a ray-triangle intersection.

    Attributes:
        hit: Whether the ray intersected the triangle (1 if hit, 0 if miss).
        t: The ray parameter of the hit. Only valid if hit == 1.
        u: Barycentric weight of the second vertex. Only valid if hit == 1.
        v: Barycentric weight of the third vertex. Only valid if hit == 1.
        triangle: Index of the hit triangle in the geometry store, or -1.
    """

    hit: ti.i32
    t: ti.f32
    u: ti.f32
    v: ti.f32
    triangle: ti.i32


@ti.func
def make_miss(t_max: ti.f32) -> TriangleHit:
    """Create a TriangleHit indicating no intersection.

    The miss carries t = t_max so it can seed a closest-hit search.
    """
    return TriangleHit(hit=0, t=t_max, u=0.0, v=0.0, triangle=-1)


@ti.func
def hit_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    v0: vec3,
    v1: vec3,
    v2: vec3,
    t_max: ti.f32,
) -> TriangleHit:
    """Test for ray-triangle intersection using Möller–Trumbore.

    Returns a miss when the ray is parallel to the triangle's plane (or the
    triangle is degenerate), when the barycentric coordinates fall outside
    the triangle, or when t is not in (T_EPSILON, t_max].

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be normalized).
        v0: First vertex.
        v1: Second vertex.
        v2: Third vertex.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A TriangleHit with triangle = -1. Check the hit field to determine
        if an intersection occurred.
    """
    edge1 = v1 - v0
    edge2 = v2 - v0
    h = tm.cross(ray_direction, edge2)
    det = tm.dot(edge1, h)

    did_hit = 0
    hit_t = 0.0
    hit_u = 0.0
    hit_v = 0.0

    scale = tm.length(edge1) * tm.length(edge2) * tm.length(ray_direction)

    if ti.abs(det) > DETERMINANT_EPSILON * scale:
        inv_det = 1.0 / det
        s = ray_origin - v0
        u = inv_det * tm.dot(s, h)

        if u >= -BARYCENTRIC_EPSILON and u <= 1.0 + BARYCENTRIC_EPSILON:
            q = tm.cross(s, edge1)
            v = inv_det * tm.dot(ray_direction, q)

            if v >= -BARYCENTRIC_EPSILON and u + v <= 1.0 + BARYCENTRIC_EPSILON:
                t = inv_det * tm.dot(edge2, q)

                if t > T_EPSILON and t <= t_max:
                    did_hit = 1
                    hit_t = t
                    hit_u = u
                    hit_v = v

    return TriangleHit(hit=did_hit, t=hit_t, u=hit_u, v=hit_v, triangle=-1)


@ti.func
def is_closer_hit(
    candidate: TriangleHit,
    best: TriangleHit,
) -> ti.i32:
    """Decide whether a candidate hit replaces the current closest hit.

    A smaller t wins. Equal t is broken in favor of the lower triangle
    index, so the result does not depend on the order triangles are
    visited in.

    Args:
        candidate: A hit record with hit == 1 and its triangle index set.
        best: The closest hit found so far (may be a miss).

    Returns:
        1 if candidate should replace best, 0 otherwise.
    """
    closer = 0
    if best.hit == 0:
        closer = 1
    elif candidate.t < best.t:
        closer = 1
    elif candidate.t == best.t and candidate.triangle < best.triangle:
        closer = 1
    return closer


@ti.func
def triangle_normal(v0: vec3, v1: vec3, v2: vec3) -> vec3:
    """Compute the unit face normal of a triangle.

    The normal follows the right-hand rule over (v0, v1, v2). A degenerate
    triangle yields a zero vector.
    """
    n = tm.cross(v1 - v0, v2 - v0)
    result = vec3(0.0, 0.0, 0.0)
    len_sq = tm.dot(n, n)
    if len_sq > 1e-30:
        result = n / ti.sqrt(len_sq)
    return result


@ti.func
def barycentric_mix(a, b, c, u, v):
    """Interpolate three per-vertex values with weights (1 - u - v, u, v).

    Left unannotated so it serves both vec3 normals and vec2 texcoords.
    """
    return (1.0 - u - v) * a + u * b + v * c
