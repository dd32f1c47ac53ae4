"""Ray data structure and vector utilities for ray casting.

This module provides the fundamental Ray dataclass and the vector helpers
shared by intersection, shading and camera code. All operations are designed
to work within Taichi kernels.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Largest ray parameter considered by primary and shadow rays
T_MAX = 1e10


@ti.dataclass
class Ray:
    """A ray with an origin point and direction vector.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Camera rays are
            normalized; shadow rays toward point lights are not, so that
            t = 1 lands exactly on the light.
    """

    origin: vec3
    direction: vec3


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3) -> Ray:
    """Create a ray from origin and direction."""
    return Ray(origin=origin, direction=direction)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def normalize(v: vec3) -> vec3:
    """Normalize a vector to unit length.

    Unlike tm.normalize, a zero-length input yields a zero vector instead
    of NaN components.

    Args:
        v: The input vector.

    Returns:
        A unit vector in the same direction as v, or zero.
    """
    result = vec3(0.0, 0.0, 0.0)
    len_sq = tm.dot(v, v)
    if len_sq > 1e-30:
        result = v / ti.sqrt(len_sq)
    return result


@ti.func
def mirror_about_normal(light_vector: vec3, normal: vec3) -> vec3:
    """Mirror a surface-to-light vector about the normal.

    This is the classic Phong reflection vector R = 2N(N.L) - L, where L
    points away from the surface.

    Args:
        light_vector: Vector from the surface point toward the light.
        normal: The surface normal (should be normalized).

    Returns:
        The mirrored vector, pointing away from the surface.
    """
    return 2.0 * tm.dot(normal, light_vector) * normal - light_vector


