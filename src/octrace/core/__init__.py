"""Core rendering module.

This module contains the fundamental building blocks for ray casting:

Components:
    ray: Ray data structure and vector utilities
    runtime: Taichi initialization (import before any field-declaring module)
    renderer: Render configuration, state machine and per-pixel kernels

The renderer drives, for every pixel, camera ray generation, octree
traversal, triangle intersection and shading, writing one RGB value per
pixel into a preallocated Taichi buffer.

All compute-intensive operations use Taichi kernels.
"""

from .ray import (
    T_MAX,
    Ray,
    make_ray,
    mirror_about_normal,
    normalize,
    ray_at,
    vec3,
)
from .runtime import init_taichi

# Note: renderer is NOT imported here to avoid circular imports and because
# it creates Taichi fields. Import it directly when needed:
#   from src.octrace.core.renderer import Renderer, RenderConfig

__all__ = [
    "Ray",
    "T_MAX",
    "ray_at",
    "make_ray",
    "vec3",
    "normalize",
    "mirror_about_normal",
    "init_taichi",
]
