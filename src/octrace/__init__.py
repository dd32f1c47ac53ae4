"""Octree-accelerated triangle ray caster built on Taichi.

This package renders static triangle scenes by casting one primary ray per
pixel, with support for:
- Octree spatial indexing of triangles with a brute-force fallback path
- Möller–Trumbore ray-triangle intersection
- Flat and textured materials with ambient/diffuse/specular lighting
- Hard shadows from directional and point lights
- Deterministic parallel per-pixel rendering

Subpackages:
    core: Ray and vector utilities, renderer and rendering loop
    geometry: Triangle and bounding-box intersection routines
    materials: Material table, texture surfaces, lights and shading
    scene: Geometry store, octree, scene queries and scene management
    camera: Pinhole camera with per-pixel ray generation
    preview: PNG export and Matplotlib preview of finished frames
"""

__version__ = "0.1.0"
