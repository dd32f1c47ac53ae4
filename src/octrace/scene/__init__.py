"""Scene module: geometry storage, octree index and scene queries.

Components:
    geometry: GeometryStore with positions, normals, texcoords and triangles
    octree: Octree construction, upload and traversal
    intersection: Closest-hit and any-hit queries (octree or brute force)
    manager: SceneManager coordinating geometry, materials, textures, lights

Scene data is organized for parallel read-only access:
    - Structure-of-Arrays layout for vertex and triangle data
    - Triangles and octree leaves refer to flat arrays by integer index
    - Octree nodes flattened breadth-first with contiguous children
"""

from .geometry import (
    MAX_NORMALS,
    MAX_TEXCOORDS,
    MAX_TRIANGLES,
    MAX_VERTICES,
    GeometryStore,
    InvalidGeometryError,
    TriangleInfo,
    clear_geometry,
    get_triangle_count,
    hit_stored_triangle,
)
from .octree import (
    MAX_OCTREE_DEPTH,
    OctreeConfig,
    OctreeLayout,
    build_octree,
    clear_octree,
    get_node_count,
    intersect_octree,
    occluded_octree,
    upload_octree,
)
from .intersection import (
    cast_rays,
    get_use_octree,
    intersect_brute_force,
    intersect_scene,
    intersect_scene_any,
    set_use_octree,
)
from .manager import (
    LightInfo,
    MaterialInfo,
    SceneConfig,
    SceneManager,
    TextureInfo,
)

__all__ = [
    # Geometry store
    "GeometryStore",
    "InvalidGeometryError",
    "TriangleInfo",
    "clear_geometry",
    "get_triangle_count",
    "hit_stored_triangle",
    "MAX_VERTICES",
    "MAX_NORMALS",
    "MAX_TEXCOORDS",
    "MAX_TRIANGLES",
    # Octree
    "OctreeConfig",
    "OctreeLayout",
    "build_octree",
    "upload_octree",
    "clear_octree",
    "get_node_count",
    "intersect_octree",
    "occluded_octree",
    "MAX_OCTREE_DEPTH",
    # Intersection
    "cast_rays",
    "intersect_scene",
    "intersect_scene_any",
    "intersect_brute_force",
    "set_use_octree",
    "get_use_octree",
    # Manager
    "SceneManager",
    "SceneConfig",
    "MaterialInfo",
    "TextureInfo",
    "LightInfo",
]
