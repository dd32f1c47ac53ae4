"""Geometry store: vertex attributes and triangles for the scene.

The store collects positions, normals, texture coordinates and triangles on
the host, validates them once in finalize(), and uploads them into
preallocated Taichi fields. Triangles refer to vertex attributes by integer
index (arena style), so the same position can be shared by many triangles
and render kernels only ever read flat arrays.

A triangle's normal and texcoord triples are optional. An absent triple is
stored as (-1, -1, -1); shading then falls back to the flat face normal or
the material's base color.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.octrace.scene.geometry import GeometryStore
    >>> store = GeometryStore()
    >>> a = store.add_position((0.0, 0.0, 0.0))
    >>> b = store.add_position((1.0, 0.0, 0.0))
    >>> c = store.add_position((0.0, 1.0, 0.0))
    >>> store.add_triangle((a, b, c), material_id=0)
    0
    >>> store.finalize()
"""


import logging
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.octrace.geometry.aabb import triangle_bounds
from src.octrace.geometry.triangle import DETERMINANT_EPSILON, TriangleHit, hit_triangle

logger = logging.getLogger(__name__)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Marker for an absent normal/texcoord triple
ABSENT_INDEX = -1

# Maximum sizes of the preallocated geometry fields
MAX_VERTICES = 1 << 16
MAX_NORMALS = 1 << 16
MAX_TEXCOORDS = 1 << 16
MAX_TRIANGLES = 1 << 16

# Vertex attribute storage
positions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_VERTICES)
normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_NORMALS)
texcoords = ti.Vector.field(2, dtype=ti.f32, shape=MAX_TEXCOORDS)

# Triangle storage: Structure of Arrays layout
triangle_positions = ti.Vector.field(3, dtype=ti.i32, shape=MAX_TRIANGLES)
triangle_normals = ti.Vector.field(3, dtype=ti.i32, shape=MAX_TRIANGLES)
triangle_texcoords = ti.Vector.field(3, dtype=ti.i32, shape=MAX_TRIANGLES)
triangle_materials = ti.field(dtype=ti.i32, shape=MAX_TRIANGLES)
num_triangles = ti.field(dtype=ti.i32, shape=())


class InvalidGeometryError(IndexError):
    """A triangle references a vertex attribute that does not exist."""


@dataclass(frozen=True)
class TriangleInfo:
    """Information about a triangle in the store.

    Attributes:
        positions: Indices of the three vertex positions.
        normals: Indices of the three vertex normals, or None.
        texcoords: Indices of the three texture coordinates, or None.
        material_id: The material ID assigned to the triangle.
    """

    positions: tuple[int, int, int]
    normals: tuple[int, int, int] | None
    texcoords: tuple[int, int, int] | None
    material_id: int


# =============================================================================
# Field upload kernels
# =============================================================================


@ti.kernel
def _upload_vectors(dst: ti.template(), src: ti.types.ndarray(), count: ti.i32):
    """Copy the first count rows of a (N, k) array into a vector field."""
    for i in range(count):
        for k in ti.static(range(dst.n)):
            dst[i][k] = src[i, k]


@ti.kernel
def _upload_scalars(dst: ti.template(), src: ti.types.ndarray(), count: ti.i32):
    """Copy the first count entries of a (N,) array into a scalar field."""
    for i in range(count):
        dst[i] = src[i]


def upload_vectors(dst, src: npt.NDArray, dtype: type) -> None:
    """Upload a (N, k) array into the first N entries of a vector field."""
    if len(src) > 0:
        _upload_vectors(dst, np.ascontiguousarray(src, dtype=dtype), len(src))


def upload_scalars(dst, src: npt.NDArray, dtype: type) -> None:
    """Upload a (N,) array into the first N entries of a scalar field."""
    if len(src) > 0:
        _upload_scalars(dst, np.ascontiguousarray(src, dtype=dtype), len(src))


def clear_geometry() -> None:
    """Clear all triangles from the Taichi-side geometry store.

    Resets the triangle count to zero. The field data is not cleared but
    will be overwritten by the next upload.
    """
    num_triangles[None] = 0


def get_triangle_count() -> int:
    """Get the number of triangles uploaded to the Taichi fields."""
    return int(num_triangles[None])


# =============================================================================
# Host-side store
# =============================================================================


def _as_triple(values: tuple[int, int, int] | list[int] | None) -> tuple[int, int, int] | None:
    if values is None:
        return None
    if len(values) != 3:
        raise ValueError(f"Expected 3 indices per triangle, got {len(values)}")
    return (int(values[0]), int(values[1]), int(values[2]))


class GeometryStore:
    """Ordered collections of vertex attributes and triangles.

    Attributes are appended while the scene is assembled. finalize()
    validates every triangle index, freezes the store and uploads it to the
    Taichi fields used by the render kernels.
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable store."""
        self._positions: list[tuple[float, float, float]] = []
        self._normals: list[tuple[float, float, float]] = []
        self._texcoords: list[tuple[float, float]] = []
        self._triangles: list[TriangleInfo] = []
        self._finalized = False
        self._arrays: dict[str, npt.NDArray] = {}

    @classmethod
    def from_arrays(
        cls,
        positions: npt.ArrayLike,
        triangles: npt.ArrayLike,
        *,
        normals: npt.ArrayLike | None = None,
        texcoords: npt.ArrayLike | None = None,
        triangle_normals: npt.ArrayLike | None = None,
        triangle_texcoords: npt.ArrayLike | None = None,
        material_ids: npt.ArrayLike | int = 0,
    ) -> "GeometryStore":
        """Create a store from NumPy arrays.

        Args:
            positions: Vertex positions, shape (V, 3).
            triangles: Position index triples, shape (T, 3).
            normals: Vertex normals, shape (N, 3).
            texcoords: Texture coordinates, shape (C, 2).
            triangle_normals: Normal index triples, shape (T, 3).
            triangle_texcoords: Texcoord index triples, shape (T, 3).
            material_ids: One material ID for all triangles, or shape (T,).

        Returns:
            A new, not yet finalized, GeometryStore.
        """
        store = cls()
        for p in np.asarray(positions, dtype=np.float64).reshape(-1, 3):
            store.add_position(p)
        if normals is not None:
            for n in np.asarray(normals, dtype=np.float64).reshape(-1, 3):
                store.add_normal(n)
        if texcoords is not None:
            for c in np.asarray(texcoords, dtype=np.float64).reshape(-1, 2):
                store.add_texcoord(c)

        tri = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        tri_n = None if triangle_normals is None else np.asarray(triangle_normals).reshape(-1, 3)
        tri_t = None if triangle_texcoords is None else np.asarray(triangle_texcoords).reshape(-1, 3)
        mats = np.broadcast_to(np.asarray(material_ids, dtype=np.int64), (len(tri),))

        for i in range(len(tri)):
            store.add_triangle(
                tuple(tri[i]),
                material_id=int(mats[i]),
                normals=None if tri_n is None else tuple(tri_n[i]),
                texcoords=None if tri_t is None else tuple(tri_t[i]),
            )
        return store

    # =========================================================================
    # Mutation (before finalize)
    # =========================================================================

    def _check_mutable(self) -> None:
        if self._finalized:
            raise RuntimeError("Geometry store is finalized and can no longer be modified")

    def add_position(self, position: tuple[float, float, float] | npt.ArrayLike) -> int:
        """Add a vertex position.

        Returns:
            The index of the added position.

        Raises:
            RuntimeError: If the store is finalized or MAX_VERTICES is exceeded.
        """
        self._check_mutable()
        if len(self._positions) >= MAX_VERTICES:
            raise RuntimeError(f"Maximum number of vertices ({MAX_VERTICES}) exceeded")
        x, y, z = (float(c) for c in position)
        self._positions.append((x, y, z))
        return len(self._positions) - 1

    def add_normal(self, normal: tuple[float, float, float] | npt.ArrayLike) -> int:
        """Add a vertex normal.

        Returns:
            The index of the added normal.

        Raises:
            RuntimeError: If the store is finalized or MAX_NORMALS is exceeded.
        """
        self._check_mutable()
        if len(self._normals) >= MAX_NORMALS:
            raise RuntimeError(f"Maximum number of normals ({MAX_NORMALS}) exceeded")
        x, y, z = (float(c) for c in normal)
        self._normals.append((x, y, z))
        return len(self._normals) - 1

    def add_texcoord(self, texcoord: tuple[float, float] | npt.ArrayLike) -> int:
        """Add a texture coordinate.

        Returns:
            The index of the added texture coordinate.

        Raises:
            RuntimeError: If the store is finalized or MAX_TEXCOORDS is exceeded.
        """
        self._check_mutable()
        if len(self._texcoords) >= MAX_TEXCOORDS:
            raise RuntimeError(f"Maximum number of texcoords ({MAX_TEXCOORDS}) exceeded")
        s, t = (float(c) for c in texcoord)
        self._texcoords.append((s, t))
        return len(self._texcoords) - 1

    def add_triangle(
        self,
        positions: tuple[int, int, int],
        *,
        material_id: int,
        normals: tuple[int, int, int] | None = None,
        texcoords: tuple[int, int, int] | None = None,
    ) -> int:
        """Add a triangle referencing existing (or later) vertex attributes.

        Indices are checked in finalize(), so a triangle may be added before
        the attributes it refers to.

        Args:
            positions: Indices of the three vertex positions.
            material_id: The material ID assigned to the triangle.
            normals: Indices of the three vertex normals, or None.
            texcoords: Indices of the three texture coordinates, or None.

        Returns:
            The index of the added triangle.

        Raises:
            RuntimeError: If the store is finalized or MAX_TRIANGLES is exceeded.
            ValueError: If an index triple does not have exactly 3 entries.
        """
        self._check_mutable()
        if len(self._triangles) >= MAX_TRIANGLES:
            raise RuntimeError(f"Maximum number of triangles ({MAX_TRIANGLES}) exceeded")
        info = TriangleInfo(
            positions=_as_triple(positions),
            normals=_as_triple(normals),
            texcoords=_as_triple(texcoords),
            material_id=int(material_id),
        )
        self._triangles.append(info)
        return len(self._triangles) - 1

    # =========================================================================
    # Finalization
    # =========================================================================

    @property
    def finalized(self) -> bool:
        """Whether the store has been validated and frozen."""
        return self._finalized

    def finalize(self) -> None:
        """Validate all triangles and freeze the store.

        Calling finalize() on an already finalized store is a no-op.

        Raises:
            InvalidGeometryError: If a triangle references an out-of-range
                position, normal or texcoord index.
        """
        if self._finalized:
            return

        arrays = self._build_arrays()
        self._validate_indices(arrays)
        self._arrays = arrays
        self._finalized = True

        degenerate = int(np.count_nonzero(self.degenerate_triangles()))
        if degenerate:
            logger.warning(
                "%d of %d triangles are degenerate and will never be hit",
                degenerate,
                self.triangle_count,
            )
        logger.debug(
            "Finalized geometry: %d positions, %d normals, %d texcoords, %d triangles",
            self.position_count,
            self.normal_count,
            self.texcoord_count,
            self.triangle_count,
        )

    def _build_arrays(self) -> dict[str, npt.NDArray]:
        absent = (ABSENT_INDEX, ABSENT_INDEX, ABSENT_INDEX)
        count = len(self._triangles)
        return {
            "positions": np.array(self._positions, dtype=np.float64).reshape(-1, 3),
            "normals": np.array(self._normals, dtype=np.float64).reshape(-1, 3),
            "texcoords": np.array(self._texcoords, dtype=np.float64).reshape(-1, 2),
            "triangle_positions": np.array(
                [t.positions for t in self._triangles], dtype=np.int64
            ).reshape(count, 3),
            "triangle_normals": np.array(
                [t.normals or absent for t in self._triangles], dtype=np.int64
            ).reshape(count, 3),
            "triangle_texcoords": np.array(
                [t.texcoords or absent for t in self._triangles], dtype=np.int64
            ).reshape(count, 3),
            "triangle_materials": np.array(
                [t.material_id for t in self._triangles], dtype=np.int64
            ).reshape(count),
        }

    @staticmethod
    def _validate_indices(arrays: dict[str, npt.NDArray]) -> None:
        checks = (
            ("position", "triangle_positions", len(arrays["positions"]), False),
            ("normal", "triangle_normals", len(arrays["normals"]), True),
            ("texcoord", "triangle_texcoords", len(arrays["texcoords"]), True),
        )
        for kind, key, available, may_be_absent in checks:
            indices = arrays[key]
            bad = (indices < 0) | (indices >= available)
            if may_be_absent:
                bad &= ~np.all(indices == ABSENT_INDEX, axis=1, keepdims=True)
            rows = np.flatnonzero(bad.any(axis=1))
            if len(rows):
                row = int(rows[0])
                column = int(np.flatnonzero(bad[row])[0])
                raise InvalidGeometryError(
                    f"Triangle {row} references {kind} index {int(indices[row, column])}, "
                    f"but only {available} {kind}s exist"
                )

    def _require_finalized(self) -> None:
        if not self._finalized:
            raise RuntimeError("Geometry store is not finalized. Call finalize() first.")

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def position_count(self) -> int:
        """Number of vertex positions."""
        return len(self._positions)

    @property
    def normal_count(self) -> int:
        """Number of vertex normals."""
        return len(self._normals)

    @property
    def texcoord_count(self) -> int:
        """Number of texture coordinates."""
        return len(self._texcoords)

    @property
    def triangle_count(self) -> int:
        """Number of triangles."""
        return len(self._triangles)

    def get_triangle(self, index: int) -> TriangleInfo:
        """Get a triangle by index (O(1))."""
        return self._triangles[index]

    def get_position(self, index: int) -> tuple[float, float, float]:
        """Get a vertex position by index (O(1))."""
        return self._positions[index]

    def get_normal(self, index: int) -> tuple[float, float, float]:
        """Get a vertex normal by index (O(1))."""
        return self._normals[index]

    def get_texcoord(self, index: int) -> tuple[float, float]:
        """Get a texture coordinate by index (O(1))."""
        return self._texcoords[index]

    def material_ids(self) -> set[int]:
        """Get the set of material IDs used by triangles."""
        return {t.material_id for t in self._triangles}

    def array(self, name: str) -> npt.NDArray:
        """Get one of the finalized arrays by name.

        Names: positions, normals, texcoords, triangle_positions,
        triangle_normals, triangle_texcoords, triangle_materials.

        Raises:
            RuntimeError: If the store is not finalized.
        """
        self._require_finalized()
        return self._arrays[name]

    def triangle_vertices(
        self,
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Get the three vertex positions of every triangle, each (T, 3)."""
        pos = self.array("positions")
        tri = self.array("triangle_positions")
        if len(tri) == 0:
            empty = np.zeros((0, 3), dtype=np.float64)
            return empty, empty, empty
        return pos[tri[:, 0]], pos[tri[:, 1]], pos[tri[:, 2]]

    def triangle_bounds(self) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Get per-triangle bounding boxes as (mins, maxs), each (T, 3)."""
        return triangle_bounds(*self.triangle_vertices())

    def triangle_areas(self) -> npt.NDArray[np.float64]:
        """Get the area of every triangle, shape (T,)."""
        v0, v1, v2 = self.triangle_vertices()
        return 0.5 * np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1)

    def degenerate_triangles(self) -> npt.NDArray[np.bool_]:
        """Get a mask of triangles that no ray can hit, shape (T,).

        A triangle is degenerate when the sine of the angle between its two
        edges is at most DETERMINANT_EPSILON. This is the same scale-free
        criterion the intersector applies to a ray along the face normal.
        """
        v0, v1, v2 = self.triangle_vertices()
        e1 = v1 - v0
        e2 = v2 - v0
        cross = np.linalg.norm(np.cross(e1, e2), axis=1)
        scale = np.linalg.norm(e1, axis=1) * np.linalg.norm(e2, axis=1)
        return cross <= DETERMINANT_EPSILON * scale

    # =========================================================================
    # Upload
    # =========================================================================

    def upload(self) -> None:
        """Upload the finalized store to the Taichi geometry fields.

        Raises:
            RuntimeError: If the store is not finalized.
        """
        self._require_finalized()
        upload_vectors(positions, self._arrays["positions"], np.float32)
        upload_vectors(normals, self._arrays["normals"], np.float32)
        upload_vectors(texcoords, self._arrays["texcoords"], np.float32)
        upload_vectors(triangle_positions, self._arrays["triangle_positions"], np.int32)
        upload_vectors(triangle_normals, self._arrays["triangle_normals"], np.int32)
        upload_vectors(triangle_texcoords, self._arrays["triangle_texcoords"], np.int32)
        upload_scalars(triangle_materials, self._arrays["triangle_materials"], np.int32)
        num_triangles[None] = self.triangle_count


# =============================================================================
# Taichi-side triangle access
# =============================================================================


@ti.func
def get_triangle_vertices(index: ti.i32):
    """Fetch the three vertex positions of a stored triangle.

    Returns:
        A tuple (v0, v1, v2).
    """
    idx = triangle_positions[index]
    return positions[idx[0]], positions[idx[1]], positions[idx[2]]


@ti.func
def hit_stored_triangle(
    ray_origin: vec3,
    ray_direction: vec3,
    index: ti.i32,
    t_max: ti.f32,
) -> TriangleHit:
    """Intersect a ray with a triangle from the geometry store.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        index: Index of the triangle in the store.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A TriangleHit whose triangle field is set to index.
    """
    v0, v1, v2 = get_triangle_vertices(index)
    rec = hit_triangle(ray_origin, ray_direction, v0, v1, v2, t_max)
    rec.triangle = index
    return rec
