"""Scene manager coordinating geometry, materials, textures and lights.

This module provides a high-level scene building API on top of the geometry
store and the material, texture and light tables. It validates material
references as triangles are added, and build() finalizes the geometry,
uploads it and constructs the octree in one step.

The SceneManager maintains:
- A GeometryStore with positions, normals, texcoords and triangles
- Host-side records of every material, texture and light it created
- Scene serialization to and from a SceneConfig / plain dict

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.octrace.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_flat_material((255, 0, 0))
    >>> scene.add_flat_triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), red)
    >>> scene.add_ambient_light(0.4)
    >>> layout = scene.build()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import numpy.typing as npt
from PIL import Image

from src.octrace.materials.lights import (
    MAX_LIGHTS,
    LightType,
    add_ambient_light,
    add_directional_light,
    add_point_light,
    clear_lights,
)
from src.octrace.materials.material import (
    MAX_MATERIALS,
    UNIT_COEFFICIENT,
    MaterialKind,
    add_flat_material,
    add_textured_material,
    clear_materials,
)
from src.octrace.materials.texture import (
    MAX_TEXTURES,
    add_texture,
    clear_textures,
    to_rgb8,
)
from src.octrace.scene.geometry import (
    MAX_TRIANGLES,
    MAX_VERTICES,
    GeometryStore,
    clear_geometry,
)
from src.octrace.scene.octree import (
    OctreeConfig,
    OctreeLayout,
    build_octree,
    clear_octree,
    upload_octree,
)

logger = logging.getLogger(__name__)

# Lights added by build() when the scene has none
DEFAULT_AMBIENT_INTENSITY = 0.4
DEFAULT_POINT_LIGHT = (0.7, (2.0, 2.0, 0.0))
DEFAULT_DIRECTIONAL_LIGHT = (0.5, (-5.0, 0.0, 2.0))


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The material ID.
        kind: FLAT or TEXTURED.
        params: The material parameters as provided during creation.
    """

    material_id: int
    kind: MaterialKind
    params: dict[str, Any]


@dataclass
class TextureInfo:
    """Information about a loaded texture.

    Attributes:
        texture_id: The texture ID.
        pixels: The RGB texels, shape (H, W, 3) uint8.
    """

    texture_id: int
    pixels: npt.NDArray[np.uint8]

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass
class LightInfo:
    """Information about a light in the scene.

    Attributes:
        light_index: The index in the light storage arrays.
        light_type: AMBIENT, DIRECTIONAL or POINT.
        intensity: The light intensity.
        vector: Direction toward the light (DIRECTIONAL), position (POINT),
            or None (AMBIENT).
    """

    light_index: int
    light_type: LightType
    intensity: float
    vector: tuple[float, float, float] | None = None


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        materials: List of material configurations.
        textures: List of texture configurations (nested pixel lists).
        lights: List of light configurations.
        positions: Vertex positions.
        normals: Vertex normals.
        texcoords: Texture coordinates.
        triangles: List of triangle configurations.
    """

    materials: list[dict[str, Any]] = field(default_factory=list)
    textures: list[dict[str, Any]] = field(default_factory=list)
    lights: list[dict[str, Any]] = field(default_factory=list)
    positions: list[list[float]] = field(default_factory=list)
    normals: list[list[float]] = field(default_factory=list)
    texcoords: list[list[float]] = field(default_factory=list)
    triangles: list[dict[str, Any]] = field(default_factory=list)


def _coefficients(ka, kd, ks) -> dict[str, list[float]]:
    return {"ka": [float(c) for c in ka], "kd": [float(c) for c in kd], "ks": [float(c) for c in ks]}


class SceneManager:
    """Scene builder coordinating geometry, materials, textures and lights.

    Materials and textures must be created before the triangles that use
    them. After build() the geometry is frozen; call clear() to start over.

    Attributes:
        geometry: The GeometryStore holding all vertex attributes and triangles.
        materials: List of MaterialInfo for all registered materials.
        textures: List of TextureInfo for all loaded textures.
        lights: List of LightInfo for all lights.

    Example:
        >>> scene = SceneManager()
        >>> checker = scene.add_texture(np.array([[[0, 0, 0], [255, 255, 255]]], dtype=np.uint8))
        >>> floor = scene.add_textured_material(checker)
        >>> a = scene.add_position((0, 0, 0))
        >>> b = scene.add_position((1, 0, 0))
        >>> c = scene.add_position((0, 1, 0))
        >>> ta = scene.add_texcoord((0, 0))
        >>> tb = scene.add_texcoord((1, 0))
        >>> tc = scene.add_texcoord((0, 1))
        >>> scene.add_triangle((a, b, c), floor, texcoords=(ta, tb, tc))
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.geometry = GeometryStore()
        self.materials: list[MaterialInfo] = []
        self.textures: list[TextureInfo] = []
        self.lights: list[LightInfo] = []
        self._octree: OctreeLayout | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        clear_geometry()
        clear_octree()
        clear_materials()
        clear_textures()
        clear_lights()
        self.geometry = GeometryStore()
        self.materials.clear()
        self.textures.clear()
        self.lights.clear()
        self._octree = None

    def clear(self) -> None:
        """Clear the entire scene.

        Resets all Taichi fields and internal tracking structures.
        """
        self._clear_all()

    # =========================================================================
    # Texture and Material Management
    # =========================================================================

    def add_texture(self, image: npt.ArrayLike) -> int:
        """Add a decoded image as a texture.

        Args:
            image: Array of shape (H, W), (H, W, 3) or (H, W, 4); uint8 or
                floats in [0, 1].

        Returns:
            The texture ID.
        """
        pixels = to_rgb8(image)
        texture_id = add_texture(pixels)
        self.textures.append(TextureInfo(texture_id=texture_id, pixels=pixels))
        return texture_id

    def add_texture_from_image(self, image: Image.Image) -> int:
        """Add a PIL image as a texture."""
        return self.add_texture(np.asarray(image.convert("RGB")))

    def add_flat_material(
        self,
        color: tuple[float, float, float],
        specular: float = 0.0,
        ka: tuple[float, float, float] = UNIT_COEFFICIENT,
        kd: tuple[float, float, float] = UNIT_COEFFICIENT,
        ks: tuple[float, float, float] = UNIT_COEFFICIENT,
    ) -> int:
        """Add a flat colored material.

        Args:
            color: Base color as (R, G, B), each in [0, 255].
            specular: Specular exponent; 0 disables the highlight.
            ka: Ambient reflection coefficient per channel, in [0, 1].
            kd: Diffuse reflection coefficient per channel, in [0, 1].
            ks: Specular reflection coefficient per channel, in [0, 1].

        Returns:
            The material ID.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If a color or coefficient component is out of range,
                or specular < 0.
        """
        material_id = add_flat_material(color, specular, ka, kd, ks)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                kind=MaterialKind.FLAT,
                params={"color": list(color), "specular": specular, **_coefficients(ka, kd, ks)},
            )
        )
        return material_id

    def add_textured_material(
        self,
        texture_id: int,
        specular: float = 0.0,
        ka: tuple[float, float, float] = UNIT_COEFFICIENT,
        kd: tuple[float, float, float] = UNIT_COEFFICIENT,
        ks: tuple[float, float, float] = UNIT_COEFFICIENT,
    ) -> int:
        """Add a material sampling its base color from a texture.

        The ka, kd and ks coefficients weight the sampled texel per channel,
        as for add_flat_material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the texture ID is unknown, a coefficient component
                is out of range, or specular < 0.
        """
        material_id = add_textured_material(texture_id, specular, ka, kd, ks)
        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                kind=MaterialKind.TEXTURED,
                params={"texture_id": texture_id, "specular": specular, **_coefficients(ka, kd, ks)},
            )
        )
        return material_id

    # =========================================================================
    # Light Management
    # =========================================================================

    def add_ambient_light(self, intensity: float) -> int:
        """Add an ambient light. Returns the light index."""
        index = add_ambient_light(intensity)
        self.lights.append(LightInfo(index, LightType.AMBIENT, intensity))
        return index

    def add_directional_light(self, intensity: float, direction: tuple[float, float, float]) -> int:
        """Add a directional light; direction points toward the light."""
        index = add_directional_light(intensity, direction)
        self.lights.append(LightInfo(index, LightType.DIRECTIONAL, intensity, tuple(direction)))
        return index

    def add_point_light(self, intensity: float, position: tuple[float, float, float]) -> int:
        """Add a point light at a position."""
        index = add_point_light(intensity, position)
        self.lights.append(LightInfo(index, LightType.POINT, intensity, tuple(position)))
        return index

    def add_default_lights(self) -> None:
        """Add the default ambient, point and directional lights."""
        self.add_ambient_light(DEFAULT_AMBIENT_INTENSITY)
        self.add_point_light(*DEFAULT_POINT_LIGHT)
        self.add_directional_light(*DEFAULT_DIRECTIONAL_LIGHT)

    # =========================================================================
    # Geometry
    # =========================================================================

    def add_position(self, position: tuple[float, float, float]) -> int:
        """Add a vertex position. Returns its index."""
        return self.geometry.add_position(position)

    def add_normal(self, normal: tuple[float, float, float]) -> int:
        """Add a vertex normal. Returns its index."""
        return self.geometry.add_normal(normal)

    def add_texcoord(self, texcoord: tuple[float, float]) -> int:
        """Add a texture coordinate. Returns its index."""
        return self.geometry.add_texcoord(texcoord)

    def _check_material(self, material_id: int) -> None:
        if not 0 <= material_id < len(self.materials):
            raise ValueError(
                f"Invalid material_id {material_id}. "
                f"Must be in [0, {len(self.materials)})"
            )

    def add_triangle(
        self,
        positions: tuple[int, int, int],
        material_id: int,
        normals: tuple[int, int, int] | None = None,
        texcoords: tuple[int, int, int] | None = None,
    ) -> int:
        """Add a triangle referencing vertex attributes by index.

        Args:
            positions: Indices of the three vertex positions.
            material_id: The material ID from add_*_material().
            normals: Indices of the three vertex normals, or None for flat shading.
            texcoords: Indices of the three texture coordinates, or None.

        Returns:
            The index of the added triangle.

        Raises:
            ValueError: If material_id is invalid.
            RuntimeError: If the scene has already been built.
        """
        self._check_material(material_id)
        return self.geometry.add_triangle(
            positions, material_id=material_id, normals=normals, texcoords=texcoords
        )

    def add_flat_triangle(
        self,
        v0: tuple[float, float, float],
        v1: tuple[float, float, float],
        v2: tuple[float, float, float],
        material_id: int,
    ) -> int:
        """Add a triangle with three new vertex positions and no normals.

        Convenience method for small hand-built scenes.

        Returns:
            The index of the added triangle.
        """
        self._check_material(material_id)
        a = self.add_position(v0)
        b = self.add_position(v1)
        c = self.add_position(v2)
        return self.add_triangle((a, b, c), material_id)

    def add_mesh(
        self,
        positions: npt.ArrayLike,
        triangles: npt.ArrayLike,
        material_id: int,
        normals: npt.ArrayLike | None = None,
        texcoords: npt.ArrayLike | None = None,
    ) -> list[int]:
        """Add an indexed mesh.

        Triangle indices are relative to the mesh; normals and texcoords,
        when given, are indexed like the positions.

        Args:
            positions: Vertex positions, shape (V, 3).
            triangles: Vertex index triples, shape (T, 3).
            material_id: The material ID used by all triangles.
            normals: Per-vertex normals, shape (V, 3).
            texcoords: Per-vertex texture coordinates, shape (V, 2).

        Returns:
            The indices of the added triangles.
        """
        self._check_material(material_id)
        pos = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
        tri = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)

        base = self.geometry.position_count
        for p in pos:
            self.add_position(p)

        normal_base = None
        if normals is not None:
            normal_base = self.geometry.normal_count
            for n in np.asarray(normals, dtype=np.float64).reshape(-1, 3):
                self.add_normal(n)

        texcoord_base = None
        if texcoords is not None:
            texcoord_base = self.geometry.texcoord_count
            for c in np.asarray(texcoords, dtype=np.float64).reshape(-1, 2):
                self.add_texcoord(c)

        added = []
        for row in tri:
            idx = tuple(int(i) for i in row)
            added.append(
                self.add_triangle(
                    tuple(base + i for i in idx),
                    material_id,
                    normals=None if normal_base is None else tuple(normal_base + i for i in idx),
                    texcoords=None if texcoord_base is None else tuple(texcoord_base + i for i in idx),
                )
            )
        return added

    # =========================================================================
    # Build
    # =========================================================================

    def build(self, octree_config: OctreeConfig | None = None) -> OctreeLayout:
        """Validate and upload the geometry, then build and upload the octree.

        Adds the default lights when the scene has none.

        Args:
            octree_config: Octree subdivision parameters.

        Returns:
            The built OctreeLayout.

        Raises:
            InvalidGeometryError: If a triangle references a missing attribute.
            RuntimeError: If a capacity limit is exceeded.
        """
        self.geometry.finalize()

        if not self.lights:
            logger.info("Scene has no lights, adding default lights")
            self.add_default_lights()

        self.geometry.upload()

        mins, maxs = self.geometry.triangle_bounds()
        layout = build_octree(mins, maxs, octree_config)
        upload_octree(layout)
        self._octree = layout

        logger.info(
            "Built scene: %d triangles, %d materials, %d textures, %d lights, %d octree nodes",
            self.get_triangle_count(),
            len(self.materials),
            len(self.textures),
            len(self.lights),
            layout.node_count,
        )
        return layout

    def is_built(self) -> bool:
        """Whether build() has completed since the last clear()."""
        return self._octree is not None

    @property
    def octree(self) -> OctreeLayout | None:
        """The octree from the last build(), or None."""
        return self._octree

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_triangle_count(self) -> int:
        """Get the number of triangles in the scene."""
        return self.geometry.triangle_count

    def get_vertex_count(self) -> int:
        """Get the number of vertex positions in the scene."""
        return self.geometry.position_count

    def get_material_count(self) -> int:
        """Get the number of materials in the scene."""
        return len(self.materials)

    def get_light_count(self) -> int:
        """Get the number of lights in the scene."""
        return len(self.lights)

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all materials, textures, lights and geometry.
        """
        config = SceneConfig()

        for mat in self.materials:
            config.materials.append({"type": mat.kind.name.lower(), **mat.params})

        for tex in self.textures:
            config.textures.append({"pixels": tex.pixels.tolist()})

        for light in self.lights:
            light_config: dict[str, Any] = {
                "type": light.light_type.name.lower(),
                "intensity": light.intensity,
            }
            if light.light_type == LightType.DIRECTIONAL:
                light_config["direction"] = list(light.vector)
            elif light.light_type == LightType.POINT:
                light_config["position"] = list(light.vector)
            config.lights.append(light_config)

        store = self.geometry
        config.positions = [list(store.get_position(i)) for i in range(store.position_count)]
        config.normals = [list(store.get_normal(i)) for i in range(store.normal_count)]
        config.texcoords = [list(store.get_texcoord(i)) for i in range(store.texcoord_count)]

        for i in range(store.triangle_count):
            tri = store.get_triangle(i)
            tri_config: dict[str, Any] = {
                "positions": list(tri.positions),
                "material_id": tri.material_id,
            }
            if tri.normals is not None:
                tri_config["normals"] = list(tri.normals)
            if tri.texcoords is not None:
                tri_config["texcoords"] = list(tri.texcoords)
            config.triangles.append(tri_config)

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration.

        Args:
            config: The scene configuration to load.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        # Textures before materials, materials before triangles
        for tex_config in config.textures:
            self.add_texture(np.asarray(tex_config["pixels"], dtype=np.uint8))

        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            specular = mat_config.get("specular", 0.0)
            ka, kd, ks = (tuple(mat_config.get(key, UNIT_COEFFICIENT)) for key in ("ka", "kd", "ks"))
            if mat_type == "flat":
                color_list = mat_config.get("color", [255, 255, 255])
                color: tuple[float, float, float] = (color_list[0], color_list[1], color_list[2])
                self.add_flat_material(color, specular, ka, kd, ks)
            elif mat_type == "textured":
                self.add_textured_material(mat_config.get("texture_id", 0), specular, ka, kd, ks)
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for light_config in config.lights:
            light_type = light_config.get("type", "").lower()
            intensity = light_config.get("intensity", 1.0)
            if light_type == "ambient":
                self.add_ambient_light(intensity)
            elif light_type == "directional":
                d = light_config.get("direction", [0, 0, 1])
                self.add_directional_light(intensity, (d[0], d[1], d[2]))
            elif light_type == "point":
                p = light_config.get("position", [0, 0, 0])
                self.add_point_light(intensity, (p[0], p[1], p[2]))
            else:
                raise ValueError(f"Unknown light type: {light_type}")

        for position in config.positions:
            self.add_position((position[0], position[1], position[2]))
        for normal in config.normals:
            self.add_normal((normal[0], normal[1], normal[2]))
        for texcoord in config.texcoords:
            self.add_texcoord((texcoord[0], texcoord[1]))

        for tri_config in config.triangles:
            normals = tri_config.get("normals")
            texcoords = tri_config.get("texcoords")
            self.add_triangle(
                tuple(tri_config["positions"]),
                tri_config.get("material_id", 0),
                normals=None if normals is None else tuple(normals),
                texcoords=None if texcoords is None else tuple(texcoords),
            )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization).

        Returns:
            A dictionary representation of the scene.
        """
        config = self.to_config()
        return {
            "materials": config.materials,
            "textures": config.textures,
            "lights": config.lights,
            "positions": config.positions,
            "normals": config.normals,
            "texcoords": config.texcoords,
            "triangles": config.triangles,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Args:
            data: Dictionary with the keys produced by to_dict().
        """
        config = SceneConfig(
            materials=data.get("materials", []),
            textures=data.get("textures", []),
            lights=data.get("lights", []),
            positions=data.get("positions", []),
            normals=data.get("normals", []),
            texcoords=data.get("texcoords", []),
            triangles=data.get("triangles", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_triangles() -> int:
        """Get the maximum number of triangles supported."""
        return MAX_TRIANGLES

    @staticmethod
    def get_max_vertices() -> int:
        """Get the maximum number of vertex positions supported."""
        return MAX_VERTICES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

    @staticmethod
    def get_max_textures() -> int:
        """Get the maximum number of textures supported."""
        return MAX_TEXTURES

    @staticmethod
    def get_max_lights() -> int:
        """Get the maximum number of lights supported."""
        return MAX_LIGHTS
