"""Material table: flat colored and textured surfaces.

A material is a tagged variant stored in parallel fields indexed by
material id:

    FLAT:     color (RGB, 0-255)
    TEXTURED: texture id

Both variants share a specular exponent and three RGB reflection
coefficients in [0, 1] (the Ka, Kd and Ks of an MTL file):

    ka: weights the ambient light per channel
    kd: weights the diffuse term per channel
    ks: weights the specular highlight per channel

All three default to (1, 1, 1). The specular exponent controls the Phong
highlight; 0 disables it.

Example:
    >>> from src.octrace.materials.material import add_flat_material
    >>> red = add_flat_material((255, 0, 0))
    >>> shiny_gray = add_flat_material((128, 128, 128), specular=32.0)
    >>> blue_highlight = add_flat_material((255, 255, 255), specular=16.0, ks=(0.2, 0.2, 1.0))
"""

from enum import IntEnum

import taichi as ti
import taichi.math as tm

from src.octrace.materials.texture import get_texture_count

# Type alias for RGB colors (0-255 in float)
vec3 = tm.vec3

# Reflection coefficients that leave every channel unchanged
UNIT_COEFFICIENT = (1.0, 1.0, 1.0)


class MaterialKind(IntEnum):
    """Enumeration of material variants."""

    FLAT = 0
    TEXTURED = 1


@ti.dataclass
class Material:
    """Material properties fetched for shading.

    Attributes:
        kind: MaterialKind value.
        color: Base color for FLAT materials (RGB, 0-255).
        specular: Specular exponent; 0 disables the specular term.
        texture_id: Texture id for TEXTURED materials, -1 otherwise.
        ka: Ambient reflection coefficient per channel.
        kd: Diffuse reflection coefficient per channel.
        ks: Specular reflection coefficient per channel.
    """

    kind: ti.i32
    color: vec3
    specular: ti.f32
    texture_id: ti.i32
    ka: vec3
    kd: vec3
    ks: vec3


# Maximum number of materials in the scene
MAX_MATERIALS = 1024

# Material storage: Structure of Arrays layout
material_kinds = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_speculars = ti.field(dtype=ti.f32, shape=MAX_MATERIALS)
material_texture_ids = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
material_ka = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_kd = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
material_ks = ti.Vector.field(3, dtype=ti.f32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def clear_materials() -> None:
    """Clear all materials.

    Resets the material count to zero. Existing data in the fields will be
    overwritten when new materials are added.
    """
    num_materials[None] = 0


def get_material_count() -> int:
    """Get the number of materials in the table."""
    return int(num_materials[None])


def _validate_specular(specular: float) -> None:
    if specular < 0.0:
        raise ValueError(f"Specular exponent must be non-negative, got {specular}")


def _validate_coefficient(name: str, coefficient: tuple[float, float, float]) -> None:
    if len(coefficient) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(coefficient)}")
    for i, component in enumerate(coefficient):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"{name} component {i} = {component} is outside [0, 1]")


def _append_material(
    kind: MaterialKind,
    color: tuple[float, float, float],
    specular: float,
    texture_id: int,
    ka: tuple[float, float, float],
    kd: tuple[float, float, float],
    ks: tuple[float, float, float],
) -> int:
    _validate_specular(specular)
    _validate_coefficient("ka", ka)
    _validate_coefficient("kd", kd)
    _validate_coefficient("ks", ks)

    idx = num_materials[None]
    if idx >= MAX_MATERIALS:
        raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")
    material_kinds[idx] = int(kind)
    material_colors[idx] = vec3(color[0], color[1], color[2])
    material_speculars[idx] = specular
    material_texture_ids[idx] = texture_id
    material_ka[idx] = vec3(ka[0], ka[1], ka[2])
    material_kd[idx] = vec3(kd[0], kd[1], kd[2])
    material_ks[idx] = vec3(ks[0], ks[1], ks[2])
    num_materials[None] = idx + 1
    return idx


def add_flat_material(
    color: tuple[float, float, float],
    specular: float = 0.0,
    ka: tuple[float, float, float] = UNIT_COEFFICIENT,
    kd: tuple[float, float, float] = UNIT_COEFFICIENT,
    ks: tuple[float, float, float] = UNIT_COEFFICIENT,
) -> int:
    """Add a flat colored material.

    Args:
        color: Base color as (R, G, B), each component in [0, 255].
        specular: Specular exponent; 0 disables the specular term.
        ka: Ambient reflection coefficient per channel, in [0, 1].
        kd: Diffuse reflection coefficient per channel, in [0, 1].
        ks: Specular reflection coefficient per channel, in [0, 1].

    Returns:
        The material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If a color component is outside [0, 255], a coefficient
            component is outside [0, 1], or specular < 0.
    """
    if len(color) != 3:
        raise ValueError(f"Color must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0 or component > 255.0:
            raise ValueError(f"Color component {i} = {component} is outside [0, 255]")
    return _append_material(MaterialKind.FLAT, color, specular, -1, ka, kd, ks)


def add_textured_material(
    texture_id: int,
    specular: float = 0.0,
    ka: tuple[float, float, float] = UNIT_COEFFICIENT,
    kd: tuple[float, float, float] = UNIT_COEFFICIENT,
    ks: tuple[float, float, float] = UNIT_COEFFICIENT,
) -> int:
    """Add a material whose base color is sampled from a texture.

    Args:
        texture_id: Id of a texture previously added with add_texture.
        specular: Specular exponent; 0 disables the specular term.
        ka: Ambient reflection coefficient per channel, in [0, 1].
        kd: Diffuse reflection coefficient per channel, in [0, 1].
        ks: Specular reflection coefficient per channel, in [0, 1].

    Returns:
        The material id.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If the texture id is unknown, a coefficient component is
            outside [0, 1], or specular < 0.
    """
    if not 0 <= texture_id < get_texture_count():
        raise ValueError(f"Unknown texture id {texture_id} ({get_texture_count()} textures loaded)")
    return _append_material(MaterialKind.TEXTURED, (0.0, 0.0, 0.0), specular, texture_id, ka, kd, ks)


def get_material_kind(material_id: int) -> MaterialKind:
    """Get the variant of a material from Python scope."""
    if not 0 <= material_id < get_material_count():
        raise ValueError(f"Unknown material id {material_id}")
    return MaterialKind(int(material_kinds[material_id]))


@ti.func
def get_material(material_id: ti.i32) -> Material:
    """Fetch a material record by id."""
    return Material(
        kind=material_kinds[material_id],
        color=material_colors[material_id],
        specular=material_speculars[material_id],
        texture_id=material_texture_ids[material_id],
        ka=material_ka[material_id],
        kd=material_kd[material_id],
        ks=material_ks[material_id],
    )
