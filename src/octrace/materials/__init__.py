"""Materials module: material table, textures, lights and shading.

Components:
    texture: Shared texel pool with nearest, wrap-around sampling
    material: FLAT / TEXTURED material table
    lights: Ambient, directional and point lights
    shading: Normal and color lookup, Phong-style lighting, hard shadows

Like the geometry store, everything is kept in preallocated Taichi fields
and read by @ti.func code inside the render kernels.
"""

from .texture import (
    MAX_TEXELS,
    MAX_TEXTURES,
    add_texture,
    add_texture_from_image,
    clear_textures,
    get_texture_count,
    get_texture_size,
    sample_texture,
    to_rgb8,
)
from .material import (
    MAX_MATERIALS,
    UNIT_COEFFICIENT,
    Material,
    MaterialKind,
    add_flat_material,
    add_textured_material,
    clear_materials,
    get_material,
    get_material_count,
    get_material_kind,
)
from .lights import (
    MAX_LIGHTS,
    LightType,
    add_ambient_light,
    add_directional_light,
    add_point_light,
    clear_lights,
    get_light_count,
)
from .shading import (
    SHADOW_BIAS,
    compute_lighting,
    diffuse_term,
    get_shadows_enabled,
    set_shadows_enabled,
    shade_hit,
    specular_term,
    surface_color,
    surface_normal,
)

__all__ = [
    # Textures
    "MAX_TEXTURES",
    "MAX_TEXELS",
    "add_texture",
    "add_texture_from_image",
    "clear_textures",
    "get_texture_count",
    "get_texture_size",
    "sample_texture",
    "to_rgb8",
    # Materials
    "MAX_MATERIALS",
    "Material",
    "UNIT_COEFFICIENT",
    "MaterialKind",
    "add_flat_material",
    "add_textured_material",
    "clear_materials",
    "get_material",
    "get_material_count",
    "get_material_kind",
    # Lights
    "MAX_LIGHTS",
    "LightType",
    "add_ambient_light",
    "add_directional_light",
    "add_point_light",
    "clear_lights",
    "get_light_count",
    # Shading
    "SHADOW_BIAS",
    "shade_hit",
    "compute_lighting",
    "diffuse_term",
    "specular_term",
    "surface_color",
    "surface_normal",
    "set_shadows_enabled",
    "get_shadows_enabled",
]
