"""Shading model: surface attributes, lighting and final pixel color.

Given the closest hit of a camera ray, shading proceeds in four steps:

1. Normal: barycentric interpolation of the triangle's vertex normals, or
   the flat face normal when the triangle has no normals. The normal is
   flipped to face the incoming ray.
2. Base color: the material color (FLAT), or the nearest texel at the
   interpolated texture coordinate (TEXTURED).
3. Intensity: an RGB sum over all lights of

       ambient:  ka * I
       diffuse:  kd * I * (n . l) / (|n| |l|)             if n . l > 0
       specular: ks * I * ((r . v) / (|r| |v|)) ** s      if s > 0 and r . v > 0

   with l pointing toward the light, v toward the viewer and
   r = 2 n (n . l) - l the mirror of l about n. Directional and point
   lights contribute nothing when a shadow ray toward them is blocked.
   ka, kd and ks are the material's per-channel reflection coefficients.
4. Color = base * intensity per channel, clamped to [0, 255].

Example:
    >>> # Within a Taichi kernel, after intersect_scene:
    >>> # color = shade_hit(rec, ray_origin, ray_direction)
"""

import taichi as ti
import taichi.math as tm

from src.octrace.core.ray import T_MAX, mirror_about_normal, normalize
from src.octrace.geometry.triangle import TriangleHit, barycentric_mix, triangle_normal
from src.octrace.materials.lights import (
    LightType,
    light_intensities,
    light_types,
    light_vectors,
    num_lights,
)
from src.octrace.materials.material import Material, MaterialKind, get_material
from src.octrace.materials.texture import sample_texture
from src.octrace.scene.geometry import (
    ABSENT_INDEX,
    get_triangle_vertices,
    normals,
    texcoords,
    triangle_materials,
    triangle_normals,
    triangle_texcoords,
)
from src.octrace.scene.intersection import intersect_scene_any

vec3 = tm.vec3
vec2 = tm.vec2

# Offset of shadow ray origins along the normal, to avoid self-shadowing
SHADOW_BIAS = 1e-4

# Shadow rays toward point lights end at the light (t = 1)
POINT_LIGHT_T_MAX = 1.0

# 1 = cast shadow rays, 0 = every light reaches every surface
_shadows_enabled = ti.field(dtype=ti.i32, shape=())


def set_shadows_enabled(enabled: bool) -> None:
    """Enable or disable hard shadows."""
    _shadows_enabled[None] = 1 if enabled else 0


def get_shadows_enabled() -> bool:
    """Whether shadow rays are cast."""
    return _shadows_enabled[None] == 1


# =============================================================================
# Surface attributes
# =============================================================================


@ti.func
def surface_normal(rec: TriangleHit, ray_direction: vec3) -> vec3:
    """Compute the shading normal at a hit, facing the incoming ray.

    Args:
        rec: A hit record with hit == 1.
        ray_direction: Direction of the ray that produced the hit.

    Returns:
        A unit normal with dot(normal, ray_direction) <= 0.
    """
    idx = triangle_normals[rec.triangle]
    n = vec3(0.0, 0.0, 0.0)
    if idx[0] == ABSENT_INDEX or idx[1] == ABSENT_INDEX or idx[2] == ABSENT_INDEX:
        v0, v1, v2 = get_triangle_vertices(rec.triangle)
        n = triangle_normal(v0, v1, v2)
    else:
        n = normalize(barycentric_mix(normals[idx[0]], normals[idx[1]], normals[idx[2]], rec.u, rec.v))
    if tm.dot(n, ray_direction) > 0.0:
        n = -n
    return n


@ti.func
def surface_texcoord(rec: TriangleHit) -> vec2:
    """Interpolate the texture coordinate at a hit.

    Triangles without texture coordinates map to (0, 0).
    """
    idx = triangle_texcoords[rec.triangle]
    uv = vec2(0.0, 0.0)
    if idx[0] != ABSENT_INDEX and idx[1] != ABSENT_INDEX and idx[2] != ABSENT_INDEX:
        uv = barycentric_mix(texcoords[idx[0]], texcoords[idx[1]], texcoords[idx[2]], rec.u, rec.v)
    return uv


@ti.func
def surface_color(rec: TriangleHit) -> vec3:
    """Get the base color at a hit, as floats in [0, 255]."""
    material = get_material(triangle_materials[rec.triangle])
    color = material.color
    if material.kind == int(MaterialKind.TEXTURED):
        color = sample_texture(material.texture_id, surface_texcoord(rec))
    return color


# =============================================================================
# Lighting
# =============================================================================


@ti.func
def diffuse_term(intensity: ti.f32, normal: vec3, to_light: vec3) -> ti.f32:
    """Lambertian contribution of one light."""
    result = 0.0
    n_dot_l = tm.dot(normal, to_light)
    if n_dot_l > 0.0:
        result = intensity * n_dot_l / (tm.length(normal) * tm.length(to_light))
    return result


@ti.func
def specular_term(intensity: ti.f32, specular: ti.f32, normal: vec3, to_viewer: vec3, to_light: vec3) -> ti.f32:
    """Phong highlight of one light. Zero when specular is 0."""
    result = 0.0
    if specular > 0.0:
        r = mirror_about_normal(to_light, normal)
        r_dot_v = tm.dot(r, to_viewer)
        if r_dot_v > 0.0:
            result = intensity * (r_dot_v / (tm.length(r) * tm.length(to_viewer))) ** specular
    return result


@ti.func
def compute_lighting(point: vec3, normal: vec3, to_viewer: vec3, material: Material) -> vec3:
    """Sum the intensity of all lights at a surface point, per channel.

    Args:
        point: The hit point.
        normal: Unit normal facing the viewer.
        to_viewer: Direction from the point toward the viewer.
        material: The surface material (specular exponent and ka, kd, ks).

    Returns:
        The total RGB light intensity (components may exceed 1).
    """
    total = vec3(0.0, 0.0, 0.0)
    shadow_origin = point + SHADOW_BIAS * normal
    for i in range(num_lights[None]):
        kind = light_types[i]
        intensity = light_intensities[i]
        if kind == int(LightType.AMBIENT):
            total += material.ka * intensity
        else:
            to_light = light_vectors[i]
            shadow_t_max = T_MAX
            if kind == int(LightType.POINT):
                to_light = light_vectors[i] - point
                shadow_t_max = POINT_LIGHT_T_MAX

            blocked = 0
            if _shadows_enabled[None] == 1:
                shadow_direction = to_light
                if kind == int(LightType.POINT):
                    shadow_direction = light_vectors[i] - shadow_origin
                blocked = intersect_scene_any(shadow_origin, shadow_direction, shadow_t_max)

            if blocked == 0:
                total += material.kd * diffuse_term(intensity, normal, to_light)
                total += material.ks * specular_term(intensity, material.specular, normal, to_viewer, to_light)
    return total


@ti.func
def shade_hit(rec: TriangleHit, ray_origin: vec3, ray_direction: vec3) -> vec3:
    """Compute the color of a camera ray hit.

    Args:
        rec: The closest hit, with hit == 1.
        ray_origin: Origin of the camera ray.
        ray_direction: Direction of the camera ray.

    Returns:
        RGB color clamped to [0, 255].
    """
    point = ray_origin + rec.t * ray_direction
    normal = surface_normal(rec, ray_direction)
    material = get_material(triangle_materials[rec.triangle])
    intensity = compute_lighting(point, normal, -ray_direction, material)
    color = surface_color(rec) * intensity
    return tm.clamp(color, 0.0, 255.0)
