"""Light sources used by the shading model.

Three variants are supported, stored in parallel fields:

    AMBIENT:     intensity only, lights every surface equally
    DIRECTIONAL: intensity and a direction pointing toward the light
    POINT:       intensity and a position

Intensities are scalar multipliers of the surface color; their sum over all
lights may exceed 1, in which case shaded colors are clamped.

Example:
    >>> from src.octrace.materials.lights import add_ambient_light, add_point_light
    >>> add_ambient_light(0.2)
    0
    >>> add_point_light(0.6, (2.0, 1.0, 0.0))
    1
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

vec3 = tm.vec3


class LightType(IntEnum):
    """Enumeration of light variants."""

    AMBIENT = 0
    DIRECTIONAL = 1
    POINT = 2


# Maximum number of lights in the scene
MAX_LIGHTS = 16

# Light storage: Structure of Arrays layout
light_types = ti.field(dtype=ti.i32, shape=MAX_LIGHTS)
light_intensities = ti.field(dtype=ti.f32, shape=MAX_LIGHTS)
# Direction toward the light for DIRECTIONAL, position for POINT
light_vectors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_LIGHTS)
num_lights = ti.field(dtype=ti.i32, shape=())


def clear_lights() -> None:
    """Remove all lights."""
    num_lights[None] = 0


def get_light_count() -> int:
    """Get the number of lights in the scene."""
    return int(num_lights[None])


def _add_light(light_type: LightType, intensity: float, vector: tuple[float, float, float]) -> int:
    if intensity < 0.0:
        raise ValueError(f"Light intensity must be non-negative, got {intensity}")
    idx = num_lights[None]
    if idx >= MAX_LIGHTS:
        raise RuntimeError(f"Maximum number of lights ({MAX_LIGHTS}) exceeded")
    light_types[idx] = int(light_type)
    light_intensities[idx] = intensity
    light_vectors[idx] = vec3(vector[0], vector[1], vector[2])
    num_lights[None] = idx + 1
    return idx


def add_ambient_light(intensity: float) -> int:
    """Add an ambient light.

    Returns:
        The index of the added light.

    Raises:
        ValueError: If intensity is negative.
        RuntimeError: If the maximum number of lights is exceeded.
    """
    return _add_light(LightType.AMBIENT, intensity, (0.0, 0.0, 0.0))


def add_directional_light(intensity: float, direction: tuple[float, float, float]) -> int:
    """Add a directional light.

    Args:
        intensity: Light intensity (non-negative).
        direction: Direction from the surface toward the light. Need not be
            normalized, but must not be zero.

    Returns:
        The index of the added light.

    Raises:
        ValueError: If intensity is negative or direction is zero.
        RuntimeError: If the maximum number of lights is exceeded.
    """
    if np.linalg.norm(np.asarray(direction, dtype=np.float64)) == 0.0:
        raise ValueError("Directional light direction must not be zero")
    return _add_light(LightType.DIRECTIONAL, intensity, direction)


def add_point_light(intensity: float, position: tuple[float, float, float]) -> int:
    """Add a point light at a position.

    Returns:
        The index of the added light.

    Raises:
        ValueError: If intensity is negative.
        RuntimeError: If the maximum number of lights is exceeded.
    """
    return _add_light(LightType.POINT, intensity, position)
