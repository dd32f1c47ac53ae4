"""Pinhole camera model: one primary ray per pixel.

The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view in degrees
- Aspect ratio taken from the output image size, so non-square images are
  not distorted

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

Pixel (px, py) maps to the ray through its center. Row py = 0 is the top of
the image, matching the row-major pixel buffer:

    u = (px + 0.5) / width
    v = 1 - (py + 0.5) / height

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from src.octrace.camera.pinhole import PinholeCamera, setup_camera, get_pixel_ray
    >>>
    >>> camera = PinholeCamera(lookfrom=(0.0, 0.0, 3.0), lookat=(0.0, 0.0, 0.0))
    >>> setup_camera(camera, width=640, height=480)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_pixel_ray(320, 240, 640, 480)
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from src.octrace.core.ray import Ray, make_ray, normalize, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class PinholeCamera:
    """Configuration for a pinhole (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation.
        vfov: Vertical field of view in degrees, in (0, 180).
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 60.0

    def __post_init__(self) -> None:
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov must be in (0, 180) degrees, got {self.vfov}")
        view = np.subtract(self.lookfrom, self.lookat)
        if np.linalg.norm(view) == 0.0:
            raise ValueError("lookfrom and lookat must be different points")
        if np.linalg.norm(np.cross(self.vup, view)) == 0.0:
            raise ValueError("vup must not be parallel to the view direction")


# =============================================================================
# Taichi Fields for Camera State
# =============================================================================

_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport vectors for ray computation
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full width
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full height
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())  # Lower-left of viewport

_camera_ready = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup (Python-side, called once per camera and image size)
# =============================================================================


def setup_camera(camera: PinholeCamera, width: int, height: int) -> None:
    """Initialize camera state for an image size.

    The viewport is a virtual image plane at unit distance from the camera
    whose aspect ratio equals width / height.

    Args:
        camera: Camera configuration with position, orientation, and FOV.
        width: Image width in pixels.
        height: Image height in pixels.

    Raises:
        ValueError: If width or height is not positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image size must be positive, got {width}x{height}")

    theta = math.radians(camera.vfov)
    viewport_height = 2.0 * math.tan(theta / 2.0)
    viewport_width = (width / height) * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    w = lookfrom - lookat
    w = w / np.linalg.norm(w)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)
    v = np.cross(w, u)

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - w - horizontal / 2.0 - vertical / 2.0

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _camera_ready[None] = 1


def reset_camera() -> None:
    """Mark the camera as not set up."""
    _camera_ready[None] = 0


def is_camera_ready() -> bool:
    """Whether setup_camera() has been called."""
    return _camera_ready[None] == 1


# =============================================================================
# Ray Generation (Taichi-compatible)
# =============================================================================


@ti.func
def get_ray(u: ti.f32, v: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (u, v).

    - u = 0: left edge, u = 1: right edge
    - v = 0: bottom edge, v = 1: top edge

    Args:
        u: Horizontal coordinate in [0, 1] (left to right).
        v: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray with origin at the camera position and a normalized direction.
    """
    point_on_viewport = (
        _lower_left_corner[None] + u * _viewport_horizontal[None] + v * _viewport_vertical[None]
    )
    origin = _camera_origin[None]
    return make_ray(origin, normalize(point_on_viewport - origin))


@ti.func
def get_pixel_ray(px: ti.i32, py: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate the ray through the center of pixel (px, py).

    Args:
        px: Column, 0 = left.
        py: Row, 0 = top.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        The primary ray for the pixel.
    """
    u = (ti.cast(px, ti.f32) + 0.5) / ti.cast(width, ti.f32)
    v = 1.0 - (ti.cast(py, ti.f32) + 0.5) / ti.cast(height, ti.f32)
    return get_ray(u, v)


@ti.func
def get_camera_origin() -> vec3:
    """Get the camera origin (position) in world space."""
    return _camera_origin[None]


@ti.func
def get_camera_basis():
    """Get the camera's orthonormal basis vectors.

    Returns:
        A tuple (u, v, w): right, up and backward directions.
    """
    return _camera_u[None], _camera_v[None], _camera_w[None]


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left.
    """
    fields = {
        "origin": _camera_origin,
        "u": _camera_u,
        "v": _camera_v,
        "w": _camera_w,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
    }
    info = {}
    for name, f in fields.items():
        vec = f[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
