"""Camera module for view and ray generation.

Components:
    pinhole: Pinhole (perspective) camera with one ray per pixel center

Camera responsibilities:
    - Transform pixel or (u, v) image coordinates to world-space rays
    - Support look-at positioning with an up vector
    - Derive the aspect ratio from the output image size

Ray generation uses normalized device coordinates:
    u in [0, 1]: left to right across image
    v in [0, 1]: bottom to top across image
Pixel rows are counted from the top.
"""

from .pinhole import (
    PinholeCamera,
    get_camera_basis,
    get_camera_info,
    get_camera_origin,
    get_pixel_ray,
    get_ray,
    is_camera_ready,
    reset_camera,
    setup_camera,
)

__all__ = [
    "PinholeCamera",
    "setup_camera",
    "reset_camera",
    "is_camera_ready",
    "get_ray",
    "get_pixel_ray",
    "get_camera_origin",
    "get_camera_basis",
    "get_camera_info",
]
