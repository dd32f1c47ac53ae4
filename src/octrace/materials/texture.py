"""Texture surfaces stored in a shared texel pool.

All textures live back to back in one flat RGB u8 field. A texture is a
(offset, width, height) window into that pool; texel (x, y) of texture i is
texels[offset_i + y * width_i + x], with row y = 0 being the first row of
the source image.

Sampling is nearest-texel with wrap-around addressing: a coordinate outside
[0, 1) repeats the texture instead of reading out of bounds.

    x = floor(s * width)  mod width
    y = floor(t * height) mod height

Image decoding stays with Pillow; this module only accepts decoded arrays
or PIL images.

Example:
    >>> import numpy as np
    >>> from src.octrace.materials.texture import add_texture
    >>> checker = np.zeros((2, 2, 3), dtype=np.uint8)
    >>> checker[0, 0] = checker[1, 1] = 255
    >>> texture_id = add_texture(checker)
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm
from PIL import Image

logger = logging.getLogger(__name__)

# Type alias for RGB colors (0-255 in float)
vec3 = tm.vec3
vec2 = tm.vec2

# Maximum number of textures and total texels across all textures
MAX_TEXTURES = 64
MAX_TEXELS = 1 << 22

# Texel pool and per-texture windows
texels = ti.Vector.field(3, dtype=ti.u8, shape=MAX_TEXELS)
texture_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())
num_texels = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures from the pool.

    Resets the counts to zero. Existing texel data is overwritten when new
    textures are added.
    """
    num_textures[None] = 0
    num_texels[None] = 0


def get_texture_count() -> int:
    """Get the number of textures in the pool."""
    return int(num_textures[None])


def get_texture_size(texture_id: int) -> tuple[int, int]:
    """Get the (width, height) of a texture."""
    if not 0 <= texture_id < get_texture_count():
        raise ValueError(f"Unknown texture id {texture_id}")
    return int(texture_widths[texture_id]), int(texture_heights[texture_id])


def to_rgb8(image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Convert a decoded image array to (H, W, 3) uint8.

    Accepts uint8 arrays with 1, 3 or 4 channels (alpha is dropped) and
    floating point arrays in [0, 1].

    Raises:
        ValueError: If the array is not a 2D grayscale or RGB(A) image.
    """
    arr = np.asarray(image)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    if arr.ndim != 3 or arr.shape[2] not in (1, 3, 4):
        raise ValueError(f"Expected an (H, W), (H, W, 3) or (H, W, 4) image, got shape {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ValueError(f"Texture must not be empty, got shape {arr.shape}")

    if np.issubdtype(arr.dtype, np.floating):
        arr = np.clip(arr, 0.0, 1.0) * 255.0
    arr = np.clip(arr, 0, 255).astype(np.uint8)

    if arr.shape[2] == 1:
        arr = np.repeat(arr, 3, axis=2)
    return np.ascontiguousarray(arr[:, :, :3])


@ti.kernel
def _upload_texels(src: ti.types.ndarray(), offset: ti.i32, width: ti.i32, height: ti.i32):
    for y, x in ti.ndrange(height, width):
        for k in ti.static(range(3)):
            texels[offset + y * width + x][k] = src[y, x, k]


def add_texture(image: npt.ArrayLike) -> int:
    """Add a decoded image to the texture pool.

    Args:
        image: Array of shape (H, W), (H, W, 3) or (H, W, 4); uint8 values
            in [0, 255] or floats in [0, 1]. Row 0 is the first row.

    Returns:
        The texture id.

    Raises:
        ValueError: If the image has an unsupported shape.
        RuntimeError: If MAX_TEXTURES or MAX_TEXELS is exceeded.
    """
    rgb = to_rgb8(image)
    height, width = rgb.shape[:2]

    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    offset = num_texels[None]
    if offset + width * height > MAX_TEXELS:
        raise RuntimeError(f"Maximum number of texels ({MAX_TEXELS}) exceeded")

    _upload_texels(rgb, offset, width, height)
    texture_offsets[idx] = offset
    texture_widths[idx] = width
    texture_heights[idx] = height
    num_texels[None] = offset + width * height
    num_textures[None] = idx + 1
    logger.debug("Added texture %d (%dx%d)", idx, width, height)
    return idx


def add_texture_from_image(image: Image.Image) -> int:
    """Add a PIL image to the texture pool, converted to RGB."""
    return add_texture(np.asarray(image.convert("RGB")))


@ti.func
def wrap_index(i: ti.i32, n: ti.i32) -> ti.i32:
    """Wrap an integer index into [0, n), also for negative i."""
    return ((i % n) + n) % n


@ti.func
def sample_texture(texture_id: ti.i32, uv: vec2) -> vec3:
    """Sample the nearest texel of a texture.

    Args:
        texture_id: The id returned by add_texture.
        uv: Texture coordinates; values outside [0, 1) wrap around.

    Returns:
        The texel color as floats in [0, 255].
    """
    width = texture_widths[texture_id]
    height = texture_heights[texture_id]
    x = wrap_index(ti.cast(ti.floor(uv[0] * width), ti.i32), width)
    y = wrap_index(ti.cast(ti.floor(uv[1] * height), ti.i32), height)
    texel = texels[texture_offsets[texture_id] + y * width + x]
    return vec3(ti.cast(texel[0], ti.f32), ti.cast(texel[1], ti.f32), ti.cast(texel[2], ti.f32))
