"""Image export utilities for rendered images.

Supported formats:
    - PNG (8-bit RGB via Pillow)

Example:
    >>> from src.octrace.preview.export import save_png
    >>> renderer.render()
    >>> save_png(renderer, "output.png")
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from src.octrace.preview.display import as_uint8_image

if TYPE_CHECKING:
    from src.octrace.core.renderer import Renderer


def save_png(renderer: Renderer, filepath: str | Path, *, scale: int = 1) -> None:
    """Save the renderer's last image as a PNG file.

    Args:
        renderer: A Renderer that has completed render().
        filepath: Output file path (should end in .png).
        scale: Integer upscaling factor (nearest neighbor), handy for tiny
            test renders.

    Raises:
        RuntimeError: If the renderer has no completed image.
    """
    save_png_from_array(as_uint8_image(renderer), filepath, scale=scale)


def save_png_from_array(image: npt.ArrayLike, filepath: str | Path, *, scale: int = 1) -> None:
    """Save an (H, W, 3) array as a PNG file.

    Args:
        image: uint8 array in [0, 255], or float array in [0, 1].
        filepath: Output file path (should end in .png).
        scale: Integer upscaling factor (nearest neighbor).

    Raises:
        ValueError: If the array is not an image or scale < 1.
    """
    if scale < 1:
        raise ValueError(f"scale must be at least 1, got {scale}")
    image_uint8 = as_uint8_image(image)
    if scale > 1:
        image_uint8 = np.repeat(np.repeat(image_uint8, scale, axis=0), scale, axis=1)
    PILImage.fromarray(image_uint8).save(filepath)


def load_png(filepath: str | Path) -> npt.NDArray[np.uint8]:
    """Load an image file as an (H, W, 3) uint8 array."""
    with PILImage.open(filepath) as img:
        return np.asarray(img.convert("RGB")).copy()


def compute_rmse(image_a: npt.ArrayLike, image_b: npt.ArrayLike) -> float:
    """Compute root mean squared error between two images.

    Args:
        image_a: First image array.
        image_b: Second image array (must have same shape as image_a).

    Returns:
        RMSE value in the images' own units (lower is more similar).

    Raises:
        ValueError: If image shapes don't match.
    """
    a = np.asarray(image_a, dtype=np.float64)
    b = np.asarray(image_b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError(f"Image shapes must match: {a.shape} vs {b.shape}")
    return float(np.sqrt(np.mean((a - b) ** 2)))
