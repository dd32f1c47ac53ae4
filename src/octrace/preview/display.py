"""Matplotlib-based preview display for rendered images.

The renderer produces final 8-bit colors, so display needs no tone mapping:
the pixel buffer is handed to Matplotlib as is.

Example:
    >>> from src.octrace.preview.display import show_preview
    >>> image = renderer.render()
    >>> show_preview(renderer)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

if TYPE_CHECKING:
    from src.octrace.core.renderer import Renderer


def as_uint8_image(source: Renderer | npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Get a (H, W, 3) uint8 image from a renderer or an array.

    Float arrays are taken to be in [0, 1].

    Raises:
        RuntimeError: If a renderer has not completed a render.
        ValueError: If the array is not an (H, W, 3) image.
    """
    if hasattr(source, "render"):
        image = source.image
        if image is None:
            raise RuntimeError("Renderer has no completed image. Call render() first.")
        return image

    image = np.asarray(source)
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {image.shape}")
    if np.issubdtype(image.dtype, np.floating):
        return (np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)
    return np.clip(image, 0, 255).astype(np.uint8)


def show_preview(
    source: Renderer | npt.ArrayLike,
    *,
    title: str | None = None,
    figsize: tuple[float, float] = (8, 8),
    block: bool = True,
) -> None:
    """Display a rendered image as a Matplotlib figure.

    Args:
        source: A Renderer with a completed image, or an (H, W, 3) array.
        title: Custom title (default shows the image size).
        figsize: Figure size in inches (width, height).
        block: Whether to block execution until figure is closed.
    """
    import matplotlib.pyplot as plt

    image = as_uint8_image(source)

    fig, ax = plt.subplots(1, 1, figsize=figsize)
    ax.imshow(image, interpolation="nearest")
    ax.axis("off")
    if title is None:
        title = f"Render Preview - {image.shape[1]}x{image.shape[0]}"
    ax.set_title(title)

    plt.tight_layout()
    plt.show(block=block)


def show_comparison(
    image_a: npt.ArrayLike,
    image_b: npt.ArrayLike,
    *,
    labels: tuple[str, str] = ("A", "B"),
    diff_scale: float = 10.0,
    figsize: tuple[float, float] = (16, 6),
    block: bool = True,
) -> float:
    """Display two images side by side with their amplified difference.

    Useful for checking octree and brute-force renders against each other.

    Args:
        image_a: First image (H, W, 3).
        image_b: Second image (H, W, 3).
        labels: Labels for the two images.
        diff_scale: Scale factor for difference amplification.
        figsize: Figure size in inches.
        block: Whether to block execution until figure is closed.

    Returns:
        RMSE between the two images, in [0, 1] units.
    """
    import matplotlib.pyplot as plt

    display_a = as_uint8_image(image_a).astype(np.float64) / 255.0
    display_b = as_uint8_image(image_b).astype(np.float64) / 255.0
    if display_a.shape != display_b.shape:
        raise ValueError(f"Image shapes must match: {display_a.shape} vs {display_b.shape}")

    diff = display_a - display_b
    rmse = float(np.sqrt(np.mean(diff**2)))
    diff_amplified = np.clip(np.abs(diff) * diff_scale, 0.0, 1.0)

    fig, axes = plt.subplots(1, 3, figsize=figsize)

    axes[0].imshow(display_a, interpolation="nearest")
    axes[0].set_title(labels[0])
    axes[0].axis("off")

    axes[1].imshow(display_b, interpolation="nearest")
    axes[1].set_title(labels[1])
    axes[1].axis("off")

    axes[2].imshow(diff_amplified, interpolation="nearest")
    axes[2].set_title(f"Difference ({diff_scale}x) - RMSE: {rmse:.6f}")
    axes[2].axis("off")

    plt.tight_layout()
    plt.show(block=block)

    return rmse
