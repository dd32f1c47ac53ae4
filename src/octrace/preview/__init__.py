"""Preview module for output and visualization.

Components:
    display: Matplotlib-based preview and side-by-side comparison
    export: PNG export and loading via Pillow

Example:
    >>> from src.octrace.preview import show_preview, save_png
    >>> renderer.render()
    >>> show_preview(renderer)
    >>> save_png(renderer, "output.png")
"""

from src.octrace.preview.display import (
    as_uint8_image,
    show_comparison,
    show_preview,
)
from src.octrace.preview.export import (
    compute_rmse,
    load_png,
    save_png,
    save_png_from_array,
)

__all__ = [
    # Display functions
    "as_uint8_image",
    "show_preview",
    "show_comparison",
    # Export functions
    "save_png",
    "save_png_from_array",
    "load_png",
    "compute_rmse",
]
