"""Renderer: camera rays, scene queries and shading for every pixel.

For each pixel the render kernel generates the camera ray through the pixel
center, finds the closest triangle (octree or brute force), shades the hit
and writes one RGB byte triple into a preallocated pixel buffer. Pixels the
ray misses get the background color.

Pixels are dispatched by Taichi's parallel range-for over (rows, columns).
Every loop iteration writes only its own slot of the buffer, and the scene,
octree, material and texture fields are read-only while a kernel runs, so
the output does not depend on how iterations are scheduled.

A render goes through the states

    IDLE -> BUILDING -> RENDERING -> COMPLETE

If building fails (for example a triangle with an out-of-range index) the
renderer returns to IDLE, re-raises the error and produces no image.

Example:
    >>> from src.octrace.core.runtime import init_taichi
    >>> init_taichi()
    >>> from src.octrace.camera.pinhole import PinholeCamera
    >>> from src.octrace.core.renderer import RenderConfig, Renderer
    >>> from src.octrace.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> red = scene.add_flat_material((255, 0, 0))
    >>> scene.add_flat_triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), red)
    >>> camera = PinholeCamera(lookfrom=(0.3, 0.3, 2.0), lookat=(0.3, 0.3, 0.0))
    >>> image = Renderer(scene, camera, RenderConfig(width=64, height=64)).render()
    >>> image.shape
    (64, 64, 3)
"""


import logging
import time
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from src.octrace.camera.pinhole import PinholeCamera, get_pixel_ray, setup_camera
from src.octrace.core.ray import T_MAX, vec3
from src.octrace.materials.shading import set_shadows_enabled, shade_hit
from src.octrace.scene.intersection import intersect_scene, set_use_octree
from src.octrace.scene.manager import SceneManager
from src.octrace.scene.octree import OctreeConfig

logger = logging.getLogger(__name__)

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Pixel buffer indexed [row, column], row 0 at the top
_pixel_buffer = ti.Vector.field(3, dtype=ti.u8, shape=(MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH))

# Color of pixels whose ray hits nothing (RGB, 0-255)
_background = ti.Vector.field(3, dtype=ti.f32, shape=())


class RenderState(IntEnum):
    """Lifecycle of a Renderer."""

    IDLE = 0
    BUILDING = 1
    RENDERING = 2
    COMPLETE = 3


@dataclass
class RenderConfig:
    """Configuration for a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        background: Color of pixels that hit nothing (RGB, 0-255).
        octree: Octree subdivision parameters.
        use_octree: Traverse the octree (True) or test every triangle (False).
        shadows: Cast shadow rays toward directional and point lights.
        serial: Render on a single thread. Otherwise the parallel kernel runs
            with the thread count fixed by init_taichi.
        rows_per_batch: Launch the frame as bands of this many rows, one
            kernel launch per band. None renders the frame in one launch.
    """

    width: int = 800
    height: int = 800
    background: tuple[int, int, int] = (255, 255, 255)
    octree: OctreeConfig = field(default_factory=OctreeConfig)
    use_octree: bool = True
    shadows: bool = True
    serial: bool = False
    rows_per_batch: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.width <= MAX_IMAGE_WIDTH or not 1 <= self.height <= MAX_IMAGE_HEIGHT:
            raise ValueError(
                f"Image dimensions ({self.width}x{self.height}) must be between 1x1 and "
                f"{MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT}"
            )
        if len(self.background) != 3 or any(not 0 <= c <= 255 for c in self.background):
            raise ValueError(f"Background must be 3 components in [0, 255], got {self.background}")
        if self.rows_per_batch is not None and self.rows_per_batch < 1:
            raise ValueError(f"rows_per_batch must be at least 1, got {self.rows_per_batch}")


# =============================================================================
# Per-pixel work
# =============================================================================


@ti.func
def trace_pixel(px: ti.i32, py: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Compute the color of one pixel.

    Args:
        px: Column, 0 = left.
        py: Row, 0 = top.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        RGB color in [0, 255].
    """
    ray = get_pixel_ray(px, py, width, height)
    rec = intersect_scene(ray.origin, ray.direction, T_MAX)
    color = _background[None]
    if rec.hit == 1:
        color = shade_hit(rec, ray.origin, ray.direction)

    for c in ti.static(range(3)):
        if tm.isnan(color[c]):
            color[c] = 0.0
    return color


@ti.kernel
def _render_rows(row_start: ti.i32, row_end: ti.i32, width: ti.i32, height: ti.i32):
    """Render rows [row_start, row_end) in parallel."""
    for py, px in ti.ndrange((row_start, row_end), width):
        _pixel_buffer[py, px] = ti.cast(trace_pixel(px, py, width, height), ti.u8)


@ti.kernel
def _render_rows_serial(row_start: ti.i32, row_end: ti.i32, width: ti.i32, height: ti.i32):
    """Render rows [row_start, row_end) on a single thread."""
    ti.loop_config(serialize=True)
    for py, px in ti.ndrange((row_start, row_end), width):
        _pixel_buffer[py, px] = ti.cast(trace_pixel(px, py, width, height), ti.u8)


@ti.kernel
def _render_single_pixel(px: ti.i32, py: ti.i32, width: ti.i32, height: ti.i32) -> vec3:
    """Render one pixel without touching the pixel buffer."""
    return trace_pixel(px, py, width, height)


# =============================================================================
# Renderer
# =============================================================================


class Renderer:
    """Renders a scene through a pinhole camera into an RGB image.

    Attributes:
        scene: The scene to render.
        camera: The camera configuration.
        config: Image size and render options.
    """

    def __init__(
        self,
        scene: SceneManager,
        camera: PinholeCamera,
        config: RenderConfig | None = None,
    ) -> None:
        self.scene = scene
        self.camera = camera
        self.config = config or RenderConfig()
        self._state = RenderState.IDLE
        self._image: npt.NDArray[np.uint8] | None = None
        self._built = False

    @property
    def state(self) -> RenderState:
        """The current lifecycle state."""
        return self._state

    @property
    def width(self) -> int:
        return self.config.width

    @property
    def height(self) -> int:
        return self.config.height

    @property
    def image(self) -> npt.NDArray[np.uint8] | None:
        """The last completed image, or None."""
        return self._image

    def build(self) -> None:
        """Validate and upload the scene, build the octree and set up the camera.

        Raises:
            InvalidGeometryError: If a triangle references a missing attribute.
            RuntimeError: If a capacity limit is exceeded.
        """
        self._state = RenderState.BUILDING
        self._image = None
        self._built = False
        start = time.perf_counter()
        try:
            self.scene.build(self.config.octree)
            setup_camera(self.camera, self.config.width, self.config.height)
        except Exception as exc:
            self._state = RenderState.IDLE
            logger.error("Scene build failed, no image will be rendered: %s", exc)
            raise

        _background[None] = vec3(*(float(c) for c in self.config.background))
        set_use_octree(self.config.use_octree)
        set_shadows_enabled(self.config.shadows)
        self._built = True
        logger.info("Build finished in %.3fs", time.perf_counter() - start)

    def _row_bands(self) -> list[tuple[int, int]]:
        height = self.config.height
        step = self.config.rows_per_batch or height
        return [(r, min(r + step, height)) for r in range(0, height, step)]

    def render(self) -> npt.NDArray[np.uint8]:
        """Build the scene and render every pixel.

        Returns:
            The image as a (height, width, 3) uint8 array, row 0 at the top.

        Raises:
            InvalidGeometryError: If the scene is malformed; no image is produced.
        """
        self.build()

        self._state = RenderState.RENDERING
        width, height = self.config.width, self.config.height
        kernel = _render_rows_serial if self.config.serial else _render_rows

        start = time.perf_counter()
        for row_start, row_end in self._row_bands():
            kernel(row_start, row_end, width, height)
        ti.sync()
        elapsed = time.perf_counter() - start

        self._image = _pixel_buffer.to_numpy()[:height, :width].copy()
        self._state = RenderState.COMPLETE
        logger.info(
            "Rendered %dx%d in %.3fs (%s, %s)",
            width,
            height,
            elapsed,
            "octree" if self.config.use_octree else "brute force",
            "serial" if self.config.serial else "parallel",
        )
        return self._image

    def render_pixel(self, px: int, py: int) -> tuple[int, int, int]:
        """Render a single pixel for debugging.

        Args:
            px: Column, 0 = left.
            py: Row, 0 = top.

        Returns:
            The pixel's (R, G, B) as written by render().

        Raises:
            RuntimeError: If build() or render() has not been called.
            ValueError: If the pixel is outside the image.
        """
        if not self._built:
            raise RuntimeError("Renderer is not built. Call build() or render() first.")
        if not (0 <= px < self.config.width and 0 <= py < self.config.height):
            raise ValueError(
                f"Pixel ({px}, {py}) is outside the {self.config.width}x{self.config.height} image"
            )
        color = _render_single_pixel(px, py, self.config.width, self.config.height)
        return (int(color[0]), int(color[1]), int(color[2]))

    def __repr__(self) -> str:
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"state={self._state.name})"
        )
