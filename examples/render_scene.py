#!/usr/bin/env python3
"""Render a small demo scene with the octree ray caster.

The scene is a checkerboard-textured floor made of two triangles and a
flat-shaded tetrahedron standing on it, lit by the default ambient, point
and directional lights.

Usage:
    python -m examples.render_scene [options]

Options:
    --width WIDTH         Image width in pixels (default: 400)
    --height HEIGHT       Image height in pixels (default: 300)
    --output OUTPUT       Output file path (default: scene.png)
    --max-leaf N          Max triangles per octree leaf (default: 8)
    --max-depth N         Max octree depth (default: 8)
    --brute-force         Test every triangle instead of traversing the octree
    --no-shadows          Disable shadow rays
    --threads N           CPU threads for the parallel kernel (default: all)
    --serial              Render on a single thread
    --show                Open a Matplotlib preview after rendering
    --quiet               Suppress progress output

Example:
    python -m examples.render_scene --width 200 --height 150 --show
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

import numpy as np


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a demo scene with the octree ray caster.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=300, help="Image height in pixels (default: 300)")
    parser.add_argument("--output", type=str, default="scene.png", help="Output file path (default: scene.png)")
    parser.add_argument("--max-leaf", type=int, default=8, help="Max triangles per octree leaf (default: 8)")
    parser.add_argument("--max-depth", type=int, default=8, help="Max octree depth (default: 8)")
    parser.add_argument("--brute-force", action="store_true", help="Test every triangle instead of the octree")
    parser.add_argument("--no-shadows", action="store_true", help="Disable shadow rays")
    parser.add_argument("--threads", type=int, default=None, help="CPU threads for the parallel kernel")
    parser.add_argument("--serial", action="store_true", help="Render on a single thread")
    parser.add_argument("--show", action="store_true", help="Open a Matplotlib preview after rendering")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args()


def checkerboard(size: int = 8, cell: int = 8) -> np.ndarray:
    """Create a size x size checkerboard texture with cell-pixel squares."""
    ys, xs = np.indices((size * cell, size * cell)) // cell
    dark = ((xs + ys) % 2).astype(bool)
    image = np.full((size * cell, size * cell, 3), 230, dtype=np.uint8)
    image[dark] = (40, 60, 140)
    return image


def build_demo_scene(scene) -> None:
    """Fill a SceneManager with the demo floor and tetrahedron."""
    floor_texture = scene.add_texture(checkerboard())
    floor = scene.add_textured_material(floor_texture)
    orange = scene.add_flat_material((240, 140, 40), specular=20.0)

    corners = [(-2.0, 0.0, -2.0), (2.0, 0.0, -2.0), (2.0, 0.0, 2.0), (-2.0, 0.0, 2.0)]
    uvs = [(0.0, 0.0), (2.0, 0.0), (2.0, 2.0), (0.0, 2.0)]
    p = [scene.add_position(c) for c in corners]
    t = [scene.add_texcoord(uv) for uv in uvs]
    n = scene.add_normal((0.0, 1.0, 0.0))
    scene.add_triangle((p[0], p[2], p[1]), floor, normals=(n, n, n), texcoords=(t[0], t[2], t[1]))
    scene.add_triangle((p[0], p[3], p[2]), floor, normals=(n, n, n), texcoords=(t[0], t[3], t[2]))

    tetra = np.array(
        [[0.0, 1.4, 0.0], [-0.8, 0.0, -0.5], [0.8, 0.0, -0.5], [0.0, 0.0, 0.9]]
    )
    faces = np.array([[0, 2, 1], [0, 3, 2], [0, 1, 3], [1, 2, 3]])
    scene.add_mesh(tetra, faces, orange)


def render_scene(
    width: int = 400,
    height: int = 300,
    output_path: str = "scene.png",
    max_leaf: int = 8,
    max_depth: int = 8,
    use_octree: bool = True,
    shadows: bool = True,
    serial: bool = False,
    show: bool = False,
    quiet: bool = False,
) -> Path:
    """Build the demo scene, render it and save a PNG.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.octrace.camera.pinhole import PinholeCamera
    from src.octrace.core.renderer import RenderConfig, Renderer
    from src.octrace.preview.display import show_preview
    from src.octrace.preview.export import save_png
    from src.octrace.scene.manager import SceneManager
    from src.octrace.scene.octree import OctreeConfig

    if not quiet:
        print(f"Building demo scene ({width}x{height})...")

    scene = SceneManager()
    build_demo_scene(scene)
    scene.add_default_lights()

    camera = PinholeCamera(lookfrom=(0.0, 2.0, 4.5), lookat=(0.0, 0.5, 0.0), vfov=45.0)
    config = RenderConfig(
        width=width,
        height=height,
        octree=OctreeConfig(max_triangles_per_leaf=max_leaf, max_depth=max_depth),
        use_octree=use_octree,
        shadows=shadows,
        serial=serial,
    )
    renderer = Renderer(scene, camera, config)

    start_time = time.time()
    renderer.render()
    total_time = time.time() - start_time

    output_file = Path(output_path)
    save_png(renderer, output_file)

    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    if show:
        show_preview(renderer)

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    from src.octrace.core.runtime import init_taichi

    init_taichi(cpu_max_num_threads=args.threads)

    try:
        render_scene(
            width=args.width,
            height=args.height,
            output_path=args.output,
            max_leaf=args.max_leaf,
            max_depth=args.max_depth,
            use_octree=not args.brute_force,
            shadows=not args.no_shadows,
            serial=args.serial,
            show=args.show,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
