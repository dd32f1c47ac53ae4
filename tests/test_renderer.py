"""Tests for the renderer.

Tests cover:
- RenderConfig validation
- Render states and build failures
- End-to-end images: a lit triangle, depth ordering, empty scenes and
  textured triangles
- Row 0 at the top of the image
- Identical output for serial, parallel and banded renders, and for octree
  and brute-force traversal
- Single-pixel rendering
"""

import logging

import numpy as np
import pytest

RED = [255, 0, 0]
GREEN = [0, 255, 0]
BLUE = [0, 0, 255]
WHITE = [255, 255, 255]


def _camera():
    from src.octrace.camera.pinhole import PinholeCamera

    return PinholeCamera(lookfrom=(0.3, 0.3, 2.0), lookat=(0.3, 0.3, 0.0), vfov=60.0)


def _red_triangle_scene(scene):
    red = scene.add_flat_material((255, 0, 0))
    scene.add_flat_triangle((0, 0, 0), (1, 0, 0), (0, 1, 0), red)
    scene.add_ambient_light(0.2)
    scene.add_directional_light(0.8, (0.0, 0.0, 1.0))


def _render(scene, **config):
    from src.octrace.core.renderer import RenderConfig, Renderer

    config.setdefault("width", 33)
    config.setdefault("height", 33)
    renderer = Renderer(scene, _camera(), RenderConfig(**config))
    return renderer, renderer.render()


def _soup_scene(scene):
    """Random triangles with a few materials and shadow-casting lights."""
    rng = np.random.default_rng(7)
    materials = [
        scene.add_flat_material((200, 50, 50), specular=16.0),
        scene.add_flat_material((50, 200, 50)),
        scene.add_flat_material((50, 50, 200), specular=4.0),
    ]
    centers = rng.uniform(-1.0, 1.0, size=(150, 1, 3))
    corners = centers + rng.uniform(-0.3, 0.3, size=(150, 3, 3))
    for i, tri in enumerate(corners):
        scene.add_flat_triangle(tuple(tri[0]), tuple(tri[1]), tuple(tri[2]), materials[i % 3])
    scene.add_ambient_light(0.15)
    scene.add_point_light(0.6, (1.5, 2.0, 2.5))
    scene.add_directional_light(0.4, (-1.0, 1.0, 0.5))


class TestRenderConfig:
    """Tests for RenderConfig validation."""

    def test_defaults(self):
        from src.octrace.core.renderer import RenderConfig

        config = RenderConfig()
        assert config.background == (255, 255, 255)
        assert config.use_octree
        assert config.shadows
        assert not config.serial

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"width": 0},
            {"height": 0},
            {"width": 5000},
            {"background": (256, 0, 0)},
            {"background": (0, 0)},
            {"rows_per_batch": 0},
        ],
    )
    def test_invalid(self, kwargs):
        from src.octrace.core.renderer import RenderConfig

        with pytest.raises(ValueError):
            RenderConfig(**kwargs)


class TestRenderStates:
    """Tests for the render lifecycle."""

    def test_state_transitions(self, fresh_scene):
        from src.octrace.core.renderer import RenderConfig, Renderer, RenderState

        _red_triangle_scene(fresh_scene)
        renderer = Renderer(fresh_scene, _camera(), RenderConfig(width=8, height=8))
        assert renderer.state == RenderState.IDLE
        assert renderer.image is None

        image = renderer.render()
        assert renderer.state == RenderState.COMPLETE
        assert renderer.image is image
        assert "COMPLETE" in repr(renderer)

    def test_build_failure_produces_no_image(self, fresh_scene):
        from src.octrace.core.renderer import RenderConfig, Renderer, RenderState
        from src.octrace.scene.geometry import InvalidGeometryError

        mat = fresh_scene.add_flat_material((1, 2, 3))
        fresh_scene.add_position((0, 0, 0))
        fresh_scene.add_triangle((0, 0, 3), mat)
        renderer = Renderer(fresh_scene, _camera(), RenderConfig(width=8, height=8))

        with pytest.raises(InvalidGeometryError):
            renderer.render()
        assert renderer.state == RenderState.IDLE
        assert renderer.image is None

    def test_serial_flag_selects_kernel(self, fresh_scene, caplog):
        _red_triangle_scene(fresh_scene)
        with caplog.at_level(logging.INFO, logger="src.octrace.core.renderer"):
            _render(fresh_scene, width=8, height=8, serial=True)
            _render(fresh_scene, width=8, height=8)
        messages = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Rendered")]
        assert "serial" in messages[0]
        assert "parallel" in messages[1]

    def test_render_pixel_requires_build(self, fresh_scene):
        from src.octrace.core.renderer import Renderer

        renderer = Renderer(fresh_scene, _camera())
        with pytest.raises(RuntimeError):
            renderer.render_pixel(0, 0)

    def test_render_pixel_out_of_range(self, fresh_scene):
        _red_triangle_scene(fresh_scene)
        renderer, _ = _render(fresh_scene, width=8, height=8)
        with pytest.raises(ValueError):
            renderer.render_pixel(8, 0)
        with pytest.raises(ValueError):
            renderer.render_pixel(0, -1)


class TestRenderedImages:
    """End-to-end rendering tests."""

    def test_lit_triangle(self, fresh_scene):
        _red_triangle_scene(fresh_scene)
        _, image = _render(fresh_scene)

        assert image.shape == (33, 33, 3)
        assert image.dtype == np.uint8
        assert image[16, 16].tolist() == RED
        for row, col in [(0, 0), (0, 32), (32, 0), (32, 32)]:
            assert image[row, col].tolist() == WHITE

    def test_row_zero_is_top(self, fresh_scene):
        """Test the triangle's upper corner appears in the upper rows."""
        _red_triangle_scene(fresh_scene)
        _, image = _render(fresh_scene)

        # (x, y) = (0.02, 0.86) is inside the triangle, (0.02, -0.26) is not
        assert image[8, 12].tolist() == RED
        assert image[24, 12].tolist() == WHITE

    def test_non_square_image(self, fresh_scene):
        _red_triangle_scene(fresh_scene)
        _, image = _render(fresh_scene, width=40, height=20)
        assert image.shape == (20, 40, 3)
        assert image[10, 20].tolist() == RED

    def test_depth_ordering(self, fresh_scene):
        """Test the nearer triangle wins regardless of insertion order."""
        red = fresh_scene.add_flat_material((255, 0, 0))
        blue = fresh_scene.add_flat_material((0, 0, 255))
        fresh_scene.add_flat_triangle((-1, -1, 0), (2, -1, 0), (-1, 2, 0), red)
        fresh_scene.add_flat_triangle((0, 0, 0.5), (1, 0, 0.5), (0, 1, 0.5), blue)
        fresh_scene.add_ambient_light(1.0)

        _, image = _render(fresh_scene)
        assert image[16, 16].tolist() == BLUE
        assert image[2, 2].tolist() == RED

    def test_empty_scene_is_background(self, fresh_scene):
        fresh_scene.add_ambient_light(1.0)
        _, image = _render(fresh_scene, width=12, height=9, background=(10, 20, 30))

        assert image.shape == (9, 12, 3)
        assert (image == np.array([10, 20, 30], dtype=np.uint8)).all()

    def test_textured_triangle(self, fresh_scene):
        texture = np.array([[RED, GREEN], [BLUE, WHITE]], dtype=np.uint8)
        mat = fresh_scene.add_textured_material(fresh_scene.add_texture(texture))
        a, b, c = (fresh_scene.add_position(p) for p in [(0, 0, 0), (1, 0, 0), (0, 1, 0)])
        uv = tuple(fresh_scene.add_texcoord(t) for t in [(0, 0), (1, 0), (0, 1)])
        fresh_scene.add_triangle((a, b, c), mat, texcoords=uv)
        fresh_scene.add_ambient_light(1.0)

        _, image = _render(fresh_scene)
        # Pixel (25, 20) sees (x, y) = (0.93, 0.02): texel column 1, row 0
        assert image[20, 25].tolist() == GREEN
        # Pixel (12, 8) sees (x, y) = (0.02, 0.86): texel column 0, row 1
        assert image[8, 12].tolist() == BLUE

    def test_shadows_can_be_disabled(self, fresh_scene):
        white = fresh_scene.add_flat_material((255, 255, 255))
        fresh_scene.add_flat_triangle((-5, -5, 0), (10, -5, 0), (-5, 10, 0), white)
        fresh_scene.add_flat_triangle((-5, -5, 5), (10, -5, 5), (-5, 10, 5), white)
        fresh_scene.add_ambient_light(0.2)
        fresh_scene.add_directional_light(0.8, (0.0, 0.0, 1.0))

        _, shadowed = _render(fresh_scene, width=9, height=9)
        _, lit = _render(fresh_scene, width=9, height=9, shadows=False)
        assert shadowed[4, 4].tolist() == [51, 51, 51]
        assert lit[4, 4].tolist() == WHITE

    def test_render_pixel_matches_image(self, fresh_scene):
        _red_triangle_scene(fresh_scene)
        renderer, image = _render(fresh_scene)
        for px, py in [(16, 16), (12, 8), (0, 0), (25, 20)]:
            assert renderer.render_pixel(px, py) == tuple(image[py, px].tolist())


class TestDeterminism:
    """Tests that scheduling and acceleration do not change the image."""

    def test_schedules_agree(self, fresh_scene):
        _soup_scene(fresh_scene)
        _, serial = _render(fresh_scene, width=40, height=30, serial=True)
        _, parallel = _render(fresh_scene, width=40, height=30)
        _, banded = _render(fresh_scene, width=40, height=30, rows_per_batch=7)

        assert (serial != 255).any()
        np.testing.assert_array_equal(serial, parallel)
        np.testing.assert_array_equal(serial, banded)

    def test_octree_matches_brute_force(self, fresh_scene):
        from src.octrace.scene.octree import OctreeConfig

        _soup_scene(fresh_scene)
        _, octree = _render(
            fresh_scene, width=40, height=30, octree=OctreeConfig(max_triangles_per_leaf=2, max_depth=5)
        )
        _, brute = _render(fresh_scene, width=40, height=30, use_octree=False)
        np.testing.assert_array_equal(octree, brute)

    def test_repeated_renders_identical(self, fresh_scene):
        _red_triangle_scene(fresh_scene)
        _, first = _render(fresh_scene)
        _, second = _render(fresh_scene)
        np.testing.assert_array_equal(first, second)
