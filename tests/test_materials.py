"""Tests for textures, materials and lights.

Tests cover:
- Image conversion for the texture pool (to_rgb8)
- Nearest sampling with wrap-around addressing
- Flat and textured material validation
- Light validation and storage
"""

import numpy as np
import pytest
import taichi as ti
from PIL import Image

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)


def _quad_texture():
    """2x2 texture: row 0 = red, green; row 1 = blue, white."""
    return np.array([[RED, GREEN], [BLUE, WHITE]], dtype=np.uint8)


def _sample(texture_id, s, t):
    from src.octrace.materials.texture import sample_texture, vec2

    result = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel():
        result[None] = sample_texture(texture_id, vec2(s, t))

    test_kernel()
    c = result[None]
    return (int(c[0]), int(c[1]), int(c[2]))


class TestToRgb8:
    """Tests for to_rgb8 conversion."""

    def test_rgb_passthrough(self):
        from src.octrace.materials.texture import to_rgb8

        img = _quad_texture()
        np.testing.assert_array_equal(to_rgb8(img), img)

    def test_grayscale(self):
        from src.octrace.materials.texture import to_rgb8

        out = to_rgb8(np.array([[0, 128]], dtype=np.uint8))
        assert out.shape == (1, 2, 3)
        assert out[0, 1].tolist() == [128, 128, 128]

    def test_alpha_dropped(self):
        from src.octrace.materials.texture import to_rgb8

        rgba = np.full((2, 3, 4), 7, dtype=np.uint8)
        assert to_rgb8(rgba).shape == (2, 3, 3)

    def test_float_image(self):
        from src.octrace.materials.texture import to_rgb8

        out = to_rgb8(np.array([[[0.0, 0.5, 1.0]]]))
        assert out.dtype == np.uint8
        assert out[0, 0].tolist() == [0, 127, 255]

    @pytest.mark.parametrize("shape", [(0, 4, 3), (4, 4, 2), (4,)])
    def test_invalid_shape(self, shape):
        from src.octrace.materials.texture import to_rgb8

        with pytest.raises(ValueError):
            to_rgb8(np.zeros(shape, dtype=np.uint8))


class TestTextureSampling:
    """Tests for the texture pool and nearest sampling."""

    def test_add_texture(self):
        from src.octrace.materials.texture import add_texture, get_texture_count, get_texture_size

        assert add_texture(_quad_texture()) == 0
        assert add_texture(np.zeros((3, 5, 3), dtype=np.uint8)) == 1
        assert get_texture_count() == 2
        assert get_texture_size(1) == (5, 3)

    def test_unknown_texture_size(self):
        from src.octrace.materials.texture import get_texture_size

        with pytest.raises(ValueError):
            get_texture_size(0)

    @pytest.mark.parametrize(
        "s, t, expected",
        [
            (0.25, 0.25, RED),
            (0.75, 0.25, GREEN),
            (0.25, 0.75, BLUE),
            (0.75, 0.75, WHITE),
            (0.0, 0.0, RED),
        ],
    )
    def test_nearest_texel(self, s, t, expected):
        from src.octrace.materials.texture import add_texture

        tid = add_texture(_quad_texture())
        assert _sample(tid, s, t) == expected

    @pytest.mark.parametrize(
        "s, t, expected",
        [
            (1.25, 0.25, RED),
            (-0.25, 0.25, GREEN),
            (0.25, -0.25, BLUE),
            (1.0, 1.0, RED),
            (3.75, -1.25, WHITE),
        ],
    )
    def test_wrap_around(self, s, t, expected):
        """Test coordinates outside [0, 1) repeat the texture."""
        from src.octrace.materials.texture import add_texture

        tid = add_texture(_quad_texture())
        assert _sample(tid, s, t) == expected

    def test_second_texture_offset(self):
        """Test textures after the first read from their own window."""
        from src.octrace.materials.texture import add_texture

        add_texture(np.zeros((4, 4, 3), dtype=np.uint8))
        tid = add_texture(_quad_texture())
        assert _sample(tid, 0.75, 0.75) == WHITE

    def test_from_pil_image(self):
        from src.octrace.materials.texture import add_texture_from_image

        image = Image.fromarray(_quad_texture()).convert("RGBA")
        tid = add_texture_from_image(image)
        assert _sample(tid, 0.75, 0.25) == GREEN


class TestMaterials:
    """Tests for the material table."""

    def test_flat_material(self):
        from src.octrace.materials.material import (
            MaterialKind,
            add_flat_material,
            get_material_count,
            get_material_kind,
            material_colors,
            material_speculars,
        )

        mid = add_flat_material((255, 128, 0), specular=10.0)
        assert mid == 0
        assert get_material_count() == 1
        assert get_material_kind(mid) == MaterialKind.FLAT
        assert material_colors[mid].to_numpy().tolist() == [255.0, 128.0, 0.0]
        assert material_speculars[mid] == 10.0

    @pytest.mark.parametrize("color", [(256, 0, 0), (0, -1, 0), (0, 0)])
    def test_invalid_color(self, color):
        from src.octrace.materials.material import add_flat_material

        with pytest.raises(ValueError):
            add_flat_material(color)

    @pytest.mark.parametrize(
        "kwargs",
        [{"ka": (1.5, 0.0, 0.0)}, {"kd": (0.0, -0.1, 0.0)}, {"ks": (1.0, 1.0)}],
    )
    def test_invalid_coefficient(self, kwargs):
        from src.octrace.materials.material import add_flat_material, get_material_count

        with pytest.raises(ValueError):
            add_flat_material((1, 2, 3), **kwargs)
        assert get_material_count() == 0

    def test_negative_specular(self):
        from src.octrace.materials.material import add_flat_material

        with pytest.raises(ValueError):
            add_flat_material((1, 2, 3), specular=-1.0)

    def test_textured_material(self):
        from src.octrace.materials.material import MaterialKind, add_textured_material, get_material_kind
        from src.octrace.materials.texture import add_texture

        tid = add_texture(_quad_texture())
        mid = add_textured_material(tid)
        assert get_material_kind(mid) == MaterialKind.TEXTURED

    def test_textured_material_unknown_texture(self):
        from src.octrace.materials.material import add_textured_material

        with pytest.raises(ValueError):
            add_textured_material(0)

    def test_get_material_in_kernel(self):
        from src.octrace.materials.material import add_flat_material, get_material

        add_flat_material((10, 20, 30))
        mid = add_flat_material((40, 50, 60), specular=5.0, ka=(0.5, 0.5, 0.5), ks=(0.0, 0.25, 1.0))
        color = ti.Vector.field(3, dtype=ti.f32, shape=())
        specular = ti.field(dtype=ti.f32, shape=())
        coefficients = ti.Vector.field(3, dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            m = get_material(mid)
            color[None] = m.color
            specular[None] = m.specular
            coefficients[0] = m.ka
            coefficients[1] = m.kd
            coefficients[2] = m.ks

        test_kernel()
        assert color[None].to_numpy().tolist() == [40.0, 50.0, 60.0]
        assert specular[None] == 5.0
        assert coefficients.to_numpy().tolist() == [[0.5, 0.5, 0.5], [1.0, 1.0, 1.0], [0.0, 0.25, 1.0]]

    def test_unknown_material_kind(self):
        from src.octrace.materials.material import get_material_kind

        with pytest.raises(ValueError):
            get_material_kind(3)


class TestLights:
    """Tests for light storage."""

    def test_add_lights(self):
        from src.octrace.materials.lights import (
            LightType,
            add_ambient_light,
            add_directional_light,
            add_point_light,
            get_light_count,
            light_types,
            light_vectors,
        )

        assert add_ambient_light(0.2) == 0
        assert add_directional_light(0.5, (0.0, 0.0, 1.0)) == 1
        assert add_point_light(0.3, (1.0, 2.0, 3.0)) == 2
        assert get_light_count() == 3
        assert light_types[2] == int(LightType.POINT)
        assert light_vectors[2].to_numpy().tolist() == [1.0, 2.0, 3.0]

    def test_negative_intensity(self):
        from src.octrace.materials.lights import add_ambient_light, add_point_light

        with pytest.raises(ValueError):
            add_ambient_light(-0.1)
        with pytest.raises(ValueError):
            add_point_light(-1.0, (0.0, 0.0, 0.0))

    def test_zero_direction(self):
        from src.octrace.materials.lights import add_directional_light

        with pytest.raises(ValueError):
            add_directional_light(0.5, (0.0, 0.0, 0.0))

    def test_too_many_lights(self):
        from src.octrace.materials.lights import MAX_LIGHTS, add_ambient_light

        for _ in range(MAX_LIGHTS):
            add_ambient_light(0.01)
        with pytest.raises(RuntimeError):
            add_ambient_light(0.01)
