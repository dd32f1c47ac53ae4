"""Unit tests for Möller–Trumbore ray-triangle intersection.

Tests cover:
- Ray through the centroid (barycentrics near 1/3)
- Rays just outside each edge
- Rays parallel to the triangle plane
- Ray origin on the triangle plane outside the edges
- Degenerate (zero area) triangles
- t_max and hits behind the origin
- Closest-hit tie-break and face normals
"""

import pytest
import taichi as ti


def _cast(origin, direction, v0=(0.0, 0.0, 0.0), v1=(1.0, 0.0, 0.0), v2=(0.0, 1.0, 0.0), t_max=1e10):
    """Intersect one ray with one triangle; returns (hit, t, u, v)."""
    from src.octrace.geometry.triangle import hit_triangle, vec3

    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    u_val = ti.field(dtype=ti.f32, shape=())
    v_val = ti.field(dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel():
        rec = hit_triangle(
            vec3(origin[0], origin[1], origin[2]),
            vec3(direction[0], direction[1], direction[2]),
            vec3(v0[0], v0[1], v0[2]),
            vec3(v1[0], v1[1], v1[2]),
            vec3(v2[0], v2[1], v2[2]),
            t_max,
        )
        hit[None] = rec.hit
        t_val[None] = rec.t
        u_val[None] = rec.u
        v_val[None] = rec.v

    test_kernel()
    return hit[None], t_val[None], u_val[None], v_val[None]


class TestTriangleHit:
    """Tests for rays that hit the triangle."""

    def test_centroid_hit(self):
        """Test a ray aimed at the centroid hits with u, v near 1/3."""
        c = 1.0 / 3.0
        hit, t, u, v = _cast((c, c, 5.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert t == pytest.approx(5.0, abs=1e-5)
        assert u == pytest.approx(c, abs=1e-5)
        assert v == pytest.approx(c, abs=1e-5)

    def test_hit_from_behind(self):
        """Test that the back face is hit too (no culling)."""
        hit, t, _, _ = _cast((0.25, 0.25, -2.0), (0.0, 0.0, 1.0))
        assert hit == 1
        assert t == pytest.approx(2.0, abs=1e-5)

    def test_barycentric_weights_at_vertex(self):
        """Test a ray near v1 gives u near 1 and v near 0."""
        hit, _, u, v = _cast((0.99, 0.005, 1.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert u == pytest.approx(0.99, abs=1e-5)
        assert v == pytest.approx(0.005, abs=1e-5)

    @pytest.mark.parametrize("size", [1e-4, 1e-2, 1e2, 1e4])
    def test_centroid_hit_at_any_scale(self, size):
        """Test the centroid is hit for very small and very large triangles."""
        c = size / 3.0
        hit, t, u, v = _cast((c, c, 1.0), (0.0, 0.0, -1.0), v1=(size, 0.0, 0.0), v2=(0.0, size, 0.0))
        assert hit == 1
        assert t == pytest.approx(1.0, abs=1e-5)
        assert u == pytest.approx(1.0 / 3.0, abs=1e-3)
        assert v == pytest.approx(1.0 / 3.0, abs=1e-3)

    def test_unnormalized_direction(self):
        """Test t scales with the direction length."""
        hit, t, _, _ = _cast((0.2, 0.2, 4.0), (0.0, 0.0, -2.0))
        assert hit == 1
        assert t == pytest.approx(2.0, abs=1e-5)


class TestTriangleMiss:
    """Tests for rays that miss the triangle."""

    @pytest.mark.parametrize(
        "origin",
        [
            (-1e-3, 0.5, 1.0),  # left of edge v0-v2
            (0.5, -1e-3, 1.0),  # below edge v0-v1
            (0.5 + 1e-3, 0.5 + 1e-3, 1.0),  # beyond hypotenuse v1-v2
        ],
    )
    def test_just_outside_edges(self, origin):
        """Test rays just outside each edge miss."""
        hit, _, _, _ = _cast(origin, (0.0, 0.0, -1.0))
        assert hit == 0

    @pytest.mark.parametrize("origin", [(0.2, 0.2, 1.0), (0.2, 0.2, 0.0), (5.0, -3.0, 0.0)])
    def test_parallel_ray(self, origin):
        """Test rays parallel to the plane miss regardless of origin."""
        hit, _, _, _ = _cast(origin, (1.0, 1.0, 0.0))
        assert hit == 0

    def test_origin_on_plane_outside_edges(self):
        """Test a ray starting on the plane outside the triangle misses."""
        hit, t, u, v = _cast((2.0, 2.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 0
        for value in (t, u, v):
            assert value == value  # not NaN

    def test_origin_on_plane_inside_triangle(self):
        """Test a ray starting on the triangle does not hit it at t=0."""
        hit, _, _, _ = _cast((0.2, 0.2, 0.0), (0.0, 0.0, 1.0))
        assert hit == 0

    def test_degenerate_triangle(self):
        """Test a zero-area triangle reports no hit and no NaN."""
        hit, t, _, _ = _cast(
            (0.5, 0.0, 1.0), (0.0, 0.0, -1.0), v0=(0.0, 0.0, 0.0), v1=(1.0, 0.0, 0.0), v2=(2.0, 0.0, 0.0)
        )
        assert hit == 0
        assert t == t

    def test_sliver_triangle(self):
        """Test a triangle with nearly collinear vertices reports no hit."""
        hit, _, _, _ = _cast(
            (0.5, 0.0, 1.0), (0.0, 0.0, -1.0), v0=(0.0, 0.0, 0.0), v1=(1.0, 0.0, 0.0), v2=(0.5, 1e-9, 0.0)
        )
        assert hit == 0

    def test_coincident_vertices(self):
        """Test a triangle with all vertices equal reports no hit."""
        hit, _, _, _ = _cast((0.0, 0.0, 1.0), (0.0, 0.0, -1.0), v0=(0, 0, 0), v1=(0, 0, 0), v2=(0, 0, 0))
        assert hit == 0

    def test_behind_origin(self):
        """Test a triangle behind the ray origin is not hit."""
        hit, _, _, _ = _cast((0.2, 0.2, 1.0), (0.0, 0.0, 1.0))
        assert hit == 0

    def test_beyond_t_max(self):
        """Test a hit farther than t_max is rejected."""
        hit, _, _, _ = _cast((0.2, 0.2, 5.0), (0.0, 0.0, -1.0), t_max=4.0)
        assert hit == 0
        hit, _, _, _ = _cast((0.2, 0.2, 5.0), (0.0, 0.0, -1.0), t_max=5.5)
        assert hit == 1


class TestTriangleHelpers:
    """Tests for closest-hit selection and normals."""

    def test_is_closer_hit(self):
        """Test smaller t wins and equal t prefers the lower index."""
        from src.octrace.geometry.triangle import TriangleHit, is_closer_hit, make_miss

        results = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            miss = make_miss(10.0)
            a = TriangleHit(hit=1, t=2.0, u=0.1, v=0.1, triangle=5)
            b = TriangleHit(hit=1, t=3.0, u=0.1, v=0.1, triangle=1)
            c = TriangleHit(hit=1, t=2.0, u=0.2, v=0.2, triangle=3)
            results[0] = is_closer_hit(a, miss)
            results[1] = is_closer_hit(b, a)
            results[2] = is_closer_hit(c, a)
            results[3] = is_closer_hit(a, c)

        test_kernel()
        assert results.to_numpy().tolist() == [1, 0, 1, 0]

    def test_triangle_normal(self):
        """Test the face normal follows the right-hand rule."""
        from src.octrace.geometry.triangle import triangle_normal, vec3

        result = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = triangle_normal(vec3(0.0, 0.0, 0.0), vec3(2.0, 0.0, 0.0), vec3(0.0, 2.0, 0.0))

        test_kernel()
        n = result[None]
        assert abs(n[0]) < 1e-6 and abs(n[1]) < 1e-6
        assert abs(n[2] - 1.0) < 1e-6

    def test_barycentric_mix(self):
        """Test interpolation with weights (w, u, v)."""
        from src.octrace.geometry.triangle import barycentric_mix

        result = ti.field(dtype=ti.math.vec2, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = barycentric_mix(
                ti.math.vec2(0.0, 0.0), ti.math.vec2(1.0, 0.0), ti.math.vec2(0.0, 1.0), 0.25, 0.5
            )

        test_kernel()
        r = result[None]
        assert abs(r[0] - 0.25) < 1e-6
        assert abs(r[1] - 0.5) < 1e-6
