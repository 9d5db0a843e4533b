"""Unit tests for kernel module."""

import pytest
import math
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from kernel import (
    DegenerateFaceError,
    FloatKernel,
    NumpyKernel,
    get_kernel,
    cross,
    dot,
    length,
    normalize,
    newell_vector,
    plane_basis,
    polygon_area_3d,
)


def signed_area_2d(points):
    """Shoelace formula."""
    area = 0.0
    for i in range(len(points)):
        x1, y1 = points[i]
        x2, y2 = points[(i + 1) % len(points)]
        area += x1 * y2 - x2 * y1
    return area / 2


@pytest.fixture(params=["float", "numpy"])
def kernel(request):
    return get_kernel(request.param)


class TestVectorHelpers:
    """Tests for the tuple vector helpers."""

    def test_cross_of_axes(self):
        assert cross((1, 0, 0), (0, 1, 0)) == (0, 0, 1)

    def test_dot_and_length(self):
        assert dot((1, 2, 3), (4, 5, 6)) == 32
        assert length((3, 4, 0)) == pytest.approx(5.0)

    def test_normalize(self):
        n = normalize((0, 0, 5))
        assert n == pytest.approx((0, 0, 1))

    def test_normalize_zero(self):
        """Zero vector is returned unchanged."""
        assert normalize((0.0, 0.0, 0.0)) == (0.0, 0.0, 0.0)

    def test_newell_vector_is_twice_area(self):
        square = [(0, 0, 0), (2, 0, 0), (2, 2, 0), (0, 2, 0)]
        assert newell_vector(square) == pytest.approx((0, 0, 8))

    def test_polygon_area_3d_tilted(self):
        """Area does not depend on the plane orientation."""
        square = [(0, 0, 0), (1, 0, 0), (1, 1, 1), (0, 1, 1)]
        assert polygon_area_3d(square) == pytest.approx(math.sqrt(2))


class TestPlaneBasis:
    """Tests for plane_basis()."""

    @pytest.mark.parametrize("normal", [
        (0.0, 0.0, 1.0),
        (1.0, 0.0, 0.0),
        (0.0, -1.0, 0.0),
        (0.577, 0.577, 0.577),
    ])
    def test_right_handed(self, normal):
        """u x v points along the normal and u, v are orthonormal."""
        u, v = plane_basis(normal)
        assert length(u) == pytest.approx(1.0)
        assert length(v) == pytest.approx(1.0)
        assert dot(u, v) == pytest.approx(0.0, abs=1e-12)
        assert cross(u, v) == pytest.approx(normalize(normal))


class TestEstimateNormal:
    """Tests for estimate_normal() on both kernels."""

    def test_ccw_square(self, kernel):
        square = [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)]
        assert kernel.estimate_normal(square) == pytest.approx((0, 0, 1))

    def test_cw_square(self, kernel):
        square = [(0, 0, 0), (0, 1, 0), (1, 1, 0), (1, 0, 0)]
        assert kernel.estimate_normal(square) == pytest.approx((0, 0, -1))

    def test_vertical_face(self, kernel):
        face = [(0, 0, 0), (0, 1, 0), (0, 1, 1), (0, 0, 1)]
        assert kernel.estimate_normal(face) == pytest.approx((1, 0, 0))

    def test_non_planar_quad(self, kernel):
        """A slightly warped quad still gets a normal close to +z."""
        quad = [(0, 0, 0), (1, 0, 0.05), (1, 1, 0), (0, 1, 0.05)]
        n = kernel.estimate_normal(quad)
        assert length(n) == pytest.approx(1.0)
        assert n[2] > 0.99

    def test_result_is_unit(self, kernel):
        tri = [(0, 0, 0), (10, 0, 0), (0, 10, 3)]
        assert length(kernel.estimate_normal(tri)) == pytest.approx(1.0)

    def test_collinear_raises(self, kernel):
        with pytest.raises(DegenerateFaceError):
            kernel.estimate_normal([(0, 0, 0), (1, 1, 1), (2, 2, 2), (3, 3, 3)])

    def test_coincident_raises(self, kernel):
        with pytest.raises(DegenerateFaceError):
            kernel.estimate_normal([(1, 1, 1)] * 4)

    def test_too_few_points_raises(self, kernel):
        with pytest.raises(DegenerateFaceError):
            kernel.estimate_normal([(0, 0, 0), (1, 0, 0)])

    def test_degenerate_is_value_error(self, kernel):
        """Callers catching ValueError also catch degenerate faces."""
        with pytest.raises(ValueError):
            kernel.estimate_normal([(0, 0, 0), (1, 0, 0), (2, 0, 0)])

    def test_threshold_scales_with_size(self, kernel):
        """A tiny but well-shaped face is not degenerate."""
        s = 1e-5
        square = [(0, 0, 0), (s, 0, 0), (s, s, 0), (0, s, 0)]
        assert kernel.estimate_normal(square) == pytest.approx((0, 0, 1))


class TestProject:
    """Tests for project()."""

    def test_preserves_distances_in_plane(self, kernel):
        normal = (0.0, 0.0, 1.0)
        a = kernel.project((0, 0, 0), normal)
        b = kernel.project((3, 4, 0), normal)
        assert math.dist(a, b) == pytest.approx(5.0)

    def test_drops_normal_component(self, kernel):
        normal = (0.0, 0.0, 1.0)
        assert kernel.project((1, 2, 0), normal) == pytest.approx(kernel.project((1, 2, 7), normal))

    def test_keeps_orientation(self, kernel):
        """A loop that is CCW around its normal stays CCW in 2D."""
        loop = [(0, 0, 0), (2, 0, 1), (2, 1, 3), (0, 1, 2)]
        normal = kernel.estimate_normal(loop)
        projected = [kernel.project(p, normal) for p in loop]
        assert signed_area_2d(projected) > 0

    def test_keeps_orientation_downward_normal(self, kernel):
        loop = [(0, 0, 0), (0, 1, 0), (1, 1, 0), (1, 0, 0)]
        normal = kernel.estimate_normal(loop)
        projected = [kernel.project(p, normal) for p in loop]
        assert signed_area_2d(projected) == pytest.approx(1.0)

    def test_returns_tuple(self, kernel):
        p = kernel.project((1, 2, 3), (0.0, 0.0, 1.0))
        assert isinstance(p, tuple)
        assert len(p) == 2


class TestKernelsAgree:
    """FloatKernel and NumpyKernel give the same answers."""

    def test_same_normal_and_projection(self):
        loop = [(0.3, 0.1, 0.0), (2.0, 0.4, 0.7), (1.5, 2.2, 1.1), (-0.2, 1.4, 0.5)]
        fk, nk = FloatKernel(), NumpyKernel()
        n1 = fk.estimate_normal(loop)
        n2 = nk.estimate_normal(loop)
        assert n1 == pytest.approx(n2)
        for p in loop:
            assert fk.project(p, n1) == pytest.approx(nk.project(p, n1))


class TestGetKernel:
    """Tests for get_kernel()."""

    def test_by_name(self):
        assert isinstance(get_kernel("float"), FloatKernel)
        assert isinstance(get_kernel("numpy"), NumpyKernel)

    def test_epsilon_passed(self):
        assert get_kernel("numpy", epsilon=1e-6).epsilon == 1e-6

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown kernel"):
            get_kernel("exact")
