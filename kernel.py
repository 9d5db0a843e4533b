"""
Numeric kernel for face triangulation.

Supplies the two geometric capabilities the triangulation core needs:
estimating the normal of a (possibly non-planar) polygon loop and
projecting 3D points onto the plane orthogonal to that normal.

Two interchangeable backends are provided:
- FloatKernel: plain tuples and the math module
- NumpyKernel: numpy arrays, for large loops

Both use Newell's method for the normal, so a loop that winds
counter-clockwise around its normal is counter-clockwise after projection.
"""

from functools import lru_cache
import math

import numpy as np


# Type aliases
Point2 = tuple[float, float]
Point3 = tuple[float, float, float]
Vector3 = tuple[float, float, float]


class DegenerateFaceError(ValueError):
    """Raised when a polygon has no usable normal (collinear or zero area)."""


# =============================================================================
# Vector helpers
# =============================================================================

def add(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(a: Vector3, s: float) -> Vector3:
    return (a[0] * s, a[1] * s, a[2] * s)


def dot(a: Vector3, b: Vector3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vector3, b: Vector3) -> Vector3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Vector3) -> float:
    return math.sqrt(dot(a, a))


def normalize(a: Vector3) -> Vector3:
    """Return unit vector along a. Zero vectors are returned unchanged."""
    n = length(a)
    if n == 0.0:
        return a
    return (a[0] / n, a[1] / n, a[2] / n)


def newell_vector(points: list[Point3]) -> Vector3:
    """
    Sum of Newell's cross terms over a closed loop.

    The result is twice the vector area of the loop: its direction is the
    loop normal (right-hand rule) and its length is twice the enclosed area
    for planar loops.
    """
    nx = ny = nz = 0.0
    n = len(points)
    for i in range(n):
        p = points[i]
        q = points[(i + 1) % n]
        nx += (p[1] - q[1]) * (p[2] + q[2])
        ny += (p[2] - q[2]) * (p[0] + q[0])
        nz += (p[0] - q[0]) * (p[1] + q[1])
    return (nx, ny, nz)


def polygon_area_3d(points: list[Point3]) -> float:
    """Area of a planar 3D polygon (projected area along its Newell normal)."""
    return 0.5 * length(newell_vector(points))


def _bbox_diagonal_sq(points) -> float:
    """Squared bounding box diagonal, used to scale the degeneracy threshold."""
    lo = [min(p[k] for p in points) for k in range(3)]
    hi = [max(p[k] for p in points) for k in range(3)]
    return sum((hi[k] - lo[k]) ** 2 for k in range(3))


@lru_cache(maxsize=256)
def plane_basis(normal: Vector3) -> tuple[Vector3, Vector3]:
    """
    Orthonormal basis (u, v) of the plane orthogonal to normal.

    The basis satisfies u x v = normal, which keeps orientation: a loop
    winding counter-clockwise around normal maps to a counter-clockwise
    2D loop.
    """
    n = normalize(normal)
    # Helper axis: the one least aligned with the normal
    components = [abs(n[0]), abs(n[1]), abs(n[2])]
    axis_idx = components.index(min(components))
    helper = [0.0, 0.0, 0.0]
    helper[axis_idx] = 1.0
    u = normalize(cross(tuple(helper), n))
    v = cross(n, u)
    return u, v


# =============================================================================
# Kernels
# =============================================================================

class Kernel:
    """
    Kernel interface used by the triangulation core.

    Subclasses implement estimate_normal() and project(). The core never
    touches coordinates directly beyond calling these two methods.
    """

    name = "abstract"

    def __init__(self, epsilon: float = 1e-12):
        self.epsilon = epsilon

    def estimate_normal(self, points: list[Point3]) -> Vector3:
        """Return the unit normal of a polygon loop or raise DegenerateFaceError."""
        raise NotImplementedError

    def project(self, point: Point3, normal: Vector3) -> Point2:
        """Project a 3D point onto the plane orthogonal to normal."""
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(epsilon={self.epsilon})"


class FloatKernel(Kernel):
    """Kernel on plain Python floats."""

    name = "float"

    def estimate_normal(self, points: list[Point3]) -> Vector3:
        if len(points) < 3:
            raise DegenerateFaceError(f"Polygon has only {len(points)} vertices")

        normal = newell_vector(points)
        norm = length(normal)
        diag_sq = _bbox_diagonal_sq(points)
        if diag_sq == 0.0 or norm <= self.epsilon * diag_sq:
            raise DegenerateFaceError(
                f"Cannot estimate normal of degenerate polygon ({len(points)} vertices, "
                f"vector area {norm:.3g})"
            )
        return (normal[0] / norm, normal[1] / norm, normal[2] / norm)

    def project(self, point: Point3, normal: Vector3) -> Point2:
        u, v = plane_basis(tuple(normal))
        return (dot(point, u), dot(point, v))


class NumpyKernel(Kernel):
    """Kernel backed by numpy arrays. Returns plain tuples like FloatKernel."""

    name = "numpy"

    def estimate_normal(self, points: list[Point3]) -> Vector3:
        pts = np.asarray(points, dtype=float)
        if pts.ndim != 2 or pts.shape[0] < 3:
            raise DegenerateFaceError(f"Polygon has only {len(pts)} vertices")

        nxt = np.roll(pts, -1, axis=0)
        d = pts - nxt
        s = pts + nxt
        normal = np.array([
            np.sum(d[:, 1] * s[:, 2]),
            np.sum(d[:, 2] * s[:, 0]),
            np.sum(d[:, 0] * s[:, 1]),
        ])
        norm = float(np.linalg.norm(normal))
        extent = pts.max(axis=0) - pts.min(axis=0)
        diag_sq = float(np.dot(extent, extent))
        if diag_sq == 0.0 or norm <= self.epsilon * diag_sq:
            raise DegenerateFaceError(
                f"Cannot estimate normal of degenerate polygon ({len(pts)} vertices, "
                f"vector area {norm:.3g})"
            )
        unit = normal / norm
        return (float(unit[0]), float(unit[1]), float(unit[2]))

    def project(self, point: Point3, normal: Vector3) -> Point2:
        u, v = plane_basis(tuple(float(c) for c in normal))
        p = np.asarray(point, dtype=float)
        return (float(np.dot(p, u)), float(np.dot(p, v)))


KERNELS = {
    FloatKernel.name: FloatKernel,
    NumpyKernel.name: NumpyKernel,
}


def get_kernel(name: str = "float", epsilon: float = 1e-12) -> Kernel:
    """
    Create a kernel by name.

    Args:
        name: "float" or "numpy"
        epsilon: Relative threshold below which a polygon counts as degenerate

    Returns:
        Kernel instance
    """
    try:
        kernel_cls = KERNELS[name]
    except KeyError:
        raise ValueError(f"Unknown kernel '{name}', expected one of {sorted(KERNELS)}") from None
    return kernel_cls(epsilon=epsilon)
