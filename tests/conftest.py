"""Pytest fixtures for facetri tests."""

import pytest
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from halfedge_mesh import HalfedgeMesh


SQUARE_POINTS = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]

# Regular-ish convex pentagon in the z=0 plane
PENTAGON_POINTS = [
    (0.0, 0.0, 0.0),
    (2.0, 0.0, 0.0),
    (2.6, 1.6, 0.0),
    (1.0, 2.8, 0.0),
    (-0.6, 1.6, 0.0),
]

# L-shape: the notch is the unit square [1, 2] x [1, 2]
L_SHAPE_POINTS = [
    (0.0, 0.0, 0.0),
    (2.0, 0.0, 0.0),
    (2.0, 1.0, 0.0),
    (1.0, 1.0, 0.0),
    (1.0, 2.0, 0.0),
    (0.0, 2.0, 0.0),
]

CUBE_POINTS = [
    (0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0),
    (0.0, 0.0, 1.0), (1.0, 0.0, 1.0), (1.0, 1.0, 1.0), (0.0, 1.0, 1.0),
]

# Outward-facing quads
CUBE_FACES = [
    [0, 3, 2, 1],  # bottom
    [4, 5, 6, 7],  # top
    [0, 1, 5, 4],  # front
    [1, 2, 6, 5],  # right
    [2, 3, 7, 6],  # back
    [3, 0, 4, 7],  # left
]


@pytest.fixture
def square_mesh() -> HalfedgeMesh:
    """Single unit square face."""
    return HalfedgeMesh.from_polygons(SQUARE_POINTS, [[0, 1, 2, 3]])


@pytest.fixture
def pentagon_mesh() -> HalfedgeMesh:
    """Single convex pentagon face."""
    return HalfedgeMesh.from_polygons(PENTAGON_POINTS, [[0, 1, 2, 3, 4]])


@pytest.fixture
def l_shape_mesh() -> HalfedgeMesh:
    """Single non-convex L-shaped hexagon face."""
    return HalfedgeMesh.from_polygons(L_SHAPE_POINTS, [[0, 1, 2, 3, 4, 5]])


@pytest.fixture
def cube_mesh() -> HalfedgeMesh:
    """Closed cube made of six quads."""
    return HalfedgeMesh.from_polygons(CUBE_POINTS, CUBE_FACES)


@pytest.fixture
def open_box_mesh() -> HalfedgeMesh:
    """Cube without its top face (one border loop)."""
    faces = [f for f in CUBE_FACES if f != [4, 5, 6, 7]]
    return HalfedgeMesh.from_polygons(CUBE_POINTS, faces)


@pytest.fixture
def collinear_mesh() -> HalfedgeMesh:
    """Single face whose four vertices lie on a line."""
    points = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0), (3.0, 0.0, 0.0)]
    return HalfedgeMesh.from_polygons(points, [[0, 1, 2, 3]])


@pytest.fixture
def square_and_collinear_mesh() -> HalfedgeMesh:
    """A unit square followed by a separate collinear face."""
    points = SQUARE_POINTS + [
        (5.0, 0.0, 0.0), (6.0, 0.0, 0.0), (7.0, 0.0, 0.0), (8.0, 0.0, 0.0),
    ]
    return HalfedgeMesh.from_polygons(points, [[0, 1, 2, 3], [4, 5, 6, 7]])


def boundary_snapshot(mesh: HalfedgeMesh, face: int) -> dict:
    """Record target, opposite and target position of each boundary half-edge."""
    return {
        h: (mesh.target(h), mesh.opposite(h), mesh.points[mesh.target(h)])
        for h in mesh.halfedges_around_face(mesh.halfedge(face))
    }
