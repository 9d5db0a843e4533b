"""
Triangulation of polygonal faces of a half-edge mesh.

Each face with more than three sides is replaced, in place, by triangles
that keep the face's boundary half-edges and vertices:

1. Select: snapshot the faces to process before the mesh changes
2. Triangulate: project the boundary loop along its estimated normal and
   build a constrained triangulation with the boundary edges as constraints
3. Classify: flood fill from the infinite face across unconstrained edges;
   faces never reached lie inside the polygon
4. Stitch: give every interior triangle three half-edges (boundary
   half-edges where the triangle touches the boundary, new edges for the
   diagonals), cut the face out and fill each triangle back in

The triangulation engine covers the convex hull of the boundary points, so
step 3 is what keeps triangles out of concave notches.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

try:
    from .kernel import Kernel, DegenerateFaceError, get_kernel
    from .halfedge_mesh import HalfedgeMesh, NULL
    from .constrained_triangulation import (
        ConstrainedTriangulation, TriangulationError, ccw, cw
    )
    from .config import TriangulationConfig
except ImportError:
    from kernel import Kernel, DegenerateFaceError, get_kernel
    from halfedge_mesh import HalfedgeMesh, NULL
    from constrained_triangulation import (
        ConstrainedTriangulation, TriangulationError, ccw, cw
    )
    from config import TriangulationConfig


class FatalInvariantViolation(RuntimeError):
    """
    Raised when a classified triangulation cannot be stitched into the mesh.

    Signals an inconsistency between the triangulation and the face boundary
    (an interior triangle without all three half-edges, or half-edges that do
    not chain into a triangle). It is never absorbed by the skip policy.
    """


class CollapsedBoundaryError(DegenerateFaceError):
    """
    Raised when boundary vertices of a face project to the same point and
    the resulting triangulation cannot be stitched back.

    The constraint between coinciding vertices is skipped, so the
    triangulation loses part of the boundary. The face is left untouched
    and the failure policy applies.
    """


class FaceState(Enum):
    SELECTED = "selected"
    TRIANGULATED = "triangulated"
    CLASSIFIED = "classified"
    STITCHED = "stitched"
    FAILED = "failed"


@dataclass
class FaceInfo:
    """Per triangulation face data: half-edge slot per edge and region flag."""
    halfedges: list = field(default_factory=lambda: [None, None, None])
    exterior: bool = False


@dataclass
class FaceRecord:
    """Processing record for one selected mesh face."""
    face: int
    degree: int
    state: FaceState = FaceState.SELECTED
    new_faces: list[int] = field(default_factory=list)
    diagonals: int = 0
    error: Optional[str] = None


@dataclass
class StitchResult:
    """New mesh faces and diagonal edges created for one polygon."""
    faces: list[int] = field(default_factory=list)
    diagonals: list[int] = field(default_factory=list)


@dataclass
class TriangulationReport:
    """Outcome of a triangulate_faces() run."""
    records: list[FaceRecord] = field(default_factory=list)

    @property
    def faces_triangulated(self) -> int:
        return sum(1 for r in self.records if r.state == FaceState.STITCHED)

    @property
    def triangles_created(self) -> int:
        return sum(len(r.new_faces) for r in self.records)

    @property
    def diagonals_created(self) -> int:
        return sum(r.diagonals for r in self.records)

    @property
    def skipped(self) -> list[FaceRecord]:
        return [r for r in self.records if r.state == FaceState.FAILED]

    @property
    def has_failures(self) -> bool:
        return bool(self.skipped)


# =============================================================================
# Face selection
# =============================================================================

def select_faces(mesh: HalfedgeMesh) -> list[int]:
    """
    Faces with more than three sides, in enumeration order.

    The list is a snapshot: triangulating a face removes it and appends new
    faces, which would disturb a live enumeration.
    """
    selected = []
    for f in mesh.faces():
        h = mesh.halfedge(f)
        if mesh.next(mesh.next(h)) != mesh.prev(h):
            selected.append(f)
    return selected


# =============================================================================
# Planar triangulation
# =============================================================================

def triangulate_face_boundary(
    mesh: HalfedgeMesh,
    face: int,
    vertex_point_map,
    kernel: Kernel
) -> ConstrainedTriangulation:
    """
    Build the constrained triangulation of one face's boundary loop.

    Every triangulation vertex is tagged (info) with the boundary half-edge
    pointing at it. When two consecutive boundary vertices project to the
    same point no constraint is inserted between them.

    Args:
        mesh: Mesh owning the face
        face: Face index
        vertex_point_map: Vertex index -> 3D point
        kernel: Kernel used for the normal and the projection

    Returns:
        ConstrainedTriangulation whose constraints follow the face boundary

    Raises:
        DegenerateFaceError: if the face has no usable normal
    """
    loop = list(mesh.halfedges_around_face(mesh.halfedge(face)))
    points = [vertex_point_map[mesh.target(h)] for h in loop]

    normal = kernel.estimate_normal(points)
    cdt = ConstrainedTriangulation(kernel, normal)

    first = previous = None
    for h, point in zip(loop, points):
        vh = cdt.insert(point)
        if first is None:
            first = vh
        vh.info = h
        if previous is not None and previous is not vh:
            cdt.insert_constraint(previous, vh)
        previous = vh
    cdt.insert_constraint(previous, first)

    return cdt


# =============================================================================
# Region classification
# =============================================================================

def classify_regions(cdt: ConstrainedTriangulation) -> int:
    """
    Mark triangulation faces outside the polygon as exterior.

    Breadth-first flood fill from the infinite face that never crosses a
    constrained edge. Faces left unmarked are interior.

    Returns:
        Number of interior faces
    """
    for fh in cdt.all_faces():
        fh.info = FaceInfo()

    queue = deque([cdt.infinite_face()])
    while queue:
        fh = queue.popleft()
        if fh.info.exterior:
            continue
        fh.info.exterior = True
        for i in range(3):
            if not cdt.is_constrained(fh, i):
                queue.append(fh.neighbors[i])

    return sum(1 for fh in cdt.finite_faces() if not fh.info.exterior)


# =============================================================================
# Stitching
# =============================================================================

@dataclass
class _PlannedHalfedge:
    """One side of a diagonal that has not been allocated yet."""
    source: int
    target: int
    halfedge: int = NULL


def _slot_ends(mesh: HalfedgeMesh, slot) -> tuple[int, int]:
    if isinstance(slot, _PlannedHalfedge):
        return slot.source, slot.target
    return mesh.source(slot), mesh.target(slot)


def _resolve(slot) -> int:
    if isinstance(slot, _PlannedHalfedge):
        return slot.halfedge
    return slot


def stitch_face(mesh: HalfedgeMesh, face: int, cdt: ConstrainedTriangulation) -> StitchResult:
    """
    Replace a face by the interior triangles of its classified triangulation.

    Diagonals get new edges; edges on the boundary reuse the face's
    half-edges. All slots are checked before the mesh is touched.

    Returns:
        StitchResult with the new faces and diagonal edges

    Raises:
        CollapsedBoundaryError: if coinciding boundary vertices left the
            triangulation unable to cover the face
        FatalInvariantViolation: if an interior triangle cannot be closed
    """
    diagonals: list[tuple[_PlannedHalfedge, _PlannedHalfedge]] = []

    for fh, i in cdt.finite_edges():
        opposite_fh = fh.neighbors[i]
        opposite_i = cdt.mirror_index(fh, i)
        va = fh.vertices[cw(i)]
        vb = fh.vertices[ccw(i)]

        if cdt.is_constrained(fh, i):
            if not fh.info.exterior:
                fh.info.halfedges[i] = va.info
            if not opposite_fh.info.exterior:
                opposite_fh.info.halfedges[opposite_i] = vb.info
        elif not (fh.info.exterior and opposite_fh.info.exterior):
            # Strictly internal edge
            target_a = mesh.target(va.info)
            target_b = mesh.target(vb.info)
            side = _PlannedHalfedge(source=target_b, target=target_a)
            opposite_side = _PlannedHalfedge(source=target_a, target=target_b)
            fh.info.halfedges[i] = side
            opposite_fh.info.halfedges[opposite_i] = opposite_side
            diagonals.append((side, opposite_side))

    interior = [fh for fh in cdt.finite_faces() if not fh.info.exterior]

    boundary = set(mesh.halfedges_around_face(mesh.halfedge(face)))
    # Coinciding boundary vertices share one triangulation vertex
    collapsed = cdt.number_of_vertices < len(boundary)
    error_cls = CollapsedBoundaryError if collapsed else FatalInvariantViolation

    used = []
    for fh in interior:
        slots = fh.info.halfedges
        if any(slot is None for slot in slots):
            raise error_cls(
                f"Interior triangle {fh!r} of face {face} is missing a half-edge"
            )
        ends = [_slot_ends(mesh, slot) for slot in slots]
        for k in range(3):
            if ends[k][1] != ends[(k + 1) % 3][0]:
                raise error_cls(
                    f"Half-edges of interior triangle {fh!r} of face {face} do not form a cycle"
                )
        used.extend(slot for slot in slots if not isinstance(slot, _PlannedHalfedge))

    if len(used) != len(set(used)) or set(used) != boundary:
        raise error_cls(
            f"Interior triangles of face {face} use {len(set(used))} of its "
            f"{len(boundary)} boundary half-edges ({len(used)} uses)"
        )

    # Commit
    result = StitchResult()
    for side, opposite_side in diagonals:
        h = mesh.add_edge()
        mesh.set_target(h, side.target)
        mesh.set_target(mesh.opposite(h), opposite_side.target)
        side.halfedge = h
        opposite_side.halfedge = mesh.opposite(h)
        result.diagonals.append(mesh.edge(h))

    mesh.cut_face(mesh.halfedge(face))

    for fh in interior:
        h0, h1, h2 = (_resolve(slot) for slot in fh.info.halfedges)
        mesh.set_next(h0, h1)
        mesh.set_next(h1, h2)
        mesh.set_next(h2, h0)
        result.faces.append(mesh.fill_hole(h0))

    return result


# =============================================================================
# Public entry point
# =============================================================================

def triangulate_faces(
    mesh: HalfedgeMesh,
    vertex_point_map=None,
    kernel: Kernel = None,
    config: TriangulationConfig = None
) -> TriangulationReport:
    """
    Triangulate every non-triangular face of a mesh in place.

    Args:
        mesh: Half-edge mesh, modified in place
        vertex_point_map: Vertex index -> 3D point (default: mesh.points)
        kernel: Numeric kernel (default: the one named by config.kernel)
        config: Failure policy and debug settings (default: TriangulationConfig())

    Returns:
        TriangulationReport with one record per selected face

    Raises:
        DegenerateFaceError, TriangulationError: under the "abort" policy, for
            the first face that cannot be triangulated (including
            CollapsedBoundaryError); faces before it stay triangulated, it
            and the faces after it are untouched
        FatalInvariantViolation: whatever the policy
    """
    if config is None:
        config = TriangulationConfig()
    errors = config.validate()
    if errors:
        raise ValueError("Invalid triangulation config: " + "; ".join(errors))

    vpmap = mesh.points if vertex_point_map is None else vertex_point_map
    if kernel is None:
        kernel = get_kernel(config.kernel, config.normal_epsilon)
    debug = config.debug

    worklist = select_faces(mesh)
    if debug:
        print(f"Triangulating {len(worklist)} of {mesh.num_faces} faces with {kernel!r}")

    report = TriangulationReport()
    for face in worklist:
        record = FaceRecord(face=face, degree=mesh.face_degree(face))
        report.records.append(record)

        try:
            cdt = triangulate_face_boundary(mesh, face, vpmap, kernel)
            record.state = FaceState.TRIANGULATED
            interior = classify_regions(cdt)
            record.state = FaceState.CLASSIFIED
            if debug:
                print(f"  Face {face}: {record.degree} sides, "
                      f"{cdt.number_of_vertices} vertices, "
                      f"{len(cdt.constraints())} constraints, {interior} interior triangles")
            result = stitch_face(mesh, face, cdt)
        except (DegenerateFaceError, TriangulationError) as e:
            # Raised before the face is cut, so it is still intact
            record.state = FaceState.FAILED
            record.error = str(e)
            if config.on_degenerate == "abort":
                raise
            if debug:
                print(f"  Face {face}: skipped ({e})")
            continue
        except FatalInvariantViolation as e:
            record.state = FaceState.FAILED
            record.error = str(e)
            raise

        record.state = FaceState.STITCHED
        record.new_faces = result.faces
        record.diagonals = len(result.diagonals)

    if debug:
        print(f"  Created {report.triangles_created} triangles, "
              f"{report.diagonals_created} diagonals, skipped {len(report.skipped)} faces")

    return report
