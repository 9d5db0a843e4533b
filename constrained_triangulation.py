"""
Constrained Delaunay triangulation of projected 3D points.

Points are projected with a kernel onto the plane orthogonal to a given
normal and triangulated in 2D. The triangulation covers the convex hull of
the points; an infinite vertex closes the hull so that every edge has a
face on both sides and the unbounded region is made of infinite faces.

Conventions:
- Faces are counter-clockwise
- neighbors[i] is the face across the edge opposite vertices[i]
- Edge i runs from vertices[ccw(i)] to vertices[cw(i)]

Algorithm:
1. Points are buffered until three of them are non-collinear, then the
   first triangle and its three infinite faces are created
2. Further points are located by a stochastic walk from the last face
   created and inserted with Bowyer-Watson; the conflict zone never
   crosses a constrained edge (a point landing on a constrained edge splits it)
3. A constraint removes the triangles crossed by its segment and
   retriangulates the two pseudo-polygons on either side, picking the
   Delaunay vertex for each base edge

Orientation and in-circle tests are exact: the float result is used when it
is clearly away from zero, otherwise the determinant is recomputed with
Fraction. Projected points of collinear boundary vertices are rarely
collinear in floating point, and the triangulation stays consistent either way.

Intersecting constraints are not supported.
"""

import random
from fractions import Fraction
from typing import Iterator, Optional

try:
    from .kernel import Kernel, Point2, Point3, Vector3
except ImportError:
    from kernel import Kernel, Point2, Point3, Vector3


class TriangulationError(Exception):
    """Raised when the triangulation cannot be built from the given input."""


class IntersectingConstraintsError(TriangulationError):
    """Raised when a constraint crosses an existing constraint."""


# =============================================================================
# Predicates
# =============================================================================

# Forward error bounds of the float orientation and in-circle determinants
# (Shewchuk, "Adaptive Precision Floating-Point Arithmetic"). A float result
# smaller than its bound may have the wrong sign and is recomputed exactly.
_EPSILON = 2.0 ** -53
_ORIENT_BOUND = (3.0 + 16.0 * _EPSILON) * _EPSILON
_IN_CIRCLE_BOUND = (10.0 + 96.0 * _EPSILON) * _EPSILON


def ccw(i: int) -> int:
    return (i + 1) % 3


def cw(i: int) -> int:
    return (i + 2) % 3


def orient_2d(a: Point2, b: Point2, c: Point2):
    """
    Twice the signed area of triangle abc.
    Positive = c is left of ab (CCW), negative = right, zero = collinear.

    The sign is exact. Near-degenerate inputs return the exact value as a
    Fraction instead of a float.
    """
    left = (b[0] - a[0]) * (c[1] - a[1])
    right = (b[1] - a[1]) * (c[0] - a[0])
    det = left - right
    if abs(det) > _ORIENT_BOUND * (abs(left) + abs(right)):
        return det

    ax, ay = Fraction(a[0]), Fraction(a[1])
    return (
        (Fraction(b[0]) - ax) * (Fraction(c[1]) - ay)
        - (Fraction(b[1]) - ay) * (Fraction(c[0]) - ax)
    )


def in_circle(a: Point2, b: Point2, c: Point2, d: Point2):
    """
    Positive if d is inside the circumcircle of CCW triangle abc.

    Exact in sign, like orient_2d().
    """
    adx, ady = a[0] - d[0], a[1] - d[1]
    bdx, bdy = b[0] - d[0], b[1] - d[1]
    cdx, cdy = c[0] - d[0], c[1] - d[1]

    bdxcdy, cdxbdy = bdx * cdy, cdx * bdy
    cdxady, adxcdy = cdx * ady, adx * cdy
    adxbdy, bdxady = adx * bdy, bdx * ady
    alift = adx * adx + ady * ady
    blift = bdx * bdx + bdy * bdy
    clift = cdx * cdx + cdy * cdy

    det = (
        alift * (bdxcdy - cdxbdy)
        + blift * (cdxady - adxcdy)
        + clift * (adxbdy - bdxady)
    )
    permanent = (
        (abs(bdxcdy) + abs(cdxbdy)) * alift
        + (abs(cdxady) + abs(adxcdy)) * blift
        + (abs(adxbdy) + abs(bdxady)) * clift
    )
    if abs(det) > _IN_CIRCLE_BOUND * permanent:
        return det

    dx, dy = Fraction(d[0]), Fraction(d[1])
    adx, ady = Fraction(a[0]) - dx, Fraction(a[1]) - dy
    bdx, bdy = Fraction(b[0]) - dx, Fraction(b[1]) - dy
    cdx, cdy = Fraction(c[0]) - dx, Fraction(c[1]) - dy
    return (
        (adx * adx + ady * ady) * (bdx * cdy - cdx * bdy)
        + (bdx * bdx + bdy * bdy) * (cdx * ady - adx * cdy)
        + (cdx * cdx + cdy * cdy) * (adx * bdy - bdx * ady)
    )


def _dot_from(a: Point2, p: Point2, q: Point2) -> Fraction:
    """Exact (p - a) . (q - a)."""
    ax, ay = Fraction(a[0]), Fraction(a[1])
    return (Fraction(p[0]) - ax) * (Fraction(q[0]) - ax) + (Fraction(p[1]) - ay) * (Fraction(q[1]) - ay)


def _strictly_between(p: Point2, a: Point2, b: Point2) -> bool:
    """For p collinear with ab: is p inside the open segment?"""
    return 0 < _dot_from(a, p, b) < _dot_from(a, b, b)


def _ahead(a: Point2, b: Point2, p: Point2) -> bool:
    """For p collinear with ab: does p lie on the side of a towards b?"""
    return _dot_from(a, p, b) > 0


# =============================================================================
# Data structure
# =============================================================================

class TVertex:
    """Triangulation vertex. `info` is free for the caller; `face` is one incident face."""

    __slots__ = ("point", "source_point", "index", "info", "face")

    def __init__(self, point: Optional[Point2], source_point: Optional[Point3] = None, index: int = -1):
        self.point = point
        self.source_point = source_point
        self.index = index
        self.info = None
        self.face: Optional["TFace"] = None

    def __repr__(self):
        if self.point is None:
            return "TVertex(infinite)"
        return f"TVertex({self.index}, {self.point[0]:.6g}, {self.point[1]:.6g})"


class TFace:
    """Triangulation face. `info` is free for the caller."""

    __slots__ = ("vertices", "neighbors", "info")

    def __init__(self, v0: TVertex, v1: TVertex, v2: TVertex):
        self.vertices = [v0, v1, v2]
        self.neighbors: list[Optional["TFace"]] = [None, None, None]
        self.info = None

    def vertex(self, i: int) -> TVertex:
        return self.vertices[i]

    def neighbor(self, i: int) -> "TFace":
        return self.neighbors[i]

    def index(self, v: TVertex) -> int:
        for i in range(3):
            if self.vertices[i] is v:
                return i
        raise ValueError(f"{v!r} is not a vertex of this face")

    def has_vertex(self, v: TVertex) -> bool:
        return any(w is v for w in self.vertices)

    def edge_vertices(self, i: int) -> tuple[TVertex, TVertex]:
        """Endpoints of edge i in counter-clockwise order."""
        return self.vertices[ccw(i)], self.vertices[cw(i)]

    def __repr__(self):
        return f"TFace({self.vertices[0]!r}, {self.vertices[1]!r}, {self.vertices[2]!r})"


def _pair_key(a: TVertex, b: TVertex) -> tuple[int, int]:
    return (id(a), id(b)) if id(a) < id(b) else (id(b), id(a))


# =============================================================================
# Triangulation
# =============================================================================

class ConstrainedTriangulation:
    """
    2D constrained Delaunay triangulation over kernel-projected 3D points.

    Example:
        >>> cdt = ConstrainedTriangulation(FloatKernel(), (0.0, 0.0, 1.0))
        >>> a = cdt.insert((0, 0, 0)); b = cdt.insert((1, 0, 0)); c = cdt.insert((0, 1, 0))
        >>> cdt.insert_constraint(a, b)
        >>> cdt.number_of_faces
        1
    """

    def __init__(self, kernel: Kernel, normal: Vector3):
        self.kernel = kernel
        self.normal = tuple(normal)
        self.infinite_vertex = TVertex(None)

        self._vertices: list[TVertex] = []
        self._by_point: dict[Point2, TVertex] = {}
        # Insertion-ordered set of faces
        self._faces: dict[TFace, None] = {}
        self._constraints: dict[tuple[int, int], tuple[TVertex, TVertex]] = {}
        self._pending_constraints: list[tuple[TVertex, TVertex]] = []
        # Start of the next point location walk
        self._hint: Optional[TFace] = None
        self._rng = random.Random(0)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def dimension(self) -> int:
        if self._faces:
            return 2
        if not self._vertices:
            return -1
        return 0 if len(self._vertices) == 1 else 1

    @property
    def number_of_vertices(self) -> int:
        return len(self._vertices)

    @property
    def number_of_faces(self) -> int:
        """Number of finite faces."""
        return sum(1 for f in self._faces if not self.is_infinite(f))

    def vertices(self) -> list[TVertex]:
        return list(self._vertices)

    def is_infinite(self, item) -> bool:
        """True for the infinite vertex and for faces incident to it."""
        if isinstance(item, TFace):
            return item.has_vertex(self.infinite_vertex)
        return item is self.infinite_vertex

    def all_faces(self) -> list[TFace]:
        self._require_2d()
        return list(self._faces)

    def finite_faces(self) -> list[TFace]:
        self._require_2d()
        return [f for f in self._faces if not self.is_infinite(f)]

    def infinite_face(self) -> TFace:
        """One face incident to the infinite vertex."""
        self._require_2d()
        return self.infinite_vertex.face

    def incident_faces(self, v: TVertex) -> Iterator[TFace]:
        """Faces around v in counter-clockwise order, infinite ones included."""
        self._require_2d()
        start = f = v.face
        while True:
            yield f
            f = f.neighbors[ccw(f.index(v))]
            if f is start:
                return

    def finite_edges(self) -> Iterator[tuple[TFace, int]]:
        """Yield each finite edge once, as (face, index)."""
        self._require_2d()
        seen = set()
        for f in self._faces:
            for i in range(3):
                a, b = f.edge_vertices(i)
                if a is self.infinite_vertex or b is self.infinite_vertex:
                    continue
                key = _pair_key(a, b)
                if key in seen:
                    continue
                seen.add(key)
                yield f, i

    def mirror_index(self, face: TFace, i: int) -> int:
        """Index of the shared edge as seen from neighbor(i)."""
        g = face.neighbors[i]
        a, b = face.edge_vertices(i)
        return 3 - g.index(a) - g.index(b)

    def is_constrained(self, face: TFace, i: int) -> bool:
        a, b = face.edge_vertices(i)
        return _pair_key(a, b) in self._constraints

    def is_constrained_edge(self, va: TVertex, vb: TVertex) -> bool:
        return _pair_key(va, vb) in self._constraints

    def constraints(self) -> list[tuple[TVertex, TVertex]]:
        """Constrained edges as vertex pairs (after splitting at interior vertices)."""
        return list(self._constraints.values())

    def _require_2d(self) -> None:
        if not self._faces:
            raise TriangulationError(
                f"Triangulation is not two-dimensional ({len(self._vertices)} vertices, "
                f"all collinear)"
            )

    # -------------------------------------------------------------------------
    # Insertion
    # -------------------------------------------------------------------------

    def insert(self, point: Point3) -> TVertex:
        """
        Project and insert a point.

        Returns:
            The new vertex, or the existing vertex at the same projected position
        """
        p = self.kernel.project(point, self.normal)
        existing = self._by_point.get(p)
        if existing is not None:
            return existing

        v = TVertex(p, tuple(point), len(self._vertices))
        self._vertices.append(v)
        self._by_point[p] = v

        if self._faces:
            self._insert_2d(v)
        else:
            self._try_initialize()
        return v

    def insert_constraint(self, va: TVertex, vb: TVertex) -> None:
        """Force the segment va-vb into the triangulation."""
        if va is vb:
            return
        if not self._faces:
            self._pending_constraints.append((va, vb))
            return
        self._insert_constraint_2d(va, vb)

    def _mark_constraint(self, va: TVertex, vb: TVertex) -> None:
        self._constraints[_pair_key(va, vb)] = (va, vb)

    def _try_initialize(self) -> None:
        """Create the first triangle once a non-collinear point exists."""
        if len(self._vertices) < 3:
            return
        a, b, c = self._vertices[0], self._vertices[1], self._vertices[-1]
        o = orient_2d(a.point, b.point, c.point)
        if o == 0:
            return
        if o < 0:
            a, b = b, a

        inf = self.infinite_vertex
        self._add_faces([
            TFace(a, b, c),
            TFace(b, a, inf),
            TFace(c, b, inf),
            TFace(a, c, inf),
        ], {})

        for v in self._vertices[2:-1]:
            self._insert_2d(v)

        pending = self._pending_constraints
        self._pending_constraints = []
        for va, vb in pending:
            self._insert_constraint_2d(va, vb)

    def _add_faces(
        self,
        new_faces: list[TFace],
        boundary: dict[tuple[TVertex, TVertex], tuple[TFace, int]]
    ) -> None:
        """
        Register new faces and link their adjacency.

        Edges found in `boundary` (directed, as seen from inside the new
        region) are linked to the recorded outside face; all other edges
        must pair up among the new faces.
        """
        open_edges: dict[tuple[TVertex, TVertex], tuple[TFace, int]] = {}
        for f in new_faces:
            self._faces[f] = None
            for v in f.vertices:
                v.face = f
            for i in range(3):
                a, b = f.edge_vertices(i)
                outside = boundary.get((a, b))
                if outside is not None:
                    g, j = outside
                    f.neighbors[i] = g
                    g.neighbors[j] = f
                    continue
                twin = open_edges.pop((b, a), None)
                if twin is not None:
                    g, j = twin
                    f.neighbors[i] = g
                    g.neighbors[j] = f
                else:
                    open_edges[(a, b)] = (f, i)

        if open_edges:
            raise TriangulationError(f"{len(open_edges)} edges left unmatched while retriangulating")
        if new_faces:
            self._hint = new_faces[-1]

    def _in_conflict(self, face: TFace, p: Point2) -> bool:
        if face.has_vertex(self.infinite_vertex):
            a, b = face.edge_vertices(face.index(self.infinite_vertex))
            o = orient_2d(a.point, b.point, p)
            if o > 0:
                return True
            return o == 0 and _strictly_between(p, a.point, b.point)
        a, b, c = face.vertices
        return in_circle(a.point, b.point, c.point, p) > 0

    def _locate(self, p: Point2) -> TFace:
        """
        Finite face containing p, else an infinite face that sees p.

        Walks from the last face created, crossing any edge that has p
        strictly on its far side. The edge order is randomized at each step,
        which keeps the walk from looping.
        """
        f = self._hint
        if f is None or f not in self._faces:
            f = next(iter(self._faces))
        if f.has_vertex(self.infinite_vertex):
            f = f.neighbors[f.index(self.infinite_vertex)]

        while True:
            if f.has_vertex(self.infinite_vertex):
                # Entered across its finite edge, so p is beyond the hull there
                return f
            offset = self._rng.randrange(3)
            for k in range(3):
                i = (offset + k) % 3
                a, b = f.edge_vertices(i)
                if orient_2d(a.point, b.point, p) < 0:
                    f = f.neighbors[i]
                    break
            else:
                return f

    def _insert_2d(self, v: TVertex) -> None:
        p = v.point
        start = self._locate(p)

        # A point on a constrained edge splits it
        split = None
        if not start.has_vertex(self.infinite_vertex):
            for i in range(3):
                a, b = start.edge_vertices(i)
                if orient_2d(a.point, b.point, p) == 0 and self.is_constrained_edge(a, b):
                    split = (a, b)
                    del self._constraints[_pair_key(a, b)]
                    break

        # Conflict zone, bounded by constrained edges
        zone = {start: None}
        stack = [start]
        while stack:
            f = stack.pop()
            for i in range(3):
                g = f.neighbors[i]
                if g in zone or self.is_constrained(f, i):
                    continue
                if self._in_conflict(g, p):
                    zone[g] = None
                    stack.append(g)

        boundary = {}
        new_faces = []
        for f in zone:
            for i in range(3):
                g = f.neighbors[i]
                if g in zone:
                    continue
                a, b = f.edge_vertices(i)
                boundary[(a, b)] = (g, self.mirror_index(f, i))
                new_faces.append(TFace(a, b, v))

        for f in zone:
            del self._faces[f]
        self._add_faces(new_faces, boundary)

        if split is not None:
            self._mark_constraint(split[0], v)
            self._mark_constraint(v, split[1])

    # -------------------------------------------------------------------------
    # Constraints
    # -------------------------------------------------------------------------

    def _find_edge(self, va: TVertex, vb: TVertex) -> bool:
        return any(f.has_vertex(vb) for f in self.incident_faces(va))

    def _insert_constraint_2d(self, va: TVertex, vb: TVertex) -> None:
        if va is vb:
            return
        if self._find_edge(va, vb):
            self._mark_constraint(va, vb)
            return

        a, b = va.point, vb.point

        # First crossed edge: the one opposite va in the face whose wedge holds b
        start = None
        for f in self.incident_faces(va):
            if f.has_vertex(self.infinite_vertex):
                continue
            i = f.index(va)
            u, w = f.edge_vertices(i)
            ou = orient_2d(a, b, u.point)
            ow = orient_2d(a, b, w.point)
            if ou == 0 and _ahead(a, b, u.point):
                self._insert_constraint_2d(va, u)
                self._insert_constraint_2d(u, vb)
                return
            if ow == 0 and _ahead(a, b, w.point):
                self._insert_constraint_2d(va, w)
                self._insert_constraint_2d(w, vb)
                return
            if ou < 0 < ow:
                start = (f, i)
                break
        if start is None:
            raise TriangulationError(f"Constraint {va!r} - {vb!r} leaves the triangulation")

        # Walk along the segment collecting crossed faces and the vertex
        # chains on its left and right
        f, i = start
        right_end, left_end = f.edge_vertices(i)
        crossed = [f]
        left = [left_end]
        right = [right_end]
        while True:
            if self.is_constrained(f, i):
                ea, eb = f.edge_vertices(i)
                raise IntersectingConstraintsError(
                    f"Constraint {va!r} - {vb!r} crosses constraint {ea!r} - {eb!r}"
                )
            g = f.neighbors[i]
            o = g.vertices[self.mirror_index(f, i)]
            crossed.append(g)
            if o is vb:
                break
            if o is self.infinite_vertex:
                raise TriangulationError(f"Constraint {va!r} - {vb!r} leaves the convex hull")
            side = orient_2d(a, b, o.point)
            if side == 0:
                # Vertex on the segment: split the constraint there
                self._insert_constraint_2d(va, o)
                self._insert_constraint_2d(o, vb)
                return
            # g is (left_end, right_end, o) counter-clockwise; the segment
            # leaves g through the edge opposite the vertex on o's side
            if side > 0:
                i = g.index(left_end)
                left_end = o
                left.append(o)
            else:
                i = g.index(right_end)
                right_end = o
                right.append(o)
            f = g

        crossed_set = set(crossed)
        boundary = {}
        for f in crossed:
            for k in range(3):
                g = f.neighbors[k]
                if g in crossed_set:
                    continue
                x, y = f.edge_vertices(k)
                boundary[(x, y)] = (g, self.mirror_index(f, k))

        for f in crossed:
            del self._faces[f]

        new_faces = self._triangulate_pseudo_polygon(va, vb, list(reversed(left)))
        new_faces += self._triangulate_pseudo_polygon(vb, va, right)
        self._add_faces(new_faces, boundary)
        self._mark_constraint(va, vb)

    @staticmethod
    def _triangulate_pseudo_polygon(p: TVertex, q: TVertex, chain: list[TVertex]) -> list[TFace]:
        """
        Triangulate the region p, q, chain[0], ..., chain[-1] (CCW).

        For each base edge the apex is the chain vertex whose circumcircle
        with the base holds no other chain vertex.
        """
        faces = []
        work = [(p, q, chain)]
        while work:
            p, q, chain = work.pop()
            if not chain:
                continue
            k = 0
            for idx in range(1, len(chain)):
                if in_circle(p.point, q.point, chain[k].point, chain[idx].point) > 0:
                    k = idx
            c = chain[k]
            faces.append(TFace(p, q, c))
            work.append((c, q, chain[:k]))
            work.append((p, c, chain[k + 1:]))
        return faces
