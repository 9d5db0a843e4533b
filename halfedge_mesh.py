"""
Half-edge polygon mesh.

Records live in flat arenas addressed by integer indices:
- Edge e owns half-edges 2e and 2e+1, so opposite(h) == h ^ 1
- A half-edge stores its target vertex, next/prev links and incident face
  (None for border and hole half-edges)
- A vertex stores one half-edge pointing at it
- A face stores one half-edge of its boundary cycle

Arenas only grow. Removed faces are tombstoned so indices stay stable while
faces are cut out and new ones are filled in.
"""

from typing import Iterator, Optional

try:
    from .kernel import Point3
except ImportError:
    from kernel import Point3


NULL = -1


class HalfedgeMesh:
    """
    Half-edge mesh with the Euler-style primitives needed to retriangulate
    faces in place.

    Example:
        >>> mesh = HalfedgeMesh.from_polygons(
        ...     [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)], [[0, 1, 2, 3]])
        >>> [mesh.face_degree(f) for f in mesh.faces()]
        [4]
    """

    def __init__(self):
        self.points: list[Point3] = []
        self._vertex_halfedge: list[int] = []

        self._target: list[int] = []
        self._next: list[int] = []
        self._prev: list[int] = []
        self._face: list[Optional[int]] = []

        self._face_halfedge: list[int] = []
        self._face_removed: list[bool] = []

    # -------------------------------------------------------------------------
    # Sizes
    # -------------------------------------------------------------------------

    @property
    def num_vertices(self) -> int:
        return len(self._vertex_halfedge)

    @property
    def num_halfedges(self) -> int:
        return len(self._target)

    @property
    def num_edges(self) -> int:
        return len(self._target) // 2

    @property
    def num_faces(self) -> int:
        """Number of live faces."""
        return self._face_removed.count(False)

    # -------------------------------------------------------------------------
    # Allocation
    # -------------------------------------------------------------------------

    def add_vertex(self, point: Point3 = (0.0, 0.0, 0.0)) -> int:
        """Add an isolated vertex and return its index."""
        self.points.append(tuple(float(c) for c in point))
        self._vertex_halfedge.append(NULL)
        return len(self._vertex_halfedge) - 1

    def add_edge(self) -> int:
        """
        Add an edge (a pair of opposite half-edges) and return its first half-edge.

        Targets, links and faces are left unset; the caller wires them.
        """
        h = len(self._target)
        for _ in range(2):
            self._target.append(NULL)
            self._next.append(NULL)
            self._prev.append(NULL)
            self._face.append(None)
        return h

    def add_face(self, h: int = NULL) -> int:
        """Add a face record with boundary half-edge h and return its index."""
        self._face_halfedge.append(h)
        self._face_removed.append(False)
        return len(self._face_halfedge) - 1

    def remove_face(self, f: int) -> None:
        """Tombstone a face. Half-edges pointing at it are not touched."""
        self._face_removed[f] = True
        self.set_halfedge(f, NULL)

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def target(self, h: int) -> int:
        return self._target[h]

    def source(self, h: int) -> int:
        return self._target[h ^ 1]

    def next(self, h: int) -> int:
        return self._next[h]

    def prev(self, h: int) -> int:
        return self._prev[h]

    @staticmethod
    def opposite(h: int) -> int:
        return h ^ 1

    @staticmethod
    def edge(h: int) -> int:
        return h // 2

    @staticmethod
    def edge_halfedge(e: int) -> int:
        return 2 * e

    def face(self, h: int) -> Optional[int]:
        return self._face[h]

    def halfedge(self, f: int) -> int:
        """Boundary half-edge of face f."""
        return self._face_halfedge[f]

    def vertex_halfedge(self, v: int) -> int:
        """A half-edge whose target is v (NULL for isolated vertices)."""
        return self._vertex_halfedge[v]

    def is_border(self, h: int) -> bool:
        return self._face[h] is None

    def is_removed(self, f: int) -> bool:
        return self._face_removed[f]

    # -------------------------------------------------------------------------
    # Low-level mutation
    # -------------------------------------------------------------------------

    def set_target(self, h: int, v: int) -> None:
        self._target[h] = v

    def set_next(self, h: int, n: int) -> None:
        """Link h -> n (also sets prev(n) = h)."""
        self._next[h] = n
        self._prev[n] = h

    def set_face(self, h: int, f: Optional[int]) -> None:
        self._face[h] = f

    def set_halfedge(self, f: int, h: int) -> None:
        self._face_halfedge[f] = h

    def set_vertex_halfedge(self, v: int, h: int) -> None:
        self._vertex_halfedge[v] = h

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def vertices(self) -> range:
        return range(len(self._vertex_halfedge))

    def halfedges(self) -> range:
        return range(len(self._target))

    def edges(self) -> range:
        return range(len(self._target) // 2)

    def faces(self) -> Iterator[int]:
        """Live faces. Not safe to consume while faces are cut or filled."""
        for f in range(len(self._face_halfedge)):
            if not self._face_removed[f]:
                yield f

    def halfedges_around_face(self, h: int) -> Iterator[int]:
        """Follow next links from h until the cycle closes."""
        limit = len(self._target)
        g = h
        steps = 0
        while True:
            yield g
            g = self._next[g]
            steps += 1
            if g == h:
                return
            if g == NULL or steps > limit:
                raise ValueError(f"Half-edge {h} is not on a closed next cycle")

    def vertices_around_face(self, h: int) -> list[int]:
        """Target vertices of the cycle through h, starting with target(h)."""
        return [self._target[g] for g in self.halfedges_around_face(h)]

    def face_degree(self, f: int) -> int:
        return sum(1 for _ in self.halfedges_around_face(self._face_halfedge[f]))

    def face_points(self, f: int, vertex_point_map=None) -> list[Point3]:
        """Positions of the vertices of face f in boundary order."""
        vpmap = self.points if vertex_point_map is None else vertex_point_map
        return [vpmap[v] for v in self.vertices_around_face(self._face_halfedge[f])]

    # -------------------------------------------------------------------------
    # Euler primitives
    # -------------------------------------------------------------------------

    def cut_face(self, h: int) -> None:
        """
        Remove the face incident to h, leaving a hole.

        Every half-edge of the face becomes a hole half-edge; targets,
        opposites and next/prev links are kept so the hole boundary is the
        former face cycle.
        """
        f = self._face[h]
        if f is None:
            raise ValueError(f"Half-edge {h} is already on a border or hole")
        for g in self.halfedges_around_face(h):
            self.set_face(g, None)
        self.remove_face(f)

    def fill_hole(self, h: int) -> int:
        """
        Create a face bounded by the next cycle through h.

        Returns:
            Index of the new face

        Raises:
            ValueError: if a half-edge of the cycle already has a face
        """
        cycle = list(self.halfedges_around_face(h))
        for g in cycle:
            if self._face[g] is not None:
                raise ValueError(f"Half-edge {g} already bounds face {self._face[g]}")
        f = self.add_face(h)
        for g in cycle:
            self.set_face(g, f)
        return f

    # -------------------------------------------------------------------------
    # Construction and export
    # -------------------------------------------------------------------------

    @classmethod
    def from_polygons(cls, points: list[Point3], polygons: list[list[int]]) -> "HalfedgeMesh":
        """
        Build a mesh from vertex positions and polygon index loops.

        Opposite half-edges are paired by vertex pair. Half-edges without a
        face are linked into border cycles.

        Args:
            points: Vertex positions
            polygons: Faces as lists of vertex indices (consistent orientation)

        Returns:
            New HalfedgeMesh

        Raises:
            ValueError: on out-of-range indices, faces with fewer than three
                vertices, repeated consecutive vertices, or non-manifold /
                inconsistently oriented edges
        """
        mesh = cls()
        for p in points:
            mesh.add_vertex(p)
        nv = mesh.num_vertices

        # (source, target) -> half-edge
        directed: dict[tuple[int, int], int] = {}

        for poly_idx, polygon in enumerate(polygons):
            loop = [int(v) for v in polygon]
            n = len(loop)
            if n < 3:
                raise ValueError(f"Face {poly_idx} has {n} vertices, need at least 3")
            for v in loop:
                if v < 0 or v >= nv:
                    raise ValueError(f"Face {poly_idx} references vertex {v}, mesh has {nv}")

            loop_halfedges = []
            for i in range(n):
                u = loop[i - 1]
                v = loop[i]
                if u == v:
                    raise ValueError(f"Face {poly_idx} repeats vertex {v} consecutively")
                h = directed.get((u, v))
                if h is None:
                    h = mesh.add_edge()
                    mesh.set_target(h, v)
                    mesh.set_target(h ^ 1, u)
                    directed[(u, v)] = h
                    directed[(v, u)] = h ^ 1
                elif mesh._face[h] is not None or h in loop_halfedges:
                    raise ValueError(
                        f"Edge ({u}, {v}) of face {poly_idx} is non-manifold "
                        f"or inconsistently oriented"
                    )
                loop_halfedges.append(h)

            f = mesh.add_face(loop_halfedges[0])
            for i, h in enumerate(loop_halfedges):
                mesh.set_face(h, f)
                mesh.set_next(h, loop_halfedges[(i + 1) % n])

        # Vertex half-edges, preferring border half-edges
        for h in mesh.halfedges():
            v = mesh._target[h]
            current = mesh._vertex_halfedge[v]
            if current == NULL or (mesh._face[h] is None and mesh._face[current] is not None):
                mesh.set_vertex_halfedge(v, h)

        # Link border cycles
        border_by_source: dict[int, list[int]] = {}
        for h in mesh.halfedges():
            if mesh._face[h] is None:
                border_by_source.setdefault(mesh.source(h), []).append(h)
        for h in mesh.halfedges():
            if mesh._face[h] is None:
                candidates = border_by_source.get(mesh._target[h])
                if not candidates:
                    raise ValueError(f"Border half-edge {h} has no continuation")
                mesh.set_next(h, candidates.pop(0))

        return mesh

    def to_polygons(self) -> tuple[list[Point3], list[list[int]]]:
        """Return (points, polygons) for the live faces."""
        polygons = [self.vertices_around_face(self._face_halfedge[f]) for f in self.faces()]
        return list(self.points), polygons

    def copy(self) -> "HalfedgeMesh":
        other = HalfedgeMesh()
        other.points = list(self.points)
        other._vertex_halfedge = list(self._vertex_halfedge)
        other._target = list(self._target)
        other._next = list(self._next)
        other._prev = list(self._prev)
        other._face = list(self._face)
        other._face_halfedge = list(self._face_halfedge)
        other._face_removed = list(self._face_removed)
        return other

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def check_integrity(self) -> list[str]:
        """
        Check the half-edge invariants.

        Returns:
            List of problems (empty if the mesh is consistent)
        """
        problems = []
        nh = len(self._target)

        for h in range(nh):
            if self._target[h] == NULL:
                problems.append(f"half-edge {h} has no target")
                continue
            if self._target[h] == self._target[h ^ 1]:
                problems.append(f"edge {h // 2} is a loop on vertex {self._target[h]}")
            n = self._next[h]
            if n == NULL:
                problems.append(f"half-edge {h} has no next")
                continue
            if self._prev[n] != h:
                problems.append(f"prev(next({h})) is {self._prev[n]}")
            if self.source(n) != self._target[h]:
                problems.append(
                    f"half-edge {h} ends at {self._target[h]} but next {n} starts at {self.source(n)}"
                )
            if self._face[n] != self._face[h]:
                problems.append(f"half-edges {h} and {n} are linked but bound different faces")

        for f in self.faces():
            h = self._face_halfedge[f]
            if h == NULL or self._face[h] != f:
                problems.append(f"face {f} boundary half-edge {h} does not point back")
                continue
            try:
                degree = sum(1 for _ in self.halfedges_around_face(h))
            except ValueError as e:
                problems.append(str(e))
                continue
            if degree < 3:
                problems.append(f"face {f} has degree {degree}")

        for h in range(nh):
            f = self._face[h]
            if f is not None and (f >= len(self._face_removed) or self._face_removed[f]):
                problems.append(f"half-edge {h} points at removed face {f}")

        for v, h in enumerate(self._vertex_halfedge):
            if h != NULL and self._target[h] != v:
                problems.append(f"vertex {v} half-edge {h} does not target it")

        return problems

    def is_valid(self) -> bool:
        return not self.check_integrity()

    def __repr__(self):
        return (
            f"HalfedgeMesh(vertices={self.num_vertices}, edges={self.num_edges}, "
            f"faces={self.num_faces})"
        )
