"""
Polygon mesh file I/O.

Native readers/writers for the two formats that keep polygonal faces
intact (OFF and OBJ), plus conversion of triangulated meshes to trimesh.

trimesh is optional: only to_trimesh() needs it.
"""

from pathlib import Path
from typing import Union

try:
    from .halfedge_mesh import HalfedgeMesh
except ImportError:
    from halfedge_mesh import HalfedgeMesh


_trimesh_available = False

try:
    import trimesh
    _trimesh_available = True
except ImportError:
    pass


def _strip_comment(line: str) -> str:
    return line.split('#', 1)[0].strip()


# =============================================================================
# OFF
# =============================================================================

def read_off(filepath: Union[str, Path]) -> HalfedgeMesh:
    """
    Read an OFF file.

    Accepts the counts on the header line ("OFF 8 6 12") or on the next
    line, and ignores per-face colors after the index list.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    with open(filepath, 'r') as f:
        tokens_by_line = [_strip_comment(line).split() for line in f]
    lines = [tokens for tokens in tokens_by_line if tokens]

    if not lines or not lines[0][0].endswith("OFF"):
        raise ValueError(f"{filepath}: missing OFF header")

    header = lines[0][1:]
    pos = 1
    if not header:
        header = lines[1]
        pos = 2
    try:
        nv, nf = int(header[0]), int(header[1])
    except (IndexError, ValueError):
        raise ValueError(f"{filepath}: invalid OFF counts {header}") from None

    if len(lines) < pos + nv + nf:
        raise ValueError(f"{filepath}: expected {nv} vertices and {nf} faces")

    points = []
    for tokens in lines[pos:pos + nv]:
        points.append((float(tokens[0]), float(tokens[1]), float(tokens[2])))
    pos += nv

    polygons = []
    for tokens in lines[pos:pos + nf]:
        k = int(tokens[0])
        if len(tokens) < k + 1:
            raise ValueError(f"{filepath}: face line {' '.join(tokens)} is too short")
        polygons.append([int(t) for t in tokens[1:k + 1]])

    return HalfedgeMesh.from_polygons(points, polygons)


def write_off(mesh: HalfedgeMesh, filepath: Union[str, Path]) -> None:
    """Write the live faces of a mesh to an OFF file."""
    points, polygons = mesh.to_polygons()
    with open(filepath, 'w') as f:
        f.write("OFF\n")
        f.write(f"{len(points)} {len(polygons)} {mesh.num_edges}\n")
        for p in points:
            f.write(f"{p[0]:.9g} {p[1]:.9g} {p[2]:.9g}\n")
        for polygon in polygons:
            f.write(f"{len(polygon)} " + " ".join(str(v) for v in polygon) + "\n")


# =============================================================================
# OBJ
# =============================================================================

def read_obj(filepath: Union[str, Path]) -> HalfedgeMesh:
    """
    Read vertices and faces of an OBJ file.

    Face entries may carry texture/normal indices (v/vt/vn), which are
    ignored. Negative indices count back from the last vertex read.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    points = []
    polygons = []
    with open(filepath, 'r') as f:
        for line in f:
            tokens = _strip_comment(line).split()
            if not tokens:
                continue
            if tokens[0] == 'v':
                points.append((float(tokens[1]), float(tokens[2]), float(tokens[3])))
            elif tokens[0] == 'f':
                face = []
                for entry in tokens[1:]:
                    idx = int(entry.split('/')[0])
                    face.append(idx - 1 if idx > 0 else len(points) + idx)
                polygons.append(face)

    return HalfedgeMesh.from_polygons(points, polygons)


def write_obj(mesh: HalfedgeMesh, filepath: Union[str, Path]) -> None:
    """Write the live faces of a mesh to an OBJ file."""
    points, polygons = mesh.to_polygons()
    with open(filepath, 'w') as f:
        f.write("# facetri - OBJ Export\n")
        f.write(f"# Vertices: {len(points)}\n")
        f.write(f"# Faces: {len(polygons)}\n\n")

        for p in points:
            f.write(f"v {p[0]:.9g} {p[1]:.9g} {p[2]:.9g}\n")

        f.write("\n")

        # OBJ uses 1-based indexing
        for polygon in polygons:
            f.write("f " + " ".join(str(v + 1) for v in polygon) + "\n")


# =============================================================================
# Dispatch
# =============================================================================

READERS = {".off": read_off, ".obj": read_obj}
WRITERS = {".off": write_off, ".obj": write_obj}


def load_mesh(filepath: Union[str, Path]) -> HalfedgeMesh:
    """Load a polygon mesh, choosing the reader from the file suffix."""
    suffix = Path(filepath).suffix.lower()
    if suffix not in READERS:
        raise ValueError(f"Unsupported mesh format '{suffix}', expected one of {sorted(READERS)}")
    return READERS[suffix](filepath)


def save_mesh(mesh: HalfedgeMesh, filepath: Union[str, Path]) -> None:
    """Save a polygon mesh, choosing the writer from the file suffix."""
    suffix = Path(filepath).suffix.lower()
    if suffix not in WRITERS:
        raise ValueError(f"Unsupported mesh format '{suffix}', expected one of {sorted(WRITERS)}")
    WRITERS[suffix](mesh, filepath)


def to_trimesh(mesh: HalfedgeMesh):
    """
    Convert a fully triangulated mesh to trimesh.Trimesh.

    Vertices and faces are passed through unprocessed so indices match.

    Raises:
        ValueError: if a face is not a triangle
        RuntimeError: if trimesh is not installed
    """
    points, polygons = mesh.to_polygons()
    for polygon in polygons:
        if len(polygon) != 3:
            raise ValueError(f"Mesh has a face with {len(polygon)} vertices; triangulate it first")

    if not _trimesh_available:
        raise RuntimeError("trimesh is not installed (pip install trimesh)")

    return trimesh.Trimesh(vertices=points, faces=polygons, process=False)
