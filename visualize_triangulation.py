"""
Visual check for face triangulation.

Builds a random concave polygon, tilts it into 3D, and plots its
constrained triangulation in the projection plane: exterior faces in grey,
interior faces in color, constrained (boundary) edges in blue.
"""

import argparse
import math
import random

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon as MplPolygon

from halfedge_mesh import HalfedgeMesh
from kernel import FloatKernel
from triangulate_faces import (
    classify_regions,
    triangulate_face_boundary,
    triangulate_faces,
)


def generate_random_concave_polygon(center, radius, num_vertices, concavity=0.3):
    """Generate a random star-shaped concave polygon (CCW)."""
    angles = np.linspace(0, 2 * np.pi, num_vertices, endpoint=False)
    vertices = []
    for i, angle in enumerate(angles):
        if i % 3 == 1:
            r = radius * (1 - concavity * random.uniform(0.5, 1.0))
        else:
            r = radius * (1 + random.uniform(-0.1, 0.1))
        x = center[0] + r * math.cos(angle)
        y = center[1] + r * math.sin(angle)
        vertices.append((x, y))
    return vertices


def tilt(points_2d, angle_deg=35.0, axis=(1.0, 1.0, 0.0)):
    """Rotate planar points out of the XY plane (Rodrigues rotation)."""
    k = np.asarray(axis, dtype=float)
    k = k / np.linalg.norm(k)
    theta = math.radians(angle_deg)
    K = np.array([
        [0, -k[2], k[1]],
        [k[2], 0, -k[0]],
        [-k[1], k[0], 0],
    ])
    R = np.eye(3) + math.sin(theta) * K + (1 - math.cos(theta)) * (K @ K)
    pts = np.array([(x, y, 0.0) for x, y in points_2d])
    return [tuple(float(c) for c in row) for row in pts @ R.T]


def plot_classified_triangulation(cdt, title="Classified triangulation", filename=None):
    """Plot finite triangulation faces colored by region."""
    fig, ax = plt.subplots(1, 1, figsize=(10, 10))

    faces = cdt.finite_faces()
    interior = [f for f in faces if not f.info.exterior]
    colors = plt.cm.Set3(np.linspace(0, 1, max(len(interior), 1)))

    color_idx = 0
    for f in faces:
        tri_verts = [v.point for v in f.vertices]
        if f.info.exterior:
            patch = MplPolygon(tri_verts, closed=True, facecolor='lightgrey',
                               edgecolor='grey', linewidth=0.5, alpha=0.5)
        else:
            patch = MplPolygon(tri_verts, closed=True, facecolor=colors[color_idx],
                               edgecolor='black', linewidth=1, alpha=0.7)
            color_idx += 1
        ax.add_patch(patch)

    for va, vb in cdt.constraints():
        ax.plot([va.point[0], vb.point[0]], [va.point[1], vb.point[1]], 'b-', linewidth=2)

    for v in cdt.vertices():
        ax.plot(v.point[0], v.point[1], 'ko', markersize=4)
        ax.annotate(f'{v.index}', (v.point[0], v.point[1]), fontsize=7)

    ax.set_aspect('equal')
    ax.set_title(f"{title} ({len(interior)} interior / {len(faces)} faces)")
    ax.grid(True, alpha=0.3)
    ax.autoscale()

    if filename:
        plt.savefig(filename, dpi=150, bbox_inches='tight')
        print(f"Saved to {filename}")
    plt.show()


def main():
    parser = argparse.ArgumentParser(description='Plot the triangulation of a random concave face')
    parser.add_argument('--seed', type=int, default=42)
    parser.add_argument('--vertices', type=int, default=15)
    parser.add_argument('--concavity', type=float, default=0.7)
    parser.add_argument('--output', default='/tmp/face_triangulation.png')
    args = parser.parse_args()

    random.seed(args.seed)
    np.random.seed(args.seed)

    polygon = generate_random_concave_polygon((0, 0), 10, args.vertices, args.concavity)
    points = tilt(polygon)
    mesh = HalfedgeMesh.from_polygons(points, [list(range(len(points)))])
    print(f"Polygon: {len(points)} vertices, tilted out of plane")

    kernel = FloatKernel()
    face = next(iter(mesh.faces()))
    cdt = triangulate_face_boundary(mesh, face, mesh.points, kernel)
    interior = classify_regions(cdt)
    print(f"Triangulation: {cdt.number_of_faces} finite faces, {interior} interior")

    plot_classified_triangulation(cdt, "Classified triangulation", args.output)

    report = triangulate_faces(mesh, kernel=kernel)
    print(f"Mesh: {report.triangles_created} triangles, {report.diagonals_created} diagonals")
    problems = mesh.check_integrity()
    print("Integrity: OK" if not problems else f"Integrity problems: {problems}")


if __name__ == "__main__":
    main()
