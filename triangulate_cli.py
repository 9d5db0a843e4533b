#!/usr/bin/env python3
"""
Command-line face triangulation.

Usage:
    python triangulate_cli.py <input.off|obj> <output.off|obj> [options]

Options:
    --config           JSON configuration file (default: <input>.facetri.json if present)
    --kernel           Numeric kernel: float or numpy
    --skip-degenerate  Leave faces that cannot be triangulated untouched
    --debug            Print per-face progress

Example:
    python triangulate_cli.py house.off house_tri.off --skip-degenerate
"""

import sys
import os
import argparse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import TriangulationConfig
from constrained_triangulation import TriangulationError
from kernel import DegenerateFaceError
from mesh_io import load_mesh, save_mesh
from triangulate_faces import triangulate_faces, FatalInvariantViolation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Triangulate the polygonal faces of a mesh',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s input.off output.off
  %(prog)s input.obj output.obj --kernel numpy
  %(prog)s input.off output.obj --skip-degenerate --debug
        """
    )
    parser.add_argument('input', help='Input mesh (.off or .obj)')
    parser.add_argument('output', help='Output mesh (.off or .obj)')
    parser.add_argument('--config', default=None,
                        help='JSON configuration file')
    parser.add_argument('--kernel', choices=['float', 'numpy'], default=None,
                        help='Numeric kernel (default: from config, else float)')
    parser.add_argument('--skip-degenerate', action='store_true',
                        help='Skip faces that cannot be triangulated instead of aborting')
    parser.add_argument('--debug', action='store_true',
                        help='Print per-face progress')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # Check input file exists
    if not os.path.exists(args.input):
        print(f"ERROR: Input file not found: {args.input}")
        return 1

    try:
        if args.config:
            config = TriangulationConfig.load(args.config)
        else:
            config = TriangulationConfig.load_for_mesh(args.input)
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1
    if args.kernel:
        config.kernel = args.kernel
    if args.skip_degenerate:
        config.on_degenerate = "skip"
    if args.debug:
        config.debug = True

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"ERROR: {error}")
        return 1

    print(f"Loading mesh: {args.input}")
    try:
        mesh = load_mesh(args.input)
    except ValueError as e:
        print(f"ERROR: Cannot read mesh: {e}")
        return 1

    print(f"Mesh: {mesh.num_vertices} vertices, {mesh.num_faces} faces")
    print(f"Options: kernel={config.kernel}, on_degenerate={config.on_degenerate}")

    try:
        report = triangulate_faces(mesh, config=config)
    except (DegenerateFaceError, TriangulationError) as e:
        print(f"ERROR: Triangulation aborted: {e}")
        return 1
    except FatalInvariantViolation as e:
        print(f"ERROR: Internal inconsistency: {e}")
        return 1

    print(f"Triangulated {report.faces_triangulated} faces: "
          f"{report.triangles_created} triangles, {report.diagonals_created} new edges")
    for record in report.skipped:
        print(f"Warning: face {record.face} ({record.degree} sides) skipped: {record.error}")

    try:
        save_mesh(mesh, args.output)
    except ValueError as e:
        print(f"ERROR: Cannot write mesh: {e}")
        return 1

    file_size = os.path.getsize(args.output)
    print(f"SUCCESS: Wrote {args.output} ({file_size:,} bytes)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
