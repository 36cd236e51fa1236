"""
Surface Mesh Decimation - Main Demo
===================================

Demonstrates half-edge mesh decimation using Quadric Error Metrics (QEM).

This script:
1. Loads a mesh file or generates a sample mesh
2. Decimates it to a size tolerance or a triangle target
3. Computes quantitative metrics against the input
4. Saves the result and optional plots
"""

import argparse
import logging
import time
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import trimesh

from meshdecimate.evaluation import MeshEvaluator
from meshdecimate.exceptions import DecimationError
from meshdecimate.mesh_decimator import MeshDecimator
from meshdecimate.utils import create_sample_mesh, from_trimesh, load_mesh, save_mesh, to_trimesh
from meshdecimate.visualization import MeshVisualizer


def run_decimation(mesh: trimesh.Trimesh, options: dict,
                   tag_boundary: bool = False,
                   checkpoint: Optional[str] = None) -> tuple:
    """
    Run a single decimation and return the decimator, the half-edge mesh
    and the runtime.
    """
    decimator = MeshDecimator(options)
    hemesh = from_trimesh(mesh, tag_boundary=tag_boundary)

    def progress(fraction):
        print(f"\r  Progress: {fraction * 100:5.1f}%", end="", flush=True)

    start_time = time.time()
    decimator.decimate(hemesh, quadric_checkpoint=checkpoint, progress_callback=progress)
    runtime = time.time() - start_time
    print()
    return decimator, hemesh, runtime


def save_plots(mesh: trimesh.Trimesh, simplified: trimesh.Trimesh,
               decimator: MeshDecimator, output_dir: Path, mesh_name: str):
    """Save comparison, error heatmap and cost history figures."""
    visualizer = MeshVisualizer()
    print("\nGenerating visualizations...")
    fig = visualizer.plot_mesh_comparison(
        mesh, simplified,
        title=f"{mesh_name} - Original vs Decimated",
        save_path=str(output_dir / f"{mesh_name}_comparison.png")
    )
    plt.close(fig)

    vertex_errors = decimator.vertex_errors()
    print(f"Vertex error range: [{vertex_errors.min():.6g}, {vertex_errors.max():.6g}]")
    fig = visualizer.plot_error_heatmap(
        simplified, vertex_errors,
        title=f"{mesh_name} - Quadric Error Heatmap",
        save_path=str(output_dir / f"{mesh_name}_error_heatmap.png")
    )
    plt.close(fig)

    tolerance = decimator.options.tolerance if decimator.options.size else None
    fig = visualizer.plot_collapse_costs(
        decimator.get_collapse_history(), tolerance=tolerance,
        save_path=str(output_dir / f"{mesh_name}_costs.png")
    )
    plt.close(fig)


def main():
    """Main demo entry point."""
    parser = argparse.ArgumentParser(
        description="Surface mesh decimation demo using QEM"
    )
    parser.add_argument(
        "--mesh", "-m", type=str, default=None,
        help="Path to input mesh file. If not provided, uses a sample mesh."
    )
    parser.add_argument(
        "--sample", type=str, default="sphere",
        choices=["sphere", "torus", "cube", "cylinder", "bunny", "grid"],
        help="Sample mesh generated when no file is given (default: sphere)"
    )
    parser.add_argument(
        "--output", "-o", type=str, default="output",
        help="Output directory for results"
    )
    parser.add_argument(
        "--size", "-s", type=float, default=None,
        help="Target edge length; edges cheaper than size^2 are contracted"
    )
    parser.add_argument(
        "--ratio", "-r", type=float, default=None,
        help="Target ratio of triangles to keep (default: 0.25 without --size)"
    )
    parser.add_argument(
        "--placement", "-p", type=str, default="edge",
        choices=["vertex", "middle", "edge", "optimal"],
        help="Placement of contracted vertices (default: edge)"
    )
    parser.add_argument(
        "--boundary-weight", "-b", type=float, default=100.0,
        help="Boundary fin plane weight (default: 100.0)"
    )
    parser.add_argument(
        "--swap", action="store_true",
        help="Swap edges around contracted vertices to improve triangles"
    )
    parser.add_argument(
        "--tag-boundary", action="store_true",
        help="Constrain boundary vertices with a reference tag"
    )
    parser.add_argument(
        "--checkpoint", type=str, default=None,
        help="Save initial quadrics to this .npz file"
    )
    parser.add_argument(
        "--plots", action="store_true",
        help="Save comparison, error heatmap and cost plots"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log decimation phases"
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("SURFACE MESH DECIMATION")
    print("Using Quadric Error Metrics (QEM)")
    print("=" * 60)

    if args.mesh:
        print(f"\nLoading mesh from: {args.mesh}")
        mesh = load_mesh(args.mesh)
        mesh_name = Path(args.mesh).stem
    else:
        print(f"\nNo mesh specified, creating {args.sample} mesh...")
        mesh = create_sample_mesh(args.sample)
        mesh_name = f"sample_{args.sample}"

    print(f"  Vertices: {len(mesh.vertices)}")
    print(f"  Faces: {len(mesh.faces)}")
    print(f"  Watertight: {mesh.is_watertight}")

    options = {
        "placement": args.placement,
        "boundary_weight": args.boundary_weight,
        "swap": args.swap,
    }
    if args.size is not None:
        options["size"] = args.size
    ratio = args.ratio
    if ratio is None and args.size is None:
        ratio = 0.25
    if ratio is not None:
        options["maxtriangles"] = max(1, int(len(mesh.faces) * ratio))

    try:
        decimator, hemesh, runtime = run_decimation(
            mesh, options, tag_boundary=args.tag_boundary, checkpoint=args.checkpoint)
    except DecimationError as exc:
        parser.error(str(exc))

    print("\n" + decimator.report.summary())
    simplified = to_trimesh(hemesh)

    evaluator = MeshEvaluator()
    metrics = evaluator.compute_all_metrics(mesh, simplified)
    metrics['min_dihedral_cosine'] = evaluator.min_dihedral_cosine(hemesh)
    metrics['runtime'] = runtime
    print()
    evaluator.print_report(metrics, f"QEM ({args.placement})")

    output_path = output_dir / f"{mesh_name}_decimated.ply"
    save_mesh(simplified, str(output_path))
    print(f"Saved: {output_path}")

    if args.plots:
        save_plots(mesh, simplified, decimator, output_dir, mesh_name)

    print("\n" + "=" * 60)
    print("DEMO COMPLETE")
    print(f"Results saved to: {output_dir.absolute()}")
    print("=" * 60)


if __name__ == "__main__":
    main()
