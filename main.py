"""
Mesh Simplification - Command Line
==================================

Simplifies a mesh file (or a generated sample) with Quadric Error Metrics.

This script:
1. Loads a mesh file or creates a sample mesh
2. Welds and simplifies every triangle primitive
3. Saves the result and prints quantitative metrics
4. Optionally saves before/after and error heatmap plots
"""

import argparse
import logging
import time
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from qem_simplify import SimplifyOptions, simplify_primitive
from qem_simplify.evaluation import MeshEvaluator
from qem_simplify.utils import (configure_logging, create_sample_document,
                                load_document, save_document)
from qem_simplify.visualization import MeshVisualizer

logger = logging.getLogger('qem_simplify.main')


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mesh simplification using Quadric Error Metrics"
    )
    parser.add_argument(
        "--mesh", "-m", type=str, default=None,
        help="Path to input mesh file. If not provided, a sample mesh is generated."
    )
    parser.add_argument(
        "--sample", "-s", type=str, default="sphere",
        choices=["sphere", "torus", "cube", "cylinder", "grid"],
        help="Sample mesh to generate when --mesh is not given (default: sphere)"
    )
    parser.add_argument(
        "--output", "-o", type=str, default="output",
        help="Output directory for results"
    )
    parser.add_argument(
        "--ratio", "-r", type=float, default=SimplifyOptions.target,
        help="Fraction of vertices to keep (default: 0.1)"
    )
    parser.add_argument(
        "--distance-threshold", "-d", type=float, default=0.0,
        help="Merge vertices closer than this even without a shared edge. "
             "Compares every vertex pair; slow on large meshes. (default: 0)"
    )
    parser.add_argument(
        "--format", "-f", type=str, default="ply",
        help="Output file extension (default: ply)"
    )
    parser.add_argument(
        "--plot", "-p", action="store_true",
        help="Save comparison and error heatmap plots"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-file", type=str, default=None,
        help="Also write logs to this file"
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Command line entry point."""
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_file)

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    if args.mesh:
        logger.info(f"Loading mesh from: {args.mesh}")
        document = load_document(args.mesh)
        mesh_name = Path(args.mesh).stem
    else:
        logger.info(f"No mesh specified, creating sample mesh: {args.sample}")
        document = create_sample_document(args.sample)
        mesh_name = f"sample_{args.sample}"

    original = document.clone()
    options = SimplifyOptions(target=args.ratio, distance_threshold=args.distance_threshold)
    options.validate()

    # Same steps as document.transform(simplify(options)), keeping each
    # decimator for its vertex errors
    start_time = time.time()
    decimators = {}
    for mesh_index, mesh in enumerate(document.list_meshes()):
        for prim_index, prim in enumerate(mesh.list_primitives()):
            decimators[mesh_index, prim_index] = simplify_primitive(prim, options)
    runtime = time.time() - start_time

    output_path = output_dir / f"{mesh_name}_simplified_{int(args.ratio * 100)}pct.{args.format}"
    save_document(document, str(output_path))

    evaluator = MeshEvaluator()
    visualizer = MeshVisualizer()
    pairs = zip(original.list_meshes(), document.list_meshes())
    for mesh_index, (before_mesh, after_mesh) in enumerate(pairs):
        for prim_index, (before, after) in enumerate(zip(before_mesh.list_primitives(),
                                                         after_mesh.list_primitives())):
            decimator = decimators[mesh_index, prim_index]
            if decimator is None or after.get_face_count() == 0:
                continue

            metrics = evaluator.compute_all_metrics(before, after)
            metrics['runtime'] = runtime
            label = f"{after_mesh.name or mesh_index}[{prim_index}]"
            print(evaluator.generate_report(metrics, f"QEM {label}"))

            if args.plot:
                stem = output_dir / f"{mesh_name}_{mesh_index}_{prim_index}"
                fig = visualizer.plot_mesh_comparison(
                    before, after,
                    title=f"{label} - Original vs {args.ratio * 100:.0f}% Simplified",
                    save_path=f"{stem}_comparison.png"
                )
                plt.close(fig)
                fig = visualizer.plot_error_heatmap(
                    after, decimator.get_vertex_errors(),
                    title=f"{label} - Quadric Error Heatmap",
                    save_path=f"{stem}_error_heatmap.png"
                )
                plt.close(fig)

    logger.info(f"Results saved to: {output_dir.absolute()}")


if __name__ == "__main__":
    main()
