"""CLI entrypoint for clustering a mesh's face normals.

Usage:
    pymeshclust-cluster MESH OUTPUT [--clusters K] [--model {spherical_kmeans,vmf,bingham,kent}]
"""

import argparse
import logging
import sys

from pymeshclust.pipeline.run import cluster_mesh_file
from pymeshclust.types import ClusteringConfig, DistributionModel


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Cluster triangle face normals into coherent surface regions.",
    )
    parser.add_argument("mesh", help="Mesh file (.npz, .mat, .gii or FreeSurfer surface).")
    parser.add_argument("output", help="Output file for the assignments (.npz or .mat).")
    parser.add_argument("--clusters", type=int, default=8,
                        help="Number of clusters (default: 8).")
    parser.add_argument("--model", default=DistributionModel.SPHERICAL_KMEANS.value,
                        help="Distribution model: spherical_kmeans, vmf, bingham or kent.")
    parser.add_argument("--no-normalize", action="store_true", default=False,
                        help="Use the input normals without normalizing them.")
    parser.add_argument("--no-coherent", action="store_true", default=False,
                        help="Skip the mesh coherence repair stage.")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducible runs.")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker threads (default: all CPUs).")
    parser.add_argument("--verbose", action="store_true", default=False,
                        help="Log per-iteration diagnostics.")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        config = ClusteringConfig(
            cluster_count=args.clusters,
            normalize_input_vectors=not args.no_normalize,
            distribution_model=args.model,
            coherent=not args.no_coherent,
            seed=args.seed,
            num_workers=args.workers,
        )
        result = cluster_mesh_file(args.mesh, args.output, config)
        print(f"Clustering complete: {result.cluster_count} clusters, "
              f"{result.num_unassigned} unassigned. Output: {args.output}")
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
