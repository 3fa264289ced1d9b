"""Command-line interface for terrain generation."""

import argparse
import logging
import sys
import time


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a procedural terrain heightfield and its derived artifacts"
    )
    parser.add_argument(
        "--width", type=int, default=257, help="Grid width (default: 257)"
    )
    parser.add_argument(
        "--length", type=int, default=257, help="Grid length (default: 257)"
    )
    parser.add_argument(
        "--seed", type=int, default=42, help="Random seed (default: 42)"
    )
    parser.add_argument(
        "--layers", type=int, default=4, help="Perlin octaves (default: 4)"
    )
    parser.add_argument(
        "--displacement",
        action="store_true",
        help="Add midpoint displacement (dimensions must be 2^n+1)",
    )
    parser.add_argument(
        "--no-voronoi", action="store_true", help="Skip the biome map"
    )
    parser.add_argument("--lake", action="store_true", help="Carve a lake")
    parser.add_argument("--river", action="store_true", help="Carve a river")
    parser.add_argument("--trail", action="store_true", help="Carve a trail")
    parser.add_argument(
        "--erosion",
        type=int,
        default=0,
        metavar="N",
        help="Thermal erosion passes (default: 0)",
    )
    parser.add_argument(
        "--features", action="store_true", help="Place the sample feature set"
    )
    parser.add_argument("--mesh", action="store_true", help="Extract an isosurface mesh")
    parser.add_argument(
        "--debug-images",
        type=str,
        default=None,
        help="Directory to save debug images (optional)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for terrain generation."""
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Import here to avoid slow startup for --help
    from .config import (
        DisplacementSettings,
        ErosionSettings,
        FeaturePlacementSettings,
        LakeSettings,
        MeshSettings,
        NoiseSettings,
        RiverSettings,
        TerrainSettings,
        TrailSettings,
        VoronoiSettings,
        default_features,
    )
    from .exceptions import ConfigurationError
    from .pipeline import generate_terrain

    settings = TerrainSettings(
        seed=args.seed,
        width=args.width,
        length=args.length,
        perlin=NoiseSettings(layers=args.layers, base_scale=4.0),
        displacement=DisplacementSettings(enabled=args.displacement),
        voronoi=VoronoiSettings(enabled=not args.no_voronoi),
        lake=LakeSettings(enabled=args.lake),
        river=RiverSettings(enabled=args.river),
        trail=TrailSettings(enabled=args.trail),
        erosion=ErosionSettings(enabled=args.erosion > 0, iterations=args.erosion),
        placement=FeaturePlacementSettings(
            enabled=args.features, features=default_features() if args.features else []
        ),
        mesh=MeshSettings(enabled=args.mesh),
        debug_output_dir=args.debug_images,
    )

    print(f"Generating {args.width}x{args.length} terrain with seed {args.seed}")
    print()

    start_time = time.time()
    try:
        result = generate_terrain(settings)
    except ConfigurationError as exc:
        print("Invalid settings:", file=sys.stderr)
        for error in exc.errors:
            print(f"  - {error}", file=sys.stderr)
        return 2
    gen_time = time.time() - start_time

    print()
    print(f"Generation complete in {gen_time:.1f}s")
    for stage, seconds in result.timings.items():
        print(f"  {stage}: {seconds:.2f}s")

    values = result.heightfield.values
    print(f"Heights: min {values.min():.3f}, max {values.max():.3f}, mean {values.mean():.3f}")

    if result.biome_map is not None:
        print(f"Biomes: {len(result.biome_map.sites)} sites")
    for placement in result.placements:
        print(f"Feature {placement.feature.name}: {placement.count:,} cells")
    if result.mesh is not None:
        print(
            f"Mesh: {result.mesh.vertex_count:,} vertices, "
            f"{result.mesh.triangle_count:,} triangles"
        )

    return 0


if __name__ == "__main__":
    sys.exit(main())
