"""CLI command: build a block world from a raster, headless."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config_io.config import load_config
from eval.runner import run_build


def config_overrides(args: argparse.Namespace) -> dict:
    """Translate shared CLI flags into config overrides."""
    overrides: dict = {}
    if args.raster is not None:
        overrides["raster"] = {"path": args.raster}
    build: dict = {}
    if args.workers is not None:
        build["worker_count"] = args.workers
    if args.grid_size is not None:
        build["grid_size"] = args.grid_size
    if build:
        overrides["build"] = build
    return overrides


def add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--raster", type=str, default=None, help="GeoTIFF or .npy elevation raster")
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config file")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads (default: CPU count)")
    parser.add_argument("--grid-size", type=int, default=None, help="Override grid side (default: min(width, height))")


def main() -> None:
    parser = argparse.ArgumentParser(description="Convert an elevation raster into block heights")
    add_common_args(parser)
    parser.add_argument("--output", type=str, default=None, help="Write heights to this .npz")
    parser.add_argument("--report", type=str, default=None, help="Write build report JSON here")
    parser.add_argument("--timeout", type=float, default=None, help="Cancel the build after N seconds")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config = load_config(args.config, config_overrides(args))
    if config.raster.path is None:
        parser.error("a raster is required (--raster or raster.path in the config)")

    report, metrics = run_build(
        config,
        output_path=args.output,
        report_path=args.report,
        timeout=args.timeout,
    )

    print("\n=== Build Summary ===")
    print(f"  Grid: {metrics['grid_size']}x{metrics['grid_size']} ({metrics['total_cells']} cells)")
    print(f"  Integrated: {metrics['integrated']}  Failed: {metrics['failed']}  "
          f"Cancelled: {metrics['cancelled']}")
    print(f"  Heights: min={metrics.get('height_min')} max={metrics.get('height_max')} "
          f"mean={metrics.get('height_mean')}")
    print(f"  Elapsed: {metrics['elapsed_s']}s ({metrics['blocks_per_s']} blocks/s)")

    if not report.ok:
        sys.exit(2)


if __name__ == "__main__":
    main()
