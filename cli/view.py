"""CLI command: build a block world and watch it fill in."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cli.build_world import add_common_args, config_overrides
from config_io.config import load_config
from eval.runner import make_builder, make_sampler
from render.pygame_renderer import PygameRenderer


def main() -> None:
    parser = argparse.ArgumentParser(description="Build and view a block world")
    add_common_args(parser)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    config = load_config(args.config, config_overrides(args))
    if config.raster.path is None:
        parser.error("a raster is required (--raster or raster.path in the config)")

    sampler = make_sampler(config)
    grid_size = config.build.grid_size if config.build.grid_size is not None else sampler.grid_size
    renderer = PygameRenderer(config, grid_size)

    builder = make_builder(config)
    report = builder.build(
        sampler,
        grid_size=grid_size,
        block_size=config.build.block_size,
        sink=renderer.sink,
    )
    logging.info("Dispatch finished; close the window or press ESC to quit")

    renderer.run(report)
    builder.close(timeout=5.0)
    logging.info(f"Placed {report.integrated}/{report.total} blocks")


if __name__ == "__main__":
    main()
