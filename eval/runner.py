"""Build runner: raster file to finished world, headless."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from config_io.config import Config
from config_io.utils import save_json
from data.ingest import RasterData, load_raster
from data.tiles import save_world
from eval.metrics import compute_metrics
from world.builder import BuildReport, GridWorldBuilder
from world.elevation import ElevationSampler

logger = logging.getLogger(__name__)


def make_sampler(config: Config, raster: RasterData | None = None) -> ElevationSampler:
    """Load the configured raster (unless one is given) and wrap it in a sampler."""
    if raster is None:
        if config.raster.path is None:
            raise ValueError("no raster path configured")
        raster = load_raster(config.raster.path, band=config.raster.band)
    return ElevationSampler(
        raster.samples, raster.width, raster.height,
        output_range=config.elevation.output_range,
    )


def log_progress(completed: int, total: int) -> None:
    pct = 100.0 * completed / total if total else 100.0
    logger.info(f"Loaded block {completed}/{total} ({pct:.1f}%)")


def make_builder(config: Config) -> GridWorldBuilder:
    return GridWorldBuilder(
        worker_count=config.build.worker_count,
        max_pending=config.build.max_pending,
        progress=log_progress,
        progress_every=config.build.progress_every,
    )


def run_build(
    config: Config,
    raster: RasterData | None = None,
    output_path: str | None = None,
    report_path: str | None = None,
    timeout: float | None = None,
) -> tuple[BuildReport, dict[str, Any]]:
    """Build the whole world, wait for it, optionally export. Returns (report, metrics)."""
    sampler = make_sampler(config, raster)
    logger.info(f"Sampler ready: {sampler!r}")

    with make_builder(config) as builder:
        report = builder.build(
            sampler,
            grid_size=config.build.grid_size,
            block_size=config.build.block_size,
        )
        if not report.wait(timeout):
            logger.warning(f"Build not finished after {timeout}s, cancelling")
            report.cancel()
            report.wait()

    metrics = compute_metrics(report)
    if report.failures:
        logger.warning(f"{len(report.failures)} cell(s) failed")

    if output_path:
        saved = save_world(output_path, report.world, report.grid_size, meta={
            "raster": config.raster.path,
            "output_range": list(sampler.output_range),
            "elevation_range": [sampler.range.min_value, sampler.range.max_value],
        })
        logger.info(f"World saved to {saved}")

    if report_path:
        save_json({
            "config": config.model_dump(),
            "metrics": metrics,
            "report": report.summary(),
        }, report_path)
        logger.info(f"Report written to {Path(report_path)}")

    return report, metrics
