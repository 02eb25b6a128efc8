"""Build metrics computation."""

from __future__ import annotations

from typing import Any

import numpy as np

from world.builder import BuildReport
from world.grid import WorldGrid


def compute_metrics(report: BuildReport, grid: WorldGrid | None = None) -> dict[str, Any]:
    """Compute summary metrics for a finished (or in-flight) build."""
    summary = report.summary()
    elapsed = max(report.elapsed, 1e-9)
    expected = report.total - report.excluded

    metrics: dict[str, Any] = {
        "grid_size": report.grid_size,
        "total_cells": report.total,
        "integrated": summary["integrated"],
        "failed": summary["failed"],
        "cancelled": summary["cancelled"],
        "excluded": summary["excluded"],
        "coverage": round(summary["integrated"] / expected, 4) if expected else 1.0,
        "elapsed_s": summary["elapsed_s"],
        "blocks_per_s": round(summary["integrated"] / elapsed, 1),
    }

    grid = grid if grid is not None else report.world
    if grid is not None:
        filled = np.array([b.height for b in grid.snapshot().values()], dtype=np.int64)
        if filled.size:
            metrics["height_min"] = int(filled.min())
            metrics["height_max"] = int(filled.max())
            metrics["height_mean"] = round(float(np.mean(filled)), 2)
        else:
            metrics["height_min"] = None
            metrics["height_max"] = None
            metrics["height_mean"] = None

    return metrics
