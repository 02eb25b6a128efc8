"""World export: block height grids to and from ``.npz``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import numpy as np

from world.grid import WorldGrid


def save_world(path: str | Path, grid: WorldGrid, grid_size: int, meta: dict[str, Any] | None = None) -> Path:
    """Write the ``[y, x]`` height array plus JSON metadata. Returns the written path."""
    p = Path(path)
    if p.suffix != ".npz":
        p = p.with_suffix(".npz")
    p.parent.mkdir(parents=True, exist_ok=True)
    heights = grid.heights(grid_size)
    np.savez_compressed(
        p,
        heights=heights,
        meta=np.array(json.dumps(meta or {}, default=str)),
    )
    return p


def load_world(path: str | Path) -> tuple[np.ndarray, dict[str, Any]]:
    with np.load(path) as data:
        heights = data["heights"]
        meta = json.loads(str(data["meta"])) if "meta" in data.files else {}
    return heights, meta
