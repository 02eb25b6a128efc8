"""Configuration loading and defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


# ── Sub-configs ────────────────────────────────────────────────────────────

class RasterConfig(BaseModel):
    path: Optional[str] = None
    band: int = Field(default=1, ge=1)


class ElevationConfig(BaseModel):
    # Minecraft-style build height ceiling
    output_min: int = 0
    output_max: int = 320

    @model_validator(mode="after")
    def _check_order(self) -> "ElevationConfig":
        if self.output_min > self.output_max:
            raise ValueError(
                f"output_min ({self.output_min}) exceeds output_max ({self.output_max})"
            )
        return self

    @property
    def output_range(self) -> tuple[int, int]:
        return (self.output_min, self.output_max)


class BlockSizeConfig(BaseModel):
    """World units per block along each axis (y is vertical)."""
    x: float = Field(default=1.0, gt=0.0)
    y: float = Field(default=1.0, gt=0.0)
    z: float = Field(default=1.0, gt=0.0)


class BuildConfig(BaseModel):
    grid_size: Optional[int] = Field(default=None, ge=0)  # None -> min(width, height)
    block_size: BlockSizeConfig = Field(default_factory=BlockSizeConfig)
    worker_count: Optional[int] = Field(default=None, ge=1)  # None -> cpu count
    max_pending: Optional[int] = Field(default=None, ge=1)
    progress_every: int = Field(default=100_000, ge=1)


class RenderConfig(BaseModel):
    cell_size: int = 4
    fps: int = 30
    drain_budget: int = 20_000  # sink items integrated per frame
    hud_width: int = 240


# ── Top-level config ───────────────────────────────────────────────────

class Config(BaseModel):
    raster: RasterConfig = Field(default_factory=RasterConfig)
    elevation: ElevationConfig = Field(default_factory=ElevationConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load config from YAML file, applying optional overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p) as f:
                data = yaml.safe_load(f) or {}
    if overrides:
        _deep_merge(data, overrides)
    return Config(**data)


def _deep_merge(base: dict, overlay: dict) -> None:
    for k, v in overlay.items():
        if k in base and isinstance(base[k], dict) and isinstance(v, dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
