"""Shared value types for the raster-to-block pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from config_io.config import BlockSizeConfig


# ── Enums ──────────────────────────────────────────────────────────────────

class FailureStage(str, enum.Enum):
    SAMPLE = "SAMPLE"        # height lookup / descriptor construction on a worker
    FILTER = "FILTER"        # caller include hook raised
    INTEGRATE = "INTEGRATE"  # consumer callback on the sink thread


# ── Block geometry ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BlockSize:
    """World units per block. ``y`` is the vertical axis."""
    x: float = 1.0
    y: float = 1.0
    z: float = 1.0

    def __post_init__(self) -> None:
        for axis in ("x", "y", "z"):
            if not getattr(self, axis) > 0:
                raise ValueError(f"block size along {axis} must be positive, got {getattr(self, axis)}")

    @staticmethod
    def coerce(value: "BlockSizeLike") -> "BlockSize":
        if isinstance(value, BlockSize):
            return value
        if isinstance(value, BlockSizeConfig):
            return BlockSize(value.x, value.y, value.z)
        if isinstance(value, (int, float)):
            return BlockSize(float(value), float(value), float(value))
        raise TypeError(f"cannot use {type(value).__name__} as a block size")


BlockSizeLike = Union[BlockSize, BlockSizeConfig, float, int]


@dataclass(frozen=True)
class BlockDescriptor:
    grid_x: int
    grid_y: int
    height: int
    position: tuple[float, float, float]

    @property
    def key(self) -> tuple[int, int]:
        return (self.grid_x, self.grid_y)

    @staticmethod
    def at(grid_x: int, grid_y: int, height: int, size: BlockSize) -> "BlockDescriptor":
        """Place a block column so that its base sits on y=0."""
        return BlockDescriptor(
            grid_x=grid_x,
            grid_y=grid_y,
            height=height,
            position=(grid_x * size.x, height * size.y / 2.0, grid_y * size.z),
        )

    def to_dict(self) -> dict:
        return {
            "pos": {"x": self.grid_x, "y": self.grid_y},
            "height": self.height,
            "position": list(self.position),
        }


@dataclass(frozen=True)
class CellFailure:
    grid_x: int
    grid_y: int
    stage: FailureStage
    error: str

    def to_dict(self) -> dict:
        return {
            "pos": {"x": self.grid_x, "y": self.grid_y},
            "stage": self.stage.value,
            "error": self.error,
        }
