"""Elevation sampling: raw raster samples to bounded integer block heights."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Union

import numpy as np

from config_io.utils import clamp
from world.errors import InvalidRasterError, OutOfBoundsError

SampleBuffer = Union[np.ndarray, Sequence[float]]

DEFAULT_OUTPUT_RANGE: tuple[int, int] = (0, 320)


@dataclass(frozen=True)
class ElevationRange:
    min_value: float
    max_value: float

    @property
    def span(self) -> float:
        return self.max_value - self.min_value

    @property
    def is_flat(self) -> bool:
        return self.max_value == self.min_value

    @staticmethod
    def scan(samples: np.ndarray) -> "ElevationRange":
        return ElevationRange(float(np.min(samples)), float(np.max(samples)))


def round_half_away(value: float) -> int:
    """Round to nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


class ElevationSampler:
    """Read-only view over a row-major float raster with a cached value range.

    The buffer and range never change after construction, so any number of
    threads may call :meth:`elevation_at` concurrently without locking.
    """

    def __init__(
        self,
        samples: SampleBuffer,
        width: int,
        height: int,
        output_range: tuple[int, int] = DEFAULT_OUTPUT_RANGE,
    ):
        if width <= 0 or height <= 0:
            raise InvalidRasterError(f"raster dimensions must be positive, got {width}x{height}")

        out_min, out_max = output_range
        if out_min > out_max:
            raise InvalidRasterError(f"output range is inverted: {output_range}")

        arr = np.array(samples, dtype=np.float32)
        if arr.ndim == 2:
            if arr.shape != (height, width):
                raise InvalidRasterError(
                    f"2-D samples have shape {arr.shape}, expected {(height, width)}"
                )
            arr = arr.reshape(-1)
        elif arr.ndim != 1:
            raise InvalidRasterError(f"samples must be 1-D or 2-D, got {arr.ndim} dimensions")

        if arr.size != width * height:
            raise InvalidRasterError(
                f"got {arr.size} samples for a {width}x{height} raster "
                f"(expected {width * height})"
            )
        if not np.isfinite(arr).all():
            raise InvalidRasterError("raster contains non-finite samples; fill nodata before sampling")

        arr.setflags(write=False)
        self._samples = arr
        self._width = int(width)
        self._height = int(height)
        self._out_min = int(out_min)
        self._out_max = int(out_max)
        self._range = ElevationRange.scan(arr)
        self._midpoint = round_half_away((self._out_min + self._out_max) / 2.0)

    @classmethod
    def from_array(
        cls,
        heights: np.ndarray,
        output_range: tuple[int, int] = DEFAULT_OUTPUT_RANGE,
    ) -> "ElevationSampler":
        """Build from a 2-D ``(height, width)`` array."""
        heights = np.asarray(heights)
        if heights.ndim != 2:
            raise InvalidRasterError(f"expected a 2-D array, got {heights.ndim} dimensions")
        h, w = heights.shape
        return cls(heights, w, h, output_range)

    # ── Properties ─────────────────────────────────────────────────────

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def range(self) -> ElevationRange:
        return self._range

    @property
    def output_range(self) -> tuple[int, int]:
        return (self._out_min, self._out_max)

    @property
    def grid_size(self) -> int:
        """Side of the largest square the raster covers."""
        return min(self._width, self._height)

    # ── Queries ────────────────────────────────────────────────────────

    def raw_at(self, x: int, y: int) -> float:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBoundsError(x, y, self._width, self._height)
        return float(self._samples[y * self._width + x])

    def elevation_at(self, x: int, y: int) -> int:
        return self.normalize(self.raw_at(x, y))

    def normalize(self, value: float) -> int:
        """Rescale a raw sample into the output range. Non-finite values raise ``InvalidRasterError``."""
        if not math.isfinite(value):
            raise InvalidRasterError(f"cannot normalize non-finite sample {value}")
        rng = self._range
        if rng.is_flat:
            return self._midpoint
        scaled = self._out_min + (value - rng.min_value) / rng.span * (self._out_max - self._out_min)
        return int(clamp(round_half_away(scaled), self._out_min, self._out_max))

    def __repr__(self) -> str:
        return (
            f"ElevationSampler({self._width}x{self._height}, "
            f"range=[{self._range.min_value}, {self._range.max_value}], "
            f"output=[{self._out_min}, {self._out_max}])"
        )
