"""Exceptions raised by the block pipeline."""

from __future__ import annotations


class TopoblockError(Exception):
    """Base class for pipeline errors."""


class InvalidRasterError(TopoblockError, ValueError):
    """Sample buffer does not describe a usable raster."""


class OutOfBoundsError(TopoblockError, IndexError):
    """Coordinate lies outside the raster extent."""

    def __init__(self, x: int, y: int, width: int, height: int):
        super().__init__(f"({x}, {y}) is outside raster of {width}x{height}")
        self.x = x
        self.y = y


class DuplicateCellError(TopoblockError):
    """A grid cell was integrated twice."""

    def __init__(self, x: int, y: int):
        super().__init__(f"cell ({x}, {y}) already integrated")
        self.x = x
        self.y = y
