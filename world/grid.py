"""WorldGrid: block descriptors keyed by grid cell."""

from __future__ import annotations

import threading
from typing import Iterator

import numpy as np

from config_io.schema import BlockDescriptor
from world.errors import DuplicateCellError

EMPTY_CELL = -1


class WorldGrid:
    """Output world owned by the sink thread.

    Only the sink's owner calls :meth:`insert`. Other threads read through
    :meth:`snapshot` or wait for the build to finish first.
    """

    def __init__(self) -> None:
        self._blocks: dict[tuple[int, int], BlockDescriptor] = {}
        self._lock = threading.Lock()

    def insert(self, block: BlockDescriptor) -> None:
        key = block.key
        with self._lock:
            if key in self._blocks:
                raise DuplicateCellError(*key)
            self._blocks[key] = block

    # Lets a WorldGrid be passed straight in as a sink consumer.
    __call__ = insert

    def get(self, x: int, y: int) -> BlockDescriptor | None:
        return self._blocks.get((x, y))

    def __contains__(self, key: object) -> bool:
        return key in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[BlockDescriptor]:
        return iter(self.snapshot().values())

    def snapshot(self) -> dict[tuple[int, int], BlockDescriptor]:
        with self._lock:
            return dict(self._blocks)

    def heights(self, size: int | None = None, fill: int = EMPTY_CELL) -> np.ndarray:
        """Heights as an ``(size, size)`` int array indexed ``[y, x]``.

        Cells that have not been integrated hold ``fill``.
        """
        blocks = self.snapshot()
        if size is None:
            size = 1 + max((max(k) for k in blocks), default=-1)
        out = np.full((size, size), fill, dtype=np.int32)
        for (x, y), block in blocks.items():
            if 0 <= x < size and 0 <= y < size:
                out[y, x] = block.height
        return out

    def clear(self) -> None:
        with self._lock:
            self._blocks.clear()
