"""Color palettes for block height rendering."""

from __future__ import annotations

import numpy as np

# (fraction of height range, RGB) stops, low to high
HEIGHT_STOPS: list[tuple[float, tuple[int, int, int]]] = [
    (0.00, (38, 70, 140)),     # lowland / water level
    (0.08, (196, 186, 130)),   # shore
    (0.25, (96, 150, 70)),     # grass
    (0.55, (60, 105, 45)),     # forest
    (0.75, (125, 110, 95)),    # rock
    (1.00, (245, 245, 250)),   # snow
]

EMPTY_COLOR = (20, 20, 26)


def height_colors(
    heights: np.ndarray,
    lo: float = 0.0,
    hi: float = 320.0,
    empty: np.ndarray | None = None,
) -> np.ndarray:
    """Vectorized gradient: ``(h, w)`` heights -> ``(h, w, 3)`` uint8.

    Cells flagged in ``empty`` (not built yet) get ``EMPTY_COLOR``.
    """
    heights = np.asarray(heights, dtype=np.float64)
    span = hi - lo
    frac = np.clip((heights - lo) / span, 0.0, 1.0) if span > 0 else np.full(heights.shape, 0.5)

    xs = np.array([s[0] for s in HEIGHT_STOPS])
    out = np.empty(heights.shape + (3,), dtype=np.uint8)
    for c in range(3):
        ys = np.array([s[1][c] for s in HEIGHT_STOPS], dtype=np.float64)
        out[..., c] = np.interp(frac, xs, ys).astype(np.uint8)

    if empty is not None:
        out[empty] = EMPTY_COLOR
    return out


# HUD colors
HUD_BG = (30, 30, 40)
HUD_TEXT = (220, 220, 220)
HUD_BAR_BG = (60, 60, 70)
BAR_PROGRESS = (80, 180, 90)
BAR_INTEGRATED = (50, 130, 255)
TEXT_WARN = (255, 120, 80)
