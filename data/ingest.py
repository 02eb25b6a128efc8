"""Raster ingestion: GeoTIFF / .npy elevation files to a flat float32 sample buffer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from world.errors import InvalidRasterError

logger = logging.getLogger(__name__)

GEOTIFF_SUFFIXES = (".tif", ".tiff")


@dataclass(frozen=True)
class RasterData:
    samples: np.ndarray  # row-major float32, length width * height
    width: int
    height: int
    nodata_filled: int = 0

    def as_grid(self) -> np.ndarray:
        return self.samples.reshape(self.height, self.width)


def fill_nodata(arr: np.ndarray, mask: np.ndarray | None = None) -> tuple[np.ndarray, int]:
    """Replace masked or non-finite cells with the mean of the valid ones."""
    arr = np.asarray(arr, dtype=np.float64)
    bad = ~np.isfinite(arr)
    if mask is not None:
        bad |= mask
    n_bad = int(bad.sum())
    if n_bad == 0:
        return arr, 0
    valid = arr[~bad]
    if valid.size == 0:
        raise InvalidRasterError("raster has no valid samples")
    out = np.where(bad, float(np.mean(valid)), arr)
    return out, n_bad


def ingest_array(heights: np.ndarray) -> RasterData:
    """Wrap an in-memory ``(height, width)`` array."""
    heights = np.asarray(heights)
    if heights.ndim != 2:
        raise InvalidRasterError(f"expected a 2-D elevation array, got shape {heights.shape}")
    h, w = heights.shape
    if h == 0 or w == 0:
        raise InvalidRasterError(f"raster dimensions must be positive, got {w}x{h}")
    filled, n_bad = fill_nodata(heights)
    return RasterData(filled.astype(np.float32).reshape(-1), w, h, n_bad)


def _read_geotiff(path: Path, band: int) -> RasterData:
    import rasterio

    with rasterio.open(path) as ds:
        if band > ds.count:
            raise InvalidRasterError(f"{path} has {ds.count} band(s), band {band} requested")
        arr = ds.read(band, masked=True)
        scale = ds.scales[band - 1] if ds.scales else None
        offset = ds.offsets[band - 1] if ds.offsets else None
        logger.info(f"Read {path.name}: {ds.width}x{ds.height}, crs={ds.crs}, dtype={ds.dtypes[band - 1]}")

    values = np.ma.getdata(arr).astype(np.float64)
    mask = np.ma.getmaskarray(arr)
    if scale not in (None, 1.0) or offset not in (None, 0.0):
        values = values * (1.0 if scale is None else float(scale)) + (0.0 if offset is None else float(offset))

    filled, n_bad = fill_nodata(values, mask)
    h, w = filled.shape
    return RasterData(filled.astype(np.float32).reshape(-1), w, h, n_bad)


def load_raster(path: str | Path, band: int = 1) -> RasterData:
    """Load an elevation raster. GeoTIFF goes through rasterio, ``.npy`` through numpy."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"raster not found: {p}")

    suffix = p.suffix.lower()
    if suffix in GEOTIFF_SUFFIXES:
        data = _read_geotiff(p, band)
    elif suffix == ".npy":
        data = ingest_array(np.load(p))
    else:
        raise ValueError(f"unsupported raster format: {p.suffix} (expected .tif, .tiff or .npy)")

    if data.nodata_filled:
        logger.info(f"Filled {data.nodata_filled} nodata cell(s) with the raster mean")
    return data
