"""Test: raster ingestion, world export and the headless build runner."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import numpy as np
import pytest

from config_io.config import load_config
from config_io.utils import load_json
from data.ingest import fill_nodata, ingest_array, load_raster
from data.tiles import load_world, save_world
from eval.metrics import compute_metrics
from eval.runner import make_sampler, run_build
from world.builder import GridWorldBuilder
from world.elevation import ElevationSampler
from world.errors import InvalidRasterError
from world.grid import EMPTY_CELL, WorldGrid


def test_load_npy_raster(tmp_path):
    heights = np.arange(12, dtype=np.float64).reshape(3, 4)
    path = tmp_path / "dem.npy"
    np.save(path, heights)

    raster = load_raster(path)
    assert (raster.width, raster.height) == (4, 3)
    assert raster.samples.dtype == np.float32
    assert raster.samples.shape == (12,)
    assert raster.nodata_filled == 0
    np.testing.assert_array_equal(raster.as_grid(), heights.astype(np.float32))


def test_nodata_filled_with_mean(tmp_path):
    heights = np.array([[1.0, np.nan], [3.0, 5.0]])
    path = tmp_path / "holes.npy"
    np.save(path, heights)

    raster = load_raster(path)
    assert raster.nodata_filled == 1
    assert raster.as_grid()[0, 1] == pytest.approx(3.0)
    # filled raster is now a valid sampler input
    ElevationSampler(raster.samples, raster.width, raster.height)


def write_geotiff(path, data, nodata=None, scale=None, offset=None):
    import rasterio
    from rasterio.transform import from_origin

    h, w = data.shape
    with rasterio.open(
        path, "w", driver="GTiff", width=w, height=h, count=1, dtype=data.dtype.name,
        crs="EPSG:4326", transform=from_origin(0.0, float(h), 1.0, 1.0), nodata=nodata,
    ) as ds:
        ds.write(data, 1)
        if scale is not None:
            ds.scales = (scale,)
        if offset is not None:
            ds.offsets = (offset,)


def test_load_geotiff_applies_scale_offset_and_fills_nodata(tmp_path):
    data = np.array([[0, 2, 4], [6, -9999, 10]], dtype=np.int16)
    path = tmp_path / "dem.tif"
    write_geotiff(path, data, nodata=-9999, scale=0.5, offset=10.0)

    raster = load_raster(path)
    assert (raster.width, raster.height) == (3, 2)
    assert raster.samples.dtype == np.float32
    assert raster.samples.shape == (6,)
    assert raster.nodata_filled == 1
    # valid cells scaled to 10, 11, 12, 13, 15; the hole gets their mean
    expected = np.array([[10.0, 11.0, 12.0], [13.0, 12.2, 15.0]], dtype=np.float32)
    np.testing.assert_allclose(raster.as_grid(), expected, rtol=1e-6)

    sampler = ElevationSampler(raster.samples, raster.width, raster.height)
    assert sampler.elevation_at(0, 0) == 0
    assert sampler.elevation_at(2, 1) == 320


def test_load_geotiff_without_nodata_or_scale(tmp_path):
    data = np.arange(12, dtype=np.float32).reshape(3, 4)
    path = tmp_path / "plain.tiff"
    write_geotiff(path, data)

    raster = load_raster(path)
    assert (raster.width, raster.height) == (4, 3)
    assert raster.nodata_filled == 0
    np.testing.assert_array_equal(raster.as_grid(), data)


def test_load_geotiff_rejects_missing_band(tmp_path):
    path = tmp_path / "one_band.tif"
    write_geotiff(path, np.ones((2, 2), dtype=np.float32))
    with pytest.raises(InvalidRasterError):
        load_raster(path, band=2)


def test_fill_nodata_with_mask():
    arr = np.array([[10.0, -9999.0], [20.0, 30.0]])
    filled, n = fill_nodata(arr, mask=arr == -9999.0)
    assert n == 1
    assert filled[0, 1] == pytest.approx(20.0)


def test_all_nodata_rejected():
    with pytest.raises(InvalidRasterError):
        ingest_array(np.full((2, 2), np.nan))


def test_non_grid_arrays_rejected():
    with pytest.raises(InvalidRasterError):
        ingest_array(np.zeros(4))
    with pytest.raises(InvalidRasterError):
        ingest_array(np.zeros((0, 3)))


def test_unsupported_and_missing_files(tmp_path):
    bad = tmp_path / "dem.png"
    bad.write_bytes(b"\x89PNG")
    with pytest.raises(ValueError):
        load_raster(bad)
    with pytest.raises(FileNotFoundError):
        load_raster(tmp_path / "missing.tif")


def test_save_and_load_world(tmp_path):
    sampler = ElevationSampler.from_array(np.linspace(0, 90, 16).reshape(4, 4))
    report = GridWorldBuilder(worker_count=2).build(sampler, grid_size=4)
    assert report.wait(30)

    path = save_world(tmp_path / "out" / "world", report.world, 4, meta={"source": "unit"})
    assert path.suffix == ".npz"
    heights, meta = load_world(path)
    assert heights.shape == (4, 4)
    assert heights[0, 0] == 0
    assert heights[3, 3] == 320
    assert heights[2, 1] == sampler.elevation_at(1, 2)
    assert meta == {"source": "unit"}


def test_partial_world_heights_mark_empty_cells():
    grid = WorldGrid()
    sampler = ElevationSampler([0.0, 1.0, 2.0, 3.0], 2, 2)
    report = GridWorldBuilder(worker_count=1).build(sampler, sink=grid, include=lambda x, y: x == 0)
    assert report.wait(30)
    heights = grid.heights(2)
    assert heights[0, 1] == EMPTY_CELL
    assert heights[1, 1] == EMPTY_CELL
    assert heights[1, 0] == sampler.elevation_at(0, 1)


def test_metrics_summary():
    sampler = ElevationSampler([0.0, 10.0, 20.0, 30.0], 2, 2)
    report = GridWorldBuilder(worker_count=2).build(sampler)
    assert report.wait(30)
    m = compute_metrics(report)
    assert m["integrated"] == 4
    assert m["coverage"] == 1.0
    assert m["height_min"] == 0
    assert m["height_max"] == 320
    assert m["height_mean"] == pytest.approx((0 + 107 + 213 + 320) / 4, abs=0.01)


def test_run_build_end_to_end(tmp_path):
    raster_path = tmp_path / "dem.npy"
    np.save(raster_path, np.random.default_rng(1).uniform(100, 200, size=(10, 12)))
    config = load_config(overrides={
        "raster": {"path": str(raster_path)},
        "build": {"worker_count": 3, "progress_every": 25},
    })

    report, metrics = run_build(
        config,
        output_path=str(tmp_path / "world.npz"),
        report_path=str(tmp_path / "report.json"),
        timeout=30,
    )
    assert report.ok
    assert metrics["grid_size"] == 10
    assert metrics["integrated"] == 100
    assert metrics["height_min"] >= 0 and metrics["height_max"] <= 320

    heights, meta = load_world(tmp_path / "world.npz")
    assert heights.shape == (10, 10)
    assert (heights != EMPTY_CELL).all()
    assert meta["output_range"] == [0, 320]

    saved = load_json(tmp_path / "report.json")
    assert saved["metrics"]["integrated"] == 100
    assert saved["report"]["failed"] == 0
    assert saved["config"]["build"]["worker_count"] == 3


def test_make_sampler_requires_raster():
    with pytest.raises(ValueError):
        make_sampler(load_config())


def test_world_grid_basics():
    from config_io.schema import BlockDescriptor, BlockSize
    from world.errors import DuplicateCellError

    grid = WorldGrid()
    grid.insert(BlockDescriptor.at(0, 0, 5, BlockSize()))
    grid(BlockDescriptor.at(2, 1, 7, BlockSize()))
    assert (2, 1) in grid
    assert len(grid) == 2
    assert sorted(b.height for b in grid) == [5, 7]
    with pytest.raises(DuplicateCellError):
        grid.insert(BlockDescriptor.at(0, 0, 9, BlockSize()))

    heights = grid.heights()
    assert heights.shape == (3, 3)
    assert heights[1, 2] == 7
    assert heights[0, 0] == 5

    grid.clear()
    assert len(grid) == 0
    assert grid.get(0, 0) is None


def test_height_colors_marks_empty_cells():
    from render.palettes import EMPTY_COLOR, height_colors

    heights = np.array([[0, 320], [160, 0]])
    empty = np.array([[False, False], [False, True]])
    rgb = height_colors(heights, 0, 320, empty=empty)
    assert rgb.shape == (2, 2, 3)
    assert rgb.dtype == np.uint8
    assert tuple(rgb[1, 1]) == EMPTY_COLOR
    assert tuple(rgb[0, 1]) == (245, 245, 250)
    assert tuple(rgb[0, 0]) != tuple(rgb[0, 1])
