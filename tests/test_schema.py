"""Test: config loading and shared value types."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest
from pydantic import ValidationError

from config_io.config import BlockSizeConfig, Config, load_config
from config_io.schema import BlockDescriptor, BlockSize, CellFailure, FailureStage


def test_defaults():
    config = load_config()
    assert config.elevation.output_range == (0, 320)
    assert config.build.grid_size is None
    assert config.build.worker_count is None
    assert config.build.block_size == BlockSizeConfig(x=1.0, y=1.0, z=1.0)
    assert config.raster.band == 1


def test_missing_file_falls_back_to_defaults(tmp_path):
    config = load_config(tmp_path / "nope.yaml")
    assert config == Config()


def test_yaml_with_overrides(tmp_path):
    path = tmp_path / "topo.yaml"
    path.write_text(
        "raster:\n"
        "  path: dem.tif\n"
        "elevation:\n"
        "  output_max: 256\n"
        "build:\n"
        "  worker_count: 3\n"
        "  block_size:\n"
        "    y: 0.5\n"
    )
    config = load_config(path, overrides={"build": {"worker_count": 6, "grid_size": 128}})
    assert config.raster.path == "dem.tif"
    assert config.elevation.output_range == (0, 256)
    assert config.build.worker_count == 6
    assert config.build.grid_size == 128
    assert config.build.block_size.y == 0.5
    assert config.build.block_size.x == 1.0


def test_invalid_config_values():
    with pytest.raises(ValidationError):
        load_config(overrides={"elevation": {"output_min": 400, "output_max": 320}})
    with pytest.raises(ValidationError):
        load_config(overrides={"build": {"worker_count": 0}})
    with pytest.raises(ValidationError):
        load_config(overrides={"build": {"block_size": {"x": 0.0}}})


def test_block_size_coerce():
    assert BlockSize.coerce(2) == BlockSize(2.0, 2.0, 2.0)
    assert BlockSize.coerce(BlockSizeConfig(x=1.0, y=3.0, z=2.0)) == BlockSize(1.0, 3.0, 2.0)
    size = BlockSize(1.0, 2.0, 3.0)
    assert BlockSize.coerce(size) is size
    with pytest.raises(TypeError):
        BlockSize.coerce("big")
    with pytest.raises(ValueError):
        BlockSize(0.0, 1.0, 1.0)


def test_block_descriptor_is_frozen():
    block = BlockDescriptor.at(3, 4, 100, BlockSize())
    assert block.key == (3, 4)
    assert block.position == (3.0, 50.0, 4.0)
    with pytest.raises(AttributeError):
        block.height = 5
    assert block.to_dict() == {"pos": {"x": 3, "y": 4}, "height": 100, "position": [3.0, 50.0, 4.0]}


def test_cell_failure_dict():
    f = CellFailure(1, 2, FailureStage.SAMPLE, "OutOfBoundsError: nope")
    assert f.to_dict() == {"pos": {"x": 1, "y": 2}, "stage": "SAMPLE", "error": "OutOfBoundsError: nope"}
