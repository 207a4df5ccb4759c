"""Tests for configuration system."""

import logging
from pathlib import Path

import pytest
import yaml

from pointpaint.config import (
    ColorSearchConfig,
    DepthConfig,
    ImageCloudConfig,
    PainterConfig,
    RuntimeConfig,
)


class TestDepthConfig:
    """Tests for DepthConfig."""

    def test_defaults(self):
        """Test default values."""
        config = DepthConfig()
        assert config.voxelize is False
        assert config.voxel_size == 0.01

    def test_voxel_size_must_be_positive(self):
        """Test that a zero voxel size is rejected."""
        with pytest.raises(ValueError):
            DepthConfig(voxel_size=0.0)


class TestImageCloudConfig:
    """Tests for ImageCloudConfig."""

    def test_defaults(self):
        """Test default values."""
        config = ImageCloudConfig()
        assert config.voxelize is False
        assert config.flat_voxel_size == 0.005
        assert config.spherical_voxel_size == 0.005
        assert config.renormalize_after_voxelization is False

    def test_custom_values(self):
        """Test custom values."""
        config = ImageCloudConfig(
            voxelize=True,
            spherical_voxel_size=0.01,
            renormalize_after_voxelization=True,
        )
        assert config.voxelize is True
        assert config.spherical_voxel_size == 0.01
        assert config.renormalize_after_voxelization is True


class TestColorSearchConfig:
    """Tests for ColorSearchConfig."""

    def test_defaults(self):
        """Test default values."""
        config = ColorSearchConfig()
        assert config.neighbor_count == 5
        assert config.coverage_threshold == 0.05

    def test_neighbor_count_at_least_one(self):
        """Test that k=0 is rejected."""
        with pytest.raises(ValueError):
            ColorSearchConfig(neighbor_count=0)

    def test_threshold_positive(self):
        """Test that a non-positive threshold is rejected."""
        with pytest.raises(ValueError):
            ColorSearchConfig(coverage_threshold=-0.1)


class TestRuntimeConfig:
    """Tests for RuntimeConfig."""

    def test_defaults(self):
        """Test default values."""
        config = RuntimeConfig()
        assert config.device == "cpu"
        assert config.transform_timeout == 0.5
        assert config.log_throttle_period == 0.1
        assert config.quiet is False

    def test_invalid_device(self):
        """Test that unknown devices are rejected."""
        with pytest.raises(ValueError):
            RuntimeConfig(device="tpu")

    def test_negative_timeout(self):
        """Test that negative timeouts are rejected."""
        with pytest.raises(ValueError):
            RuntimeConfig(transform_timeout=-1.0)


class TestPainterConfig:
    """Tests for PainterConfig."""

    def test_defaults(self):
        """Test that all sections have defaults."""
        config = PainterConfig()
        assert config.depth == DepthConfig()
        assert config.image == ImageCloudConfig()
        assert config.search == ColorSearchConfig()
        assert config.runtime == RuntimeConfig()

    def test_yaml_round_trip(self, tmp_path: Path):
        """Test saving and loading preserves custom values."""
        config = PainterConfig(
            depth=DepthConfig(voxelize=True, voxel_size=0.02),
            search=ColorSearchConfig(neighbor_count=3, coverage_threshold=0.01),
            runtime=RuntimeConfig(transform_timeout=0.0, quiet=True),
        )
        path = tmp_path / "nested" / "config.yaml"
        config.to_yaml(path)

        assert path.exists()
        loaded = PainterConfig.from_yaml(path)
        assert loaded == config

    def test_partial_yaml_uses_defaults(self, tmp_path: Path, caplog):
        """Test that missing sections fall back to defaults and are logged."""
        path = tmp_path / "config.yaml"
        with open(path, "w") as f:
            yaml.safe_dump({"search": {"neighbor_count": 8}}, f)

        with caplog.at_level(logging.INFO, logger="pointpaint.config"):
            config = PainterConfig.from_yaml(path)

        assert config.search.neighbor_count == 8
        assert config.search.coverage_threshold == 0.05
        assert config.depth == DepthConfig()
        assert "Using default: depth" in caplog.text
        assert "Using default: search" not in caplog.text

    def test_empty_yaml(self, tmp_path: Path):
        """Test that an empty file gives the default config."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert PainterConfig.from_yaml(path) == PainterConfig()

    def test_validation_errors_collected(self, tmp_path: Path):
        """Test that validation errors are reported with YAML paths."""
        path = tmp_path / "config.yaml"
        with open(path, "w") as f:
            yaml.safe_dump(
                {
                    "search": {"neighbor_count": 0},
                    "runtime": {"device": "tpu"},
                },
                f,
            )

        with pytest.raises(ValueError) as exc_info:
            PainterConfig.from_yaml(path)

        message = str(exc_info.value)
        assert "Configuration validation failed" in message
        assert "search.neighbor_count" in message
        assert "runtime.device" in message

    def test_unknown_keys_warn(self, caplog):
        """Test that unknown keys are accepted with a warning."""
        with caplog.at_level(logging.WARNING, logger="pointpaint.config"):
            config = PainterConfig.model_validate(
                {"search": {"neighbor_count": 2, "radius": 1.0}, "extra": 1}
            )

        assert config.search.neighbor_count == 2
        assert "ColorSearchConfig" in caplog.text
        assert "PainterConfig" in caplog.text

    def test_missing_file(self, tmp_path: Path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            PainterConfig.from_yaml(tmp_path / "missing.yaml")
