"""Configuration management for the point cloud painter."""

import logging
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

logger = logging.getLogger(__name__)

# Squared distance on the unit sphere (~0.22 units) beyond which a neighbor
# match no longer counts as image coverage.
DEFAULT_COVERAGE_THRESHOLD = 0.05
DEFAULT_NEIGHBOR_COUNT = 5


class DepthConfig(BaseModel):
    """Configuration for range cloud preprocessing.

    Attributes:
        voxelize: Voxel-downsample the range cloud before color search.
        voxel_size: Voxel edge length, in range cloud units (meters).
    """

    model_config = ConfigDict(extra="allow")

    voxelize: bool = False
    voxel_size: float = Field(default=0.01, gt=0.0)

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "DepthConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in DepthConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class ImageCloudConfig(BaseModel):
    """Configuration for image cloud assembly.

    Attributes:
        voxelize: Voxel-downsample the merged image clouds.
        flat_voxel_size: Voxel edge length for the flat debug cloud.
        spherical_voxel_size: Voxel edge length for the spherical reference cloud.
        renormalize_after_voxelization: Project voxel centroids of the
            spherical cloud back onto the unit sphere.
    """

    model_config = ConfigDict(extra="allow")

    voxelize: bool = False
    flat_voxel_size: float = Field(default=0.005, gt=0.0)
    spherical_voxel_size: float = Field(default=0.005, gt=0.0)
    renormalize_after_voxelization: bool = False

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "ImageCloudConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in ImageCloudConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class ColorSearchConfig(BaseModel):
    """Configuration for the nearest-neighbor color search.

    Attributes:
        neighbor_count: Number of reference neighbors blended per point (k).
        coverage_threshold: Squared distance to the nearest neighbor at or
            above which the point is painted black (no image coverage).
    """

    model_config = ConfigDict(extra="allow")

    neighbor_count: int = Field(default=DEFAULT_NEIGHBOR_COUNT, ge=1)
    coverage_threshold: float = Field(default=DEFAULT_COVERAGE_THRESHOLD, gt=0.0)

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "ColorSearchConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in ColorSearchConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class RuntimeConfig(BaseModel):
    """Configuration for runtime settings.

    Attributes:
        device: PyTorch device used for pixel-to-sphere projection.
        transform_timeout: Seconds to wait for a frame transform before
            falling back (0 = single non-blocking attempt).
        log_throttle_period: Minimum seconds between repeated per-point
            search failure warnings.
        quiet: Suppress progress output.
    """

    model_config = ConfigDict(extra="allow")

    device: Literal["cpu", "cuda"] = "cpu"
    transform_timeout: float = Field(default=0.5, ge=0.0)
    log_throttle_period: float = Field(default=0.1, ge=0.0)
    quiet: bool = False

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "RuntimeConfig":
        """Warn about unknown configuration keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in RuntimeConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self


class PainterConfig(BaseModel):
    """Top-level configuration for the point cloud painter.

    Attributes:
        depth: Range cloud preprocessing configuration.
        image: Image cloud assembly configuration.
        search: Neighbor color search configuration.
        runtime: Runtime configuration.
    """

    model_config = ConfigDict(extra="allow")

    depth: DepthConfig = Field(default_factory=DepthConfig)
    image: ImageCloudConfig = Field(default_factory=ImageCloudConfig)
    search: ColorSearchConfig = Field(default_factory=ColorSearchConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)

    @model_validator(mode="after")
    def warn_extra_fields(self) -> "PainterConfig":
        """Warn about unknown top-level keys."""
        if self.__pydantic_extra__:
            logger.warning(
                "Unknown config keys in PainterConfig (ignored): %s",
                list(self.__pydantic_extra__.keys()),
            )
        return self

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PainterConfig":
        """Load configuration from a YAML file.

        Missing fields use their default values.

        Args:
            path: Path to YAML configuration file.

        Returns:
            Loaded configuration with defaults filled in.

        Raises:
            FileNotFoundError: If the file does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            ValueError: If validation fails (with all errors collected).
        """
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        cls._log_default_sections(data)

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            formatted_errors = format_validation_errors(e)
            raise ValueError(
                f"Configuration validation failed:\n{formatted_errors}"
            ) from None

        return config

    @staticmethod
    def _log_default_sections(data: dict[str, Any]) -> None:
        """Log INFO messages about sections using defaults.

        Args:
            data: Configuration dictionary.
        """
        for section in ("depth", "image", "search", "runtime"):
            if section not in data:
                logger.info("Using default: %s (all defaults)", section)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file.

        All fields including defaults are written for explicitness.

        Args:
            path: Path to output YAML file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(mode="json")

        with open(path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def format_validation_errors(error: ValidationError) -> str:
    """Format Pydantic validation errors with YAML-style paths.

    Args:
        error: Pydantic ValidationError.

    Returns:
        Formatted error string with YAML paths and messages.
    """
    lines = []
    for err in error.errors():
        path_parts: list[str] = []
        for part in err["loc"]:
            if isinstance(part, int) and path_parts:
                path_parts[-1] = f"{path_parts[-1]}[{part}]"
            else:
                path_parts.append(str(part))

        path = ".".join(path_parts)
        lines.append(f"  {path}: {err['msg']}")

    return "\n".join(lines)
