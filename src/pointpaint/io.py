"""File I/O for range clouds, colorized clouds and paint request manifests."""

import logging
from pathlib import Path

import numpy as np
import open3d as o3d
import yaml
from pydantic import BaseModel, Field, ValidationError

from .clouds import ColorCloud, ColorizedCloud, RangeCloud
from .config import format_validation_errors
from .painter import ImageInput, PaintRequest, PaintResult
from .projection import ProjectionKind

logger = logging.getLogger(__name__)

OPEN3D_EXTENSIONS = {".ply", ".pcd", ".xyz", ".xyzn", ".xyzrgb", ".pts"}


def load_range_cloud(path: str | Path, frame_id: str) -> RangeCloud:
    """Load a range cloud from disk.

    Supported formats:
        - ``.ply``, ``.pcd`` and other Open3D point formats (no intensity).
        - ``.npy``: array of shape (N, 3), or (N, 4) with intensity last.
        - ``.npz``: ``points`` (N, 3) and optional ``intensity`` (N,).

    Args:
        path: Path to the cloud file.
        frame_id: Frame the points are expressed in.

    Returns:
        RangeCloud with the loaded points.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the format is unsupported or the content malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Range cloud file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in OPEN3D_EXTENSIONS:
        pcd = o3d.io.read_point_cloud(str(path))
        return RangeCloud(points=np.asarray(pcd.points), frame_id=frame_id)

    if suffix == ".npy":
        data = np.load(path)
        if data.ndim != 2 or data.shape[1] not in (3, 4):
            raise ValueError(
                f"Expected array of shape (N, 3) or (N, 4) in {path}, got {data.shape}"
            )
        intensity = data[:, 3] if data.shape[1] == 4 else None
        return RangeCloud(points=data[:, :3], frame_id=frame_id, intensity=intensity)

    if suffix == ".npz":
        with np.load(path) as data:
            if "points" not in data:
                raise ValueError(f"Missing 'points' array in {path}")
            intensity = data["intensity"] if "intensity" in data else None
            return RangeCloud(
                points=data["points"], frame_id=frame_id, intensity=intensity
            )

    raise ValueError(f"Unsupported range cloud format: {path.suffix}")


def save_colorized_cloud(cloud: ColorizedCloud | ColorCloud, path: str | Path) -> None:
    """Save a colored cloud.

    ``.npz`` keeps exact positions and uint8 colors (plus source indices);
    Open3D formats store float64 positions and colors in [0, 1].

    Args:
        cloud: Cloud to save.
        path: Output file path.

    Raises:
        ValueError: If the format is unsupported.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suffix = path.suffix.lower()

    if suffix == ".npz":
        extra = (
            {"indices": cloud.indices}
            if isinstance(cloud, ColorizedCloud)
            else {"sources": cloud.sources}
        )
        np.savez_compressed(path, points=cloud.points, colors=cloud.colors, **extra)
    elif suffix in OPEN3D_EXTENSIONS:
        o3d.io.write_point_cloud(str(path), cloud.to_open3d(), write_ascii=False)
    else:
        raise ValueError(f"Unsupported output format: {path.suffix}")

    logger.info("Saved %d points to %s", len(cloud), path)


def load_colorized_cloud(path: str | Path) -> ColorizedCloud:
    """Load a colorized cloud written by save_colorized_cloud in ``.npz`` form."""
    with np.load(Path(path)) as data:
        return ColorizedCloud(
            points=data["points"],
            colors=data["colors"],
            indices=data["indices"],
        )


class ImageEntry(BaseModel):
    """One image entry of a request manifest."""

    path: str
    frame: str
    projection: ProjectionKind
    max_view_angle: float
    compression_ratio: int = Field(default=1, ge=1)


class RequestManifest(BaseModel):
    """Paint request described in a YAML file.

    Relative paths are resolved against the manifest's directory.
    """

    cloud: str
    cloud_frame: str
    target_frame: str
    output: str | None = None
    images: list[ImageEntry] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "RequestManifest":
        """Load and validate a request manifest.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If validation fails.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Request manifest not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        try:
            manifest = cls.model_validate(data)
        except ValidationError as e:
            raise ValueError(
                f"Request manifest validation failed:\n{format_validation_errors(e)}"
            ) from None

        base = path.parent
        manifest.cloud = str(_resolve(base, manifest.cloud))
        if manifest.output is not None:
            manifest.output = str(_resolve(base, manifest.output))
        for entry in manifest.images:
            entry.path = str(_resolve(base, entry.path))
        return manifest

    def to_request(self) -> PaintRequest:
        """Read the referenced files into a PaintRequest.

        Image files are passed on as encoded bytes; decoding happens in the
        painter so a broken image fails the request there.
        """
        cloud = load_range_cloud(self.cloud, frame_id=self.cloud_frame)
        images = []
        for entry in self.images:
            image_path = Path(entry.path)
            if not image_path.exists():
                raise FileNotFoundError(f"Image file not found: {image_path}")
            images.append(
                ImageInput(
                    image=image_path.read_bytes(),
                    frame_id=entry.frame,
                    projection=entry.projection,
                    max_view_angle=entry.max_view_angle,
                    name=image_path.name,
                    compress=entry.compression_ratio > 1,
                    compression_ratio=entry.compression_ratio,
                )
            )
        return PaintRequest(cloud=cloud, target_frame=self.target_frame, images=images)


def _resolve(base: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else base / p


def save_debug_clouds(result: PaintResult, directory: str | Path) -> list[Path]:
    """Write the intermediate clouds of a paint request.

    Files written:
        - ``flat_cloud.ply``: all images side by side on the z=0 plane.
        - ``sphere_cloud.ply``: composite spherical reference cloud.
        - ``depth_sphere.ply``: range point directions on the unit sphere.

    Args:
        result: Result of a paint request.
        directory: Output directory (created if missing).

    Returns:
        Paths of the written files.
    """
    directory = Path(directory)
    flat_path = directory / "flat_cloud.ply"
    sphere_path = directory / "sphere_cloud.ply"
    depth_path = directory / "depth_sphere.ply"

    save_colorized_cloud(result.flat, flat_path)
    save_colorized_cloud(result.composite, sphere_path)

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(result.depth.directions)
    o3d.io.write_point_cloud(str(depth_path), pcd, write_ascii=False)
    logger.info("Saved %d range directions to %s", len(result.depth), depth_path)

    return [flat_path, sphere_path, depth_path]
