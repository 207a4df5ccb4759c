"""Range cloud preprocessing: frame transform, downsampling, sphere projection."""

import logging
from dataclasses import dataclass

import numpy as np

from .clouds import RangeCloud
from .config import DepthConfig
from .transforms import FrameTransformer, try_transform
from .voxel import reduce_mean, voxel_downsample

logger = logging.getLogger(__name__)


@dataclass
class DepthClouds:
    """Range cloud ready for color search.

    ``points[i]`` and ``directions[i]`` always describe the same range point.

    Attributes:
        points: Range point positions in the output frame, shape (N, 3).
        directions: Unit directions of the points, shape (N, 3), float64.
        intensity: Per-point intensity, shape (N,), or None.
        frame_id: Frame the points are expressed in (the target frame, or
            the original frame if the transform was unavailable).
        transformed: Whether the points reached the target frame.
    """

    points: np.ndarray
    directions: np.ndarray
    intensity: np.ndarray | None
    frame_id: str
    transformed: bool

    def __len__(self) -> int:
        return self.points.shape[0]


def _float_dtype(dtype: np.dtype) -> np.dtype:
    """Keep floating dtypes; integer coordinates are promoted to float64."""
    return dtype if np.issubdtype(dtype, np.floating) else np.dtype(np.float64)


def _drop_directionless(
    points: np.ndarray, intensity: np.ndarray | None
) -> tuple[np.ndarray, np.ndarray | None, int]:
    """Remove points at the origin or with non-finite coordinates."""
    norms = np.linalg.norm(points.astype(np.float64), axis=-1)
    valid = np.isfinite(norms) & (norms > 0)
    if valid.all():
        return points, intensity, 0
    if intensity is not None:
        intensity = intensity[valid]
    return points[valid], intensity, int((~valid).sum())


def project_to_sphere(points: np.ndarray) -> np.ndarray:
    """Normalize points onto the unit sphere.

    Args:
        points: Points with non-zero norm, shape (N, 3).

    Returns:
        Unit directions, shape (N, 3), float64.
    """
    points64 = points.astype(np.float64)
    return points64 / np.linalg.norm(points64, axis=-1, keepdims=True)


def preprocess_depth_cloud(
    cloud: RangeCloud,
    target_frame: str,
    transformer: FrameTransformer,
    config: DepthConfig,
    timeout: float = 0.5,
) -> DepthClouds:
    """Prepare a range cloud for color search.

    Transforms the cloud into the target frame (falling back to the
    untransformed cloud with a warning if the transform is unavailable),
    optionally voxel-downsamples it, and computes the index-aligned unit
    direction of every point. Points with no direction (at the origin or
    non-finite) are removed from both outputs.

    Args:
        cloud: Raw range cloud.
        target_frame: Frame to express the points in.
        transformer: Frame transform collaborator.
        config: Depth preprocessing configuration.
        timeout: Maximum seconds to wait for the transform.

    Returns:
        DepthClouds with aligned points and directions.
    """
    points = try_transform(
        transformer, cloud.points, cloud.frame_id, target_frame, timeout
    )
    frame_id = target_frame
    transformed = True
    if points is None:
        logger.warning(
            "Transform from %s to %s timed out, using input cloud untransformed",
            cloud.frame_id,
            target_frame,
        )
        points = cloud.points
        frame_id = cloud.frame_id
        transformed = False

    intensity = cloud.intensity

    # Non-finite points break the voxel grid bounds; filter before voxelizing
    points, intensity, removed = _drop_directionless(points, intensity)

    if config.voxelize and points.shape[0] > 0:
        centroids, groups = voxel_downsample(points, config.voxel_size)
        points = centroids.astype(_float_dtype(points.dtype), copy=False)
        if intensity is not None:
            intensity = reduce_mean(intensity, groups).astype(
                _float_dtype(intensity.dtype), copy=False
            )
        logger.debug("Voxelized range cloud, new size: %d", points.shape[0])

        # A voxel centroid can land on the origin
        points, intensity, removed_after = _drop_directionless(points, intensity)
        removed += removed_after

    if removed:
        logger.warning(
            "Removed %d range points without a direction (origin or non-finite)",
            removed,
        )

    directions = project_to_sphere(points)

    logger.debug("Projected %d range points to sphere", points.shape[0])
    return DepthClouds(
        points=points,
        directions=directions,
        intensity=intensity,
        frame_id=frame_id,
        transformed=transformed,
    )
