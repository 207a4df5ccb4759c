"""Voxel grid downsampling with per-voxel membership tracking."""

import numpy as np
import open3d as o3d


def voxel_downsample(
    points: np.ndarray, leaf_size: float
) -> tuple[np.ndarray, list[np.ndarray]]:
    """Quantize points to a voxel grid, keeping one centroid per occupied voxel.

    Args:
        points: Points to downsample, shape (N, 3).
        leaf_size: Voxel edge length, same units as the points.

    Returns:
        centroids: Mean position of the points in each voxel, shape (M, 3),
            float64.
        groups: For each voxel, the indices of its member points in the
            input (int64 arrays, ascending). Used to reduce per-point
            attributes the same way.

    Raises:
        ValueError: If leaf_size is not positive or a point is not finite.
    """
    if leaf_size <= 0:
        raise ValueError(f"Voxel leaf size must be positive, got {leaf_size}")

    if points.shape[0] == 0:
        return np.zeros((0, 3), dtype=np.float64), []

    if not np.isfinite(points).all():
        raise ValueError("Voxel downsampling requires finite point coordinates")

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(points.astype(np.float64))

    # Pad the bounds so boundary points fall strictly inside the grid
    min_bound = pcd.get_min_bound() - leaf_size
    max_bound = pcd.get_max_bound() + leaf_size
    down, _, traced = pcd.voxel_down_sample_and_trace(
        leaf_size, min_bound, max_bound, False
    )

    groups = [np.sort(np.asarray(ids, dtype=np.int64)) for ids in traced]
    return np.asarray(down.points), groups


def reduce_mean(values: np.ndarray, groups: list[np.ndarray]) -> np.ndarray:
    """Average per-point values over each voxel group.

    Args:
        values: Per-point values, shape (N,) or (N, C).
        groups: Voxel membership from voxel_downsample.

    Returns:
        Per-voxel means, shape (M,) or (M, C), float64.
    """
    if not groups:
        return np.zeros((0,) + values.shape[1:], dtype=np.float64)
    return np.stack([values[g].astype(np.float64).mean(axis=0) for g in groups])


def reduce_first(values: np.ndarray, groups: list[np.ndarray]) -> np.ndarray:
    """Take the value of the lowest-index member of each voxel group."""
    if not groups:
        return np.zeros((0,) + values.shape[1:], dtype=values.dtype)
    return values[np.array([g[0] for g in groups], dtype=np.int64)]
