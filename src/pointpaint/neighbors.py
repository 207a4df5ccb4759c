"""Nearest-neighbor color assignment for range points."""

import logging
import sys
import time

import numpy as np
import open3d as o3d
from tqdm import tqdm

from .clouds import ColorCloud, ColorizedCloud
from .config import ColorSearchConfig

logger = logging.getLogger(__name__)

NO_COVERAGE_COLOR = np.zeros(3, dtype=np.uint8)


def blend_neighbor_colors(
    colors: np.ndarray, squared_distances: np.ndarray
) -> np.ndarray:
    """Inverse-distance weighted average of neighbor colors.

    Each neighbor is weighted by 1 / distance. A neighbor at distance zero
    is the sole contributor (the first one, if several coincide).

    Args:
        colors: Neighbor RGB colors, shape (k, 3).
        squared_distances: Squared distances to the query, shape (k,).

    Returns:
        Blended RGB color, shape (3,), uint8. Channels are rounded half up
        and clamped to [0, 255].
    """
    squared_distances = np.asarray(squared_distances, dtype=np.float64)
    colors = np.asarray(colors, dtype=np.float64)

    coincident = np.flatnonzero(squared_distances <= 0.0)
    if coincident.size > 0:
        blended = colors[coincident[0]]
    else:
        weights = 1.0 / np.sqrt(squared_distances)
        blended = (weights[:, None] * colors).sum(axis=0) / weights.sum()

    return np.clip(np.floor(blended + 0.5), 0, 255).astype(np.uint8)


class _ThrottledWarning:
    """Emit a warning at most once per period, counting suppressed repeats."""

    def __init__(self, period: float) -> None:
        self.period = period
        self._last = None
        self.suppressed = 0

    def __call__(self, msg: str, *args) -> None:
        now = time.monotonic()
        if self._last is not None and now - self._last < self.period:
            self.suppressed += 1
            return
        self._last = now
        logger.warning(msg + " (this message is throttled)", *args)


def resolve_point_colors(
    reference: ColorCloud,
    directions: np.ndarray,
    points: np.ndarray,
    config: ColorSearchConfig,
    frame_id: str = "",
    throttle_period: float = 0.1,
    quiet: bool = False,
) -> ColorizedCloud:
    """Paint range points with the colors of their nearest reference neighbors.

    For every direction the k nearest points of the spherical reference cloud
    are found. If the nearest one is at or beyond the coverage threshold the
    point is painted black (no image sees that direction); otherwise its color
    is the inverse-distance weighted blend of the k neighbors. Points for
    which the search returns nothing are dropped.

    Args:
        reference: Composite spherical reference cloud.
        directions: Unit directions of the range points, shape (N, 3).
        points: Range point positions, shape (N, 3), index-aligned with
            directions.
        config: Color search configuration (k and coverage threshold).
        frame_id: Frame of the range points, copied to the output.
        throttle_period: Minimum seconds between repeated search failure
            warnings.
        quiet: Disable the progress bar.

    Returns:
        ColorizedCloud with the original positions of the surviving points,
        in input order.

    Raises:
        ValueError: If directions and points are not index-aligned.
    """
    if directions.shape[0] != points.shape[0]:
        raise ValueError(
            f"directions ({directions.shape[0]}) and points ({points.shape[0]}) "
            "must have the same length"
        )

    N = directions.shape[0]
    k = config.neighbor_count
    logger.debug(
        "Neighbor search: k=%d, %d range points, %d reference points",
        k,
        N,
        len(reference),
    )

    colors = np.zeros((N, 3), dtype=np.uint8)
    found = np.zeros(N, dtype=bool)
    warn = _ThrottledWarning(throttle_period)

    if len(reference) == 0:
        if N > 0:
            logger.warning(
                "Reference cloud is empty; no neighbors for any of %d range points",
                N,
            )
        return ColorizedCloud(
            points=points[:0],
            colors=colors[:0],
            indices=np.zeros(0, dtype=np.int64),
            frame_id=frame_id,
        )

    pcd = o3d.geometry.PointCloud()
    pcd.points = o3d.utility.Vector3dVector(reference.points.astype(np.float64))
    kdtree = o3d.geometry.KDTreeFlann(pcd)
    reference_colors = reference.colors

    queries = directions.astype(np.float64)
    for i in tqdm(
        range(N),
        desc="Painting points",
        disable=quiet or not sys.stderr.isatty(),
        unit="pt",
    ):
        count, nearest_indices, nearest_dist_squareds = kdtree.search_knn_vector_3d(
            queries[i], k
        )
        if count <= 0:
            warn(
                "Nearest neighbor search failed for point %d (%s)",
                i,
                points[i],
            )
            continue

        found[i] = True
        dist_squareds = np.asarray(nearest_dist_squareds, dtype=np.float64)[:count]
        if dist_squareds[0] >= config.coverage_threshold:
            colors[i] = NO_COVERAGE_COLOR
            continue

        neighbor_indices = np.asarray(nearest_indices, dtype=np.int64)[:count]
        colors[i] = blend_neighbor_colors(
            reference_colors[neighbor_indices], dist_squareds
        )

    dropped = N - int(found.sum())
    if dropped:
        logger.warning(
            "Dropped %d of %d range points with no neighbors (%d warnings suppressed)",
            dropped,
            N,
            warn.suppressed,
        )

    indices = np.flatnonzero(found).astype(np.int64)
    return ColorizedCloud(
        points=points[indices],
        colors=colors[indices],
        indices=indices,
        frame_id=frame_id,
    )
