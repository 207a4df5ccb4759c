"""Assembly of per-image clouds into the composite reference cloud."""

import logging

import numpy as np

from .clouds import ColorCloud
from .config import ImageCloudConfig
from .mapping import ImageClouds
from .voxel import reduce_first, reduce_mean, voxel_downsample

logger = logging.getLogger(__name__)


def voxelize_color_cloud(
    cloud: ColorCloud, leaf_size: float, renormalize: bool = False
) -> ColorCloud:
    """Voxel-downsample a color cloud.

    Each occupied voxel becomes one point at the centroid of its members,
    with their mean color (rounded) and the source tag of the first member.

    Args:
        cloud: Cloud to downsample.
        leaf_size: Voxel edge length.
        renormalize: Project the centroids back onto the unit sphere
            (for spherical clouds; centroids of points on a sphere lie
            slightly inside it).

    Returns:
        New downsampled cloud.
    """
    if len(cloud) == 0:
        return ColorCloud()

    centroids, groups = voxel_downsample(cloud.points, leaf_size)
    colors = np.clip(np.floor(reduce_mean(cloud.colors, groups) + 0.5), 0, 255)

    if renormalize:
        norms = np.linalg.norm(centroids, axis=-1, keepdims=True)
        centroids = centroids / np.where(norms > 0, norms, 1.0)

    return ColorCloud(
        points=centroids,
        colors=colors.astype(np.uint8),
        sources=reduce_first(cloud.sources, groups),
    )


def assemble_composite_clouds(
    image_clouds: list[ImageClouds],
    config: ImageCloudConfig,
) -> tuple[ColorCloud, ColorCloud]:
    """Merge the clouds of all images into the flat and spherical composites.

    Downsampling, when enabled, runs on the merged clouds, each with its own
    leaf size.

    Args:
        image_clouds: Per-image clouds in request order.
        config: Image cloud configuration.

    Returns:
        flat: Merged flat debug cloud.
        sphere: Merged spherical reference cloud (read-only from here on).
    """
    flat = ColorCloud.concatenate([c.flat for c in image_clouds])
    sphere = ColorCloud.concatenate([c.sphere for c in image_clouds])

    logger.info("Image clouds built, spherical cloud size: %d", len(sphere))

    if config.voxelize:
        flat = voxelize_color_cloud(flat, config.flat_voxel_size)
        logger.debug("Voxelized flat image cloud: %d points", len(flat))

        sphere = voxelize_color_cloud(
            sphere,
            config.spherical_voxel_size,
            renormalize=config.renormalize_after_voxelization,
        )
        logger.info(
            "Spherical cloud size following voxelization: %d", len(sphere)
        )

    for array in (sphere.points, sphere.colors, sphere.sources):
        array.setflags(write=False)

    return flat, sphere
