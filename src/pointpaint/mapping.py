"""Mapping of camera images onto the unit sphere."""

import logging
from dataclasses import dataclass

import numpy as np
import torch

from .clouds import ColorCloud
from .projection import ProjectionKind, create_projection_model
from .transforms import FrameTransformer, try_transform

logger = logging.getLogger(__name__)


@dataclass
class ImageClouds:
    """Point clouds produced from one image.

    Attributes:
        flat: One point per pixel on the z=0 plane, offset along X by the
            image index so images do not overlap (debug output).
        sphere: Unit directions of the pixels inside the lens field of
            view, expressed in the target frame. Empty if the camera frame
            could not be transformed.
        frame_id: Camera frame the image was captured in.
        transformed: Whether the spherical cloud reached the target frame.
    """

    flat: ColorCloud
    sphere: ColorCloud
    frame_id: str
    transformed: bool


def _pixel_grid(height: int, width: int, device: str) -> torch.Tensor:
    """All (row, col) pixel coordinates in row-major order, shape (H*W, 2), float64."""
    rows, cols = torch.meshgrid(
        torch.arange(height, dtype=torch.float64, device=device),
        torch.arange(width, dtype=torch.float64, device=device),
        indexing="ij",
    )
    return torch.stack([rows.reshape(-1), cols.reshape(-1)], dim=-1)


def build_image_clouds(
    image: np.ndarray,
    image_index: int,
    camera_frame: str,
    target_frame: str,
    projection: ProjectionKind | str,
    max_view_angle: float,
    transformer: FrameTransformer,
    timeout: float = 0.5,
    device: str = "cpu",
) -> ImageClouds:
    """Build the flat debug cloud and the spherical color cloud for one image.

    Every pixel is mapped to a direction on the unit sphere with the lens
    model of the image. Pixels outside the circular lens field of view are
    dropped from the spherical cloud. The spherical cloud is moved from the
    camera frame into the target frame and re-normalized onto the unit
    sphere (translations move points off it).

    Args:
        image: RGB image, shape (H, W, 3), uint8.
        image_index: Position of the image in the request (source tag and
            flat cloud offset).
        camera_frame: Frame the image was captured in.
        target_frame: Frame to express the spherical cloud in.
        projection: Lens projection family.
        max_view_angle: Full angular field of view of the lens (degrees).
        transformer: Frame transform collaborator.
        timeout: Maximum seconds to wait for the camera transform.
        device: PyTorch device for the projection math.

    Returns:
        ImageClouds for this image.

    Raises:
        ValueError: If the lens parameters are invalid.
    """
    H, W = image.shape[:2]
    model = create_projection_model(projection, max_view_angle, H, W)

    pixels = _pixel_grid(H, W, device)
    directions, keep = model.cast_ray(pixels)

    colors = image.reshape(-1, 3)
    directions_np = directions.cpu().numpy()
    keep_np = keep.cpu().numpy()

    # Flat debug cloud: unit square per image, shifted along X by image index
    flat_points = np.zeros((H * W, 3), dtype=np.float64)
    flat_points[:, 0] = pixels[:, 0].cpu().numpy() / H - 0.5 + image_index
    flat_points[:, 1] = pixels[:, 1].cpu().numpy() / W - 0.5
    flat = ColorCloud(
        points=flat_points,
        colors=colors.copy(),
        sources=np.full(H * W, image_index, dtype=np.int32),
    )

    sphere_points = directions_np[keep_np]
    sphere_colors = colors[keep_np]
    logger.debug(
        "Image %d: %d of %d pixels inside lens field of view",
        image_index,
        sphere_points.shape[0],
        H * W,
    )

    transformed = try_transform(
        transformer, sphere_points, camera_frame, target_frame, timeout
    )
    if transformed is None:
        logger.warning(
            "Failed to transform image %d from frame %s to frame %s; "
            "image skipped for coloring",
            image_index,
            camera_frame,
            target_frame,
        )
        return ImageClouds(
            flat=flat, sphere=ColorCloud(), frame_id=camera_frame, transformed=False
        )

    norms = np.linalg.norm(transformed, axis=-1, keepdims=True)
    # A translation can put a direction on the origin; such points have no direction
    valid = norms[:, 0] > 0
    sphere = ColorCloud(
        points=transformed[valid] / norms[valid],
        colors=sphere_colors[valid].copy(),
        sources=np.full(int(valid.sum()), image_index, dtype=np.int32),
    )

    return ImageClouds(
        flat=flat, sphere=sphere, frame_id=camera_frame, transformed=True
    )
