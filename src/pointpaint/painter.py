"""Painter orchestration: one request in, one colorized cloud out."""

import logging
import time
from dataclasses import dataclass, field

import numpy as np
from torch.profiler import record_function

from .assembly import assemble_composite_clouds
from .clouds import ColorCloud, ColorizedCloud, RangeCloud
from .config import PainterConfig
from .depth import DepthClouds, preprocess_depth_cloud
from .images import decode_image, downsample_image
from .mapping import build_image_clouds
from .neighbors import resolve_point_colors
from .projection import ProjectionKind, compute_lens_parameters
from .transforms import FrameTransformer

logger = logging.getLogger(__name__)


@dataclass
class ImageInput:
    """One camera image of a paint request.

    Attributes:
        image: Encoded image bytes (PNG, JPEG, ...) or a decoded RGB array,
            shape (H, W, 3), uint8.
        frame_id: Camera frame the image was captured in.
        projection: Lens projection family of the image.
        max_view_angle: Full angular field of view of the lens (degrees).
        name: Image name for logging and error messages.
        compress: Block-downsample the image before mapping.
        compression_ratio: Integer block size used when compress is set.
    """

    image: bytes | np.ndarray
    frame_id: str
    projection: ProjectionKind | str
    max_view_angle: float
    name: str = ""
    compress: bool = False
    compression_ratio: int = 1


@dataclass
class PaintRequest:
    """Range cloud plus the images used to color it.

    Attributes:
        cloud: Range cloud to paint.
        target_frame: Frame the colorized cloud is expressed in.
        images: Camera images, processed in this order.
    """

    cloud: RangeCloud
    target_frame: str
    images: list[ImageInput] = field(default_factory=list)


@dataclass
class PaintTimings:
    """Wall-clock seconds spent in each stage (informational only)."""

    depth_preprocessing: float = 0.0
    image_processing: list[float] = field(default_factory=list)
    image_voxelizing: float = 0.0
    color_search: float = 0.0
    total: float = 0.0


@dataclass
class PaintResult:
    """Outputs of one paint request.

    Attributes:
        cloud: Colorized range cloud.
        composite: Spherical reference cloud built from all images.
        flat: Flat debug cloud of all images side by side.
        depth: Preprocessed range cloud and its directions.
        timings: Per-stage timings.
    """

    cloud: ColorizedCloud
    composite: ColorCloud
    flat: ColorCloud
    depth: DepthClouds
    timings: PaintTimings


class PointcloudPainter:
    """Colors range clouds with images from wide-angle cameras.

    Primary programmatic entry point.

    Example:
        painter = PointcloudPainter(config, transforms)
        result = painter.paint(request)
    """

    def __init__(
        self, config: PainterConfig | None, transformer: FrameTransformer
    ) -> None:
        """Initialize the painter.

        Args:
            config: Painter configuration (defaults if None).
            transformer: Frame transform collaborator used for every request.
        """
        self.config = config or PainterConfig()
        self.transformer = transformer

    def paint(self, request: PaintRequest) -> PaintResult:
        """Colorize the range cloud of a request.

        Args:
            request: Range cloud, target frame and images.

        Returns:
            PaintResult with the colorized cloud and intermediate clouds.

        Raises:
            ImageDecodeError: If any image cannot be decoded.
            ValueError: If the lens parameters of any image are invalid. All
                images are checked before processing starts.
        """
        config = self.config
        timeout = config.runtime.transform_timeout
        timings = PaintTimings()
        start = time.perf_counter()

        # Reject invalid lens settings before any stage runs
        for index, image_input in enumerate(request.images):
            try:
                compute_lens_parameters(
                    image_input.projection, image_input.max_view_angle
                )
            except ValueError as e:
                name = image_input.name or f"image_{index}"
                raise ValueError(f"Image {name}: {e}") from None

        logger.info(
            "Received paint request: %d range points, %d images, target frame %s",
            len(request.cloud),
            len(request.images),
            request.target_frame,
        )

        # --- Depth cloud ---
        with record_function("depth_preprocessing"):
            stage_start = time.perf_counter()
            depth = preprocess_depth_cloud(
                request.cloud,
                request.target_frame,
                self.transformer,
                config.depth,
                timeout=timeout,
            )
            timings.depth_preprocessing = time.perf_counter() - stage_start
        logger.info(
            "Depth cloud ready: %d points (%.3fs)",
            len(depth),
            timings.depth_preprocessing,
        )

        # --- Image clouds ---
        image_clouds = []
        for index, image_input in enumerate(request.images):
            with record_function("image_mapping"):
                stage_start = time.perf_counter()
                name = image_input.name or f"image_{index}"
                image = decode_image(image_input.image, name=name)

                if image_input.compress and image_input.compression_ratio > 1:
                    image = downsample_image(image, image_input.compression_ratio)

                logger.info(
                    "Image %s: %d by %d, %s projection, %.1f deg",
                    name,
                    image.shape[0],
                    image.shape[1],
                    ProjectionKind(image_input.projection).value,
                    image_input.max_view_angle,
                )
                clouds = build_image_clouds(
                    image,
                    image_index=index,
                    camera_frame=image_input.frame_id,
                    target_frame=request.target_frame,
                    projection=image_input.projection,
                    max_view_angle=image_input.max_view_angle,
                    transformer=self.transformer,
                    timeout=timeout,
                    device=config.runtime.device,
                )
                image_clouds.append(clouds)
                timings.image_processing.append(time.perf_counter() - stage_start)

        # --- Composite cloud ---
        with record_function("image_voxelizing"):
            stage_start = time.perf_counter()
            flat, composite = assemble_composite_clouds(image_clouds, config.image)
            timings.image_voxelizing = time.perf_counter() - stage_start

        # --- Color search ---
        with record_function("color_search"):
            stage_start = time.perf_counter()
            painted = resolve_point_colors(
                composite,
                depth.directions,
                depth.points,
                config.search,
                frame_id=depth.frame_id,
                throttle_period=config.runtime.log_throttle_period,
                quiet=config.runtime.quiet,
            )
            timings.color_search = time.perf_counter() - stage_start

        timings.total = time.perf_counter() - start
        logger.info(
            "Painted %d of %d range points (%.3fs total)",
            len(painted),
            len(depth),
            timings.total,
        )

        return PaintResult(
            cloud=painted,
            composite=composite,
            flat=flat,
            depth=depth,
            timings=timings,
        )


def paint_pointcloud(
    request: PaintRequest,
    transformer: FrameTransformer,
    config: PainterConfig | None = None,
) -> PaintResult:
    """Colorize the range cloud of a request.

    Equivalent to ``PointcloudPainter(config, transformer).paint(request)``.
    """
    return PointcloudPainter(config, transformer).paint(request)
