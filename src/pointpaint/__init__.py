"""Colorization of range scans with images from wide-angle cameras."""

from .assembly import assemble_composite_clouds, voxelize_color_cloud
from .clouds import ColorCloud, ColorizedCloud, RangeCloud
from .config import (
    ColorSearchConfig,
    DepthConfig,
    ImageCloudConfig,
    PainterConfig,
    RuntimeConfig,
)
from .depth import DepthClouds, preprocess_depth_cloud, project_to_sphere
from .images import ImageDecodeError, decode_image, downsample_image, load_image
from .io import (
    RequestManifest,
    load_colorized_cloud,
    load_range_cloud,
    save_colorized_cloud,
    save_debug_clouds,
)
from .mapping import ImageClouds, build_image_clouds
from .neighbors import blend_neighbor_colors, resolve_point_colors
from .painter import (
    ImageInput,
    PaintRequest,
    PaintResult,
    PaintTimings,
    PointcloudPainter,
    paint_pointcloud,
)
from .projection import (
    LensParameters,
    ProjectionKind,
    SphereProjectionModel,
    compute_lens_parameters,
    create_projection_model,
)
from .transforms import (
    FrameTransformer,
    RigidTransform,
    TransformBuffer,
    load_transforms,
    try_transform,
)

__version__ = "0.1.0"

__all__ = [
    "PainterConfig",
    "DepthConfig",
    "ImageCloudConfig",
    "ColorSearchConfig",
    "RuntimeConfig",
    "RangeCloud",
    "ColorCloud",
    "ColorizedCloud",
    "ProjectionKind",
    "LensParameters",
    "SphereProjectionModel",
    "compute_lens_parameters",
    "create_projection_model",
    "RigidTransform",
    "FrameTransformer",
    "TransformBuffer",
    "load_transforms",
    "try_transform",
    "ImageDecodeError",
    "decode_image",
    "load_image",
    "downsample_image",
    "ImageClouds",
    "build_image_clouds",
    "assemble_composite_clouds",
    "voxelize_color_cloud",
    "DepthClouds",
    "preprocess_depth_cloud",
    "project_to_sphere",
    "blend_neighbor_colors",
    "resolve_point_colors",
    "ImageInput",
    "PaintRequest",
    "PaintResult",
    "PaintTimings",
    "PointcloudPainter",
    "paint_pointcloud",
    "RequestManifest",
    "load_range_cloud",
    "save_colorized_cloud",
    "load_colorized_cloud",
    "save_debug_clouds",
]
