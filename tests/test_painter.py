"""End-to-end tests for the painter."""

import logging
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from pointpaint.clouds import RangeCloud
from pointpaint.config import PainterConfig, RuntimeConfig
from pointpaint.images import ImageDecodeError
from pointpaint.painter import (
    ImageInput,
    PaintRequest,
    PointcloudPainter,
    paint_pointcloud,
)
from pointpaint.transforms import RigidTransform, TransformBuffer


def _encode_png(rgb: np.ndarray) -> bytes:
    ok, buffer = cv2.imencode(".png", cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR))
    assert ok
    return buffer.tobytes()


@pytest.fixture
def config() -> PainterConfig:
    """Default config without transform waits or progress output."""
    return PainterConfig(runtime=RuntimeConfig(transform_timeout=0.0, quiet=True))


@pytest.fixture
def gray_image() -> np.ndarray:
    """Uniform gray 32x32 image."""
    return np.full((32, 32, 3), 128, dtype=np.uint8)


@pytest.fixture
def front_cloud() -> RangeCloud:
    """Ten range points in front of a camera looking along -Z."""
    rng = np.random.default_rng(0)
    xy = rng.uniform(-0.5, 0.5, size=(10, 2))
    points = np.column_stack([xy, np.full(10, -5.0)]).astype(np.float32)
    return RangeCloud(points=points, frame_id="base")


class TestPointcloudPainter:
    """Tests for PointcloudPainter.paint."""

    def test_uniform_flat_image(self, config, gray_image, front_cloud):
        """Every point in view takes the image color; positions are unchanged."""
        request = PaintRequest(
            cloud=front_cloud,
            target_frame="base",
            images=[ImageInput(_encode_png(gray_image), "base", "flat", 90.0)],
        )

        result = PointcloudPainter(config, TransformBuffer()).paint(request)

        cloud = result.cloud
        assert len(cloud) == 10
        assert cloud.frame_id == "base"
        assert cloud.points.dtype == np.float32
        np.testing.assert_array_equal(cloud.points, front_cloud.points)
        np.testing.assert_array_equal(cloud.colors, np.full((10, 3), 128))
        np.testing.assert_array_equal(cloud.indices, np.arange(10))

        assert len(result.composite) == 32 * 32
        assert len(result.flat) == 32 * 32
        assert len(result.timings.image_processing) == 1
        assert result.timings.total >= result.timings.color_search

    def test_point_behind_camera_is_black(self, config, gray_image):
        """Points outside every image's view are kept and painted black."""
        cloud = RangeCloud(
            points=np.array([[0.0, 0.0, -5.0], [0.0, 0.0, 5.0]]), frame_id="base"
        )
        request = PaintRequest(
            cloud=cloud,
            target_frame="base",
            images=[ImageInput(gray_image, "base", "flat", 90.0)],
        )

        result = paint_pointcloud(request, TransformBuffer(), config)

        np.testing.assert_array_equal(
            result.cloud.colors, [[128, 128, 128], [0, 0, 0]]
        )

    def test_cameras_in_other_frames(self, config, front_cloud):
        """Images are moved into the target frame before color search."""
        buffer = TransformBuffer()
        # Rear camera looks along +Z of the base frame (180 degrees about X)
        buffer.set_transform(
            "base",
            "rear_camera",
            RigidTransform.from_quaternion([0.0, 0.0, 0.0], [1.0, 0.0, 0.0, 0.0]),
        )
        buffer.set_transform("base", "front_camera", RigidTransform.identity())

        red = np.zeros((32, 32, 3), dtype=np.uint8)
        red[..., 0] = 255
        blue = np.zeros((32, 32, 3), dtype=np.uint8)
        blue[..., 2] = 255

        behind = front_cloud.points * np.float32([1, 1, -1])
        cloud = RangeCloud(
            points=np.concatenate([front_cloud.points, behind]), frame_id="base"
        )
        request = PaintRequest(
            cloud=cloud,
            target_frame="base",
            images=[
                ImageInput(red, "front_camera", "flat", 90.0),
                ImageInput(blue, "rear_camera", "flat", 90.0),
            ],
        )

        result = PointcloudPainter(config, buffer).paint(request)

        red_rgb = np.tile([255, 0, 0], (10, 1))
        blue_rgb = np.tile([0, 0, 255], (10, 1))
        np.testing.assert_array_equal(result.cloud.colors[:10], red_rgb)
        np.testing.assert_array_equal(result.cloud.colors[10:], blue_rgb)
        np.testing.assert_array_equal(result.composite.sources[:1024], 0)
        np.testing.assert_array_equal(result.composite.sources[1024:], 1)

    def test_unresolvable_camera_frame_skipped(
        self, config, gray_image, front_cloud, caplog
    ):
        """An image without a transform contributes nothing, with a warning."""
        request = PaintRequest(
            cloud=front_cloud,
            target_frame="base",
            images=[ImageInput(gray_image, "unknown_camera", "flat", 90.0)],
        )

        with caplog.at_level(logging.WARNING):
            result = PointcloudPainter(config, TransformBuffer()).paint(request)

        assert len(result.composite) == 0
        assert len(result.cloud) == 0
        assert "unknown_camera" in caplog.text

    def test_range_cloud_frame_fallback(self, config, gray_image, front_cloud):
        """A range cloud that cannot be transformed is painted in its own frame."""
        lidar_cloud = RangeCloud(points=front_cloud.points, frame_id="lidar")
        request = PaintRequest(
            cloud=lidar_cloud,
            target_frame="base",
            images=[ImageInput(gray_image, "base", "flat", 90.0)],
        )

        result = PointcloudPainter(config, TransformBuffer()).paint(request)

        assert not result.depth.transformed
        assert result.cloud.frame_id == "lidar"
        np.testing.assert_array_equal(result.cloud.points, front_cloud.points)
        np.testing.assert_array_equal(result.cloud.colors, np.full((10, 3), 128))

    def test_compression(self, config, gray_image, front_cloud):
        """Compressed images are block-downsampled before mapping."""
        request = PaintRequest(
            cloud=front_cloud,
            target_frame="base",
            images=[
                ImageInput(
                    gray_image,
                    "base",
                    "flat",
                    90.0,
                    compress=True,
                    compression_ratio=2,
                )
            ],
        )

        result = PointcloudPainter(config, TransformBuffer()).paint(request)

        assert len(result.composite) == 16 * 16
        np.testing.assert_array_equal(result.cloud.colors, np.full((10, 3), 128))

    def test_decode_failure(self, config, front_cloud):
        """A broken image fails the whole request."""
        request = PaintRequest(
            cloud=front_cloud,
            target_frame="base",
            images=[ImageInput(b"not an image", "base", "flat", 90.0, name="bad.png")],
        )

        with pytest.raises(ImageDecodeError, match="bad.png"):
            PointcloudPainter(config, TransformBuffer()).paint(request)

    def test_invalid_lens_angle(self, config, gray_image, front_cloud):
        """Invalid lens parameters fail the request."""
        request = PaintRequest(
            cloud=front_cloud,
            target_frame="base",
            images=[ImageInput(gray_image, "base", "flat", 200.0)],
        )

        with pytest.raises(ValueError, match="flat"):
            PointcloudPainter(config, TransformBuffer()).paint(request)

    def test_invalid_lens_rejected_before_processing(
        self, config, gray_image, front_cloud
    ):
        """A bad lens on the last image fails before any frame lookup."""
        transformer = MagicMock()
        lidar_cloud = RangeCloud(points=front_cloud.points, frame_id="lidar")
        request = PaintRequest(
            cloud=lidar_cloud,
            target_frame="base",
            images=[
                ImageInput(gray_image, "camera", "flat", 90.0),
                ImageInput(gray_image, "camera", "equal_area", 360.0, name="rear"),
            ],
        )

        with pytest.raises(ValueError, match="Image rear"):
            PointcloudPainter(config, transformer).paint(request)

        transformer.lookup_transform.assert_not_called()

    def test_no_images(self, config, front_cloud):
        """Without images no point can be painted."""
        request = PaintRequest(cloud=front_cloud, target_frame="base")
        result = PointcloudPainter(config, TransformBuffer()).paint(request)
        assert len(result.cloud) == 0
        assert result.timings.image_processing == []

    def test_default_config(self):
        """A painter without config uses the defaults."""
        painter = PointcloudPainter(None, TransformBuffer())
        assert painter.config == PainterConfig()
