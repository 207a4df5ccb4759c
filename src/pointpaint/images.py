"""Image decoding and block downsampling."""

import logging
from pathlib import Path

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class ImageDecodeError(ValueError):
    """Raised when an input image cannot be turned into an RGB pixel grid."""


def decode_image(data: bytes | np.ndarray, name: str = "") -> np.ndarray:
    """Decode an encoded image (PNG, JPEG, ...) into an RGB pixel grid.

    Args:
        data: Encoded image bytes, or an already decoded RGB array.
        name: Image name used in error messages.

    Returns:
        RGB image, shape (H, W, 3), uint8.

    Raises:
        ImageDecodeError: If the data cannot be decoded, or a decoded array
            is not an (H, W, 3) uint8 grid.
    """
    label = name or "<unnamed>"

    if isinstance(data, np.ndarray):
        if data.ndim != 3 or data.shape[2] != 3 or data.dtype != np.uint8:
            raise ImageDecodeError(
                f"Image {label}: expected (H, W, 3) uint8 RGB array, "
                f"got shape {data.shape} and dtype {data.dtype}"
            )
        if data.shape[0] == 0 or data.shape[1] == 0:
            raise ImageDecodeError(f"Image {label}: empty image {data.shape}")
        return data

    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    if buffer.size == 0:
        raise ImageDecodeError(f"Image {label}: no image data")

    bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    if bgr is None:
        raise ImageDecodeError(f"Image {label}: could not decode image data")

    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def load_image(path: str | Path) -> np.ndarray:
    """Read and decode an image file into an RGB pixel grid.

    Args:
        path: Path to the image file.

    Returns:
        RGB image, shape (H, W, 3), uint8.

    Raises:
        FileNotFoundError: If the file does not exist.
        ImageDecodeError: If the file cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    return decode_image(path.read_bytes(), name=path.name)


def downsample_image(image: np.ndarray, ratio: int) -> np.ndarray:
    """Shrink an image by averaging non-overlapping ratio x ratio pixel blocks.

    Rows and columns that do not fill a complete block are discarded.

    Args:
        image: RGB image, shape (H, W, 3), uint8.
        ratio: Integer block size (1 = unchanged).

    Returns:
        Downsampled image, shape (H // ratio, W // ratio, 3), uint8.

    Raises:
        ValueError: If ratio is below 1 or larger than the image.
    """
    if ratio < 1:
        raise ValueError(f"Compression ratio must be >= 1, got {ratio}")
    if ratio == 1:
        return image

    H, W = image.shape[:2]
    out_h, out_w = H // ratio, W // ratio
    if out_h == 0 or out_w == 0:
        raise ValueError(
            f"Compression ratio {ratio} is larger than the image ({H}x{W})"
        )

    cropped = np.ascontiguousarray(image[: out_h * ratio, : out_w * ratio])
    # INTER_AREA with an integer factor is an exact block average
    return cv2.resize(cropped, (out_w, out_h), interpolation=cv2.INTER_AREA)
