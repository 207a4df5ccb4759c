"""Protocol definition for pixel-to-sphere projection models."""

from typing import Protocol, runtime_checkable

import torch


@runtime_checkable
class SphereProjectionModel(Protocol):
    """Protocol for lens models mapping image pixels onto the unit sphere.

    Implementations are built once per image (height, width and lens
    parameters fixed) and then evaluated on batches of pixels. The camera
    looks along -Z: the image center maps to (0, 0, -1), image rows run
    along X and image columns along Y.
    """

    height: int
    width: int

    def cast_ray(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        """Map pixel coordinates to directions on the unit sphere.

        Args:
            pixels: Pixel coordinates (row, col), shape (N, 2), float64.

        Returns:
            directions: Unit direction vectors, shape (N, 3), float64.
            keep: Boolean mask, shape (N,). False for pixels outside the
                circular field of view of the lens. Directions of dropped
                pixels are finite but carry no meaning.
        """
        ...
