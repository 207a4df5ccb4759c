"""Closed-form lens models mapping image pixels onto the unit sphere.

Each model is the inverse of a standard map projection (stereographic,
Lambert azimuthal equal-area, simple perspective), scaled so that the full
field of view of the lens fills the image.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum

import torch

logger = logging.getLogger(__name__)


class ProjectionKind(str, Enum):
    """Supported lens projection families."""

    EQUATORIAL_STEREOGRAPHIC = "equatorial_stereographic"
    POLAR_STEREOGRAPHIC = "polar_stereographic"
    EQUAL_AREA = "equal_area"
    FLAT = "flat"


# Multiplier from flat unit-square coordinates to projection plane coordinates.
_PLANE_SCALE = {
    ProjectionKind.EQUATORIAL_STEREOGRAPHIC: 2.0,
    ProjectionKind.POLAR_STEREOGRAPHIC: 4.0,
    ProjectionKind.EQUAL_AREA: 2.0,
}

# Pixels farther than this from the image center (in unit-square coordinates)
# fall outside the circular image of a wide-angle lens.
FOV_RADIUS = 0.5


@dataclass(frozen=True)
class LensParameters:
    """Per-image projection parameters derived from the lens field of view.

    Attributes:
        kind: Projection family.
        max_view_angle: Full angular field of view of the lens (degrees).
        plane_width: Width of the projection plane that wraps onto the unit
            sphere with the requested field of view.
        x_max: Radial position on the sphere of the outermost lens ray
            (stereographic and equal-area only).
        z_max: Axial position on the sphere of the outermost lens ray
            (stereographic and equal-area only).
        image_plane_distance: Distance from the origin to the image plane
            (flat only).
    """

    kind: ProjectionKind
    max_view_angle: float
    plane_width: float
    x_max: float | None = None
    z_max: float | None = None
    image_plane_distance: float | None = None


def compute_lens_parameters(
    kind: ProjectionKind | str, max_view_angle: float
) -> LensParameters:
    """Derive projection parameters from the lens field of view.

    Args:
        kind: Projection family (enum member or its string value).
        max_view_angle: Full angular field of view of the lens (degrees).

    Returns:
        Validated LensParameters.

    Raises:
        ValueError: If the kind is unknown, the angle is outside (0, 360), a
            flat projection is asked for 180 degrees or more, or a derived
            parameter is not finite.
    """
    kind = ProjectionKind(kind)
    angle = float(max_view_angle)

    if not math.isfinite(angle) or angle <= 0.0 or angle >= 360.0:
        raise ValueError(
            f"max_view_angle must be in (0, 360) degrees for {kind.value} "
            f"projection, got {max_view_angle}"
        )

    if kind == ProjectionKind.FLAT:
        if angle >= 180.0:
            raise ValueError(
                f"max_view_angle must be below 180 degrees for flat projection, "
                f"got {max_view_angle}"
            )
        half = math.radians(angle / 2)
        params = LensParameters(
            kind=kind,
            max_view_angle=angle,
            plane_width=2 * math.sin(half),
            image_plane_distance=math.cos(half),
        )
    else:
        offset = math.radians((angle - 180) / 2)
        x_max = math.cos(offset)
        z_max = math.sin(offset)
        if 1.0 - z_max <= 0.0:
            raise ValueError(
                f"max_view_angle {max_view_angle} is too close to 360 degrees "
                f"for {kind.value} projection"
            )
        if kind == ProjectionKind.EQUATORIAL_STEREOGRAPHIC:
            plane_width = x_max / (1 - z_max)
        elif kind == ProjectionKind.POLAR_STEREOGRAPHIC:
            plane_width = 2 * x_max / (1 - z_max)
        else:
            plane_width = math.sqrt(2 / (1 - z_max)) * x_max
        params = LensParameters(
            kind=kind,
            max_view_angle=angle,
            plane_width=plane_width,
            x_max=x_max,
            z_max=z_max,
        )

    derived = [
        params.plane_width,
        params.x_max,
        params.z_max,
        params.image_plane_distance,
    ]
    if not all(math.isfinite(v) for v in derived if v is not None):
        raise ValueError(
            f"Non-finite projection parameters for {kind.value} projection "
            f"with max_view_angle={max_view_angle}: {params}"
        )

    logger.debug(
        "Lens parameters (%s, %.1f deg): plane_width=%.6f x_max=%s z_max=%s",
        kind.value,
        angle,
        params.plane_width,
        params.x_max,
        params.z_max,
    )
    return params


class _LensModel:
    """Shared pixel normalization for all lens models."""

    def __init__(self, params: LensParameters, height: int, width: int) -> None:
        if height <= 0 or width <= 0:
            raise ValueError(
                f"Image dimensions must be positive, got {height}x{width}"
            )
        self.params = params
        self.height = height
        self.width = width

    def _unit_square(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        """Pixel (row, col) to centered unit-square coordinates in [-0.5, 0.5)."""
        xf = pixels[:, 0] / self.height - 0.5
        yf = pixels[:, 1] / self.width - 0.5
        return xf, yf

    def _inside_fov(self, xf: torch.Tensor, yf: torch.Tensor) -> torch.Tensor:
        return torch.sqrt(xf**2 + yf**2) <= FOV_RADIUS


class StereographicLensModel(_LensModel):
    """Inverse stereographic projection (equatorial or polar variant).

    Projects from the pole at +Z onto the sphere; the image center maps to
    the opposite pole (0, 0, -1).
    """

    def cast_ray(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        """Map pixel coordinates to directions on the unit sphere.

        Args:
            pixels: Pixel coordinates (row, col), shape (N, 2), float64.

        Returns:
            directions: Unit direction vectors, shape (N, 3), float64.
            keep: Pixels inside the circular field of view, shape (N,).
        """
        xf, yf = self._unit_square(pixels)
        scale = self.params.plane_width * _PLANE_SCALE[self.params.kind]
        xs = xf * scale
        ys = yf * scale

        r2 = xs**2 + ys**2
        denom = 1 + r2
        directions = torch.stack(
            [2 * xs / denom, 2 * ys / denom, (-1 + r2) / denom], dim=-1
        )
        return directions, self._inside_fov(xf, yf)


class EqualAreaLensModel(_LensModel):
    """Inverse Lambert azimuthal equal-area projection centered on -Z."""

    def cast_ray(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        """Map pixel coordinates to directions on the unit sphere.

        Args:
            pixels: Pixel coordinates (row, col), shape (N, 2), float64.

        Returns:
            directions: Unit direction vectors, shape (N, 3), float64.
            keep: Pixels inside the circular field of view, shape (N,).
        """
        xf, yf = self._unit_square(pixels)
        scale = self.params.plane_width * _PLANE_SCALE[self.params.kind]
        xs = xf * scale
        ys = yf * scale

        r2 = xs**2 + ys**2
        # Image corners can exceed the projection disk (r2 > 4); they are
        # dropped by the FOV mask, clamp so they stay finite.
        radial = torch.sqrt(torch.clamp(1 - r2 / 4, min=0.0))
        directions = torch.stack([xs * radial, ys * radial, -1 + r2 / 2], dim=-1)
        return directions, self._inside_fov(xf, yf)


class FlatLensModel(_LensModel):
    """Simple perspective (pinhole) projection through a plane below the origin."""

    def cast_ray(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        """Map pixel coordinates to directions on the unit sphere.

        Args:
            pixels: Pixel coordinates (row, col), shape (N, 2), float64.

        Returns:
            directions: Unit direction vectors, shape (N, 3), float64.
            keep: All True; a flat image has no circular FOV crop.
        """
        xf, yf = self._unit_square(pixels)
        distance = self.params.image_plane_distance

        plane_points = torch.stack(
            [
                xf * self.params.plane_width,
                yf * self.params.plane_width,
                torch.full_like(xf, -distance),
            ],
            dim=-1,
        )
        directions = plane_points / torch.linalg.norm(
            plane_points, dim=-1, keepdim=True
        )
        keep = torch.ones(pixels.shape[0], dtype=torch.bool, device=pixels.device)
        return directions, keep


def create_projection_model(
    kind: ProjectionKind | str,
    max_view_angle: float,
    height: int,
    width: int,
) -> StereographicLensModel | EqualAreaLensModel | FlatLensModel:
    """Create the lens model for one image.

    Args:
        kind: Projection family.
        max_view_angle: Full angular field of view of the lens (degrees).
        height: Image height in pixels.
        width: Image width in pixels.

    Returns:
        Lens model satisfying the SphereProjectionModel protocol.

    Raises:
        ValueError: If the lens parameters or image dimensions are invalid.
    """
    params = compute_lens_parameters(kind, max_view_angle)

    if params.kind == ProjectionKind.FLAT:
        return FlatLensModel(params, height, width)
    if params.kind == ProjectionKind.EQUAL_AREA:
        return EqualAreaLensModel(params, height, width)
    return StereographicLensModel(params, height, width)
