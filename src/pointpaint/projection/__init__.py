"""Lens projection models mapping image pixels onto the unit sphere."""

from .lens import (
    EqualAreaLensModel,
    FlatLensModel,
    LensParameters,
    ProjectionKind,
    StereographicLensModel,
    compute_lens_parameters,
    create_projection_model,
)
from .protocol import SphereProjectionModel

__all__ = [
    "SphereProjectionModel",
    "ProjectionKind",
    "LensParameters",
    "compute_lens_parameters",
    "create_projection_model",
    "StereographicLensModel",
    "EqualAreaLensModel",
    "FlatLensModel",
]
