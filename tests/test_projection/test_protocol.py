"""Tests for SphereProjectionModel protocol structural compliance."""

import torch

from pointpaint.projection import SphereProjectionModel, create_projection_model


class _DummyLensModel:
    """Minimal implementation for protocol compliance testing."""

    height = 4
    width = 4

    def cast_ray(self, pixels: torch.Tensor) -> tuple[torch.Tensor, torch.Tensor]:
        n = pixels.shape[0]
        return torch.zeros(n, 3), torch.ones(n, dtype=torch.bool)


class _MissingCastRay:
    """Class missing the cast_ray method."""

    height = 4
    width = 4


def test_protocol_compliance_positive():
    """Verify that a class with cast_ray and dimensions passes isinstance check."""
    assert isinstance(_DummyLensModel(), SphereProjectionModel)


def test_protocol_compliance_missing_cast_ray():
    """Verify that a class without cast_ray fails isinstance check."""
    assert not isinstance(_MissingCastRay(), SphereProjectionModel)


def test_all_lens_models_satisfy_protocol():
    """Every lens model returned by the factory satisfies the protocol."""
    for kind, angle in [
        ("equatorial_stereographic", 180.0),
        ("polar_stereographic", 180.0),
        ("equal_area", 200.0),
        ("flat", 90.0),
    ]:
        model = create_projection_model(kind, angle, 8, 6)
        assert isinstance(model, SphereProjectionModel)
        assert model.height == 8
        assert model.width == 6
