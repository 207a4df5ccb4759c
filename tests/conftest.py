"""Shared pytest fixtures for pointpaint tests."""

import pytest
import torch

from pointpaint.transforms import TransformBuffer


@pytest.fixture(params=["cpu", "cuda"])
def device(request):
    """Parametrized device fixture for CPU and CUDA testing.

    Args:
        request: pytest fixture request object.

    Returns:
        str: Device to use for testing.

    Raises:
        pytest.skip: If CUDA is requested but not available.
    """
    if request.param == "cuda" and not torch.cuda.is_available():
        pytest.skip("CUDA not available")
    return request.param


@pytest.fixture
def empty_transforms() -> TransformBuffer:
    """Transform buffer with no edges; only identical frames resolve."""
    return TransformBuffer()
