"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def sample_image(rng):
    """Generate a sample image whose sides are not multiples of the tile size."""
    return rng.random((70, 45), dtype=np.float32)


@pytest.fixture
def force_cpu(monkeypatch):
    """Force CPU fallback by setting CUDA_AVAILABLE to False."""
    import satfilter.utils as utils

    monkeypatch.setattr(utils, "CUDA_AVAILABLE", False)
    yield
    # monkeypatch automatically restores after test
