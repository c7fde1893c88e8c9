"""
Shared utilities for satfilter.

GPU detection, backend selection and array conversion helpers.
"""

import logging

import numpy as np

from .errors import ConfigurationError

# GPU detection - PyTorch based
try:
    import torch
    CUDA_AVAILABLE = torch.cuda.is_available()
except ImportError:
    torch = None
    CUDA_AVAILABLE = False

USING_GPU = CUDA_AVAILABLE

BACKENDS = ("auto", "numba", "torch")
CARRY_STRATEGIES = ("sequential", "scan")
DTYPES = (np.dtype(np.float32), np.dtype(np.float64))

logger = logging.getLogger(__name__)


def resolve_backend(backend: str = "auto") -> str:
    """
    Pick the engine backend.

    "auto" selects torch when a CUDA device is present, numba otherwise.
    Requesting "torch" without PyTorch installed is a configuration error.
    """
    if backend not in BACKENDS:
        raise ConfigurationError(f"Unknown backend {backend!r}; expected one of {BACKENDS}")
    if backend == "auto":
        backend = "torch" if CUDA_AVAILABLE else "numba"
    if backend == "torch" and torch is None:
        raise ConfigurationError("backend 'torch' requires PyTorch. Install with: pip install torch")
    logger.debug("Using %s backend (CUDA available: %s)", backend, CUDA_AVAILABLE)
    return backend


def resolve_dtype(dtype) -> np.dtype:
    """Working dtype of the engine; only float32 and float64 are supported."""
    try:
        resolved = np.dtype(dtype)
    except TypeError:
        raise ConfigurationError(f"Unknown dtype {dtype!r}") from None
    if resolved not in DTYPES:
        names = [d.name for d in DTYPES]
        raise ConfigurationError(f"dtype must be one of {names}, got {resolved.name}")
    return resolved


def torch_device():
    """Device for the torch backend."""
    return torch.device("cuda" if CUDA_AVAILABLE else "cpu")


def to_numpy(arr):
    """Convert array or tensor to numpy."""
    if torch is not None and isinstance(arr, torch.Tensor):
        return arr.detach().cpu().numpy()
    return np.asarray(arr)
