"""
Torch implementation of the tiled filter stages.

Same three stages as `satfilter.kernels`, expressed as tensor operations
vectorised over every tile and line at once. Runs on CUDA when available
and on the CPU otherwise.
"""

from contextlib import contextmanager

import numpy as np

from .errors import AllocationError, ConfigurationError
from .scan import AffineMap, inclusive_scan
from .utils import to_numpy, torch, torch_device

_TORCH_DTYPES = {
    np.dtype(np.float32): "float32",
    np.dtype(np.float64): "float64",
}


@contextmanager
def allocating(what: str, device):
    """Turn device out-of-memory failures into AllocationError."""
    try:
        yield
    except torch.cuda.OutOfMemoryError as exc:
        raise AllocationError(f"Could not allocate {what} on {device}") from exc
    except RuntimeError as exc:
        # the CPU allocator reports exhaustion as a plain RuntimeError
        if "allocate" not in str(exc):
            raise
        raise AllocationError(f"Could not allocate {what} on {device}") from exc


def local_filter_torch(blocks, weights: np.ndarray):
    """Zero-carry recurrence along the last axis, in place; returns local carries."""
    T = blocks.shape[-1]
    R = len(weights) - 1
    w = [float(v) for v in weights]
    for j in range(T):
        acc = w[0] * blocks[..., j]
        for k in range(1, R + 1):
            if j - k >= 0:
                acc = acc - w[k] * blocks[..., j - k]
        blocks[..., j] = acc
    return torch.flip(blocks[..., T - R:], dims=(-1,)).contiguous()


def propagate_carries_torch(carries, tail):
    """Line-sequential propagation, all lines at once."""
    incoming = torch.zeros_like(carries)
    tail_t = tail.transpose(0, 1)
    for tx in range(1, carries.shape[1]):
        incoming[:, tx] = carries[:, tx - 1] + incoming[:, tx - 1] @ tail_t
    return incoming


def scan_carries_torch(carries, tail):
    """Hillis-Steele affine scan, see `satfilter.scan.scan_carries`."""
    cols, R = carries.shape[1], carries.shape[3]
    mats = tail.expand(cols, 1, R, R)
    scanned = inclusive_scan(AffineMap(mats, carries), torch.cat)
    incoming = torch.zeros_like(carries)
    incoming[:, 1:] = scanned.offset[:, :-1]
    return incoming


def fixup_torch(blocks, transfer, incoming):
    """Add transfer @ incoming to every tile line, in place."""
    blocks += incoming @ transfer.transpose(0, 1)
    return blocks


class TorchEngine:
    """
    Filter stages on the torch device.

    Parameters
    ----------
    weights : float64[R + 1]
        Filter weights.
    transfer : float64[T, R]
        Tile transfer map.
    tail : float64[R, R]
        Carry-out transfer map.
    carry_strategy : str
        "sequential" or "scan".
    """

    def __init__(self, weights, transfer, tail, carry_strategy="sequential"):
        self.weights = weights
        self.device = torch_device()
        self._transfer = transfer
        self._tail = tail
        self._propagate = scan_carries_torch if carry_strategy == "scan" else propagate_carries_torch
        self._host_dtype = None

    def upload(self, blocks: np.ndarray):
        self._host_dtype = blocks.dtype
        if blocks.dtype not in _TORCH_DTYPES:
            raise ConfigurationError(f"Unsupported block dtype {blocks.dtype}; expected float32 or float64")
        dtype = getattr(torch, _TORCH_DTYPES[blocks.dtype])
        with allocating(f"{blocks.nbytes} bytes", self.device):
            data = torch.as_tensor(blocks, device=self.device).to(dtype)
            self.transfer = torch.as_tensor(self._transfer, device=self.device).to(dtype)
            self.tail = torch.as_tensor(self._tail, device=self.device).to(dtype)
        return data

    def filter_pass(self, data):
        """One direction: local filter, carry propagation, fix-up."""
        carries = local_filter_torch(data, self.weights)
        incoming = self._propagate(carries, self.tail)
        return fixup_torch(data, self.transfer, incoming)

    def transpose(self, data):
        with allocating(f"transposed blocks {tuple(data.shape)}", self.device):
            return data.permute(1, 0, 3, 2).contiguous()

    def download(self, data) -> np.ndarray:
        return to_numpy(data).astype(self._host_dtype, copy=False)
