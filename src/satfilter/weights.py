"""
Recursive filter weights and tile transfer maps.

A filter of order R has weights (w0, w1, ..., wR) and evaluates

    y[i] = w0 * x[i] - sum_{k=1..R} w_k * y[i-k]

so SAT_WEIGHTS = (1, -1) is a running sum. Carry vectors hold the last R
outputs of the preceding tile, most recent first: c[0] = y[-1], c[1] = y[-2].
"""

from typing import Sequence

import numpy as np

from .errors import ConfigurationError

SAT_WEIGHTS = (1.0, -1.0)


def as_weights(weights: Sequence[float]) -> np.ndarray:
    """Validate weights and return them as a read-only float64 array."""
    w = np.array(weights, dtype=np.float64).ravel()
    if w.size < 2:
        raise ConfigurationError(
            f"Filter needs at least 2 weights (order >= 1), got {w.size}"
        )
    if not np.all(np.isfinite(w)):
        raise ConfigurationError(f"Filter weights must be finite, got {w.tolist()}")
    w.setflags(write=False)
    return w


def filter_order(weights: Sequence[float]) -> int:
    """Order R of the filter."""
    return len(weights) - 1


def transfer_matrix(weights: Sequence[float], tile_size: int) -> np.ndarray:
    """
    Response of a zero-input tile to each unit incoming carry.

    Parameters
    ----------
    weights : sequence of float
        Filter weights (w0, ..., wR).
    tile_size : int
        Tile side T.

    Returns
    -------
    M : (T, R) float64
        Column k is the tile output when the incoming carry is e_k. The true
        output of a tile with local output L and incoming carry c is
        L + M @ c.
    """
    w = as_weights(weights)
    R = filter_order(w)
    M = np.zeros((tile_size, R), dtype=np.float64)
    for k in range(R):
        # prev[m] holds y[j-1-m]
        prev = np.zeros(R, dtype=np.float64)
        prev[k] = 1.0
        for j in range(tile_size):
            acc = 0.0
            for m in range(R):
                acc -= w[m + 1] * prev[m]
            M[j, k] = acc
            prev[1:] = prev[:-1]
            prev[0] = acc
    return M


def tail_transfer(weights: Sequence[float], tile_size: int) -> np.ndarray:
    """
    Carry-out part of the transfer map.

    Returns
    -------
    A : (R, R) float64
        Outgoing carry of a tile = local carry + A @ incoming carry.
    """
    M = transfer_matrix(weights, tile_size)
    R = M.shape[1]
    return np.ascontiguousarray(M[::-1][:R])
