"""
Sequential reference engine.

Row-by-row then column-by-column evaluation of the causal recurrence on
the border-extended image. This is the correctness oracle for the tiled
engine: loops run in plain increasing coordinate order and are compiled
without parallel or fastmath, so the operation order never changes.
"""

from typing import Sequence

import numpy as np
from numba import njit

from .border import BorderType, extend_image
from .weights import SAT_WEIGHTS, as_weights


@njit(cache=True)
def _causal_rows(data: np.ndarray, weights: np.ndarray) -> None:
    H, W = data.shape
    R = weights.shape[0] - 1
    for r in range(H):
        for c in range(W):
            acc = weights[0] * data[r, c]
            for k in range(1, R + 1):
                if c - k >= 0:
                    acc -= weights[k] * data[r, c - k]
            data[r, c] = acc


@njit(cache=True)
def _causal_columns(data: np.ndarray, weights: np.ndarray) -> None:
    H, W = data.shape
    R = weights.shape[0] - 1
    for c in range(W):
        for r in range(H):
            acc = weights[0] * data[r, c]
            for k in range(1, R + 1):
                if r - k >= 0:
                    acc -= weights[k] * data[r - k, c]
            data[r, c] = acc


def reference_recursive_filter(
    image: np.ndarray,
    weights: Sequence[float],
    border: int = 0,
    btype=BorderType.ZERO,
    tile_size: int = 32,
    dtype=np.float64,
) -> np.ndarray:
    """
    Separable causal recursive filter, computed sequentially.

    Parameters
    ----------
    image : (H, W) array-like
        Input samples.
    weights : sequence of float
        Filter weights (w0, ..., wR).
    border : int
        Border extent in tiles; the image is extended by border * tile_size
        samples on every side before filtering.
    btype : BorderType or str
        Extension policy.
    tile_size : int
        Tile side used to convert `border` into samples.
    dtype : numpy dtype
        Accumulation and output dtype.

    Returns
    -------
    out : (H, W) ndarray
        Filter response restricted to the image domain.
    """
    w = as_weights(weights)
    img = np.asarray(image, dtype=dtype)
    H, W = img.shape
    pad = int(border) * int(tile_size)
    data = np.ascontiguousarray(extend_image(img, pad, btype)) if pad else img.copy()
    _causal_rows(data, w)
    _causal_columns(data, w)
    return data[pad:pad + H, pad:pad + W].copy()


def reference_sat(
    image: np.ndarray,
    border: int = 0,
    btype=BorderType.ZERO,
    tile_size: int = 32,
    dtype=np.float64,
) -> np.ndarray:
    """Summed-area table computed by the sequential reference engine."""
    return reference_recursive_filter(image, SAT_WEIGHTS, border, btype, tile_size, dtype)
