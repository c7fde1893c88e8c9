"""
Tiled recursive filter kernels.

Numba data-parallel stages operating on a block array of shape
(rows, cols, T, T), filtering along the last axis. Each kernel is one
stage; the caller runs them in order and a kernel returns only after all
its iterations have committed, which is the barrier between stages.
"""

import numpy as np
from numba import njit, prange


@njit(parallel=True, cache=True)
def local_filter_blocks(blocks: np.ndarray, weights: np.ndarray, carries: np.ndarray) -> None:
    """
    Filter every tile line from a zero incoming carry, in place.

    Parameters
    ----------
    blocks : float[rows, cols, T, T]
        Tile contents, overwritten by the local response.
    weights : float64[R + 1]
        Filter weights.
    carries : float[rows, cols, T, R]
        Output: outgoing local carry of each tile line, most recent first.
    """
    rows, cols, T, _ = blocks.shape
    R = weights.shape[0] - 1
    total = rows * cols * T

    for idx in prange(total):
        ty = idx // (cols * T)
        rem = idx % (cols * T)
        tx = rem // T
        i = rem % T
        for j in range(T):
            acc = weights[0] * blocks[ty, tx, i, j]
            for k in range(1, R + 1):
                if j - k >= 0:
                    acc -= weights[k] * blocks[ty, tx, i, j - k]
            blocks[ty, tx, i, j] = acc
        for k in range(R):
            carries[ty, tx, i, k] = blocks[ty, tx, i, T - 1 - k]


@njit(parallel=True, cache=True)
def propagate_carries(carries: np.ndarray, tail: np.ndarray, incoming: np.ndarray) -> None:
    """
    Sequential carry propagation along each line of tiles.

    Parameters
    ----------
    carries : float[rows, cols, T, R]
        Local outgoing carries from `local_filter_blocks`.
    tail : float64[R, R]
        Carry-out transfer map of one tile.
    incoming : float[rows, cols, T, R]
        Output: true incoming carry of each tile line.
    """
    rows, cols, T, R = carries.shape
    total = rows * T

    for idx in prange(total):
        ty = idx // T
        i = idx % T
        for k in range(R):
            incoming[ty, 0, i, k] = 0.0
        for tx in range(1, cols):
            for k in range(R):
                acc = carries[ty, tx - 1, i, k]
                for m in range(R):
                    acc += tail[k, m] * incoming[ty, tx - 1, i, m]
                incoming[ty, tx, i, k] = acc


@njit(parallel=True, cache=True)
def fixup_blocks(blocks: np.ndarray, transfer: np.ndarray, incoming: np.ndarray) -> None:
    """
    Add the effect of each tile's true incoming carry, in place.

    Parameters
    ----------
    blocks : float[rows, cols, T, T]
        Local responses, overwritten by the final responses.
    transfer : float64[T, R]
        Transfer map of one tile.
    incoming : float[rows, cols, T, R]
        True incoming carries.
    """
    rows, cols, T, _ = blocks.shape
    R = transfer.shape[1]
    total = rows * cols * T

    for idx in prange(total):
        ty = idx // (cols * T)
        rem = idx % (cols * T)
        tx = rem // T
        i = rem % T
        for j in range(T):
            acc = blocks[ty, tx, i, j]
            for k in range(R):
                acc += transfer[j, k] * incoming[ty, tx, i, k]
            blocks[ty, tx, i, j] = acc


def transpose_blocks(blocks: np.ndarray) -> np.ndarray:
    """Swap the tile grid axes and the in-tile axes (contiguous copy)."""
    return np.ascontiguousarray(blocks.transpose(1, 0, 3, 2))
