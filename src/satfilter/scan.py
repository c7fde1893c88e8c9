"""
Parallel carry propagation as a scan over affine maps.

Tile j of a line maps its incoming carry c to its outgoing carry
A @ c + b_j. Composition of such maps is associative, so the incoming
carries of all tiles follow from an inclusive scan in log2(cols) rounds
(Hillis-Steele), each round vectorised over every line of the image.

Maps are batched: `matrix` has shape (..., R, R) and `offset` (..., R),
with leading axes broadcasting against each other. Only `@`, slicing and
the supplied concatenation are used, so numpy arrays and torch tensors
both work.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AffineMap:
    """c -> matrix @ c + offset."""

    matrix: np.ndarray
    offset: np.ndarray

    def __call__(self, carry: np.ndarray) -> np.ndarray:
        return (self.matrix @ carry[..., None])[..., 0] + self.offset


def compose(first: AffineMap, second: AffineMap) -> AffineMap:
    """Map applying `first` then `second`."""
    return AffineMap(second.matrix @ first.matrix, second(first.offset))


def inclusive_scan(maps: AffineMap, concat) -> AffineMap:
    """
    Hillis-Steele inclusive scan of tile maps along the tile axis.

    Parameters
    ----------
    maps : AffineMap
        `matrix` of shape (cols, 1, R, R), tile axis first; `offset` of
        shape (rows, cols, T, R), tile axis second.
    concat : callable
        `np.concatenate` or `torch.cat`.

    Returns
    -------
    scanned : AffineMap
        Element j is the composition of tile maps 0..j.
    """
    cols = maps.matrix.shape[0]
    d = 1
    while d < cols:
        step = compose(
            AffineMap(maps.matrix[:-d], maps.offset[:, :-d]),
            AffineMap(maps.matrix[d:], maps.offset[:, d:]),
        )
        maps = AffineMap(
            concat((maps.matrix[:d], step.matrix), 0),
            concat((maps.offset[:, :d], step.offset), 1),
        )
        d *= 2
    return maps


def scan_carries(carries: np.ndarray, tail: np.ndarray, incoming: np.ndarray = None) -> np.ndarray:
    """
    Incoming carry of every tile via an inclusive affine scan.

    Parameters
    ----------
    carries : float[rows, cols, T, R]
        Local outgoing carries.
    tail : float64[R, R]
        Carry-out transfer map shared by all tiles.
    incoming : float[rows, cols, T, R], optional
        Output buffer.

    Returns
    -------
    incoming : float[rows, cols, T, R]
        incoming[:, 0] is zero, incoming[:, j] is the outgoing carry of
        tile j - 1 after propagation.
    """
    rows, cols, T, R = carries.shape
    if incoming is None:
        incoming = np.empty_like(carries)

    mats = np.broadcast_to(np.asarray(tail, dtype=np.float64), (cols, 1, R, R))
    scanned = inclusive_scan(AffineMap(mats, carries.astype(np.float64)), np.concatenate)

    incoming[:, 0] = 0
    incoming[:, 1:] = scanned.offset[:, :-1]
    return incoming
