"""
Region sums and box filtering from a summed-area table.
"""

import numpy as np

from .pipeline import summed_area_table


def region_sum(sat: np.ndarray, top: int, left: int, bottom: int, right: int) -> float:
    """
    Sum of the inclusive rectangle [top..bottom] x [left..right].

    The rectangle is clipped to the table; an empty rectangle sums to 0.
    """
    H, W = sat.shape
    top, left = max(0, top), max(0, left)
    bottom, right = min(H - 1, bottom), min(W - 1, right)
    if bottom < top or right < left:
        return 0.0
    result = float(sat[bottom, right])
    if top > 0:
        result -= sat[top - 1, right]
    if left > 0:
        result -= sat[bottom, left - 1]
    if top > 0 and left > 0:
        result += sat[top - 1, left - 1]
    return float(result)


def box_filter(image: np.ndarray, radius: int, **pipeline_kwargs) -> np.ndarray:
    """
    Mean over a (2 * radius + 1)^2 window around each pixel.

    Windows are clipped at the image border and normalised by the number
    of pixels they cover. Extra keyword arguments go to `summed_area_table`.

    Parameters
    ----------
    image : (H, W) array-like
        Input image.
    radius : int
        Window radius, >= 0.

    Returns
    -------
    out : (H, W) float64
    """
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    image = np.asarray(image)
    H, W = image.shape
    sat = np.asarray(summed_area_table(image, **pipeline_kwargs), dtype=np.float64)
    # zero row/column in front so index -1 reads 0
    padded = np.zeros((H + 1, W + 1), dtype=np.float64)
    padded[1:, 1:] = sat

    rows = np.arange(H)
    cols = np.arange(W)
    r0 = np.clip(rows - radius, 0, H)
    r1 = np.clip(rows + radius + 1, 0, H)
    c0 = np.clip(cols - radius, 0, W)
    c1 = np.clip(cols + radius + 1, 0, W)

    total = (padded[np.ix_(r1, c1)] - padded[np.ix_(r0, c1)]
             - padded[np.ix_(r1, c0)] + padded[np.ix_(r0, c0)])
    count = np.outer(r1 - r0, c1 - c0)
    return total / count
