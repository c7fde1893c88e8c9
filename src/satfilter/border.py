"""
Border extension policies.

Maps coordinates outside the stored image to the sample assumed there.
The reference engine and the tiled engine both go through these functions.
"""

from enum import IntEnum

import numpy as np
from numba import njit

from .errors import ConfigurationError


class BorderType(IntEnum):
    """Extension policy for samples outside the image domain."""

    ZERO = 0
    CLAMP = 1
    REPEAT = 2
    REFLECT = 3

    @classmethod
    def parse(cls, value) -> "BorderType":
        """Accept a member, its integer value or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key not in cls.__members__:
                names = sorted(m.lower() for m in cls.__members__)
                raise ConfigurationError(f"Invalid border type {value!r}; expected one of {names}")
            return cls[key]
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid border type {value!r}; expected 0..3") from None


@njit(cache=True)
def border_index(i: int, n: int, btype: int) -> int:
    """
    Resolve coordinate `i` on an axis of length `n`.

    Returns the in-range index holding the sample, or -1 when the sample
    is zero (ZERO policy outside the domain).
    """
    if 0 <= i < n:
        return i
    if btype == 0:
        return -1
    if btype == 1:
        return 0 if i < 0 else n - 1
    if btype == 2:
        m = i % n
        if m < 0:
            m += n
        return m
    # reflect about the edge samples, edge not repeated
    if n == 1:
        return 0
    period = 2 * (n - 1)
    m = i % period
    if m < 0:
        m += period
    if m >= n:
        m = period - m
    return m


@njit(cache=True)
def border_indices(start: int, stop: int, n: int, btype: int) -> np.ndarray:
    """Vector of `border_index` for every coordinate in [start, stop)."""
    out = np.empty(stop - start, dtype=np.int64)
    for k in range(stop - start):
        out[k] = border_index(start + k, n, btype)
    return out


def border_value(image: np.ndarray, r: int, c: int, btype) -> float:
    """Sample at (r, c) of the logically extended image."""
    btype = int(BorderType.parse(btype))
    H, W = image.shape
    ri = border_index(r, H, btype)
    ci = border_index(c, W, btype)
    if ri < 0 or ci < 0:
        return image.dtype.type(0)
    return image[ri, ci]


def sample_region(
    image: np.ndarray, top: int, left: int, height: int, width: int, btype
) -> np.ndarray:
    """
    Window of the logically extended image.

    Parameters
    ----------
    image : (H, W) ndarray
        Stored image.
    top, left : int
        Window origin in image coordinates, may be negative.
    height, width : int
        Window size.
    btype : BorderType or str or int
        Extension policy applied independently along each axis.

    Returns
    -------
    region : (height, width) ndarray
        Copy of the window, same dtype as `image`.
    """
    btype = int(BorderType.parse(btype))
    H, W = image.shape
    rows = border_indices(top, top + height, H, btype)
    cols = border_indices(left, left + width, W, btype)
    region = image[np.ix_(np.maximum(rows, 0), np.maximum(cols, 0))]
    if btype == BorderType.ZERO:
        region[rows < 0, :] = 0
        region[:, cols < 0] = 0
    return region


def extend_image(image: np.ndarray, pad: int, btype) -> np.ndarray:
    """Extend `image` by `pad` samples on every side."""
    H, W = image.shape
    return sample_region(image, -pad, -pad, H + 2 * pad, W + 2 * pad, btype)
