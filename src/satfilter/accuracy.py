"""
Accuracy checks of the tiled engine against the reference engine.
"""

from typing import Tuple

import numpy as np

from .errors import ConfigurationError


def check_reference(accel, ref, width: int, height: int) -> Tuple[float, float]:
    """
    Worst-case absolute and relative error between two images.

    Parameters
    ----------
    accel, ref : array-like
        Buffers of width * height samples (flat row-major or 2D).
    width, height : int
        Image size.

    Returns
    -------
    max_abs : float
        max |accel - ref|.
    max_rel : float
        max |accel - ref| / |ref| over samples with |ref| > 0.

    Notes
    -----
    Large errors are reported, never raised; the caller compares them with
    its own tolerance.
    """
    n = int(width) * int(height)
    a = np.asarray(accel, dtype=np.float64).ravel()
    r = np.asarray(ref, dtype=np.float64).ravel()
    if a.size != n or r.size != n:
        raise ConfigurationError(
            f"Expected two buffers of {width}x{height}={n} samples, got {a.size} and {r.size}"
        )
    if n == 0:
        return 0.0, 0.0

    diff = np.abs(a - r)
    mag = np.abs(r)
    nz = mag > 0
    max_abs = float(diff.max())
    max_rel = float((diff[nz] / mag[nz]).max()) if np.any(nz) else 0.0
    return max_abs, max_rel


def within_tolerance(max_abs: float, max_rel: float, abs_tol: float = None,
                     rel_tol: float = None) -> bool:
    """True when every supplied tolerance is met."""
    if abs_tol is not None and max_abs > abs_tol:
        return False
    if rel_tol is not None and max_rel > rel_tol:
        return False
    return True
