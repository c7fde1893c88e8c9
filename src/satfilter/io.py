"""
TIFF image input/output for the driver.
"""

from pathlib import Path
from typing import Union

import numpy as np
import tifffile

from .errors import ConfigurationError


def load_image(path: Union[str, Path]) -> np.ndarray:
    """
    Read a TIFF as a 2D float32 image.

    Multi-plane files are reduced to their first 2D plane.

    Raises
    ------
    ConfigurationError
        If the file is missing, is not a TIFF, or holds no 2D image.
    """
    try:
        arr = tifffile.imread(str(path))
    except (OSError, tifffile.TiffFileError) as exc:
        raise ConfigurationError(f"Cannot read image {path}: {exc}") from exc
    while arr.ndim > 2:
        arr = arr[0]
    if arr.ndim != 2:
        raise ConfigurationError(f"{path} does not contain a 2D image (shape {arr.shape})")
    return np.ascontiguousarray(arr, dtype=np.float32)


def save_image(path: Union[str, Path], image: np.ndarray) -> None:
    """Write `image` as a float32 TIFF."""
    tifffile.imwrite(str(path), np.asarray(image, dtype=np.float32))
