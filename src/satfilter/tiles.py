"""
Tile decomposition of the (border-extended) image.

The extended domain is cut into square tiles of side T. Tiles overlapping
the stored image are StoredTile; the `border` rings of tiles around it are
BorderTile, whose content is derived from the border policy alone. Both
expose the same interface so the filtering stages never special-case them.
"""

import math
from dataclasses import dataclass
from typing import Iterator, Tuple, Union

import numpy as np

from .border import BorderType, sample_region
from .errors import ConfigurationError

DEFAULT_TILE_SIZE = 32


@dataclass(frozen=True)
class StoredTile:
    """Tile backed by image data (edge tiles may be partly outside)."""

    row: int
    col: int
    top: int
    left: int
    size: int
    btype: BorderType

    kind = "stored"

    @property
    def origin(self) -> Tuple[int, int]:
        return self.top, self.left

    def content(self, image: np.ndarray) -> np.ndarray:
        H, W = image.shape
        T = self.size
        if self.top + T <= H and self.left + T <= W:
            return image[self.top:self.top + T, self.left:self.left + T].copy()
        return sample_region(image, self.top, self.left, T, T, self.btype)


@dataclass(frozen=True)
class BorderTile:
    """Virtual tile outside the image, defined by the border policy."""

    row: int
    col: int
    top: int
    left: int
    size: int
    btype: BorderType

    kind = "border"

    @property
    def origin(self) -> Tuple[int, int]:
        return self.top, self.left

    def content(self, image: np.ndarray) -> np.ndarray:
        T = self.size
        if self.btype == BorderType.ZERO:
            return np.zeros((T, T), dtype=image.dtype)
        return sample_region(image, self.top, self.left, T, T, self.btype)


Tile = Union[StoredTile, BorderTile]


class TileGrid:
    """
    Layout of tiles covering an H x W image plus `border` tiles per side.

    Parameters
    ----------
    height, width : int
        Image size.
    tile_size : int
        Tile side T.
    border : int
        Number of border tiles on each side; 0 disables border handling
        (samples past the image edge inside partial tiles are zero).
    btype : BorderType or str
        Extension policy for border tiles.
    """

    def __init__(self, height: int, width: int, tile_size: int = DEFAULT_TILE_SIZE,
                 border: int = 0, btype=BorderType.ZERO):
        for name, value, low in (("height", height, 1), ("width", width, 1),
                                 ("tile_size", tile_size, 1), ("border", border, 0)):
            if int(value) != value or value < low:
                raise ConfigurationError(f"{name} must be an integer >= {low}, got {value!r}")
        self.height = int(height)
        self.width = int(width)
        self.tile_size = int(tile_size)
        self.border = int(border)
        self.btype = BorderType.parse(btype) if self.border > 0 else BorderType.ZERO
        self.inner_rows = math.ceil(self.height / self.tile_size)
        self.inner_cols = math.ceil(self.width / self.tile_size)
        self.rows = self.inner_rows + 2 * self.border
        self.cols = self.inner_cols + 2 * self.border
        self.pad = self.border * self.tile_size

    @property
    def shape(self) -> Tuple[int, int]:
        """Grid size in tiles (rows, cols)."""
        return self.rows, self.cols

    @property
    def block_shape(self) -> Tuple[int, int, int, int]:
        return self.rows, self.cols, self.tile_size, self.tile_size

    def is_border(self, row: int, col: int) -> bool:
        b = self.border
        return not (b <= row < b + self.inner_rows and b <= col < b + self.inner_cols)

    def tile(self, row: int, col: int) -> Tile:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"Tile ({row}, {col}) outside grid {self.shape}")
        T = self.tile_size
        top = row * T - self.pad
        left = col * T - self.pad
        cls = BorderTile if self.is_border(row, col) else StoredTile
        return cls(row, col, top, left, T, self.btype)

    def tiles(self) -> Iterator[Tile]:
        """All tiles in scan order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield self.tile(row, col)

    def gather(self, image: np.ndarray, dtype=None) -> np.ndarray:
        """
        Decode every tile into a block array.

        Returns
        -------
        blocks : (rows, cols, T, T) ndarray
            blocks[r, c] is the content of tile (r, c).
        """
        image = np.asarray(image)
        if image.shape != (self.height, self.width):
            raise ConfigurationError(
                f"Image shape {image.shape} does not match grid {(self.height, self.width)}"
            )
        blocks = np.empty(self.block_shape, dtype=dtype or image.dtype)
        for t in self.tiles():
            blocks[t.row, t.col] = t.content(image)
        return blocks

    def reassemble(self, blocks: np.ndarray) -> np.ndarray:
        """Crop the image window back out of a block array."""
        blocks = np.asarray(blocks)
        if blocks.shape != self.block_shape:
            raise ConfigurationError(
                f"Block array shape {blocks.shape} does not match grid {self.block_shape}"
            )
        T = self.tile_size
        full = blocks.transpose(0, 2, 1, 3).reshape(self.rows * T, self.cols * T)
        p = self.pad
        return full[p:p + self.height, p:p + self.width].copy()


def decompose(image: np.ndarray, tile_size: int = DEFAULT_TILE_SIZE, border: int = 0,
              btype=BorderType.ZERO, dtype=None) -> Tuple[TileGrid, np.ndarray]:
    """Build the grid for `image` and gather its blocks."""
    image = np.asarray(image)
    if image.ndim != 2:
        raise ConfigurationError(f"Expected a 2D image, got shape {image.shape}")
    grid = TileGrid(image.shape[0], image.shape[1], tile_size, border, btype)
    return grid, grid.gather(image, dtype=dtype)


def reassemble(grid: TileGrid, blocks: np.ndarray) -> np.ndarray:
    """Inverse of `decompose` on the image window."""
    return grid.reassemble(blocks)
