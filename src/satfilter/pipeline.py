"""
Two-pass tiled recursive filter driver.

Decomposes the image into tiles, runs the row pass (local filter, carry
propagation, fix-up), transposes the tile grid, runs the same three stages
along columns, transposes back and crops the image window out.
"""

import logging
from enum import Enum
from typing import Sequence

import numpy as np

from .border import BorderType
from .errors import AllocationError, ConfigurationError
from .kernels import fixup_blocks, local_filter_blocks, propagate_carries, transpose_blocks
from .scan import scan_carries
from .tiles import DEFAULT_TILE_SIZE, TileGrid
from .utils import CARRY_STRATEGIES, resolve_backend, resolve_dtype
from .weights import SAT_WEIGHTS, as_weights, filter_order, tail_transfer, transfer_matrix

logger = logging.getLogger(__name__)


class PassStage(Enum):
    ROW_PASS = "row"
    COLUMN_PASS = "column"
    DONE = "done"

    def next(self) -> "PassStage":
        if self is PassStage.ROW_PASS:
            return PassStage.COLUMN_PASS
        return PassStage.DONE


class NumbaEngine:
    """Filter stages as numba parallel kernels on host memory."""

    def __init__(self, weights, transfer, tail, carry_strategy="sequential"):
        self.weights = weights
        self.transfer = transfer
        self.tail = tail
        self.carry_strategy = carry_strategy

    def upload(self, blocks: np.ndarray) -> np.ndarray:
        return blocks

    def filter_pass(self, blocks: np.ndarray) -> np.ndarray:
        rows, cols, T, _ = blocks.shape
        R = self.transfer.shape[1]
        try:
            carries = np.empty((rows, cols, T, R), dtype=blocks.dtype)
            incoming = np.empty_like(carries)
        except MemoryError as exc:
            raise AllocationError(f"Could not allocate carry buffers for {rows}x{cols} tiles") from exc

        local_filter_blocks(blocks, self.weights, carries)
        if self.carry_strategy == "scan":
            scan_carries(carries, self.tail, incoming)
        else:
            propagate_carries(carries, self.tail, incoming)
        fixup_blocks(blocks, self.transfer, incoming)
        return blocks

    def transpose(self, blocks: np.ndarray) -> np.ndarray:
        try:
            return transpose_blocks(blocks)
        except MemoryError as exc:
            raise AllocationError(f"Could not allocate transposed blocks {blocks.shape}") from exc

    def download(self, blocks: np.ndarray) -> np.ndarray:
        return blocks


class RecursiveFilterPipeline:
    """
    Tiled, border-aware separable causal recursive filter.

    Parameters
    ----------
    weights : sequence of float
        Filter weights (w0, ..., wR); SAT_WEIGHTS gives the summed-area table.
    tile_size : int
        Tile side T, at least R.
    border : int
        Border extent in tiles on each side.
    btype : BorderType or str
        Extension policy for border tiles.
    backend : str
        "numba", "torch" or "auto".
    carry_strategy : str
        "sequential" (line-sequential propagation) or "scan" (affine scan).
    dtype : numpy dtype
        Working and output dtype, float32 or float64.
    """

    def __init__(
        self,
        weights: Sequence[float] = SAT_WEIGHTS,
        tile_size: int = DEFAULT_TILE_SIZE,
        border: int = 0,
        btype=BorderType.ZERO,
        backend: str = "auto",
        carry_strategy: str = "sequential",
        dtype=np.float32,
    ):
        self.weights = as_weights(weights)
        self.order = filter_order(self.weights)
        if int(tile_size) != tile_size or tile_size < max(1, self.order):
            raise ConfigurationError(
                f"tile_size must be an integer >= filter order {self.order}, got {tile_size!r}"
            )
        if int(border) != border or border < 0:
            raise ConfigurationError(f"border must be a non-negative integer, got {border!r}")
        if carry_strategy not in CARRY_STRATEGIES:
            raise ConfigurationError(
                f"Unknown carry strategy {carry_strategy!r}; expected one of {CARRY_STRATEGIES}"
            )
        self.dtype = resolve_dtype(dtype)
        self.tile_size = int(tile_size)
        self.border = int(border)
        self.btype = BorderType.parse(btype)
        self.backend = resolve_backend(backend)
        self.carry_strategy = carry_strategy

        self.transfer = transfer_matrix(self.weights, self.tile_size)
        self.tail = tail_transfer(self.weights, self.tile_size)

    def _engine(self):
        if self.backend == "torch":
            from .gpu import TorchEngine

            return TorchEngine(self.weights, self.transfer, self.tail, self.carry_strategy)
        return NumbaEngine(self.weights, self.transfer, self.tail, self.carry_strategy)

    def run(self, image: np.ndarray) -> np.ndarray:
        """
        Filter `image` along rows then columns.

        Parameters
        ----------
        image : (H, W) array-like
            Input samples; never modified and never aliased by the result.

        Returns
        -------
        out : (H, W) ndarray
            Filter response in `self.dtype`.
        """
        image = np.asarray(image)
        if image.ndim != 2:
            raise ConfigurationError(f"Expected a 2D image, got shape {image.shape}")
        H, W = image.shape
        grid = TileGrid(H, W, self.tile_size, self.border, self.btype)
        try:
            blocks = grid.gather(image, dtype=self.dtype)
        except MemoryError as exc:
            raise AllocationError(f"Could not allocate block array {grid.block_shape}") from exc

        engine = self._engine()
        data = engine.upload(blocks)
        stage = PassStage.ROW_PASS
        while stage is not PassStage.DONE:
            logger.debug("%s pass over %dx%d tiles (%s)", stage.value, grid.rows, grid.cols,
                         self.backend)
            data = engine.filter_pass(data)
            data = engine.transpose(data)
            stage = stage.next()
        return grid.reassemble(engine.download(data))

    __call__ = run


def recursive_filter_2d(
    image: np.ndarray,
    weights: Sequence[float],
    border: int = 0,
    btype=BorderType.ZERO,
    tile_size: int = DEFAULT_TILE_SIZE,
    backend: str = "auto",
    carry_strategy: str = "sequential",
    dtype=np.float32,
) -> np.ndarray:
    """Separable causal recursive filter on the tiled engine."""
    pipeline = RecursiveFilterPipeline(weights, tile_size, border, btype, backend,
                                       carry_strategy, dtype)
    return pipeline.run(image)


def summed_area_table(
    image: np.ndarray,
    border: int = 0,
    btype=BorderType.ZERO,
    tile_size: int = DEFAULT_TILE_SIZE,
    backend: str = "auto",
    carry_strategy: str = "sequential",
    dtype=np.float32,
) -> np.ndarray:
    """Summed-area table of `image` on the tiled engine."""
    return recursive_filter_2d(image, SAT_WEIGHTS, border, btype, tile_size, backend,
                               carry_strategy, dtype)
