"""
Run configuration for the satfilter driver.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .border import BorderType
from .errors import ConfigurationError
from .tiles import DEFAULT_TILE_SIZE
from .utils import BACKENDS, CARRY_STRATEGIES, resolve_dtype
from .weights import SAT_WEIGHTS, as_weights, filter_order

MAX_IMAGE_SIDE = 1 << 16


@dataclass
class RunConfig:
    """Parameters of one driver run."""

    width: int = 1024
    height: int = 1024
    reps: int = 1
    weights: Tuple[float, ...] = field(default=SAT_WEIGHTS)
    border: int = 0
    btype: BorderType = BorderType.ZERO
    tile_size: int = DEFAULT_TILE_SIZE
    backend: str = "auto"
    carry_strategy: str = "sequential"
    seed: Optional[int] = 0
    dtype: str = "float32"

    @property
    def order(self) -> int:
        return filter_order(self.weights)

    def validate(self) -> "RunConfig":
        """
        Reject invalid configurations before any work is dispatched.

        Raises
        ------
        ConfigurationError
            On the first invalid field. Values are never clamped.
        """
        self.weights = tuple(float(w) for w in as_weights(self.weights))
        self.btype = BorderType.parse(self.btype)
        for name, low, high in (("width", 1, MAX_IMAGE_SIDE), ("height", 1, MAX_IMAGE_SIDE),
                                ("reps", 1, None), ("border", 0, None),
                                ("tile_size", max(1, self.order), None)):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
            if value < low or (high is not None and value > high):
                bound = f"in [{low}, {high}]" if high is not None else f">= {low}"
                raise ConfigurationError(f"{name} must be {bound}, got {value}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"Unknown backend {self.backend!r}; expected one of {BACKENDS}")
        if self.carry_strategy not in CARRY_STRATEGIES:
            raise ConfigurationError(
                f"Unknown carry strategy {self.carry_strategy!r}; expected one of {CARRY_STRATEGIES}"
            )
        resolve_dtype(self.dtype)
        return self

    def pipeline_kwargs(self) -> dict:
        return {
            "weights": self.weights,
            "tile_size": self.tile_size,
            "border": self.border,
            "btype": self.btype,
            "backend": self.backend,
            "carry_strategy": self.carry_strategy,
            "dtype": resolve_dtype(self.dtype),
        }
