"""
satfilter - block-parallel summed-area tables via recursive filtering.

Splits an image into tiles, filters each tile independently, propagates
the filter state across tiles and fixes every tile up, once along rows and
once along columns. Border-aware (zero, clamp, repeat, reflect extension)
and checked against a sequential reference engine.
"""

from .accuracy import check_reference
from .border import BorderType, border_value
from .errors import AllocationError, ConfigurationError
from .pipeline import RecursiveFilterPipeline, recursive_filter_2d, summed_area_table
from .reference import reference_recursive_filter, reference_sat
from .utils import USING_GPU
from .weights import SAT_WEIGHTS

__version__ = "0.1.0"
__all__ = [
    "AllocationError",
    "BorderType",
    "ConfigurationError",
    "RecursiveFilterPipeline",
    "SAT_WEIGHTS",
    "USING_GPU",
    "border_value",
    "check_reference",
    "recursive_filter_2d",
    "reference_recursive_filter",
    "reference_sat",
    "summed_area_table",
    "__version__",
]
