"""
Exception types raised at the satfilter boundary.

Numerical deviation is reported, never raised.
"""


class ConfigurationError(ValueError):
    """Invalid run configuration, rejected before any parallel work starts."""


class AllocationError(MemoryError):
    """Image or block buffers could not be allocated on the target device."""
