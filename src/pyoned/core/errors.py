"""
Exception types raised by PyOneD components.
"""


class OneDError(Exception):
    """Base class for all PyOneD errors."""


class ConfigurationError(OneDError, ValueError):
    """A configuration value was rejected at the call that introduced it."""


class GridSizeError(ConfigurationError):
    """Grid has too few points, is not increasing, or exceeds the point cap."""


class StructuralError(OneDError, RuntimeError):
    """An operation would read or write outside the domain's arrays."""


class SolutionRestoreError(OneDError, ValueError):
    """A saved solution document lacks data required to restore it."""
