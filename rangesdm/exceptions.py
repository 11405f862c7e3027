"""Error types raised by the modelling pipeline."""


class RangeSDMError(Exception):
    """Base class for pipeline errors."""


class InvalidInputError(RangeSDMError, ValueError):
    """Empty or degenerate input (no coordinates, zero-variance covariates, ...)."""


class SamplingExhaustionError(RangeSDMError):
    """The background sampler has no valid cells to draw from."""


class FitFailureError(RangeSDMError):
    """A candidate model did not converge or produced non-finite estimates."""


class GeometryMismatchError(RangeSDMError):
    """Two grids that must be compared do not share extent and resolution."""
