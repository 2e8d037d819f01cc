"""
Recoverable layer errors raised by the map pipeline.

Each of these suppresses one map layer only: a raster failure never blocks the
boundary layer and a boundary failure never blocks the raster.
"""


class LayerError(Exception):
    """Base class for failures that suppress a single map layer."""


class NoGeometryError(LayerError):
    """Feature set is empty or has no usable extent."""


class RasterDecodeError(LayerError):
    """Raster source could not be opened or has no bands."""


class EmptyDomainError(LayerError):
    """Every raster sample is no-data, so there is no value domain."""


class DegenerateRectError(LayerError):
    """Projected raster rectangle has no positive, finite area."""
