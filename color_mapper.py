"""
Color scales for the climate raster layer.

Domain policy per dataset kind:
  - rainfall:    sequential over [max, min] (reversed, wetter reads darker)
  - temperature: sequential over [min, max]
  - drought:     diverging over the fixed SPI range [-3, 0, +3], clamped

Scales are sampled into a 256-entry matplotlib lookup table and applied with
numpy indexing, so colorizing a grid is one vectorized pass.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import matplotlib
import numpy as np

from errors import EmptyDomainError
from raster_module import DEFAULT_NODATA_THRESHOLD, nodata_mask

logger = logging.getLogger(__name__)

LUT_SIZE = 256

DEFAULT_COLORMAPS = {
    "rainfall": "YlGnBu_r",
    "temperature": "YlOrRd",
    "drought": "RdBu",
}
DEFAULT_DROUGHT_DOMAIN = (-3.0, 0.0, 3.0)
DEFAULT_ALPHA = 0.86


class DatasetKind(Enum):
    RAINFALL = "rainfall"
    TEMPERATURE = "temperature"
    DROUGHT = "drought"

    @property
    def diverging(self):
        return self is DatasetKind.DROUGHT

    @property
    def unit(self):
        return {"rainfall": "in", "temperature": "°F", "drought": "SPI"}[self.value]


_LUT_CACHE = {}


def colormap_lut(cmap_name):
    """256x4 uint8 RGBA lookup table for a matplotlib colormap name."""
    if cmap_name not in _LUT_CACHE:
        cmap = matplotlib.colormaps[cmap_name]
        _LUT_CACHE[cmap_name] = (cmap(np.linspace(0, 1, LUT_SIZE)) * 255).round().astype(np.uint8)
    return _LUT_CACHE[cmap_name]


@dataclass(frozen=True)
class ColorScale:
    """Numeric value -> RGB over a closed domain.

    Sequential scales carry (d0, d1), where d0 > d1 means reversed. Diverging
    scales carry (lo, mid, hi) and map [lo, mid] to the first half of the
    colormap and [mid, hi] to the second half.
    """
    kind: DatasetKind
    domain: Tuple[float, ...]
    cmap_name: str

    @property
    def diverging(self):
        return len(self.domain) == 3

    @property
    def lo(self):
        return min(self.domain[0], self.domain[-1])

    @property
    def hi(self):
        return max(self.domain[0], self.domain[-1])

    @property
    def mid(self):
        return self.domain[1] if self.diverging else (self.domain[0] + self.domain[-1]) / 2

    def normalize(self, values):
        """Map values to [0, 1] along the colormap, clamped at the domain ends."""
        v = np.asarray(values, dtype=np.float64)
        if self.diverging:
            lo, mid, hi = self.domain
            below = (v - mid) / (mid - lo) if mid != lo else np.zeros_like(v)
            above = (v - mid) / (hi - mid) if hi != mid else np.zeros_like(v)
            t = 0.5 + 0.5 * np.where(v < mid, below, above)
        else:
            d0, d1 = self.domain
            if d1 == d0:
                t = np.full_like(v, 0.5)
            else:
                t = (v - d0) / (d1 - d0)
        return np.clip(np.nan_to_num(t, nan=0.5), 0.0, 1.0)

    def indices(self, values):
        return np.rint(self.normalize(values) * (LUT_SIZE - 1)).astype(np.intp)

    def __call__(self, values):
        """RGB uint8 triple(s) for value(s)."""
        return colormap_lut(self.cmap_name)[self.indices(values), :3]

    def hex(self, value):
        r, g, b = (int(c) for c in self(value))
        return f"#{r:02x}{g:02x}{b:02x}"


def value_range(values, nodata=None, threshold=DEFAULT_NODATA_THRESHOLD):
    """(min, max) over valid samples; EmptyDomainError when none are valid."""
    v = np.asarray(values, dtype=np.float64)
    valid = v[~nodata_mask(v, nodata, threshold)]
    if valid.size == 0:
        raise EmptyDomainError("Every raster sample is no-data")
    return float(valid.min()), float(valid.max())


def build_scale(values, dataset_kind, nodata=None, config=None):
    """Build the color scale for a dataset kind from its decoded samples."""
    kind = DatasetKind(dataset_kind)
    colormaps = dict(DEFAULT_COLORMAPS)
    threshold = DEFAULT_NODATA_THRESHOLD
    drought_domain = DEFAULT_DROUGHT_DOMAIN
    if config is not None:
        colormaps.update(config.colormaps)
        threshold = config.nodata_threshold
        drought_domain = tuple(config.drought_domain)

    vmin, vmax = value_range(values, nodata, threshold)
    if kind is DatasetKind.DROUGHT:
        # Fixed for comparability across months and regions, not data-driven
        logger.debug(f"Drought samples span [{vmin}, {vmax}]; using fixed domain {drought_domain}")
        domain = tuple(float(d) for d in drought_domain)
    elif kind is DatasetKind.RAINFALL:
        domain = (vmax, vmin)
    else:
        domain = (vmin, vmax)
    return ColorScale(kind=kind, domain=domain, cmap_name=colormaps[kind.value])


def colorize(raster, scale, alpha=DEFAULT_ALPHA, threshold=DEFAULT_NODATA_THRESHOLD):
    """(height, width, 4) uint8 RGBA; no-data pixels get alpha 0."""
    values = np.asarray(raster.values, dtype=np.float64)
    mask = nodata_mask(values, raster.nodata, threshold)
    rgba = np.empty((values.size, 4), dtype=np.uint8)
    # No-data samples are colored with the domain midpoint, then made transparent
    safe = np.where(mask, scale.mid, values)
    rgba[:, :3] = scale(safe)
    rgba[:, 3] = int(round(alpha * 255))
    rgba[mask, 3] = 0
    return rgba.reshape(raster.height, raster.width, 4)


def legend_gradient(scale, stops=10):
    """[(offset, value, '#rrggbb'), ...] from the low to the high end of the domain."""
    gradient = []
    for i in range(stops + 1):
        offset = i / stops
        if scale.diverging:
            lo, mid, hi = scale.domain
            value = lo + (mid - lo) * offset * 2 if offset <= 0.5 else mid + (hi - mid) * (offset - 0.5) * 2
        else:
            value = scale.lo + (scale.hi - scale.lo) * offset
        gradient.append((offset, value, scale.hex(value)))
    return gradient
