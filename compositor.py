"""
Raster compositing: paint the colorized grid once, place it on every refit.

The painted image depends only on the dataset, so it is cached in a
RasterLayer. The destination rectangle depends on the current projection and
is recomputed on every call to place().
"""
import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from PIL import Image

from errors import DegenerateRectError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DestinationRect:
    x: float
    y: float
    width: float
    height: float

    @property
    def corners(self):
        """(top-left, top-right, bottom-right, bottom-left) in screen space."""
        x0, y0 = self.x, self.y
        x1, y1 = self.x + self.width, self.y + self.height
        return ((x0, y0), (x1, y0), (x1, y1), (x0, y1))


def paint(rgba):
    """RGBA pixel buffer -> PIL image at the raster's decoded resolution."""
    rgba = np.ascontiguousarray(rgba, dtype=np.uint8)
    if rgba.ndim != 3 or rgba.shape[2] != 4:
        raise ValueError(f"Unexpected pixel buffer shape: {rgba.shape}")
    return Image.fromarray(rgba, "RGBA")


def project_rect(bbox, projection):
    """Axis-aligned screen rectangle covering the four projected bbox corners."""
    min_x, min_y, max_x, max_y = bbox
    corners = [projection((min_x, max_y)), projection((max_x, max_y)),
               projection((max_x, min_y)), projection((min_x, min_y))]
    if any(c is None for c in corners):
        raise DegenerateRectError(f"Projection could not map raster corners of {bbox}")
    xs = [c[0] for c in corners]
    ys = [c[1] for c in corners]
    rect = DestinationRect(x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys))
    values = (rect.x, rect.y, rect.width, rect.height)
    if not all(math.isfinite(v) for v in values) or rect.width <= 0 or rect.height <= 0:
        raise DegenerateRectError(f"Degenerate raster rectangle {rect}")
    return rect


@dataclass
class RasterLayer:
    """A decoded, colorized dataset grid and the image painted from it.

    Owns its image; call release() when the layer is replaced or torn down.
    """
    raster: object
    scale: object
    image: Optional[Image.Image]
    dataset: object = None

    @property
    def released(self):
        return self.image is None

    def release(self):
        if self.image is not None:
            self.image.close()
            self.image = None


@dataclass(frozen=True)
class Placement:
    image: Image.Image
    rect: DestinationRect
    layer: RasterLayer


def place(layer, projection):
    """Image plus destination rectangle for the current projection."""
    if layer.released:
        raise ValueError("Raster layer has been released")
    return Placement(image=layer.image, rect=project_rect(layer.raster.bbox, projection), layer=layer)
