"""
Module for decoding georeferenced climate grids (GeoTIFF) for map display.

A grid is decoded once per dataset selection: one band is read at display
resolution with nearest-neighbour resampling, its bounding box is expressed in
lon/lat so it shares the boundary features' coordinate space, and the no-data
sentinel (if any) is kept alongside the samples.
"""
import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
import pyproj
import rasterio
from rasterio.enums import Resampling
from rasterio.errors import RasterioError
from rasterio.transform import from_gcps

from errors import RasterDecodeError
from sources import SourceError, is_url, read_bytes

logger = logging.getLogger(__name__)

DEFAULT_NODATA_THRESHOLD = 1e20


@dataclass(frozen=True, eq=False)
class Raster:
    """Decoded single-band grid. Row 0 is the northern edge."""
    width: int
    height: int
    values: np.ndarray  # 1-D, row-major, length width * height
    bbox: Tuple[float, float, float, float]  # (minX, minY, maxX, maxY) lon/lat
    nodata: Optional[float] = None
    source_size: Tuple[int, int] = (0, 0)
    crs: Optional[str] = None

    def grid(self):
        return self.values.reshape(self.height, self.width)

    def nodata_mask(self, threshold=DEFAULT_NODATA_THRESHOLD):
        return nodata_mask(self.values, self.nodata, threshold)


def nodata_mask(values, nodata=None, threshold=DEFAULT_NODATA_THRESHOLD):
    """True where a sample is no-data: the sentinel, non-finite, or |v| > threshold."""
    values = np.asarray(values, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        mask = ~np.isfinite(values) | (np.abs(values) > threshold)
    if nodata is not None and math.isfinite(nodata):
        mask |= values == nodata
    return mask


def bbox_from_origin(origin, resolution, width, height):
    """Bounding box from the upper-left origin, per-axis pixel size and pixel dimensions."""
    ox, oy = origin
    rx, ry = resolution
    x0, x1 = ox, ox + rx * width
    y0, y1 = oy, oy + ry * height
    return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))


def output_shape(width, height, max_output_width):
    """(out_width, out_height) capped at max_output_width, aspect preserved."""
    if not max_output_width or width <= max_output_width:
        return width, height
    out_height = max(1, int(round(height * max_output_width / float(width))))
    return int(max_output_width), out_height


def _raster_bounds(src):
    """(bbox, crs) from the geotransform, else from ground control points.

    A GCP-only grid has an identity geotransform; its origin and resolution
    come from the affine transform fitted to the control points instead.
    """
    if not src.transform.is_identity:
        left, bottom, right, top = src.bounds
        return (min(left, right), min(bottom, top), max(left, right), max(bottom, top)), src.crs
    gcps, gcp_crs = src.gcps
    if not gcps:
        raise RasterDecodeError("Raster has no georeferencing (no geotransform or ground control points)")
    t = from_gcps(gcps)
    logger.info(f"No geotransform, deriving bounding box from {len(gcps)} ground control points")
    bbox = bbox_from_origin((t.c, t.f), (t.a, t.e), src.width, src.height)
    if not (all(math.isfinite(v) for v in bbox) and bbox[2] > bbox[0] and bbox[3] > bbox[1]):
        raise RasterDecodeError(f"Ground control points give an unusable bounding box: {bbox}")
    return bbox, gcp_crs or src.crs


def _to_lonlat(bbox, crs, target_crs="EPSG:4326"):
    """Transform a projected bounding box to lon/lat using its four corners."""
    if crs is None or crs.is_geographic:
        return bbox
    tr = pyproj.Transformer.from_crs(crs.to_wkt(), target_crs, always_xy=True)
    xmin, ymin, xmax, ymax = bbox
    xs, ys = tr.transform([xmin, xmin, xmax, xmax], [ymin, ymax, ymin, ymax])
    return (min(xs), min(ys), max(xs), max(ys))


def _open(source, timeout=30):
    if isinstance(source, (bytes, bytearray)):
        return rasterio.open(BytesIO(source))
    if is_url(str(source)):
        return rasterio.open(BytesIO(read_bytes(str(source), timeout=timeout)))
    return rasterio.open(source)


def decode(source, max_output_width=None, target_crs="EPSG:4326", timeout=30):
    """Decode band 1 of a georeferenced grid into a Raster.

    Raises RasterDecodeError when the source cannot be opened or read, including a
    grid with no georeferencing.
    """
    try:
        src = _open(source, timeout=timeout)
    except (RasterioError, SourceError, OSError) as e:
        raise RasterDecodeError(f"Could not open raster {source!r}: {e}") from e

    try:
        with src:
            if src.count == 0:
                raise RasterDecodeError(f"Raster {source!r} has no bands")
            bbox, bbox_crs = _raster_bounds(src)
            bbox = _to_lonlat(bbox, bbox_crs, target_crs)
            out_w, out_h = output_shape(src.width, src.height, max_output_width)
            data = src.read(1, out_shape=(out_h, out_w), resampling=Resampling.nearest)
            nodata = src.nodata
            crs = bbox_crs.to_string() if bbox_crs else None
            source_size = (src.width, src.height)
    except RasterioError as e:
        raise RasterDecodeError(f"Could not read raster {source!r}: {e}") from e

    values = np.asarray(data, dtype=np.float64).ravel()
    values.setflags(write=False)
    logger.info(f"Decoded raster {source if isinstance(source, str) else '<bytes>'}: "
                f"{source_size[0]}x{source_size[1]} -> {out_w}x{out_h}, bbox={bbox}, nodata={nodata}")
    return Raster(width=out_w, height=out_h, values=values, bbox=tuple(float(v) for v in bbox),
                  nodata=None if nodata is None else float(nodata), source_size=source_size, crs=crs)

