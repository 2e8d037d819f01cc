"""
Boundary features and the fitted 2D identity projection used to draw them.

The projection is a plain affine map from [lon, lat] to screen [x, y]:

    x =  k * lon + tx
    y = -k * lat + ty      (Y flipped so north is up)

k, tx and ty are fitted so the whole active feature set fits an output canvas
(560x320 logical units by default) with uniform scale. Boundary paths, label
centroids and the raster destination rectangle are all computed from the same
Projection instance, which is what keeps the raster under its boundaries.
"""
import logging
import math
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional, Tuple

from shapely.affinity import affine_transform
from shapely.geometry import Polygon, shape
from shapely.geometry.base import BaseGeometry

from errors import NoGeometryError

logger = logging.getLogger(__name__)

# Apostrophe-like marks used for the ʻokina across datasets
_OKINA_MARKS = "ʻ'’‘`´ʼ"
_OKINA_TABLE = str.maketrans("", "", _OKINA_MARKS)

# GeoJSON property names that carry a unit name, per granularity
NAME_PROPERTIES = {
    "islands": ("isle", "island", "name"),
    "divisions": ("division", "name"),
    "moku": ("moku", "name"),
    "ahupuaa": ("ahupuaa", "ahupuaʻa", "name"),
}
ISLAND_PROPERTIES = ("isle", "island", "mokupuni")


def canonicalize(name):
    """Normalize a place name for matching: no diacritics, no ʻokina, lower case."""
    if name is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(name))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = stripped.translate(_OKINA_TABLE)
    return " ".join(stripped.lower().split())


def slugify(text):
    """UI-safe id from any name or key."""
    return re.sub(r"[^a-z0-9]+", "-", canonicalize(text)).strip("-")


@dataclass(frozen=True)
class Feature:
    """A named boundary polygon owned by one island."""
    id: str
    key: str
    name: str
    island: str  # canonical
    geometry: BaseGeometry
    county: Optional[str] = None  # canonical
    properties: dict = field(default_factory=dict, compare=False, hash=False)


def feature_from_geojson(gj_feature, granularity, county_of=None):
    """Build a Feature from one GeoJSON feature dict.

    Island outlines are keyed by island name; sub-island units are keyed as
    ``island::name`` so same-named divisions on different islands stay apart.
    """
    props = gj_feature.get("properties") or {}
    name_keys = NAME_PROPERTIES.get(granularity)
    if name_keys is None:
        raise ValueError(f"Unknown boundary granularity: {granularity}")
    name = next((props[k] for k in name_keys if props.get(k)), None) or "Unknown"

    if granularity == "islands":
        island = canonicalize(name)
        key = island
    else:
        island_name = next((props[k] for k in ISLAND_PROPERTIES if props.get(k)), "")
        island = canonicalize(island_name)
        key = f"{island}::{canonicalize(name)}"

    county = None
    if county_of is not None and island:
        try:
            county = county_of(island)
        except KeyError:
            logger.warning(f"No county for island '{island}' ({granularity} feature '{name}')")

    geom = shape(gj_feature["geometry"]) if gj_feature.get("geometry") else Polygon()
    return Feature(id=slugify(key), key=key, name=name, island=island, geometry=geom,
                   county=county, properties=dict(props))


def _fmt(value):
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def _ring_path(coords):
    # Shapely rings repeat the first vertex at the end; Z closes the ring instead
    points = list(coords)
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    if not points:
        return ""
    head = f"M{_fmt(points[0][0])},{_fmt(points[0][1])}"
    tail = "".join(f"L{_fmt(x)},{_fmt(y)}" for x, y in points[1:])
    return head + tail + "Z"


def _geometry_path(geom):
    if geom.is_empty:
        return ""
    kind = geom.geom_type
    if kind == "Polygon":
        return _ring_path(geom.exterior.coords) + "".join(_ring_path(r.coords) for r in geom.interiors)
    if kind in ("LinearRing",):
        return _ring_path(geom.coords)
    if kind == "LineString":
        coords = list(geom.coords)
        return f"M{_fmt(coords[0][0])},{_fmt(coords[0][1])}" + "".join(
            f"L{_fmt(x)},{_fmt(y)}" for x, y in coords[1:])
    if hasattr(geom, "geoms"):
        return "".join(_geometry_path(g) for g in geom.geoms)
    return ""


@dataclass(frozen=True)
class Projection:
    """Fitted, Y-flipped identity projection. Immutable; refit instead of mutating."""
    k: float
    tx: float
    ty: float
    output_size: Tuple[int, int] = (560, 320)

    def __call__(self, point):
        """Project (lon, lat) to (x, y); None when the point cannot be projected."""
        lon, lat = point
        if not (math.isfinite(lon) and math.isfinite(lat)):
            return None
        return (self.k * lon + self.tx, -self.k * lat + self.ty)

    def invert(self, point):
        """Screen (x, y) back to (lon, lat)."""
        x, y = point
        return ((x - self.tx) / self.k, (self.ty - y) / self.k)

    def project_geometry(self, geom):
        return affine_transform(geom, [self.k, 0.0, 0.0, -self.k, self.tx, self.ty])

    def path_for(self, feature):
        """SVG path data for a feature under this projection."""
        return _geometry_path(self.project_geometry(feature.geometry))

    def rings_for(self, feature):
        """Projected exterior/interior rings as lists of (x, y), for painters."""
        rings = []
        projected = self.project_geometry(feature.geometry)
        parts = projected.geoms if hasattr(projected, "geoms") else [projected]
        for part in parts:
            if part.is_empty or part.geom_type != "Polygon":
                continue
            rings.append(list(part.exterior.coords))
            rings.extend(list(r.coords) for r in part.interiors)
        return rings

    def centroid_of(self, feature):
        """Area-weighted planar centroid of the projected feature."""
        if feature.geometry.is_empty:
            raise NoGeometryError(f"Feature '{feature.key}' has no geometry")
        c = self.project_geometry(feature.geometry).centroid
        return (c.x, c.y)


def feature_bounds(features):
    """Union (minx, miny, maxx, maxy) over non-empty feature geometries, or None."""
    bounds = None
    for f in features:
        if f.geometry is None or f.geometry.is_empty:
            continue
        minx, miny, maxx, maxy = f.geometry.bounds
        if bounds is None:
            bounds = [minx, miny, maxx, maxy]
        else:
            bounds = [min(bounds[0], minx), min(bounds[1], miny),
                      max(bounds[2], maxx), max(bounds[3], maxy)]
    return tuple(bounds) if bounds else None


def fit_projection(features, output_size=(560, 320)):
    """Fit a north-up identity projection so every feature fits ``output_size``.

    Raises NoGeometryError for an empty or fully degenerate feature set.
    """
    features = list(features)
    if not features:
        raise NoGeometryError("No features to fit")
    bounds = feature_bounds(features)
    if bounds is None or not all(math.isfinite(b) for b in bounds):
        raise NoGeometryError(f"No usable geometry in {len(features)} feature(s)")

    width, height = output_size
    minx, miny, maxx, maxy = bounds
    dx = maxx - minx
    dy = maxy - miny
    kx = width / dx if dx > 0 else math.inf
    ky = height / dy if dy > 0 else math.inf
    k = min(kx, ky)
    if not math.isfinite(k) or k <= 0:
        raise NoGeometryError(f"Degenerate extent {bounds}")

    # Reflected y range is [-maxy, -miny]; center both axes in the canvas
    tx = (width - k * (minx + maxx)) / 2
    ty = (height + k * (miny + maxy)) / 2
    return Projection(k=k, tx=tx, ty=ty, output_size=(width, height))
