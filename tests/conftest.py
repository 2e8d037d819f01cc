import json
import os

import numpy as np
import pytest
import rasterio
from PyQt6.QtWidgets import QApplication
from rasterio.transform import from_bounds
from shapely.geometry import box, mapping

from config import DashboardConfig
from lookups import default_lookups
from sources import BoundaryCatalog

# Widgets are exercised without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

STATE_BBOX = (-160.0, 18.0, -154.0, 23.0)

# Rough island extents (lon/lat); plain rectangles are enough for fitting and filtering
ISLAND_BOXES = {
    "Niʻihau": (-160.25, 21.78, -160.05, 22.02),
    "Kauaʻi": (-159.80, 21.87, -159.29, 22.24),
    "Oʻahu": (-158.28, 21.25, -157.65, 21.72),
    "Molokaʻi": (-157.32, 21.05, -156.70, 21.22),
    "Lānaʻi": (-157.07, 20.72, -156.80, 20.93),
    "Maui": (-156.70, 20.57, -155.98, 21.03),
    "Kahoʻolawe": (-156.70, 20.50, -156.55, 20.60),
    "Hawaiʻi": (-156.07, 18.91, -154.80, 20.27),
}


def split_box(bounds):
    """West and east halves of a bounding box."""
    minx, miny, maxx, maxy = bounds
    midx = (minx + maxx) / 2
    return (minx, miny, midx, maxy), (midx, miny, maxx, maxy)


def island_collection():
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"isle": name}, "geometry": mapping(box(*b))}
            for name, b in ISLAND_BOXES.items()
        ],
    }


def division_collection():
    features = []
    for name, b in ISLAND_BOXES.items():
        west, east = split_box(b)
        for label, part in ((f"West {name}", west), (f"East {name}", east)):
            features.append({"type": "Feature", "properties": {"division": label, "island": name},
                             "geometry": mapping(box(*part))})
    return {"type": "FeatureCollection", "features": features}


def write_geotiff(path, data, bbox=STATE_BBOX, nodata=None, crs="EPSG:4326"):
    """Single-band float32 GeoTIFF covering bbox."""
    data = np.asarray(data, dtype=np.float32)
    height, width = data.shape
    with rasterio.open(path, "w", driver="GTiff", width=width, height=height, count=1,
                       dtype="float32", crs=crs, transform=from_bounds(*bbox, width, height),
                       nodata=nodata) as dst:
        dst.write(data, 1)
    return str(path)


def synthetic_series(seed=7, months=24, mean=5.0, spread=2.0):
    """Reproducible monthly values for time series tests."""
    rng = np.random.default_rng(seed)
    labels = [f"{2023 + i // 12}-{i % 12 + 1:02d}" for i in range(months)]
    values = np.round(mean + spread * rng.standard_normal(months), 3)
    return labels, values


def wide_csv(label_header, rows, months):
    lines = [",".join([label_header] + list(months))]
    for label, values in rows:
        lines.append(",".join([label] + [f"{v}" for v in values]))
    return "\n".join(lines) + "\n"


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    return app


@pytest.fixture
def lookups():
    return default_lookups()


@pytest.fixture
def data_dir(tmp_path):
    """Data directory with island and division boundaries, grids and tables.

    No moku or ahupuaʻa files and no temperature grid, so missing sources are
    exercised too.
    """
    (tmp_path / "hawaii_islands_simplified.geojson").write_text(
        json.dumps(island_collection()), encoding="utf-8")
    (tmp_path / "hawaii_islands_divisions.geojson").write_text(
        json.dumps(division_collection()), encoding="utf-8")

    rain = np.linspace(0.0, 20.0, 60 * 50).reshape(50, 60)
    rain[0, :5] = -9999.0
    write_geotiff(tmp_path / "rainfall_latest.tif", rain, nodata=-9999.0)
    drought = np.linspace(-4.0, 4.0, 30 * 20).reshape(20, 30)
    write_geotiff(tmp_path / "drought_latest.tif", drought)

    months, values = synthetic_series()
    statewide = wide_csv("state", [("Statewide", values)], months)
    (tmp_path / "rainfall_statewide_1m.csv").write_text(statewide, encoding="utf-8")
    islands = wide_csv("island", [(name, values + i) for i, name in enumerate(ISLAND_BOXES)], months)
    (tmp_path / "rainfall_islands_1m.csv").write_text(islands, encoding="utf-8")
    divisions = wide_csv("division", [("West Maui", values * 2), ("East Maui", values * 3)], months)
    (tmp_path / "rainfall_divisions_1m.csv").write_text(divisions, encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(data_dir):
    return DashboardConfig(data_dir=str(data_dir))


@pytest.fixture
def catalog(config, lookups):
    return BoundaryCatalog(config, lookups)
