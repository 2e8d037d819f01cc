"""
Dashboard configuration, persisted as a small JSON file next to the app.

Missing or unreadable config files fall back to defaults; unknown keys are
ignored so older files keep loading.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields

logger = logging.getLogger(__name__)

CONFIG_FILE = "dews_dashboard_config.json"


@dataclass
class DashboardConfig:
    data_dir: str = "data"
    output_size: tuple = (560, 320)  # logical map canvas (width, height)
    max_raster_width: int = 560
    nodata_threshold: float = 1e20  # |value| above this is no-data when no sentinel is declared
    raster_alpha: float = 0.86
    drought_domain: tuple = (-3.0, 0.0, 3.0)
    colormaps: dict = field(default_factory=lambda: {
        "rainfall": "YlGnBu_r",
        "temperature": "YlOrRd",
        "drought": "RdBu",
    })
    boundary_files: dict = field(default_factory=lambda: {
        "islands": "hawaii_islands_simplified.geojson",
        "divisions": "hawaii_islands_divisions.geojson",
        "moku": "hawaii_moku.geojson",
        "ahupuaa": "hawaii_ahupuaa.geojson",
    })
    raster_pattern: str = "{dataset}_{period}.tif"
    timeseries_pattern: str = "{dataset}_{level}_{timescale}m.csv"
    timescales: tuple = (1, 6, 12)
    default_period: str = "latest"
    request_timeout: float = 30

    def resolve(self, name):
        """Location of a data file: URLs pass through, file names join data_dir."""
        if name.startswith(("http://", "https://")):
            return name
        if self.data_dir.startswith(("http://", "https://")):
            return f"{self.data_dir.rstrip('/')}/{name}"
        return os.path.join(self.data_dir, name)

    def raster_location(self, dataset, period=None):
        return self.resolve(self.raster_pattern.format(dataset=dataset, period=period or self.default_period))

    def timeseries_location(self, dataset, level, timescale):
        return self.resolve(self.timeseries_pattern.format(dataset=dataset, level=level, timescale=timescale))

    def boundary_location(self, granularity):
        return self.resolve(self.boundary_files[granularity])


_TUPLE_FIELDS = ("output_size", "drought_domain", "timescales")


def load_config(path=CONFIG_FILE):
    """Load configuration from JSON file, falling back to defaults."""
    config = DashboardConfig()
    if not os.path.exists(path):
        return config
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        # Corrupt or unreadable config: keep defaults
        logger.warning(f"Could not read config file {path}: {e}. Using defaults.")
        return config

    known = {f.name for f in fields(DashboardConfig)}
    for key, value in data.items():
        if key not in known:
            logger.debug(f"Ignoring unknown config key: {key}")
            continue
        if key in _TUPLE_FIELDS and isinstance(value, list):
            value = tuple(value)
        if isinstance(getattr(config, key), dict) and isinstance(value, dict):
            merged = dict(getattr(config, key))
            merged.update(value)
            value = merged
        setattr(config, key, value)
    return config


def save_config(config, path=CONFIG_FILE):
    """Save configuration to JSON file."""
    with open(path, "w") as f:
        json.dump(asdict(config), f, indent=2)
