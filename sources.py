"""
Reading boundary, time-series and raster sources from disk or HTTP.
"""
import json
import logging
import threading

import requests
from PyQt6.QtCore import QThread, pyqtSignal

from geometry import feature_from_geojson

logger = logging.getLogger(__name__)

GRANULARITIES = ("islands", "divisions", "moku", "ahupuaa")


class SourceError(OSError):
    """A data source could not be fetched or read."""


def is_url(location):
    return str(location).startswith(("http://", "https://"))


def read_bytes(location, timeout=30):
    """Raw bytes from an http(s) URL or a local path."""
    if is_url(location):
        try:
            response = requests.get(location, timeout=timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise SourceError(f"Network error fetching {location}: {e}") from e
        return response.content
    try:
        with open(location, "rb") as f:
            return f.read()
    except OSError as e:
        raise SourceError(f"Could not read {location}: {e}") from e


def load_text(location, timeout=30):
    return read_bytes(location, timeout=timeout).decode("utf-8-sig")


def load_geojson(location, timeout=30):
    """FeatureCollection dict from a GeoJSON source."""
    try:
        data = json.loads(load_text(location, timeout=timeout))
    except ValueError as e:
        raise SourceError(f"Invalid GeoJSON in {location}: {e}") from e
    if data.get("type") != "FeatureCollection":
        raise SourceError(f"{location} is not a FeatureCollection")
    return data


class BoundaryCatalog:
    """Lazily loaded, cached Feature lists for each boundary granularity."""

    def __init__(self, config, lookups):
        self.config = config
        self.lookups = lookups
        self._features = {}
        self._lock = threading.Lock()

    def features(self, granularity):
        if granularity not in GRANULARITIES:
            raise ValueError(f"Unknown boundary granularity: {granularity}")
        with self._lock:
            if granularity in self._features:
                return self._features[granularity]
        location = self.config.boundary_location(granularity)
        fc = load_geojson(location, timeout=self.config.request_timeout)
        features = tuple(feature_from_geojson(f, granularity, county_of=self.lookups.county_of)
                         for f in fc.get("features", []))
        logger.info(f"Loaded {len(features)} {granularity} features from {location}")
        with self._lock:
            self._features[granularity] = features
        return features

    def is_loaded(self, granularity):
        with self._lock:
            return granularity in self._features


class SourceLoader(QThread):
    """Thread running one source read (or parse) off the UI thread."""

    loaded = pyqtSignal(int, object)  # generation, result
    error = pyqtSignal(int, str)  # generation, error message

    def __init__(self, generation, job, *args):
        super().__init__()
        self.generation = generation
        self.job = job
        self.args = args

    def run(self):
        try:
            result = self.job(*self.args)
        except (SourceError, ValueError) as e:
            self.error.emit(self.generation, str(e))
            return
        self.loaded.emit(self.generation, result)
