"""
Dashboard controller: selection state -> projection refit -> raster placement.

ClimateDashboard is the state holder for everything the map widget and the
side panel draw. A selection transition that changes the active boundary set
refits the projection and re-places the cached raster before anything is
repainted; a dataset change decodes and colorizes a new raster in a background
thread. Only the most recent dataset request is ever displayed.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from color_mapper import DatasetKind, build_scale, colorize, legend_gradient
from compositor import RasterLayer, paint, place
from errors import DegenerateRectError, LayerError, NoGeometryError
from geometry import Projection, fit_projection
from lookups import default_lookups
from raster_module import decode
from scope_state import ScopeStateMachine, Stage
from sources import BoundaryCatalog, SourceLoader, load_text
from timeseries import STATEWIDE_LABEL, parse_timeseries, series_for, summarize, timeseries_level

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapView:
    """Boundary layer for one fitted projection."""
    projection: Projection
    features: tuple
    paths: Dict[str, str] = field(default_factory=dict)
    centroids: Dict[str, Tuple[float, float]] = field(default_factory=dict)


def build_map_view(features, output_size):
    """Fit a projection to the features and project every path and centroid with it."""
    projection = fit_projection(features, output_size)
    paths = {}
    centroids = {}
    for f in features:
        if f.geometry.is_empty:
            continue
        paths[f.id] = projection.path_for(f)
        centroids[f.id] = projection.centroid_of(f)
    return MapView(projection=projection, features=tuple(features), paths=paths, centroids=centroids)


def load_layer(source, dataset_kind, config):
    """Decode, scale, colorize and paint one dataset grid into a RasterLayer."""
    raster = decode(source, config.max_raster_width, timeout=config.request_timeout)
    scale = build_scale(raster.values, dataset_kind, nodata=raster.nodata, config=config)
    rgba = colorize(raster, scale, alpha=config.raster_alpha, threshold=config.nodata_threshold)
    return RasterLayer(raster=raster, scale=scale, image=paint(rgba), dataset=DatasetKind(dataset_kind))


def read_table(location, label_key, timeout=30):
    return parse_timeseries(load_text(location, timeout=timeout), label_key)


class RasterLoader(QThread):
    """Thread for decoding and colorizing one dataset grid."""

    loaded = pyqtSignal(int, object)  # generation, RasterLayer
    failed = pyqtSignal(int, str)  # generation, error message
    status = pyqtSignal(str)

    def __init__(self, generation, source, dataset_kind, config):
        super().__init__()
        self.generation = generation
        self.source = source
        self.dataset_kind = DatasetKind(dataset_kind)
        self.config = config
        self.cancelled = False

    def cancel(self):
        """Cancel the load; a cancelled loader emits nothing."""
        self.cancelled = True

    def run(self):
        """Decode the grid and emit the painted layer."""
        try:
            self.status.emit(f"Loading {self.dataset_kind.value} grid from {self.source}...")
            layer = load_layer(self.source, self.dataset_kind, self.config)
        except (LayerError, ValueError) as e:
            if not self.cancelled:
                self.failed.emit(self.generation, f"{type(e).__name__}: {e}")
            return
        if self.cancelled:
            layer.release()
            return
        self.loaded.emit(self.generation, layer)


class ClimateDashboard(QObject):
    """Selection, boundary, raster and time-series state for one dashboard."""

    mapChanged = pyqtSignal(object)  # MapView or None
    rasterChanged = pyqtSignal(object)  # Placement or None
    legendChanged = pyqtSignal(object)  # list of (offset, value, color)
    timeseriesChanged = pyqtSignal(object)  # list of {month, value}
    summaryChanged = pyqtSignal(object)  # dict or None
    statusMessage = pyqtSignal(str)

    def __init__(self, config, lookups=None, catalog=None, run_async=True, parent=None):
        super().__init__(parent)
        self.config = config
        self.lookups = lookups or default_lookups()
        self.catalog = catalog or BoundaryCatalog(config, self.lookups)
        self.run_async = run_async

        self.state = ScopeStateMachine(self.catalog, self.lookups, self, defer_loads=True)
        self.state.boundariesRequested.connect(self._load_boundaries)
        self.state.featuresChanged.connect(self._on_features_changed)
        self.state.selectionChanged.connect(self._on_selection_changed)

        self.dataset = DatasetKind.RAINFALL
        self.period = config.default_period
        self.timescale = config.timescales[0]

        self.map_view = None
        self.layer = None
        self.placement = None
        self.series = []

        self._raster_generation = 0
        self._table_generation = 0
        self._raster_loader = None
        self._active_loaders = []
        self._tables = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Show the statewide map and load the current dataset."""
        self.state.reset()
        self._load_raster()

    def close(self):
        """Stop loaders and release the cached raster image."""
        for loader in list(self._active_loaders):
            if hasattr(loader, "cancel"):
                loader.cancel()
        for loader in list(self._active_loaders):
            # Block until the thread has stopped; dropping a running QThread destroys it mid-run
            loader.wait()
        self._active_loaders = []
        self._raster_loader = None
        # Results still queued from finished loaders are stale from here on
        self._raster_generation += 1
        self._table_generation += 1
        self._replace_layer(None)
        self.placement = None

    def _run(self, loader):
        self._active_loaders.append(loader)
        if self.run_async:
            loader.finished.connect(lambda: self._forget(loader))
            loader.start()
        else:
            loader.run()
            self._forget(loader)

    def _forget(self, loader):
        if loader in self._active_loaders:
            self._active_loaders.remove(loader)

    # ------------------------------------------------------------------
    # Selection (delegated to the state machine)
    # ------------------------------------------------------------------

    @property
    def selection(self):
        return self.state.selection

    def select_county(self, county):
        try:
            self.state.select_county(county)
        except KeyError as e:
            logger.warning(f"County not selectable: {e}")
            self.statusMessage.emit(f"No county named {county}")

    def select_island(self, island):
        """Select an island; islets with no county in the lookup tables are ignored."""
        try:
            self.state.select_island(island)
        except KeyError as e:
            logger.warning(f"Island not selectable: {e}")
            self.statusMessage.emit(f"{island} is not part of a county and cannot be selected")

    def select_division(self, name):
        self.state.select_division(name)

    def set_scope(self, scope):
        self.state.set_scope(scope)

    def reset(self):
        self.state.reset()

    def selection_label(self):
        """Human label for the current selection."""
        s = self.selection
        if s.division:
            return s.division
        if s.stage is Stage.COUNTY_SELECTED:
            return f"{self.lookups.display_name(s.county)} County"
        if s.island:
            return self.lookups.display_name(s.island)
        return STATEWIDE_LABEL

    def _load_boundaries(self, generation, granularity):
        self.statusMessage.emit(f"Loading {granularity} boundaries...")
        loader = SourceLoader(generation, self.catalog.features, granularity)
        loader.loaded.connect(self.state.boundaries_loaded)
        loader.error.connect(self.state.boundaries_failed)
        self._run(loader)

    def _on_features_changed(self, features):
        try:
            self.map_view = build_map_view(features, self.config.output_size)
        except NoGeometryError as e:
            logger.warning(f"Boundary layer suppressed: {e}")
            self.statusMessage.emit(f"No boundaries to draw for {self.selection_label()}")
            self.map_view = None
        self.mapChanged.emit(self.map_view)
        self._place_raster()

    def _on_selection_changed(self, selection):
        self._refresh_timeseries()

    # ------------------------------------------------------------------
    # Raster layer
    # ------------------------------------------------------------------

    def set_dataset(self, dataset):
        self.dataset = DatasetKind(dataset)
        self._load_raster()
        self._refresh_timeseries()

    def set_period(self, period):
        self.period = period
        self._load_raster()

    def _load_raster(self):
        self._raster_generation += 1
        if self._raster_loader is not None:
            self._raster_loader.cancel()
        location = self.config.raster_location(self.dataset.value, self.period)
        loader = RasterLoader(self._raster_generation, location, self.dataset, self.config)
        loader.loaded.connect(self._on_raster_loaded)
        loader.failed.connect(self._on_raster_failed)
        loader.status.connect(self.statusMessage.emit)
        self._raster_loader = loader
        self._run(loader)

    def _on_raster_loaded(self, generation, layer):
        if generation != self._raster_generation:
            # Superseded by a newer dataset request
            logger.debug(f"Discarding stale raster (generation {generation}, latest {self._raster_generation})")
            layer.release()
            return
        self._replace_layer(layer)
        self.legendChanged.emit(legend_gradient(layer.scale))
        self.statusMessage.emit(f"{layer.dataset.value.capitalize()} grid loaded "
                                f"({layer.raster.width}x{layer.raster.height})")
        self._place_raster()

    def _on_raster_failed(self, generation, message):
        if generation != self._raster_generation:
            return
        logger.warning(f"Raster layer suppressed: {message}")
        self.statusMessage.emit(f"Raster unavailable: {message}")
        self._replace_layer(None)
        self.legendChanged.emit([])
        self._place_raster()

    def _replace_layer(self, layer):
        old = self.layer
        self.layer = layer
        if old is not None and old is not layer:
            old.release()

    def _place_raster(self):
        placement = None
        if self.layer is not None and self.map_view is not None:
            try:
                placement = place(self.layer, self.map_view.projection)
            except DegenerateRectError as e:
                logger.warning(f"Raster layer suppressed: {e}")
                self.statusMessage.emit("Raster could not be placed on this view")
        self.placement = placement
        self.rasterChanged.emit(placement)

    # ------------------------------------------------------------------
    # Time series
    # ------------------------------------------------------------------

    def set_timescale(self, timescale):
        timescale = int(timescale)
        if timescale not in self.config.timescales:
            raise ValueError(f"Unsupported timescale: {timescale} (expected one of {self.config.timescales})")
        self.timescale = timescale
        self._refresh_timeseries()

    def _table_location(self):
        level, label_key, _ = timeseries_level(self.selection)
        return self.config.timeseries_location(self.dataset.value, level, self.timescale), label_key

    def _refresh_timeseries(self):
        self._table_generation += 1
        location, label_key = self._table_location()
        cached = self._tables.get((location, label_key))
        if cached is not None:
            self._on_table_loaded(self._table_generation, (location, label_key, cached))
            return
        loader = SourceLoader(self._table_generation, self._read_table_job, location, label_key)
        loader.loaded.connect(self._on_table_loaded)
        loader.error.connect(self._on_table_error)
        self._run(loader)

    def _read_table_job(self, location, label_key):
        return location, label_key, read_table(location, label_key, timeout=self.config.request_timeout)

    def _on_table_loaded(self, generation, result):
        location, label_key, rows = result
        self._tables[(location, label_key)] = rows
        if generation != self._table_generation:
            return
        _, _, label = timeseries_level(self.selection)
        self.series = series_for(rows, label_key, label)
        self.timeseriesChanged.emit(self.series)
        self.summaryChanged.emit(summarize(self.series))

    def _on_table_error(self, generation, message):
        if generation != self._table_generation:
            return
        logger.warning(f"Time series unavailable: {message}")
        self.statusMessage.emit(f"Time series unavailable: {message}")
        self.series = []
        self.timeseriesChanged.emit(self.series)
        self.summaryChanged.emit(None)

    def summary(self):
        return summarize(self.series)
