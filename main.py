"""
Hawaiʻi Climate Dashboard
=========================

A PyQt6-based application for browsing gridded rainfall, temperature and
drought data over Hawaiʻi with interactive county, island and division
selection.

Features:
    - Statewide, county, island and sub-island (division, moku, ahupuaʻa) views
    - Climate raster colorized per dataset and aligned under the boundaries
    - Color legend for the active dataset
    - Monthly time series chart and summary for the current selection
    - 1, 6 and 12 month timescales
    - Local or HTTP data sources, configured in dews_dashboard_config.json

License: BSD 3-Clause License
"""

__version__ = "2026.1"

import sys
import os
import logging
from datetime import datetime

# Set PROJ_LIB environment variable for PyInstaller builds
# This ensures pyproj can find its data files when running as an executable
if getattr(sys, 'frozen', False):
    if hasattr(sys, '_MEIPASS'):
        proj_data_path = os.path.join(sys._MEIPASS, 'proj')
        if os.path.exists(proj_data_path):
            os.environ['PROJ_LIB'] = proj_data_path

from PyQt6.QtWidgets import (QApplication, QMainWindow, QWidget, QVBoxLayout,
                             QHBoxLayout, QLabel, QLineEdit, QPushButton,
                             QComboBox, QTextEdit, QGroupBox, QCheckBox, QGridLayout)
from PyQt6.QtCore import QObject, pyqtSignal
from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg
from matplotlib.figure import Figure

from color_mapper import DatasetKind
from config import CONFIG_FILE, load_config, save_config
from dashboard import ClimateDashboard
from geometry import canonicalize
from lookups import COUNTY_NAMES, ISLAND_NAMES
from map_widget import MapWidget
from scope_state import Scope, Stage

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


class LogEmitter(QObject):
    messageLogged = pyqtSignal(str)


class QtLogHandler(logging.Handler):
    """Logging handler that forwards formatted records to the log panel."""

    def __init__(self, level=logging.INFO):
        super().__init__(level)
        self.emitter = LogEmitter()
        self.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    def emit(self, record):
        self.emitter.messageLogged.emit(self.format(record))


def setup_logging(level=logging.INFO, log_dir="logs"):
    """Console and file logging for the whole app; returns the handler the log panel listens to."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"dews_dashboard_{timestamp}.log")
    panel = QtLogHandler(level)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler(),
            panel,
        ]
    )
    logger.info(f"Logging initialized: {log_file}")
    return panel


class TimeSeriesCanvas(FigureCanvasQTAgg):
    """Monthly series line chart."""

    def __init__(self, parent=None):
        self.figure = Figure(figsize=(4, 2.4), tight_layout=True)
        super().__init__(self.figure)
        self.setParent(parent)
        self.axes = self.figure.add_subplot(111)

    def plot(self, series, title="", unit=""):
        self.axes.clear()
        if series:
            months = [p["month"] for p in series]
            values = [p["value"] for p in series]
            self.axes.plot(range(len(values)), values, color="#1f77b4", linewidth=1.2)
            step = max(1, len(months) // 6)
            self.axes.set_xticks(range(0, len(months), step))
            self.axes.set_xticklabels(months[::step], rotation=30, fontsize=7)
            self.axes.set_ylabel(unit, fontsize=8)
        else:
            self.axes.text(0.5, 0.5, "No data", ha="center", va="center", transform=self.axes.transAxes)
        self.axes.set_title(title, fontsize=9)
        self.draw_idle()


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, log_handler=None, config_file=CONFIG_FILE):
        super().__init__()
        self.config_file = config_file
        self.config = load_config(self.config_file)
        self.dashboard = ClimateDashboard(self.config)
        self._updating_pickers = False

        self.init_ui()
        if log_handler is not None:
            log_handler.emitter.messageLogged.connect(self.log_message)

        self.dashboard.mapChanged.connect(self.map_widget.set_map_view)
        self.dashboard.rasterChanged.connect(self.map_widget.set_placement)
        self.dashboard.legendChanged.connect(self.on_legend_changed)
        self.dashboard.timeseriesChanged.connect(self.on_timeseries_changed)
        self.dashboard.summaryChanged.connect(self.on_summary_changed)
        self.dashboard.statusMessage.connect(self.on_status_update)
        self.dashboard.state.selectionChanged.connect(self.on_selection_changed)
        self.map_widget.featureClicked.connect(self.on_feature_clicked)
        self.map_widget.featureHovered.connect(self.on_feature_hovered)

        self.dashboard.start()

    def init_ui(self):
        """Initialize the user interface."""
        self.setWindowTitle(f"Hawaiʻi Climate Dashboard v{__version__}")
        self.setGeometry(100, 100, 1200, 760)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        main_layout = QHBoxLayout(central_widget)

        # Left panel - Map
        map_group = QGroupBox("Map")
        map_layout = QVBoxLayout()

        map_controls = QHBoxLayout()
        map_controls.addWidget(QLabel("Dataset:"))
        self.dataset_combo = QComboBox()
        for kind in DatasetKind:
            self.dataset_combo.addItem(kind.value.capitalize(), kind.value)
        self.dataset_combo.currentIndexChanged.connect(self.on_dataset_changed)
        map_controls.addWidget(self.dataset_combo)

        map_controls.addWidget(QLabel("Period:"))
        self.period_edit = QLineEdit(self.config.default_period)
        self.period_edit.setMaximumWidth(90)
        self.period_edit.returnPressed.connect(self.on_period_changed)
        map_controls.addWidget(self.period_edit)

        self.legend_checkbox = QCheckBox("Legend")
        self.legend_checkbox.setChecked(True)
        self.legend_checkbox.stateChanged.connect(self.on_legend_toggled)
        map_controls.addWidget(self.legend_checkbox)
        map_controls.addStretch()
        map_layout.addLayout(map_controls)

        selection_controls = QHBoxLayout()
        selection_controls.addWidget(QLabel("County:"))
        self.county_combo = QComboBox()
        self.county_combo.addItem("—", None)
        for county in COUNTY_NAMES:
            self.county_combo.addItem(county, county)
        self.county_combo.currentIndexChanged.connect(self.on_county_picked)
        selection_controls.addWidget(self.county_combo)

        selection_controls.addWidget(QLabel("Island:"))
        self.island_combo = QComboBox()
        self.island_combo.addItem("—", None)
        for island in ISLAND_NAMES:
            self.island_combo.addItem(island, island)
        self.island_combo.currentIndexChanged.connect(self.on_island_picked)
        selection_controls.addWidget(self.island_combo)

        selection_controls.addWidget(QLabel("Boundaries:"))
        self.scope_combo = QComboBox()
        for label, scope in (("Island", Scope.NONE), ("Divisions", Scope.DIVISIONS),
                             ("Moku", Scope.MOKU), ("Ahupuaʻa", Scope.AHUPUAA)):
            self.scope_combo.addItem(label, scope.value)
        self.scope_combo.currentIndexChanged.connect(self.on_scope_picked)
        selection_controls.addWidget(self.scope_combo)

        self.reset_btn = QPushButton("Statewide")
        self.reset_btn.clicked.connect(lambda: self.dashboard.reset())
        selection_controls.addWidget(self.reset_btn)
        selection_controls.addStretch()
        map_layout.addLayout(selection_controls)

        self.map_widget = MapWidget(self.config.output_size)
        map_layout.addWidget(self.map_widget, 1)
        map_group.setLayout(map_layout)
        main_layout.addWidget(map_group, 3)

        # Right panel - selection, stats, chart, log
        right_panel = QVBoxLayout()

        stats_group = QGroupBox("Selection")
        stats_layout = QGridLayout()
        self.selection_label = QLabel("Statewide")
        font = self.selection_label.font()
        font.setBold(True)
        self.selection_label.setFont(font)
        stats_layout.addWidget(self.selection_label, 0, 0, 1, 2)
        self.stat_labels = {}
        for row, (key, title) in enumerate((("latest", "Latest"), ("min", "Min"),
                                            ("max", "Max"), ("mean", "Mean")), start=1):
            stats_layout.addWidget(QLabel(f"{title}:"), row, 0)
            value_label = QLabel("—")
            stats_layout.addWidget(value_label, row, 1)
            self.stat_labels[key] = value_label

        stats_layout.addWidget(QLabel("Timescale:"), 5, 0)
        self.timescale_combo = QComboBox()
        for timescale in self.config.timescales:
            self.timescale_combo.addItem(f"{timescale} month", timescale)
        self.timescale_combo.currentIndexChanged.connect(self.on_timescale_changed)
        stats_layout.addWidget(self.timescale_combo, 5, 1)
        stats_group.setLayout(stats_layout)
        right_panel.addWidget(stats_group)

        self.chart = TimeSeriesCanvas()
        right_panel.addWidget(self.chart, 1)

        log_group = QGroupBox("Log")
        log_layout = QVBoxLayout()
        self.log_text = QTextEdit()
        self.log_text.setReadOnly(True)
        log_layout.addWidget(self.log_text)
        log_group.setLayout(log_layout)
        right_panel.addWidget(log_group, 1)

        self.status_label = QLabel("Ready")
        right_panel.addWidget(self.status_label)
        main_layout.addLayout(right_panel, 2)

    # ------------------------------------------------------------------
    # Picker handlers
    # ------------------------------------------------------------------

    def on_dataset_changed(self, index):
        self.dashboard.set_dataset(self.dataset_combo.itemData(index))

    def on_period_changed(self):
        period = self.period_edit.text().strip() or self.config.default_period
        self.dashboard.set_period(period)

    def on_timescale_changed(self, index):
        self.dashboard.set_timescale(self.timescale_combo.itemData(index))

    def on_county_picked(self, index):
        county = self.county_combo.itemData(index)
        if self._updating_pickers or county is None:
            return
        self.dashboard.select_county(county)

    def on_island_picked(self, index):
        island = self.island_combo.itemData(index)
        if self._updating_pickers or island is None:
            return
        self.dashboard.select_island(island)

    def on_scope_picked(self, index):
        if self._updating_pickers:
            return
        self.dashboard.set_scope(self.scope_combo.itemData(index))

    def on_feature_clicked(self, feature):
        """Island outlines select islands; sub-island boundaries select divisions."""
        if feature.county is None:
            self.on_status_update(f"{feature.name} is not part of a county")
            return
        selection = self.dashboard.selection
        if selection.island is None or selection.scope is Scope.NONE:
            self.dashboard.select_island(feature.island)
        elif feature.island == selection.island:
            self.dashboard.select_division(feature.name)
        else:
            self.dashboard.select_island(feature.island)

    def on_feature_hovered(self, feature):
        if feature is not None:
            self.status_label.setText(feature.name)

    # ------------------------------------------------------------------
    # Dashboard handlers
    # ------------------------------------------------------------------

    def on_selection_changed(self, selection):
        self.selection_label.setText(self.dashboard.selection_label())
        self.map_widget.set_highlighted(
            f"{selection.island}::{canonicalize(selection.division)}" if selection.division else None)
        self._updating_pickers = True
        try:
            county = self.dashboard.lookups.display_name(selection.county) if selection.county else None
            self.county_combo.setCurrentIndex(max(0, self.county_combo.findData(county)))
            island = None
            if selection.island and selection.stage is not Stage.COUNTY_SELECTED:
                island = self.dashboard.lookups.display_name(selection.island)
            self.island_combo.setCurrentIndex(max(0, self.island_combo.findData(island)))
            self.scope_combo.setCurrentIndex(max(0, self.scope_combo.findData(selection.scope.value)))
        finally:
            self._updating_pickers = False

    def on_legend_changed(self, stops):
        kind = self.dashboard.dataset
        self.map_widget.set_legend(stops, f"{kind.value.capitalize()} ({kind.unit})")

    def on_legend_toggled(self, state):
        self.map_widget.show_legend = self.legend_checkbox.isChecked()
        self.map_widget.update()

    def on_timeseries_changed(self, series):
        kind = self.dashboard.dataset
        self.chart.plot(series, self.dashboard.selection_label(), kind.unit)

    def on_summary_changed(self, summary):
        for key, label in self.stat_labels.items():
            if summary is None:
                label.setText("—")
            elif key == "latest":
                label.setText(f"{summary['latest']:.2f} ({summary['latest_month']})")
            else:
                label.setText(f"{summary[key]:.2f}")

    def on_status_update(self, message):
        self.status_label.setText(message)

    def log_message(self, message):
        """Add message to log."""
        self.log_text.append(message)
        scrollbar = self.log_text.verticalScrollBar()
        scrollbar.setValue(scrollbar.maximum())

    def closeEvent(self, event):
        """Stop loaders, release the raster and persist the config."""
        self.dashboard.close()
        self.config.default_period = self.period_edit.text().strip() or self.config.default_period
        save_config(self.config, self.config_file)
        event.accept()


def main():
    """Main entry point."""
    log_handler = setup_logging()
    app = QApplication(sys.argv)
    window = MainWindow(log_handler)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
