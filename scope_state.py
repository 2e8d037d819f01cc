"""
Geographic scope and selection state.

Selection is an immutable value and every transition is a pure function
returning a new one. ScopeStateMachine holds the current value and announces
what changed: selectionChanged on every transition, featuresChanged whenever
the active boundary feature set has to be refit.
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSignal

from geometry import canonicalize
from sources import SourceError

logger = logging.getLogger(__name__)


class Scope(Enum):
    NONE = "none"
    DIVISIONS = "divisions"
    MOKU = "moku"
    AHUPUAA = "ahupuaa"

    @property
    def granularity(self):
        """Boundary dataset shown for an island under this scope."""
        return "islands" if self is Scope.NONE else self.value


class Stage(Enum):
    STATEWIDE = "statewide"
    COUNTY_SELECTED = "county"
    ISLAND_SELECTED = "island"
    DIVISION_SELECTED = "division"


@dataclass(frozen=True)
class Selection:
    stage: Stage = Stage.STATEWIDE
    scope: Scope = Scope.NONE
    county: Optional[str] = None  # canonical
    island: Optional[str] = None  # canonical
    division: Optional[str] = None


def select_county(selection, county, lookups):
    """Stand in the county's representative island, at island-outline resolution."""
    island = lookups.representative_island(county)
    return Selection(stage=Stage.COUNTY_SELECTED, scope=Scope.NONE,
                     county=canonicalize(county), island=island)


def select_island(selection, island, lookups):
    island = canonicalize(island)
    county = lookups.county_of(island)
    return Selection(stage=Stage.ISLAND_SELECTED, scope=selection.scope, county=county, island=island)


def select_division(selection, name):
    if selection.island is None:
        raise ValueError(f"Cannot select division '{name}' before an island")
    return replace(selection, stage=Stage.DIVISION_SELECTED, division=name)


def set_scope(selection, scope, lookups):
    """New scope; re-selects the current island so its boundaries change in place."""
    scope = Scope(scope)
    if selection.island is None:
        return replace(selection, scope=scope)
    return select_island(replace(selection, scope=scope), selection.island, lookups)


def reset(selection):
    """Back to statewide; the chosen scope is kept for the next island selection."""
    return Selection(scope=selection.scope)


def boundary_granularity(selection):
    """Boundary dataset a selection draws: island outlines statewide, else the scope's."""
    if selection.island is None:
        return "islands"
    return selection.scope.granularity


def active_features(selection, catalog, lookups):
    """Boundary features to draw (and fit) for a selection.

    An island is always shown with its county siblings, so multi-island
    counties render as one region.
    """
    granularity = boundary_granularity(selection)
    try:
        features = catalog.features(granularity)
    except SourceError as e:
        logger.warning(f"No {granularity} boundaries available: {e}")
        return ()
    if selection.island is None:
        return tuple(features)
    group = lookups.county_group(selection.island)
    return tuple(f for f in features if f.island in group)


class ScopeStateMachine(QObject):
    """Current selection plus the boundary features it implies.

    With defer_loads set, a refit whose boundary file is not cached yet emits
    boundariesRequested instead of reading it; whoever loads it reports back
    through boundaries_loaded or boundaries_failed with the same generation.
    """

    selectionChanged = pyqtSignal(object)  # Selection
    featuresChanged = pyqtSignal(object)  # tuple of Feature
    boundariesRequested = pyqtSignal(int, str)  # generation, granularity

    def __init__(self, catalog, lookups, parent=None, defer_loads=False):
        super().__init__(parent)
        self.catalog = catalog
        self.lookups = lookups
        self.defer_loads = defer_loads
        self.selection = Selection()
        self.features = ()
        self._generation = 0

    def _apply(self, selection, refit):
        self.selection = selection
        logger.info(f"Selection -> {selection.stage.value} county={selection.county} "
                    f"island={selection.island} division={selection.division} scope={selection.scope.value}")
        self.selectionChanged.emit(selection)
        if refit:
            self._refit()

    def _refit(self):
        self._generation += 1
        granularity = boundary_granularity(self.selection)
        if self.defer_loads and not self.catalog.is_loaded(granularity):
            logger.debug(f"Requesting {granularity} boundaries (generation {self._generation})")
            self.boundariesRequested.emit(self._generation, granularity)
            return
        self._emit_features()

    def _emit_features(self):
        self.features = active_features(self.selection, self.catalog, self.lookups)
        self.featuresChanged.emit(self.features)

    def boundaries_loaded(self, generation, _features=None):
        if generation != self._generation:
            logger.debug(f"Ignoring boundaries for superseded generation {generation}")
            return
        self._emit_features()

    def boundaries_failed(self, generation, message):
        if generation != self._generation:
            return
        logger.warning(f"No {boundary_granularity(self.selection)} boundaries available: {message}")
        self.features = ()
        self.featuresChanged.emit(self.features)

    def select_county(self, county):
        self._apply(select_county(self.selection, county, self.lookups), refit=True)

    def select_island(self, island):
        self._apply(select_island(self.selection, island, self.lookups), refit=True)

    def select_division(self, name):
        self._apply(select_division(self.selection, name), refit=False)

    def set_scope(self, scope):
        refit = self.selection.island is not None
        self._apply(set_scope(self.selection, scope, self.lookups), refit=refit)

    def reset(self):
        self._apply(reset(self.selection), refit=True)
