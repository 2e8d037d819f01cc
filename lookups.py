"""
Static administrative lookup tables for the Hawaiian islands.

Tables are keyed by canonical island/county names (see geometry.canonicalize)
and exposed as read-only mappings so they can be injected into the scope state
machine without anyone mutating them.
"""
from dataclasses import dataclass
from types import MappingProxyType

from geometry import canonicalize


# Display names, ʻokina and kahakō included
ISLAND_NAMES = ("Niʻihau", "Kauaʻi", "Oʻahu", "Molokaʻi", "Lānaʻi", "Maui", "Kahoʻolawe", "Hawaiʻi")

COUNTY_NAMES = ("Kauaʻi", "Honolulu", "Maui", "Hawaiʻi")

_ISLAND_COUNTY = {
    "Niʻihau": "Kauaʻi",
    "Kauaʻi": "Kauaʻi",
    "Oʻahu": "Honolulu",
    "Molokaʻi": "Maui",  # Kalawao is folded into Maui County for display
    "Lānaʻi": "Maui",
    "Maui": "Maui",
    "Kahoʻolawe": "Maui",
    "Hawaiʻi": "Hawaiʻi",
}

_COUNTY_REPRESENTATIVE = {
    "Kauaʻi": "Kauaʻi",
    "Honolulu": "Oʻahu",
    "Maui": "Maui",
    "Hawaiʻi": "Hawaiʻi",
}

_ISLAND_DIVISIONS = {
    "Kauaʻi": ("North Kauaʻi", "South Kauaʻi"),
    "Oʻahu": ("Windward Oʻahu", "Leeward Oʻahu", "Honolulu"),
    "Molokaʻi": ("West Molokaʻi", "East Molokaʻi"),
    "Lānaʻi": ("Central Lānaʻi",),
    "Maui": ("West Maui", "Central Maui", "East Maui"),
    "Kahoʻolawe": ("Kahoʻolawe",),
    "Hawaiʻi": ("Hawaiʻi Mauka", "Windward Kohala", "Kaʻu", "Hilo", "Leeward Kohala", "Kona"),
}


@dataclass(frozen=True)
class HawaiiLookups:
    """Immutable island/county/division tables keyed by canonical name."""
    island_county: MappingProxyType
    county_representative: MappingProxyType
    island_divisions: MappingProxyType
    display_names: MappingProxyType

    def county_of(self, island):
        """Canonical county for an island name in any spelling."""
        key = canonicalize(island)
        if key not in self.island_county:
            raise KeyError(f"Unknown island: {island}")
        return self.island_county[key]

    def representative_island(self, county):
        """Canonical island standing in for a county selection."""
        key = canonicalize(county)
        if key not in self.county_representative:
            raise KeyError(f"Unknown county: {county}")
        return self.county_representative[key]

    def county_group(self, island):
        """All canonical islands sharing the island's county."""
        county = self.county_of(island)
        return frozenset(i for i, c in self.island_county.items() if c == county)

    def divisions_of(self, island):
        return self.island_divisions.get(canonicalize(island), ())

    def display_name(self, name):
        """Display spelling for a canonical name, or the name itself."""
        return self.display_names.get(canonicalize(name), name)


def default_lookups():
    """Build the statewide tables."""
    display = {canonicalize(n): n for n in ISLAND_NAMES + COUNTY_NAMES}
    return HawaiiLookups(
        island_county=MappingProxyType({canonicalize(i): canonicalize(c) for i, c in _ISLAND_COUNTY.items()}),
        county_representative=MappingProxyType(
            {canonicalize(c): canonicalize(i) for c, i in _COUNTY_REPRESENTATIVE.items()}),
        island_divisions=MappingProxyType({canonicalize(i): d for i, d in _ISLAND_DIVISIONS.items()}),
        display_names=MappingProxyType(display),
    )
