import pytest

from geometry import canonicalize
from lookups import COUNTY_NAMES, ISLAND_NAMES


def test_county_of_any_spelling(lookups):
    assert lookups.county_of("Molokaʻi") == "maui"
    assert lookups.county_of("MOLOKAI") == "maui"
    assert lookups.county_of("Oʻahu") == "honolulu"
    assert lookups.county_of("Niihau") == "kauai"


def test_unknown_names(lookups):
    with pytest.raises(KeyError):
        lookups.county_of("Atlantis")
    with pytest.raises(KeyError):
        lookups.representative_island("Kalawao")


def test_every_island_has_a_county_and_every_county_a_representative(lookups):
    for island in ISLAND_NAMES:
        assert lookups.county_of(island) in {lookups.county_of(lookups.representative_island(c))
                                             for c in COUNTY_NAMES}
    for county in COUNTY_NAMES:
        rep = lookups.representative_island(county)
        assert lookups.county_of(rep) == canonicalize(county)
        assert rep in lookups.county_group(rep)


def test_county_group(lookups):
    assert lookups.county_group("Lānaʻi") == frozenset({"maui", "molokai", "lanai", "kahoolawe"})
    assert lookups.county_group("Kauaʻi") == frozenset({"kauai", "niihau"})
    assert lookups.county_group("Hawaiʻi") == frozenset({"hawaii"})


def test_tables_are_read_only(lookups):
    with pytest.raises(TypeError):
        lookups.island_county["maui"] = "honolulu"


def test_divisions_and_display_names(lookups):
    assert "West Maui" in lookups.divisions_of("maui")
    assert lookups.divisions_of("Niʻihau") == ()
    assert lookups.display_name("lanai") == "Lānaʻi"
    assert lookups.display_name("nowhere") == "nowhere"
