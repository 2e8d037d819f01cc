import numpy as np
import pytest

from conftest import synthetic_series, wide_csv
from scope_state import Scope, Selection, Stage
from timeseries import parse_timeseries, series_for, summarize, timeseries_level


def test_parse_statewide_example():
    rows = parse_timeseries("label,Jan,Feb\nStatewide,1.0,-2.0\n", "state")
    assert rows == [
        {"state": "Statewide", "month": "Jan", "value": 1.0},
        {"state": "Statewide", "month": "Feb", "value": -2.0},
    ]


def test_rows_stay_in_row_major_order():
    text = "division,Jan,Feb,Mar\nWest Maui,1,2,3\nEast Maui,4,5,6\n"
    rows = parse_timeseries(text, "division")
    assert [(r["division"], r["month"], r["value"]) for r in rows] == [
        ("West Maui", "Jan", 1.0), ("West Maui", "Feb", 2.0), ("West Maui", "Mar", 3.0),
        ("East Maui", "Jan", 4.0), ("East Maui", "Feb", 5.0), ("East Maui", "Mar", 6.0),
    ]


def test_blank_labels_and_bad_cells_are_skipped():
    text = "island,Jan,Feb\n,9,9\nMaui, 1.5 ,n/a\n   ,7,7\nOʻahu,2,3\n"
    rows = parse_timeseries(text, "island")
    assert [(r["island"], r["month"], r["value"]) for r in rows] == [
        ("Maui", "Jan", 1.5), ("Oʻahu", "Jan", 2.0), ("Oʻahu", "Feb", 3.0),
    ]


def test_empty_and_header_only_tables():
    assert parse_timeseries("", "state") == []
    assert parse_timeseries("state\nStatewide\n", "state") == []


def test_series_for_matches_canonically():
    rows = parse_timeseries("island,Jan\nKauaʻi,3\nMaui,4\n", "island")
    assert series_for(rows, "island", "KAUAI") == [{"month": "Jan", "value": 3.0}]
    assert series_for(rows, "island", "Niʻihau") == []


def test_summarize_synthetic_series():
    months, values = synthetic_series(seed=3, months=12)
    rows = parse_timeseries(wide_csv("state", [("Statewide", values)], months), "state")
    summary = summarize(series_for(rows, "state", "Statewide"))
    assert summary["latest"] == pytest.approx(values[-1])
    assert summary["latest_month"] == months[-1]
    assert summary["min"] == pytest.approx(values.min())
    assert summary["max"] == pytest.approx(values.max())
    assert summary["mean"] == pytest.approx(np.mean(values))


def test_summarize_empty():
    assert summarize([]) is None


@pytest.mark.parametrize("selection, expected", [
    (Selection(), ("statewide", "state", "Statewide")),
    (Selection(stage=Stage.COUNTY_SELECTED, county="maui", island="maui"), ("islands", "island", "maui")),
    (Selection(stage=Stage.ISLAND_SELECTED, scope=Scope.MOKU, county="maui", island="maui"),
     ("islands", "island", "maui")),
    (Selection(stage=Stage.DIVISION_SELECTED, scope=Scope.DIVISIONS, county="maui", island="maui",
               division="West Maui"), ("divisions", "division", "West Maui")),
    (Selection(stage=Stage.DIVISION_SELECTED, scope=Scope.MOKU, county="maui", island="maui",
               division="Wailuku"), ("moku", "moku", "Wailuku")),
])
def test_timeseries_level(selection, expected):
    assert timeseries_level(selection) == expected
