"""
Monthly climate time series tables.

Tables are wide CSV: a header of month labels and one row per place, the
first column holding the place label. They are reshaped to long rows of
{<label_key>: label, "month": month, "value": value}.
"""
import logging
from io import StringIO

import numpy as np
import pandas as pd

from geometry import canonicalize

logger = logging.getLogger(__name__)

STATEWIDE_LABEL = "Statewide"

# Table level -> label column key in the parsed rows
LABEL_KEYS = {
    "statewide": "state",
    "islands": "island",
    "divisions": "division",
    "moku": "moku",
    "ahupuaa": "ahupuaa",
}


def parse_timeseries(text, label_key):
    """Parse a wide month table into long rows; rows with a blank label are skipped."""
    try:
        df = pd.read_csv(StringIO(text), dtype=str, keep_default_na=False,
                         skipinitialspace=True, on_bad_lines="skip")
    except pd.errors.EmptyDataError:
        return []
    if df.shape[1] < 2:
        return []

    df.columns = [str(c).strip() for c in df.columns]
    label_col = df.columns[0]
    labels = df[label_col].fillna("").astype(str).str.strip()
    skipped = int((labels == "").sum())
    if skipped:
        logger.debug(f"Skipping {skipped} time series row(s) with a blank label")
    df = df.assign(**{label_col: labels})[labels != ""]

    # Stable sort on the original row index keeps row-major (row, then month) order
    long = df.melt(id_vars=[label_col], var_name="month", value_name="value",
                   ignore_index=False).sort_index(kind="stable")
    long.columns = ["label", "month", "value"]
    long["value"] = pd.to_numeric(long["value"].astype(str).str.strip(), errors="coerce")
    long = long.dropna(subset=["value"])
    return [{label_key: row.label, "month": row.month, "value": float(row.value)}
            for row in long.itertuples(index=False)]


def series_for(rows, label_key, label):
    """[{month, value}] for one place, matched on canonical label."""
    wanted = canonicalize(label)
    return [{"month": r["month"], "value": r["value"]}
            for r in rows if canonicalize(r.get(label_key)) == wanted]


def summarize(series):
    """Stat box numbers: latest, min, max, mean (None when the series is empty)."""
    if not series:
        return None
    values = np.array([p["value"] for p in series], dtype=np.float64)
    return {
        "latest": float(values[-1]),
        "latest_month": series[-1]["month"],
        "min": float(values.min()),
        "max": float(values.max()),
        "mean": float(values.mean()),
    }


def timeseries_level(selection):
    """(table level, label key, label) for the current selection."""
    if selection.division:
        level = "divisions" if selection.scope.value == "none" else selection.scope.value
        return level, LABEL_KEYS[level], selection.division
    if selection.island:
        return "islands", LABEL_KEYS["islands"], selection.island
    return "statewide", LABEL_KEYS["statewide"], STATEWIDE_LABEL
