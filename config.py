"""Configuration constants for the each-way edge scanner."""

from __future__ import annotations

# -----------------------------------------------------------------------------
# Exchange reference markets
# -----------------------------------------------------------------------------

EXCHANGE_MARKETS = {
    "win": {"name": "Winner", "depth": None},
    "top5": {"name": "Top 5", "depth": 5},
    "top10": {"name": "Top 10", "depth": 10},
}

REFERENCE_DEPTHS = (5, 10)
MIN_PROJECTION_DEPTH = 5
MAX_PROJECTION_DEPTH = 15

# -----------------------------------------------------------------------------
# Each-way defaults
# -----------------------------------------------------------------------------

DEFAULT_EACH_WAY_FRACTION = "1/5"
DEFAULT_EACH_WAY_PLACES = 10
DEFAULT_PLACE_DEPTH = 10

SCAN_MODES = ("each_way", "win")
DEFAULT_SCAN_MODE = "each_way"

# -----------------------------------------------------------------------------
# Reporting
# -----------------------------------------------------------------------------

EDGE_BANDS = [
    (0.0, 3.0, "0-3%"),
    (3.0, 5.0, "3-5%"),
    (5.0, 10.0, "5-10%"),
    (10.0, float("inf"), "10%+"),
]

DEFAULT_JSON_OUTPUT = "data.json"
