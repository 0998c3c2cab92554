"""
latam_energy.constants — Single source of truth for explorer constants.

Every module that needs these values MUST import from here.
No hardcoded duplicates anywhere in the codebase.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Precision
# ---------------------------------------------------------------------------

ROUND_PRECISION: int = 8
"""Floating-point values entering a cache key are formatted with exactly
ROUND_PRECISION decimal places (see hashing.canonical_float)."""

# ---------------------------------------------------------------------------
# Country registry — static, ~21 entries, never mutated at runtime
# ---------------------------------------------------------------------------

COUNTRY_TABLE: tuple[tuple[str, str, float, float], ...] = (
    ("Mexico", "MX", 23.63, -102.55),
    ("Guatemala", "GT", 15.78, -90.23),
    ("Honduras", "HN", 15.2, -86.24),
    ("El Salvador", "SV", 13.79, -88.89),
    ("Nicaragua", "NI", 12.86, -85.20),
    ("Costa Rica", "CR", 9.92, -84.08),
    ("Panama", "PA", 8.98, -79.52),
    ("Colombia", "CO", 4.57, -74.29),
    ("Venezuela", "VE", 6.42, -66.58),
    ("Ecuador", "EC", -1.83, -78.18),
    ("Peru", "PE", -9.19, -75.01),
    ("Bolivia", "BO", -16.29, -63.58),
    ("Brazil", "BR", -14.23, -51.92),
    ("Paraguay", "PY", -23.44, -58.44),
    ("Chile", "CL", -35.67, -71.54),
    ("Argentina", "AR", -38.41, -63.61),
    ("Uruguay", "UY", -32.52, -55.76),
    ("Guyana", "GY", 4.86, -58.93),
    ("Suriname", "SR", 3.91, -56.02),
    ("French Guiana", "GF", 3.93, -53.12),
    ("Belize", "BZ", 17.18, -88.49),
)
"""(name, code, latitude, longitude) in canonical display order."""

LEGACY_CODE_ALIASES: dict[str, str] = {
    "GU": "GT",  # Guatemala
    "HO": "HN",  # Honduras
    "ES": "SV",  # El Salvador
    "FG": "GF",  # French Guiana
    "SU": "SR",  # Suriname
}
"""Non-standard codes found in source data files → standard codes."""

# ---------------------------------------------------------------------------
# Scenario configuration dimensions
# ---------------------------------------------------------------------------

DEPENDENCY_ORDER: tuple[str, ...] = (
    "year",
    "transmission",
    "sovereignty",
    "demand",
    "hydro_andean",
    "hydro_cono_sur",
)
"""Resolution order of the six configuration fields. Editing a field
constrains only the fields before it."""

FIELD_WIRE_NAMES: dict[str, str] = {
    "year": "year",
    "transmission": "transmission",
    "sovereignty": "sovereignty",
    "demand": "demand",
    "hydro_andean": "hydroAndean",
    "hydro_cono_sur": "hydroConoSur",
}

WIRE_NAME_TO_FIELD: dict[str, str] = {v: k for k, v in FIELD_WIRE_NAMES.items()}

YEARS: tuple[int, ...] = (2025, 2035, 2045)
TRANSMISSION_OPTIONS: tuple[str, ...] = ("Isolated", "Integrated")
SOVEREIGNTY_OPTIONS: tuple[str, ...] = ("WithSovereignty", "WithoutSovereignty")
DEMAND_OPTIONS: tuple[str, ...] = ("BaseCase", "NoCoal", "ElecPlus", "ElecRenLimit")
HYDRO_OPTIONS: tuple[str, ...] = ("High", "Medium", "Low")

SCENARIO_KEY_SEPARATOR: str = "-"

# ---------------------------------------------------------------------------
# Technologies
# ---------------------------------------------------------------------------

GENERATION_TECHNOLOGIES: tuple[str, ...] = (
    "Solar", "Wind", "Nuclear", "Hydroelectric", "Coal", "Gas", "Diesel",
)
"""Canonical generation-mix keys (GWh). Hydroelectric is derived."""

RAW_HYDRO_FIELDS: tuple[str, str] = ("Hydro_Embalse", "Hydro_Pasada")
"""Reservoir and run-of-river sub-categories collapsed into Hydroelectric."""

INVESTMENT_TECHNOLOGIES: tuple[str, ...] = (
    "BESS", "Coal", "Diesel", "Gas", "Solar", "Wind",
)
"""Investment-mix keys (MW)."""

RENEWABLE_TECHNOLOGIES: frozenset[str] = frozenset({"Solar", "Wind"})
TRANSITION_TECHNOLOGIES: frozenset[str] = frozenset({"Solar", "Wind", "BESS"})

# ---------------------------------------------------------------------------
# Transmission lines
# ---------------------------------------------------------------------------

LINE_ID_SEPARATOR: str = "-"

FLOW_FACTOR: float = 0.35
"""Placeholder flow magnitude as a fraction of line capacity. Not measured."""

# ---------------------------------------------------------------------------
# Heatmap
# ---------------------------------------------------------------------------

KPI_METRICS: tuple[str, ...] = (
    "lossToTrust", "lossToNotTrust", "operationCost",
    "imports", "exports", "totalEmissions",
)

TOTAL_METRIC: str = "Total"

SCALE_FRACTIONS: tuple[float, ...] = (0.0, 0.01, 0.1, 0.25, 0.5, 0.75)
"""Bucket boundaries as fractions of the largest positive value."""

NO_DATA_COLOR: str = "#18181b"

BAND_COLORS: tuple[str, ...] = (
    "#5f6c9a",
    "#7886C7",
    "#919cc9",
    "#A9B5DF",
    "#d4d9ed",
    "#FFF2F2",
)
"""One colour per band, lowest band first. Band i covers
(boundary[i], boundary[i+1]]; the last band is open above."""
