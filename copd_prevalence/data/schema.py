"""Column definitions.

Raw administrative extracts use Spanish field names; everything downstream of
Stage 1 uses the English analysis vocabulary defined here.
"""

from __future__ import annotations

from typing import Dict, Sequence


# Identifier columns carried through unchanged
ID_COLUMNS: Sequence[str] = (
    "DPNOM",
    "Nom_Capital",
    "Year",
)

# Raw name -> analysis name
RENAME_MAP: Dict[str, str] = {
    "Espiro_NalTasa": "spirometry_rate",
    "Letalidad": "lethality_rate",
    "Tasa_pts": "patients_rate",
    "Estufa": "biomass_stove_usage",
    "IPM": "multidimensional_poverty_index",
    "Porc40_may": "pop_over_40_percent",
    "Prev_Total": "total_prevalence",
}

# Columns that must be present before scoring starts
RAW_REQUIRED_COLUMNS: Sequence[str] = (
    "DPNOM",
    "Nom_Capital",
    "Year",
    *RENAME_MAP.keys(),
)

# Deprecated manual adjustment columns (dropped unconditionally)
DEPRECATED_COLUMNS: Sequence[str] = (
    "Vero_Ajuste",
    "Factor_Ajuste",
)

WEIGHT_COLUMN = "Pob40_Depto"

# Fields that must be non-missing for a row to reach the model
ANALYSIS_REQUIRED_COLUMNS: Sequence[str] = (
    "spirometry_rate",
    "lethality_rate",
    "patients_rate",
    "biomass_stove_usage",
    "multidimensional_poverty_index",
    "pop_over_40_percent",
    "total_prevalence",
    "adjustment_factor",
)

# Column order of the Stage 1 preview table
OUTPUT_PREVIEW_COLUMNS: Sequence[str] = (
    *ID_COLUMNS,
    *ANALYSIS_REQUIRED_COLUMNS,
)

SCORE_COLUMNS: Sequence[str] = (
    "spirometry_score",
    "lethality_score",
    "access_score",
    "bias_index_score",
)
