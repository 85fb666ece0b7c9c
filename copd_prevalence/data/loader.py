"""
Data Loader for the COPD pipeline - STAGE 0: Data Acquisition

This module handles:
1. Loading the raw department-year extract (Excel or CSV)
2. Validating required raw columns
3. Loading / saving the analysis-ready table
4. Attaching population weights (Pob40_Depto) for the national estimate

Sources:
- Aggregated administrative health records, Colombian departments 2020-2023
"""
import pandas as pd
from pathlib import Path
from typing import Iterable, Optional, Union

from copd_prevalence.common.errors import DataValidationError
from copd_prevalence.common.paths import ensure_parent
from copd_prevalence.data.schema import (
    RAW_REQUIRED_COLUMNS,
    ANALYSIS_REQUIRED_COLUMNS,
    WEIGHT_COLUMN,
)

PathLike = Union[str, Path]


def validate_columns(
    df: pd.DataFrame,
    required: Iterable[str],
    context: str = "input"
) -> None:
    """
    Raise DataValidationError if any required column is absent.

    Args:
        df: Table to check
        required: Column names that must be present
        context: Label used in the error message
    """
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing required {context} columns", missing)


def read_table(path: PathLike) -> pd.DataFrame:
    """Read an Excel (.xlsx/.xls) or CSV file into a DataFrame."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    if path.suffix.lower() in ('.xlsx', '.xls'):
        return pd.read_excel(path)
    return pd.read_csv(path)


def load_raw_data(path: PathLike) -> pd.DataFrame:
    """
    Load the raw department-year extract.

    Args:
        path: Path to copd_epidemiological_data_raw.xlsx (or an equivalent CSV)

    Returns:
        DataFrame with the raw Spanish column names
    """
    df = read_table(path)
    validate_columns(df, RAW_REQUIRED_COLUMNS, context="raw")
    print(f"Raw data loaded: {len(df)} rows × {len(df.columns)} columns")
    return df


def load_analysis_data(path: PathLike) -> pd.DataFrame:
    """
    Load the analysis-ready table written by Stage 1.

    Args:
        path: Path to copd_analysis_ready_data.csv

    Returns:
        DataFrame with English analysis columns
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Preprocessed data file not found: {path}. "
            "Run experiments/01_preprocess_data.py first."
        )
    df = pd.read_csv(path)
    validate_columns(df, ANALYSIS_REQUIRED_COLUMNS, context="analysis")
    print(f"Processed data loaded: {len(df)} rows")
    return df


def save_analysis_data(df: pd.DataFrame, path: PathLike) -> Path:
    """Write the analysis-ready table to CSV (no index)."""
    path = ensure_parent(path)
    df.to_csv(path, index=False)
    print(f"  → Saved to {path}")
    return path


def attach_population_weights(
    data: pd.DataFrame,
    raw: Optional[pd.DataFrame] = None,
    weight_col: str = WEIGHT_COLUMN,
    keys: Iterable[str] = ('DPNOM', 'Year')
) -> pd.DataFrame:
    """
    Make sure `data` carries the population weight column.

    If the weight is already present the table is returned unchanged.
    Otherwise the weight is left-joined from `raw` on department and year,
    with keys compared as strings so numeric and text years match.

    Args:
        data: Analysis-ready table
        raw: Raw extract holding the weight column
        weight_col: Population weight column name
        keys: Join keys

    Returns:
        Copy of `data` with `weight_col` (may contain NaN for unmatched rows)
    """
    if weight_col in data.columns:
        print(f"✓ Population weights ({weight_col}) already available in processed data")
        return data

    if raw is None:
        raise DataValidationError(
            "Population weights not in processed data and no raw table supplied",
            [weight_col],
        )

    keys = list(keys)
    validate_columns(raw, keys + [weight_col], context="raw weight")

    weights = raw[keys + [weight_col]].copy()
    weights[keys] = weights[keys].astype(str)
    weights = weights.drop_duplicates(subset=keys)

    merged = data.copy()
    merged[keys] = merged[keys].astype(str)
    merged = merged.merge(weights, on=keys, how='left')
    # Restore original key values so downstream output is unchanged
    for key in keys:
        merged[key] = data[key].values

    matched = merged[weight_col].notna().sum()
    print(f"  → Population weights joined: {matched}/{len(merged)} rows matched")
    return merged
