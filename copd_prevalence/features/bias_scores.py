"""
Bias-Correction Scores for the COPD pipeline - STAGE 1

Turns raw department-year rates into the composite bias-correction
multiplier used as the response of the Bayesian GAM:

    spirometry_score = deficit penalty of Espiro_NalTasa vs the administrative target
    lethality_score  = excess penalty of Letalidad vs its P75
    access_score     = deficit penalty of Tasa_pts vs its P25
    bias_index_score = sum of the three scores
    adjustment_factor = 1 + bias_index_score

Thresholds are computed once from the raw table (before any row is dropped)
and then frozen. Percentiles use linear interpolation between order
statistics, the same convention as R's quantile(type = 7).
"""
from dataclasses import dataclass, asdict
from typing import Dict, Literal, Optional, Union

import numpy as np
import pandas as pd

from copd_prevalence.common.errors import DataValidationError, ThresholdComputationError
from copd_prevalence.data.loader import validate_columns
from copd_prevalence.data.schema import (
    RAW_REQUIRED_COLUMNS,
    RENAME_MAP,
    DEPRECATED_COLUMNS,
    ANALYSIS_REQUIRED_COLUMNS,
    OUTPUT_PREVIEW_COLUMNS,
    SCORE_COLUMNS,
)


# Administrative standard for spirometry (per 100k inhabitants)
SPIROMETRY_TARGET = 1105.08
LETHALITY_PERCENTILE = 75
ACCESS_PERCENTILE = 25
PERCENTILE_METHOD = "linear"

Direction = Literal["deficit", "excess"]
ArrayLike = Union[float, np.ndarray, pd.Series]


@dataclass(frozen=True)
class BiasThresholds:
    """Benchmarks the three penalty scores are measured against."""
    spirometry_target: float
    lethality_threshold: float
    access_threshold: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass
class PreprocessResult:
    """Output of Stage 1."""
    data: pd.DataFrame
    thresholds: BiasThresholds
    rows_before: int
    rows_after: int

    @property
    def rows_removed(self) -> int:
        return self.rows_before - self.rows_after


def shortfall_penalty(
    actual: ArrayLike,
    benchmark: float,
    direction: Direction
) -> ArrayLike:
    """
    Proportional penalty for falling short of a benchmark.

    deficit: max(0, (benchmark - actual) / benchmark), penalises values below
    excess:  max(0, (actual - benchmark) / benchmark), penalises values above

    Missing values stay missing. Series input returns a Series on the same
    index; scalar input returns a float.

    Args:
        actual: Observed value(s)
        benchmark: Positive reference value
        direction: 'deficit' or 'excess'

    Returns:
        Penalty with the same shape as `actual`
    """
    if direction == "deficit":
        sign = 1.0
    elif direction == "excess":
        sign = -1.0
    else:
        raise ValueError(f"Unknown direction: {direction}")

    values = np.asarray(actual, dtype=np.float64)
    penalty = np.maximum(0.0, sign * (benchmark - values) / benchmark)

    if isinstance(actual, pd.Series):
        return pd.Series(penalty, index=actual.index, name=actual.name)
    if penalty.ndim == 0:
        return float(penalty)
    return penalty


def _coerce_numeric(df: pd.DataFrame, columns) -> pd.DataFrame:
    """Convert columns to float, failing on entries that are not numbers."""
    df = df.copy()
    malformed = []
    for col in columns:
        converted = pd.to_numeric(df[col], errors='coerce')
        if (converted.isna() & df[col].notna()).any():
            malformed.append(col)
        df[col] = converted.astype(float)
    if malformed:
        raise DataValidationError("Non-numeric values in raw columns", malformed)
    return df


def _percentile(series: pd.Series, q: float, name: str) -> float:
    values = pd.to_numeric(series, errors='coerce').to_numpy(dtype=float)
    values = values[~np.isnan(values)]
    if len(values) == 0:
        raise ThresholdComputationError(
            f"Cannot compute P{q:g} of '{name}': column has no non-missing values"
        )
    threshold = float(np.percentile(values, q, method=PERCENTILE_METHOD))
    if threshold <= 0:
        raise ThresholdComputationError(
            f"P{q:g} of '{name}' is {threshold}; a positive threshold is required"
        )
    return threshold


def compute_thresholds(
    raw: pd.DataFrame,
    spirometry_target: float = SPIROMETRY_TARGET,
    lethality_percentile: float = LETHALITY_PERCENTILE,
    access_percentile: float = ACCESS_PERCENTILE
) -> BiasThresholds:
    """
    Compute the threshold set from the raw, unfiltered table.

    Args:
        raw: Raw extract (Spanish column names)
        spirometry_target: Fixed administrative spirometry standard
        lethality_percentile: Percentile of Letalidad above which lethality is penalised
        access_percentile: Percentile of Tasa_pts below which access is penalised

    Returns:
        BiasThresholds
    """
    validate_columns(raw, ['Letalidad', 'Tasa_pts'], context="threshold")
    if spirometry_target <= 0:
        raise ThresholdComputationError("spirometry_target must be positive")

    return BiasThresholds(
        spirometry_target=float(spirometry_target),
        lethality_threshold=_percentile(raw['Letalidad'], lethality_percentile, 'Letalidad'),
        access_threshold=_percentile(raw['Tasa_pts'], access_percentile, 'Tasa_pts'),
    )


def compute_bias_scores(raw: pd.DataFrame, thresholds: BiasThresholds) -> pd.DataFrame:
    """
    Add the penalty scores, bias index and adjustment factor.

    Args:
        raw: Raw extract (Spanish column names, numeric rates)
        thresholds: Frozen threshold set

    Returns:
        Copy of `raw` with score columns and `adjustment_factor`
    """
    df = raw.copy()

    df['spirometry_score'] = shortfall_penalty(
        df['Espiro_NalTasa'], thresholds.spirometry_target, "deficit"
    )
    df['lethality_score'] = shortfall_penalty(
        df['Letalidad'], thresholds.lethality_threshold, "excess"
    )
    df['access_score'] = shortfall_penalty(
        df['Tasa_pts'], thresholds.access_threshold, "deficit"
    )

    df['bias_index_score'] = df['spirometry_score'] + df['lethality_score'] + df['access_score']
    df['adjustment_factor'] = 1 + df['bias_index_score']

    return df


def finalize_dataset(scored: pd.DataFrame) -> pd.DataFrame:
    """
    Rename to the analysis vocabulary, drop deprecated columns, drop incomplete rows.

    Row order of the surviving rows is preserved.
    """
    df = scored.rename(columns=RENAME_MAP)
    df = df.drop(columns=[c for c in DEPRECATED_COLUMNS if c in df.columns])
    df = df.dropna(subset=list(ANALYSIS_REQUIRED_COLUMNS))
    return df.reset_index(drop=True)


def _print_range(label: str, values: pd.Series) -> None:
    print(f"  {label} range: [{values.min():.4f}, {values.max():.4f}]")


def preprocess(
    raw: pd.DataFrame,
    thresholds: Optional[BiasThresholds] = None,
    spirometry_target: float = SPIROMETRY_TARGET,
    lethality_percentile: float = LETHALITY_PERCENTILE,
    access_percentile: float = ACCESS_PERCENTILE
) -> PreprocessResult:
    """
    Run Stage 1 end to end.

    Args:
        raw: Raw extract as loaded from Excel/CSV
        thresholds: Precomputed thresholds (computed from `raw` when None)
        spirometry_target: Administrative spirometry standard
        lethality_percentile: Percentile for the lethality threshold
        access_percentile: Percentile for the access threshold

    Returns:
        PreprocessResult with the analysis-ready table
    """
    validate_columns(raw, RAW_REQUIRED_COLUMNS, context="raw")
    raw = _coerce_numeric(raw, RENAME_MAP.keys())

    if thresholds is None:
        lethality_source = f"P{lethality_percentile:g}"
        access_source = f"P{access_percentile:g}"
        thresholds = compute_thresholds(
            raw,
            spirometry_target=spirometry_target,
            lethality_percentile=lethality_percentile,
            access_percentile=access_percentile,
        )
    else:
        lethality_source = access_source = "precomputed"

    print("Thresholds:")
    print(f"  Spiro_Target (administrative standard): {thresholds.spirometry_target:.4f}")
    print(f"  Lethality_Threshold ({lethality_source}): {thresholds.lethality_threshold:.4f}")
    print(f"  Access_Threshold ({access_source}): {thresholds.access_threshold:.4f}")

    scored = compute_bias_scores(raw, thresholds)
    for col in SCORE_COLUMNS:
        _print_range(col, scored[col])
    _print_range('adjustment_factor', scored['adjustment_factor'])

    rows_before = len(scored)
    clean = finalize_dataset(scored)
    rows_after = len(clean)

    print(f"Rows before filtering: {rows_before}")
    print(f"Rows after filtering: {rows_after}")
    print(f"Rows removed: {rows_before - rows_after}")

    if (clean['adjustment_factor'] >= 1).all():
        print("✓ All adjustment_factor values are >= 1")
    else:
        print("⚠ WARNING: Some adjustment_factor values are < 1")

    return PreprocessResult(
        data=clean,
        thresholds=thresholds,
        rows_before=rows_before,
        rows_after=rows_after,
    )


def preview_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Subset of the analysis table shown in reports."""
    return df[[c for c in OUTPUT_PREVIEW_COLUMNS if c in df.columns]]
