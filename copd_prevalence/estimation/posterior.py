"""
Posterior Aggregation for the COPD pipeline - STAGE 2

Turns the posterior matrix of expected adjustment factors (draws × rows)
into prevalence estimates with 95% credible intervals:

1. True prevalence draws:  T[d, i] = P[d, i] * total_prevalence[i]
2. Department draws:       median of T[d, rows of department] for each draw
3. National draws:         population-weighted mean of T[d, :] for each draw
4. Summaries:              median, 2.5th and 97.5th percentiles

Percentiles use linear interpolation between order statistics (numpy
"linear", R quantile type 7), the same convention as the Stage 1 thresholds.
"""
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from copd_prevalence.common.errors import (
    DataValidationError,
    DimensionMismatchError,
    EmptyDepartmentError,
    MissingWeightError,
)
from copd_prevalence.data.loader import validate_columns
from copd_prevalence.data.schema import WEIGHT_COLUMN


NATIONAL_LABEL = "Colombia"
CREDIBLE_INTERVAL: Tuple[float, float] = (2.5, 97.5)
PERCENTILE_METHOD = "linear"
MANUSCRIPT_COLUMNS = ['Region', 'Department', 'Prevalence', '95% CrI']


@dataclass
class PrevalenceEstimates:
    """Everything Stage 2 produces."""
    true_draws: np.ndarray
    department_draws: Dict[str, np.ndarray]
    national_draws: np.ndarray
    departmental: pd.DataFrame
    national: pd.DataFrame
    table: pd.DataFrame
    n_weight_excluded: int = 0
    interval: Tuple[float, float] = field(default=CREDIBLE_INTERVAL)


def _as_draw_matrix(epred) -> np.ndarray:
    matrix = np.asarray(epred, dtype=float)
    if matrix.ndim != 2:
        raise ValueError(
            f"Posterior matrix must be 2-D (draws × observations), got shape {matrix.shape}"
        )
    return matrix


def true_prevalence_draws(epred, total_prevalence: Iterable[float]) -> np.ndarray:
    """
    Scale each draw of the adjustment factor by the observed prevalence.

    Args:
        epred: Posterior expected adjustment factors, shape (n_draws, n_obs)
        total_prevalence: Reported prevalence per observation, length n_obs

    Returns:
        True-prevalence draws, shape (n_draws, n_obs)
    """
    matrix = _as_draw_matrix(epred)
    prevalence = np.asarray(list(total_prevalence), dtype=float)
    if matrix.shape[1] != len(prevalence):
        raise DimensionMismatchError(matrix.shape[1], len(prevalence))
    return matrix * prevalence[np.newaxis, :]


def department_posterior(
    true_draws: np.ndarray,
    departments: Sequence[str],
    order: Optional[Sequence[str]] = None
) -> Dict[str, np.ndarray]:
    """
    Median across a department's observations, separately for every draw.

    Args:
        true_draws: Shape (n_draws, n_obs)
        departments: Department label of each observation, length n_obs
        order: Departments to aggregate (default: order of first appearance)

    Returns:
        Mapping department -> array of n_draws medians
    """
    labels = pd.Series(list(departments))
    if true_draws.shape[1] != len(labels):
        raise DimensionMismatchError(true_draws.shape[1], len(labels))

    n_unlabelled = int(labels.isna().sum())
    if n_unlabelled:
        raise DataValidationError(
            f"{n_unlabelled}/{len(labels)} observations have no department label"
        )

    if order is None:
        order = list(labels.unique())

    posterior = {}
    for dept in order:
        idx = np.flatnonzero((labels == dept).to_numpy())
        if len(idx) == 0:
            raise EmptyDepartmentError(dept)
        posterior[dept] = np.median(true_draws[:, idx], axis=1)
    return posterior


def national_posterior(
    true_draws: np.ndarray,
    weights: Iterable[float]
) -> Tuple[np.ndarray, int]:
    """
    Population-weighted mean across all observations, separately for every draw.

    Rows whose weight is missing are left out (with a MissingWeightError
    warning); department estimates are unaffected.

    Args:
        true_draws: Shape (n_draws, n_obs)
        weights: Population weight per observation, length n_obs

    Returns:
        (national draws of length n_draws, number of rows excluded)
    """
    w = np.asarray(list(weights), dtype=float)
    if true_draws.shape[1] != len(w):
        raise DimensionMismatchError(true_draws.shape[1], len(w))

    valid = ~np.isnan(w)
    n_excluded = int((~valid).sum())
    if n_excluded:
        warnings.warn(MissingWeightError(n_excluded, len(w)), stacklevel=2)

    if (w[valid] < 0).any():
        raise DataValidationError("Population weights must be non-negative", [WEIGHT_COLUMN])
    total = w[valid].sum()
    if total <= 0:
        raise DataValidationError("No observations with a positive population weight", [WEIGHT_COLUMN])

    return true_draws[:, valid] @ w[valid] / total, n_excluded


def summarize_draws(
    samples: np.ndarray,
    interval: Tuple[float, float] = CREDIBLE_INTERVAL
) -> Dict[str, float]:
    """Median and central credible interval of a 1-D posterior sample."""
    samples = np.asarray(samples, dtype=float)
    lower, upper = np.percentile(samples, interval, method=PERCENTILE_METHOD)
    return {
        'Prevalence': float(np.median(samples)),
        'Lower_95_CrI': float(lower),
        'Upper_95_CrI': float(upper),
    }


def departmental_estimates(
    dept_posterior: Dict[str, np.ndarray],
    interval: Tuple[float, float] = CREDIBLE_INTERVAL
) -> pd.DataFrame:
    """Summary per department, sorted by prevalence (highest first)."""
    rows = [
        {'Department': dept, **summarize_draws(draws, interval)}
        for dept, draws in dept_posterior.items()
    ]
    df = pd.DataFrame(rows, columns=['Department', 'Prevalence', 'Lower_95_CrI', 'Upper_95_CrI'])
    return df.sort_values('Prevalence', ascending=False, kind='mergesort').reset_index(drop=True)


def national_estimate(
    national_draws: np.ndarray,
    label: str = NATIONAL_LABEL,
    interval: Tuple[float, float] = CREDIBLE_INTERVAL
) -> pd.DataFrame:
    """Single-row national summary."""
    return pd.DataFrame([{'Region': label, **summarize_draws(national_draws, interval)}])


def format_interval(lower: float, upper: float, decimals: int = 4) -> str:
    return f"[{lower:.{decimals}f}, {upper:.{decimals}f}]"


def build_manuscript_table(
    national: pd.DataFrame,
    departmental: pd.DataFrame,
    decimals: int = 4
) -> pd.DataFrame:
    """
    Combine national and departmental summaries into the manuscript table.

    National row first (Department empty), then departments in the order
    given (Region empty). Prevalence and the interval are formatted strings.
    """
    def _rows(df: pd.DataFrame, region_col: Optional[str], dept_col: Optional[str]):
        for _, r in df.iterrows():
            yield {
                'Region': r[region_col] if region_col else None,
                'Department': r[dept_col] if dept_col else None,
                'Prevalence': f"{r['Prevalence']:.{decimals}f}",
                '95% CrI': format_interval(r['Lower_95_CrI'], r['Upper_95_CrI'], decimals),
            }

    rows = list(_rows(national, 'Region', None)) + list(_rows(departmental, None, 'Department'))
    return pd.DataFrame(rows, columns=MANUSCRIPT_COLUMNS)


def estimate_prevalence(
    data: pd.DataFrame,
    epred,
    department_col: str = 'DPNOM',
    prevalence_col: str = 'total_prevalence',
    weight_col: str = WEIGHT_COLUMN,
    national_label: str = NATIONAL_LABEL,
    interval: Tuple[float, float] = CREDIBLE_INTERVAL,
    decimals: int = 4
) -> PrevalenceEstimates:
    """
    Run Stage 2 end to end.

    Args:
        data: Analysis-ready table, rows aligned with the columns of `epred`
        epred: Posterior expected adjustment factors, shape (n_draws, n_obs)
        department_col: Department label column
        prevalence_col: Reported prevalence column
        weight_col: Population weight column for the national estimate
        national_label: Region label of the national row
        interval: Credible interval percentiles
        decimals: Decimal places in the manuscript table

    Returns:
        PrevalenceEstimates
    """
    validate_columns(data, [department_col, prevalence_col, weight_col], context="estimation")

    true_draws = true_prevalence_draws(epred, data[prevalence_col])
    n_draws, n_obs = true_draws.shape
    print(f"✓ True prevalence posterior: {n_draws} draws × {n_obs} observations")

    dept_draws = department_posterior(true_draws, data[department_col].tolist())
    departmental = departmental_estimates(dept_draws, interval)
    print(f"✓ Departmental estimates: {len(departmental)} departments")

    national_draws, n_excluded = national_posterior(true_draws, data[weight_col])
    if n_excluded:
        print(f"⚠ WARNING: {n_excluded}/{n_obs} observations missing population data")
    else:
        print("✓ All observations have population data")
    national = national_estimate(national_draws, national_label, interval)

    table = build_manuscript_table(national, departmental, decimals)

    return PrevalenceEstimates(
        true_draws=true_draws,
        department_draws=dept_draws,
        national_draws=national_draws,
        departmental=departmental,
        national=national,
        table=table,
        n_weight_excluded=n_excluded,
        interval=tuple(interval),
    )


def print_verification(estimates: PrevalenceEstimates, top_n: int = 3, decimals: int = 4) -> None:
    """Print the national estimate and the top departments."""
    nat = estimates.national.iloc[0]
    print("\n" + "=" * 60)
    print("VERIFICATION REPORT")
    print("=" * 60)
    print(f"\nRegion: {nat['Region']}")
    print(f"Prevalence: {nat['Prevalence']:.{decimals}f}")
    print(f"95% CrI: {format_interval(nat['Lower_95_CrI'], nat['Upper_95_CrI'], decimals)}")

    print(f"\nTop {top_n} departments by prevalence:")
    for i, row in estimates.departmental.head(top_n).iterrows():
        print(f"  {i + 1}. {row['Department']}: {row['Prevalence']:.{decimals}f} "
              f"{format_interval(row['Lower_95_CrI'], row['Upper_95_CrI'], decimals)}")
