"""
Manuscript Figures

Fig1: Reported vs estimated true prevalence per department (top 25)
Fig2: Spirometry rate vs reported prevalence, with outliers labelled
Fig3: Departmental spirometry rate against the national benchmark

Every figure is written as PNG (300 dpi) and PDF.
"""
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib.ticker import PercentFormatter
from scipy import stats

from copd_prevalence.data.departments import standardize_department_column
from copd_prevalence.features.bias_scores import SPIROMETRY_TARGET


plt.style.use('seaborn-v0_8-whitegrid')
DPI = 300

REPORTED_LABEL = "A. Reported Prevalence"
ESTIMATED_LABEL = "B. Estimated True Prevalence (Bayesian Model)"
ABOVE_COLOR = '#2E86AB'
BELOW_COLOR = '#A23B72'


def save_figure(fig: plt.Figure, out_dir: Path, stem: str) -> List[Path]:
    """Save a figure as PNG and PDF, then close it."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for ext in ('png', 'pdf'):
        path = out_dir / f"{stem}.{ext}"
        fig.savefig(path, dpi=DPI, bbox_inches='tight', facecolor='white')
        paths.append(path)
    plt.close(fig)
    print(f"  ✓ Saved: {stem}.png / {stem}.pdf")
    return paths


def _department_medians(data: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
    return data.groupby('DPNOM', sort=True)[columns].median().reset_index()


def comparison_data(
    data: pd.DataFrame,
    departmental: pd.DataFrame,
    top_n: int = 25,
    score_threshold: int = 85
) -> pd.DataFrame:
    """
    Observed (median reported) and estimated prevalence per department.

    Departments are matched on standardised names and sorted by estimated
    prevalence, highest first; only the top `top_n` are kept.
    """
    observed = standardize_department_column(
        _department_medians(data, ['total_prevalence']), 'DPNOM', 'key', score_threshold
    )

    estimated = departmental[['Department', 'Prevalence']].copy()
    estimated['Prevalence'] = estimated['Prevalence'].astype(float)
    estimated = standardize_department_column(estimated, 'Department', 'key', score_threshold)

    merged = observed.merge(
        estimated[['key', 'Prevalence']].rename(columns={'Prevalence': 'Estimated'}),
        on='key', how='left'
    )
    merged = merged.sort_values('Estimated', ascending=False, na_position='last')
    return merged.head(top_n).drop(columns='key').reset_index(drop=True)


def correlation_data(data: pd.DataFrame, iqr_multiplier: float = 2.0) -> pd.DataFrame:
    """
    Department medians of spirometry rate and reported prevalence.

    A department is an outlier when either value lies more than
    `iqr_multiplier` IQRs from the cross-department median.
    """
    df = _department_medians(data, ['spirometry_rate', 'total_prevalence']).dropna()

    def _far(col: str) -> pd.Series:
        q25, q75 = np.percentile(df[col], [25, 75])
        return (df[col] - df[col].median()).abs() > iqr_multiplier * (q75 - q25)

    df['is_outlier'] = _far('spirometry_rate') | _far('total_prevalence')
    return df


def benchmark_data(data: pd.DataFrame, benchmark: float = SPIROMETRY_TARGET) -> pd.DataFrame:
    """Median spirometry rate per department with benchmark flags, ascending."""
    df = _department_medians(data, ['spirometry_rate']).dropna()
    df['above_50pct'] = df['spirometry_rate'] >= 0.5 * benchmark
    df['above_benchmark'] = df['spirometry_rate'] >= benchmark
    return df.sort_values('spirometry_rate').reset_index(drop=True)


def plot_prevalence_comparison(comparison: pd.DataFrame, out_dir: Path) -> List[Path]:
    """Fig1: side-by-side horizontal bars, reported vs estimated."""
    df = comparison.iloc[::-1]  # highest estimate at the top
    y = np.arange(len(df))
    cmap = plt.get_cmap('plasma')

    fig, axes = plt.subplots(1, 2, figsize=(12, 10), sharey=True)
    panels = [
        (axes[0], df['total_prevalence'], REPORTED_LABEL, cmap(0.8)),
        (axes[1], df['Estimated'], ESTIMATED_LABEL, cmap(0.2)),
    ]
    for ax, values, title, color in panels:
        ax.barh(y, values, height=0.7, color=color, alpha=0.85)
        ax.set_title(title, fontsize=11, fontweight='bold')
        ax.xaxis.set_major_formatter(PercentFormatter(xmax=1.0, decimals=1))
        ax.set_xlabel("Prevalence", fontweight='bold')
        ax.grid(axis='y', visible=False)
    axes[0].set_yticks(y)
    axes[0].set_yticklabels(df['DPNOM'], fontsize=8)
    axes[0].set_ylabel("Department", fontweight='bold')
    fig.tight_layout()
    return save_figure(fig, out_dir, "Fig1_Colombia_Prevalence_Maps")


def plot_spirometry_correlation(corr: pd.DataFrame, out_dir: Path) -> Dict[str, float]:
    """Fig2: scatter with OLS line and Pearson correlation."""
    x = corr['spirometry_rate'].to_numpy(dtype=float)
    y = corr['total_prevalence'].to_numpy(dtype=float)
    r, p_value = stats.pearsonr(x, y)
    fit = stats.linregress(x, y)

    fig, ax = plt.subplots(figsize=(8, 6))
    colors = np.where(corr['is_outlier'], BELOW_COLOR, ABOVE_COLOR)
    ax.scatter(x, y, c=colors, s=40, alpha=0.7)
    grid = np.linspace(x.min(), x.max(), 100)
    ax.plot(grid, fit.intercept + fit.slope * grid, color='grey', linewidth=1.2)

    for _, row in corr[corr['is_outlier']].iterrows():
        ax.annotate(row['DPNOM'], (row['spirometry_rate'], row['total_prevalence']),
                    xytext=(4, 4), textcoords='offset points', fontsize=8)

    ax.text(0.05, 0.95, f"R = {r:.2f}, p = {p_value:.3g}",
            transform=ax.transAxes, va='top', fontsize=10)
    ax.set_xlabel("Spirometry Rate (per 100k inhabitants)", fontweight='bold')
    ax.set_ylabel("Reported COPD Prevalence", fontweight='bold')
    ax.yaxis.set_major_formatter(PercentFormatter(xmax=1.0, decimals=1))
    fig.tight_layout()
    save_figure(fig, out_dir, "Fig2_Spirometry_Correlation")
    return {'pearson_r': float(r), 'p_value': float(p_value)}


def plot_spirometry_benchmark(
    bench: pd.DataFrame,
    out_dir: Path,
    benchmark: float = SPIROMETRY_TARGET
) -> List[Path]:
    """Fig3: lollipop chart of spirometry rate with benchmark lines."""
    y = np.arange(len(bench))
    colors = np.where(bench['above_50pct'], ABOVE_COLOR, BELOW_COLOR)

    fig, ax = plt.subplots(figsize=(9, 10))
    ax.hlines(y, 0, bench['spirometry_rate'], colors=colors, linewidth=1.5)
    ax.scatter(bench['spirometry_rate'], y, c=colors, s=40, zorder=3)
    ax.axvline(benchmark, color='black', linestyle='--', linewidth=1)
    ax.axvline(0.5 * benchmark, color='grey', linestyle=':', linewidth=1)
    ax.text(benchmark, len(bench) * 0.05,
            f" National Spirometry Benchmark\n ({benchmark:,.0f}/100k)", fontsize=8)

    ax.scatter([], [], c=BELOW_COLOR, label="Below 50% Benchmark")
    ax.scatter([], [], c=ABOVE_COLOR, label="Above 50% Benchmark")
    ax.legend(loc='lower right')

    ax.set_yticks(y)
    ax.set_yticklabels(bench['DPNOM'], fontsize=7)
    ax.set_xlabel("Spirometry Rate (per 100k inhabitants)", fontweight='bold')
    ax.set_ylabel("Department", fontweight='bold')
    fig.tight_layout()
    return save_figure(fig, out_dir, "Fig3_Spirometry_Benchmark")


def generate_all_figures(
    data: pd.DataFrame,
    departmental: pd.DataFrame,
    out_dir: Path,
    top_n: int = 25,
    benchmark: float = SPIROMETRY_TARGET,
    iqr_multiplier: float = 2.0,
    score_threshold: int = 85
) -> Optional[Dict[str, float]]:
    """Build Fig1-Fig3; returns the Fig2 correlation statistics."""
    print("\n=== FIGURE 1: PREVALENCE COMPARISON ===")
    plot_prevalence_comparison(comparison_data(data, departmental, top_n, score_threshold), out_dir)

    print("\n=== FIGURE 2: SPIROMETRY CORRELATION ===")
    corr = correlation_data(data, iqr_multiplier)
    correlation = None
    if len(corr) >= 3:
        correlation = plot_spirometry_correlation(corr, out_dir)
        print(f"  Pearson r = {correlation['pearson_r']:.3f} (p = {correlation['p_value']:.3g})")
    else:
        print("  ⚠ Fewer than 3 departments - correlation figure skipped")

    print("\n=== FIGURE 3: SPIROMETRY BENCHMARK ===")
    bench = benchmark_data(data, benchmark)
    plot_spirometry_benchmark(bench, out_dir, benchmark)
    n_above = int(bench['above_benchmark'].sum())
    print(f"  {n_above}/{len(bench)} departments at or above the benchmark")
    return correlation
