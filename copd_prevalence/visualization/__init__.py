"""Visualization module - manuscript figures."""

from copd_prevalence.visualization.figures import (
    comparison_data,
    correlation_data,
    benchmark_data,
    generate_all_figures,
)

__all__ = [
    'comparison_data',
    'correlation_data',
    'benchmark_data',
    'generate_all_figures',
]
