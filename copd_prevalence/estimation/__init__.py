"""Estimation module - posterior aggregation into prevalence estimates."""

from copd_prevalence.estimation.posterior import (
    PrevalenceEstimates,
    true_prevalence_draws,
    department_posterior,
    national_posterior,
    summarize_draws,
    departmental_estimates,
    national_estimate,
    build_manuscript_table,
    estimate_prevalence,
)

__all__ = [
    'PrevalenceEstimates',
    'true_prevalence_draws',
    'department_posterior',
    'national_posterior',
    'summarize_draws',
    'departmental_estimates',
    'national_estimate',
    'build_manuscript_table',
    'estimate_prevalence',
]
