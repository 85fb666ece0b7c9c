"""Evaluation module - convergence, posterior predictive checks, audit report."""

from copd_prevalence.evaluation.diagnostics import (
    check_convergence,
    predictive_interval_coverage,
    posterior_predictive_summary,
    relative_efficiency,
    compute_loo,
    write_model_specification,
    plot_traces,
    plot_rhat,
    plot_posterior_predictive,
    plot_conditional_effects,
    write_numerical_summary,
)

__all__ = [
    'check_convergence',
    'predictive_interval_coverage',
    'posterior_predictive_summary',
    'relative_efficiency',
    'compute_loo',
    'write_model_specification',
    'plot_traces',
    'plot_rhat',
    'plot_posterior_predictive',
    'plot_conditional_effects',
    'write_numerical_summary',
]
