"""Feature module - bias-correction scores and adjustment factor."""

from copd_prevalence.features.bias_scores import (
    BiasThresholds,
    shortfall_penalty,
    compute_thresholds,
    compute_bias_scores,
    finalize_dataset,
    preprocess,
)

__all__ = [
    'BiasThresholds',
    'shortfall_penalty',
    'compute_thresholds',
    'compute_bias_scores',
    'finalize_dataset',
    'preprocess',
]
