"""Shared utilities: paths and the pipeline error taxonomy."""

from copd_prevalence.common.errors import (
    PipelineError,
    DataValidationError,
    ThresholdComputationError,
    DimensionMismatchError,
    EmptyDepartmentError,
    MissingWeightError,
)

__all__ = [
    'PipelineError',
    'DataValidationError',
    'ThresholdComputationError',
    'DimensionMismatchError',
    'EmptyDepartmentError',
    'MissingWeightError',
]
