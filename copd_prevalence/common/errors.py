"""
Error taxonomy for the COPD prevalence pipeline.

Fatal conditions derive from PipelineError and halt the stage that raised
them; no partial output is written. MissingWeightError is a warning category:
rows without a population weight are dropped from the national estimate only
and the pipeline continues.
"""
from typing import Iterable, Optional


class PipelineError(Exception):
    """Base class for fatal pipeline errors."""


class DataValidationError(PipelineError):
    """Required input columns are missing or malformed."""

    def __init__(self, message: str, missing_columns: Optional[Iterable[str]] = None):
        self.missing_columns = sorted(missing_columns) if missing_columns else []
        if self.missing_columns:
            message = f"{message}: {', '.join(self.missing_columns)}"
        super().__init__(message)


class ThresholdComputationError(PipelineError):
    """A percentile threshold is undefined (column entirely missing)."""


class DimensionMismatchError(PipelineError):
    """Posterior draw matrix does not line up with the observation table."""

    def __init__(self, n_columns: int, n_rows: int):
        self.n_columns = n_columns
        self.n_rows = n_rows
        super().__init__(
            f"Posterior matrix has {n_columns} observation columns but the "
            f"observation table has {n_rows} rows"
        )


class EmptyDepartmentError(PipelineError):
    """A department has no matching observation rows."""

    def __init__(self, department: str):
        self.department = department
        super().__init__(f"No observations found for department '{department}'")


class MissingWeightError(UserWarning):
    """
    Population weight missing for some observations.

    Emitted with warnings.warn; never raised. The affected rows are excluded
    from the national weighted mean but still count for departments.
    """

    def __init__(self, n_excluded: int, n_total: int):
        self.n_excluded = n_excluded
        self.n_total = n_total
        super().__init__(
            f"{n_excluded}/{n_total} observations missing population weight "
            f"(excluded from national estimate)"
        )
