"""Model formula definitions.

A small brms-style formula language: one response, smooth terms written as
`s(var, k=5)` and plain linear terms, joined with `+`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from copd_prevalence.common.errors import DataValidationError
from copd_prevalence.models.splines import DEGREE


DEFAULT_BASIS_DIM = 5

_SMOOTH_RE = re.compile(
    r"^s\(\s*(?P<var>[A-Za-z_][A-Za-z0-9_]*)\s*(?:,\s*k\s*=\s*(?P<k>\d+)\s*)?\)$"
)
_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class SmoothTerm:
    """Penalised spline smooth s(variable, k)."""
    variable: str
    k: int = DEFAULT_BASIS_DIM

    def __str__(self) -> str:
        return f"s({self.variable}, k = {self.k})"


@dataclass(frozen=True)
class ModelFormula:
    response: str
    smooth_terms: Sequence[SmoothTerm] = field(default_factory=tuple)
    linear_terms: Sequence[str] = field(default_factory=tuple)

    @property
    def predictors(self) -> List[str]:
        return [t.variable for t in self.smooth_terms] + list(self.linear_terms)

    @property
    def variables(self) -> List[str]:
        return [self.response] + self.predictors

    def validate_data(self, columns: Iterable[str]) -> None:
        """Raise DataValidationError if the data lacks any formula variable."""
        present = set(columns)
        missing = [v for v in self.variables if v not in present]
        if missing:
            raise DataValidationError("Missing required variables", missing)

    def __str__(self) -> str:
        terms = [str(t) for t in self.smooth_terms] + list(self.linear_terms)
        return f"{self.response} ~ " + " + ".join(terms)


def _split_terms(rhs: str) -> List[str]:
    """Split on '+' outside parentheses."""
    terms, depth, current = [], 0, []
    for ch in rhs:
        if ch == '(':
            depth += 1
        elif ch == ')':
            depth -= 1
        if ch == '+' and depth == 0:
            terms.append(''.join(current).strip())
            current = []
        else:
            current.append(ch)
    terms.append(''.join(current).strip())
    return terms


def parse_formula(text: str) -> ModelFormula:
    """
    Parse a formula string such as
    'adjustment_factor ~ s(spirometry_rate, k=5) + total_prevalence'.
    """
    if text.count('~') != 1:
        raise ValueError(f"Formula must contain exactly one '~': {text!r}")

    lhs, rhs = (part.strip() for part in text.split('~'))
    if not _NAME_RE.match(lhs):
        raise ValueError(f"Invalid response variable: {lhs!r}")

    smooth_terms: List[SmoothTerm] = []
    linear_terms: List[str] = []
    for term in _split_terms(' '.join(rhs.split())):
        if not term:
            raise ValueError(f"Empty term in formula: {text!r}")
        smooth = _SMOOTH_RE.match(term)
        if smooth:
            k = int(smooth.group('k')) if smooth.group('k') else DEFAULT_BASIS_DIM
            if k <= DEGREE:
                raise ValueError(
                    f"Basis dimension k must exceed spline degree {DEGREE}, got {k} in {term!r}"
                )
            smooth_terms.append(SmoothTerm(smooth.group('var'), k))
        elif _NAME_RE.match(term):
            linear_terms.append(term)
        else:
            raise ValueError(f"Unsupported formula term: {term!r}")

    if not smooth_terms and not linear_terms:
        raise ValueError(f"Formula has no predictors: {text!r}")

    return ModelFormula(lhs, tuple(smooth_terms), tuple(linear_terms))


SMOOTH_PREDICTORS: Sequence[str] = (
    "spirometry_rate",
    "lethality_rate",
    "patients_rate",
    "biomass_stove_usage",
    "multidimensional_poverty_index",
    "pop_over_40_percent",
)

DEFAULT_FORMULA = ModelFormula(
    response="adjustment_factor",
    smooth_terms=tuple(SmoothTerm(v, DEFAULT_BASIS_DIM) for v in SMOOTH_PREDICTORS),
    linear_terms=("total_prevalence",),
)
