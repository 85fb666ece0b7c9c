import numpy as np
import pytest

from copd_prevalence.common.errors import DataValidationError
from copd_prevalence.models.formula import (
    DEFAULT_FORMULA,
    SMOOTH_PREDICTORS,
    SmoothTerm,
    parse_formula,
)
from copd_prevalence.models.splines import SplineBasis


class TestParseFormula:

    def test_smooth_and_linear_terms(self):
        f = parse_formula("adjustment_factor ~ s(spirometry_rate, k=5) + s(lethality_rate) + total_prevalence")
        assert f.response == "adjustment_factor"
        assert f.smooth_terms == (SmoothTerm("spirometry_rate", 5), SmoothTerm("lethality_rate", 5))
        assert f.linear_terms == ("total_prevalence",)
        assert f.predictors == ["spirometry_rate", "lethality_rate", "total_prevalence"]

    def test_multiline_config_string(self):
        text = (
            "adjustment_factor ~ s(spirometry_rate, k = 7)\n"
            "    + total_prevalence"
        )
        f = parse_formula(text)
        assert f.smooth_terms[0].k == 7

    def test_default_formula_round_trips_through_text(self):
        assert parse_formula(str(DEFAULT_FORMULA)) == DEFAULT_FORMULA

    def test_default_formula_covers_study_predictors(self):
        assert [t.variable for t in DEFAULT_FORMULA.smooth_terms] == list(SMOOTH_PREDICTORS)
        assert all(t.k == 5 for t in DEFAULT_FORMULA.smooth_terms)
        assert DEFAULT_FORMULA.linear_terms == ("total_prevalence",)

    @pytest.mark.parametrize("text", [
        "adjustment_factor",
        "a ~ b ~ c",
        "adjustment_factor ~ ",
        "adjustment_factor ~ x + + y",
        "adjustment_factor ~ log(x)",
        "adjustment_factor ~ s(x, k=2)",
        "adjustment_factor ~ s(x, k=3)",
        "1bad ~ x",
    ])
    def test_rejects_malformed(self, text):
        with pytest.raises(ValueError):
            parse_formula(text)

    def test_smallest_basis_dimension_builds(self):
        term = parse_formula("adjustment_factor ~ s(x, k=4)").smooth_terms[0]
        basis = SplineBasis(term.variable, term.k).fit(np.linspace(0.0, 1.0, 20))
        assert basis.n_fixed + basis.n_random == 3


def test_validate_data_reports_missing_variables():
    f = parse_formula("adjustment_factor ~ s(spirometry_rate) + total_prevalence")
    f.validate_data(["adjustment_factor", "spirometry_rate", "total_prevalence", "DPNOM"])
    with pytest.raises(DataValidationError) as exc:
        f.validate_data(["adjustment_factor"])
    assert exc.value.missing_columns == ["spirometry_rate", "total_prevalence"]
