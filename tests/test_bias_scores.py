"""
Tests for Stage 1: threshold computation, penalty scores and the
analysis-ready table.
"""
import numpy as np
import pandas as pd
import pytest

from copd_prevalence.common.errors import DataValidationError, ThresholdComputationError
from copd_prevalence.features.bias_scores import (
    SPIROMETRY_TARGET,
    BiasThresholds,
    compute_bias_scores,
    compute_thresholds,
    finalize_dataset,
    preprocess,
    shortfall_penalty,
)


class TestShortfallPenalty:

    def test_spirometry_deficit_example(self):
        score = shortfall_penalty(1000.0, SPIROMETRY_TARGET, "deficit")
        assert score == pytest.approx((1105.08 - 1000) / 1105.08)
        assert score == pytest.approx(0.0951, abs=1e-4)

    def test_lethality_excess_example(self):
        assert shortfall_penalty(0.08, 0.05, "excess") == pytest.approx(0.6)

    def test_access_deficit_example(self):
        assert shortfall_penalty(150.0, 200.0, "deficit") == pytest.approx(0.25)

    def test_no_penalty_on_the_right_side(self):
        assert shortfall_penalty(SPIROMETRY_TARGET, SPIROMETRY_TARGET, "deficit") == 0.0
        assert shortfall_penalty(2000.0, SPIROMETRY_TARGET, "deficit") == 0.0
        assert shortfall_penalty(0.05, 0.05, "excess") == 0.0
        assert shortfall_penalty(0.01, 0.05, "excess") == 0.0

    def test_series_keeps_index_and_missing(self):
        s = pd.Series([100.0, np.nan, 300.0], index=[10, 11, 12], name="Tasa_pts")
        out = shortfall_penalty(s, 200.0, "deficit")
        assert isinstance(out, pd.Series)
        assert list(out.index) == [10, 11, 12]
        assert out.iloc[0] == pytest.approx(0.5)
        assert np.isnan(out.iloc[1])
        assert out.iloc[2] == 0.0

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            shortfall_penalty(1.0, 2.0, "above")


class TestThresholds:

    def test_percentiles_use_linear_interpolation(self, raw_df):
        t = compute_thresholds(raw_df)
        assert t.spirometry_target == SPIROMETRY_TARGET
        assert t.lethality_threshold == pytest.approx(0.0575)
        assert t.access_threshold == pytest.approx(162.5)

    def test_all_missing_column(self, raw_df):
        raw_df["Letalidad"] = np.nan
        with pytest.raises(ThresholdComputationError):
            compute_thresholds(raw_df)

    def test_zero_threshold(self, raw_df):
        raw_df["Tasa_pts"] = 0.0
        with pytest.raises(ThresholdComputationError):
            compute_thresholds(raw_df)

    def test_thresholds_computed_before_filtering(self, raw_df):
        # Row 4 is dropped for a missing IPM but still feeds the percentiles
        raw_df.loc[4, "IPM"] = np.nan
        result = preprocess(raw_df)
        assert result.rows_after == 5
        assert result.thresholds.access_threshold == pytest.approx(162.5)


class TestPreprocess:

    @pytest.fixture
    def fixed_thresholds(self):
        return BiasThresholds(SPIROMETRY_TARGET, 0.05, 200.0)

    def test_scores_with_fixed_thresholds(self, raw_df, fixed_thresholds):
        scored = compute_bias_scores(raw_df, fixed_thresholds)
        assert scored.loc[0, "spirometry_score"] == pytest.approx((1105.08 - 1000) / 1105.08)
        assert scored.loc[2, "lethality_score"] == pytest.approx(0.6)
        assert scored.loc[0, "access_score"] == pytest.approx(0.25)
        expected = 1 + scored[["spirometry_score", "lethality_score", "access_score"]].sum(axis=1)
        np.testing.assert_allclose(scored["adjustment_factor"], expected)

    def test_adjustment_factor_at_least_one(self, raw_df):
        result = preprocess(raw_df)
        assert (result.data["adjustment_factor"] >= 1).all()

    def test_output_columns(self, raw_df):
        data = preprocess(raw_df).data
        for col in ("spirometry_rate", "lethality_rate", "patients_rate",
                    "biomass_stove_usage", "multidimensional_poverty_index",
                    "pop_over_40_percent", "total_prevalence", "adjustment_factor"):
            assert col in data.columns
        assert "Vero_Ajuste" not in data.columns
        assert "Factor_Ajuste" not in data.columns
        assert "Espiro_NalTasa" not in data.columns
        assert "Pob40_Depto" in data.columns

    def test_row_count_never_grows(self, raw_df):
        raw_df.loc[[1, 3], "Estufa"] = np.nan
        result = preprocess(raw_df)
        assert result.rows_before == 6
        assert result.rows_after == 4
        assert result.rows_removed == 2
        assert len(result.data) <= len(raw_df)

    def test_row_order_preserved(self, raw_df):
        raw_df.loc[1, "Porc40_may"] = np.nan
        data = preprocess(raw_df).data
        assert list(data["Year"]) == [2022, 2022, 2023, 2022, 2023]
        assert list(data["DPNOM"]) == ["Antioquia", "Boyacá", "Boyacá", "Cauca", "Cauca"]

    def test_idempotent(self, raw_df, fixed_thresholds):
        first = preprocess(raw_df.copy(), thresholds=fixed_thresholds).data
        second = preprocess(raw_df.copy(), thresholds=fixed_thresholds).data
        assert first["adjustment_factor"].to_numpy().tobytes() == \
            second["adjustment_factor"].to_numpy().tobytes()

    def test_missing_column(self, raw_df):
        with pytest.raises(DataValidationError) as exc:
            preprocess(raw_df.drop(columns=["Tasa_pts"]))
        assert exc.value.missing_columns == ["Tasa_pts"]

    def test_non_numeric_rate(self, raw_df):
        raw_df["Letalidad"] = raw_df["Letalidad"].astype(object)
        raw_df.loc[0, "Letalidad"] = "n/a"
        with pytest.raises(DataValidationError):
            preprocess(raw_df)

    def test_finalize_without_deprecated_columns(self, raw_df, fixed_thresholds):
        raw_df = raw_df.drop(columns=["Vero_Ajuste", "Factor_Ajuste"])
        data = finalize_dataset(compute_bias_scores(raw_df, fixed_thresholds))
        assert len(data) == 6
        assert list(data.index) == list(range(6))

    def test_precomputed_thresholds_are_labelled(self, raw_df, fixed_thresholds, capsys):
        preprocess(raw_df, thresholds=fixed_thresholds)
        out = capsys.readouterr().out
        assert "Lethality_Threshold (precomputed): 0.0500" in out
        assert "Access_Threshold (precomputed): 200.0000" in out
        assert "P75" not in out and "P25" not in out

    def test_computed_thresholds_name_their_percentile(self, raw_df, capsys):
        preprocess(raw_df)
        out = capsys.readouterr().out
        assert "Lethality_Threshold (P75): 0.0575" in out
        assert "Access_Threshold (P25): 162.5000" in out
