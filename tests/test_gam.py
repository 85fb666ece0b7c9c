"""
Tests for the GAM design and the post-fit interface.

Sampling needs a CmdStan install, so these tests build the Stan data and
then inject synthetic draws in place of a real fit.
"""
import pickle

import numpy as np
import pandas as pd
import pytest

from copd_prevalence.common.errors import DataValidationError
from copd_prevalence.models.bayesian.gam import BayesianGammaGAM
from copd_prevalence.models.formula import DEFAULT_FORMULA


N_DRAWS = 8


@pytest.fixture
def prepared(analysis_df):
    model = BayesianGammaGAM({'n_chains': 2, 'intercept_prior': {'mean': 0.0, 'sd': 1.0}})
    stan_data = model._prepare_stan_data(analysis_df, DEFAULT_FORMULA)
    return model, stan_data


@pytest.fixture
def fitted(prepared):
    """Model with synthetic posterior draws consistent with its design."""
    model, d = prepared
    rng = np.random.default_rng(7)
    intercept = rng.normal(0.4, 0.05, N_DRAWS)
    b = rng.normal(0, 0.05, (N_DRAWS, d['K']))
    s = rng.normal(0, 0.05, (N_DRAWS, d['R']))
    mu = np.exp(intercept[:, None] + b @ d['X'].T + s @ d['Zs'].T)
    model.draws_ = {
        'Intercept': intercept,
        'b': b,
        'sds': np.abs(rng.normal(0.1, 0.02, (N_DRAWS, d['M']))),
        's': s,
        'shape': rng.uniform(20, 30, N_DRAWS),
        'mu': mu,
        'y_rep': mu * rng.uniform(0.9, 1.1, mu.shape),
        'log_lik': rng.normal(-1, 0.1, mu.shape),
    }
    model.diagnostics_ = {
        'n_divergences': 0, 'max_rhat': 1.001, 'min_ess_bulk': 900.0,
        'min_ess_tail': 800.0, 'parameter_summary': {},
    }
    model.is_fitted = True
    return model


class TestStanData:

    def test_dimensions(self, prepared, analysis_df):
        model, d = prepared
        n_smooth = len(DEFAULT_FORMULA.smooth_terms)
        assert d['N'] == len(analysis_df)
        # One linear term plus one unpenalised column per k=5 smooth
        assert d['K'] == 1 + n_smooth
        assert d['M'] == n_smooth
        assert d['nb'] == [3] * n_smooth
        assert d['R'] == sum(d['nb'])
        assert d['X'].shape == (d['N'], d['K'])
        assert d['Zs'].shape == (d['N'], d['R'])
        np.testing.assert_allclose(d['Y'], analysis_df['adjustment_factor'])

    def test_linear_term_is_centred(self, prepared):
        _, d = prepared
        assert d['X'][:, 0].mean() == pytest.approx(0.0, abs=1e-12)

    def test_intercept_prior_passed_through(self, prepared):
        _, d = prepared
        assert d['intercept_prior_mean'] == 0.0
        assert d['intercept_prior_sd'] == 1.0

    def test_rejects_missing_variable(self, analysis_df):
        with pytest.raises(DataValidationError):
            BayesianGammaGAM()._prepare_stan_data(
                analysis_df.drop(columns=['patients_rate']), DEFAULT_FORMULA
            )

    def test_rejects_missing_values(self, analysis_df):
        analysis_df.loc[3, 'lethality_rate'] = np.nan
        with pytest.raises(DataValidationError):
            BayesianGammaGAM()._prepare_stan_data(analysis_df, DEFAULT_FORMULA)

    def test_rejects_non_positive_response(self, analysis_df):
        analysis_df.loc[0, 'adjustment_factor'] = 0.0
        with pytest.raises(DataValidationError):
            BayesianGammaGAM()._prepare_stan_data(analysis_df, DEFAULT_FORMULA)


class TestPosteriorInterface:

    def test_unfitted_model(self, prepared):
        model, _ = prepared
        with pytest.raises(ValueError):
            model.posterior_epred()

    def test_epred_shape_and_row_order(self, fitted, analysis_df):
        epred = fitted.posterior_epred()
        assert epred.shape == (N_DRAWS, len(analysis_df))
        # Recomputing from parameters on the training rows reproduces mu
        np.testing.assert_allclose(fitted.posterior_epred(analysis_df), epred, rtol=1e-10)

    def test_fitted_is_posterior_mean(self, fitted):
        np.testing.assert_allclose(fitted.fitted(), fitted.draws_['mu'].mean(axis=0))

    def test_fixed_effects_table(self, fitted):
        table = fitted.fixed_effects()
        assert table['parameter'].iloc[0] == 'Intercept'
        assert 'b_total_prevalence' in set(table['parameter'])
        assert 'sds_sspirometry_rate_1' in set(table['parameter'])
        assert (table['l-95% CI'] <= table['Estimate']).all()
        assert (table['Estimate'] <= table['u-95% CI']).all()

    def test_conditional_effect(self, fitted, analysis_df):
        ce = fitted.conditional_effect('spirometry_rate', resolution=25)
        assert list(ce.columns) == ['spirometry_rate', 'estimate', 'lower', 'upper']
        assert len(ce) == 25
        assert ce['spirometry_rate'].iloc[0] == pytest.approx(analysis_df['spirometry_rate'].min())
        assert (ce['lower'] <= ce['estimate']).all()
        assert (ce['estimate'] <= ce['upper']).all()

    def test_conditional_effect_unknown_variable(self, fitted):
        with pytest.raises(ValueError):
            fitted.conditional_effect('DPNOM')

    def test_save_and_load(self, fitted, tmp_path):
        path = tmp_path / "models" / "final_model.pkl"
        fitted.save(path)
        loaded = BayesianGammaGAM.load(path)
        assert loaded.is_fitted
        np.testing.assert_array_equal(loaded.posterior_epred(), fitted.posterior_epred())
        assert loaded.fit_ is None

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="02_fit_bayesian_gam"):
            BayesianGammaGAM.load(tmp_path / "missing.pkl")

    def test_load_wrong_object(self, tmp_path):
        path = tmp_path / "other.pkl"
        with open(path, 'wb') as f:
            pickle.dump(pd.DataFrame(), f)
        with pytest.raises(TypeError):
            BayesianGammaGAM.load(path)
