"""
Bayesian Generalized Additive Model for the COPD adjustment factor

Gamma regression with log link:
- Response: adjustment_factor (positive, right-skewed)
- Penalised cubic spline smooths s(x, k) for the access covariates
- Linear term for total_prevalence
- normal(0, 1) prior on the intercept

Sampling is delegated to Stan via CmdStanPy. After fitting, every draw the
pipeline needs (expected response, replicates, parameters) is copied into
numpy arrays so the pickled model reloads without the CmdStan output files.
"""
import numpy as np
import pandas as pd
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple
import warnings

from copd_prevalence.common.errors import DataValidationError
from copd_prevalence.config import get_project_root
from copd_prevalence.models.formula import DEFAULT_FORMULA, ModelFormula
from copd_prevalence.models.splines import SplineBasis

try:
    from cmdstanpy import CmdStanModel
    CMDSTAN_AVAILABLE = True
except ImportError:
    CMDSTAN_AVAILABLE = False
    warnings.warn("CmdStanPy not available. Install with: pip install cmdstanpy")

from ..base import BaseModel


DRAW_VARIABLES = ('Intercept', 'b', 'sds', 's', 'shape', 'mu', 'y_rep', 'log_lik')


@dataclass
class DesignMatrices:
    """Model matrices for one data table."""
    X: np.ndarray
    Zs: np.ndarray
    nb: List[int]
    fixed_names: List[str]


class GAMDesign:
    """
    Builds the fixed and penalised model matrices for a formula.

    Linear terms are centred on their training means; smooths use the
    training-fitted SplineBasis. Both are reused unchanged for new data.
    """

    def __init__(self, formula: ModelFormula):
        self.formula = formula
        self.linear_means_: Dict[str, float] = {}
        self.bases_: List[SplineBasis] = []

    def fit(self, data: pd.DataFrame) -> 'GAMDesign':
        self.linear_means_ = {
            term: float(data[term].mean()) for term in self.formula.linear_terms
        }
        self.bases_ = [
            SplineBasis(term.variable, term.k).fit(data[term.variable].to_numpy(dtype=float))
            for term in self.formula.smooth_terms
        ]
        return self

    def transform(self, data: pd.DataFrame) -> DesignMatrices:
        n = len(data)
        fixed_cols, fixed_names, random_cols, nb = [], [], [], []

        for term in self.formula.linear_terms:
            fixed_cols.append((data[term].to_numpy(dtype=float) - self.linear_means_[term])[:, None])
            fixed_names.append(f"b_{term}")

        for basis in self.bases_:
            fixed, random = basis.transform(data[basis.variable].to_numpy(dtype=float))
            fixed_cols.append(fixed)
            fixed_names.extend(
                f"bs_s{basis.variable}_{j + 1}" for j in range(fixed.shape[1])
            )
            random_cols.append(random)
            nb.append(random.shape[1])

        X = np.hstack(fixed_cols) if fixed_cols else np.zeros((n, 0))
        Zs = np.hstack(random_cols) if random_cols else np.zeros((n, 0))
        return DesignMatrices(X=X, Zs=Zs, nb=nb, fixed_names=fixed_names)

    @property
    def smooth_names(self) -> List[str]:
        return [f"sds_s{basis.variable}_1" for basis in self.bases_]


class BayesianGammaGAM(BaseModel):
    """
    Bayesian Gamma GAM (log link) for the bias-correction multiplier.

    Uses Stan for MCMC inference via CmdStanPy.
    """

    def __init__(self, config: Optional[Dict] = None):
        super().__init__(name="bayesian_gamma_gam", config=config)

        # Model configuration
        self.n_warmup = self.config.get('n_warmup', 2000)
        self.n_samples = self.config.get('n_samples', 2000)
        self.n_chains = self.config.get('n_chains', 4)
        self.adapt_delta = self.config.get('adapt_delta', 0.999)
        self.seed = self.config.get('seed', 42)
        prior = self.config.get('intercept_prior', {}) or {}
        self.intercept_prior_mean = float(prior.get('mean', 0.0))
        self.intercept_prior_sd = float(prior.get('sd', 1.0))

        # Stan model path
        self.stan_file = self.config.get('stan_file', None)

        # Fitted objects
        self.model_ = None
        self.fit_ = None
        self.design_: Optional[GAMDesign] = None
        self.data_: Optional[Dict[str, Any]] = None
        self.training_data_: Optional[pd.DataFrame] = None
        self.draws_: Dict[str, np.ndarray] = {}
        self.trace_: Dict[str, np.ndarray] = {}
        self.summary_: Optional[pd.DataFrame] = None
        self.diagnostics_: Optional[Dict[str, Any]] = None
        self.stan_code_: Optional[str] = None

    def __getstate__(self):
        state = self.__dict__.copy()
        # CmdStan handles point at temp CSVs and a compiled executable
        state['fit_'] = None
        state['model_'] = None
        return state

    def _get_stan_file(self) -> Path:
        """Get path to Stan model file."""
        root = get_project_root()
        if self.stan_file:
            path = Path(self.stan_file)
            return path if path.is_absolute() else root / path

        candidate = root / "stan_models" / "gamma_gam.stan"
        if candidate.exists():
            return candidate
        raise FileNotFoundError(f"Stan model not found. Looked in: {candidate}")

    def _check_data(self, data: pd.DataFrame, formula: ModelFormula) -> None:
        formula.validate_data(data.columns)
        incomplete = [v for v in formula.variables if data[v].isna().any()]
        if incomplete:
            raise DataValidationError("Missing values in model variables", incomplete)
        if (data[formula.response] <= 0).any():
            raise DataValidationError(
                "Gamma response must be strictly positive", [formula.response]
            )

    def _prepare_stan_data(
        self,
        data: pd.DataFrame,
        formula: ModelFormula
    ) -> Dict[str, Any]:
        """
        Prepare data dictionary for Stan.

        Args:
            data: Analysis-ready table (row order is preserved)
            formula: Model formula

        Returns:
            Dictionary formatted for gamma_gam.stan
        """
        self._check_data(data, formula)
        self.formula = formula
        self.design_ = GAMDesign(formula).fit(data)
        design = self.design_.transform(data)

        stan_data = {
            'N': len(data),
            'Y': data[formula.response].to_numpy(dtype=float),
            'K': design.X.shape[1],
            'X': design.X,
            'M': len(design.nb),
            'nb': design.nb,
            'R': design.Zs.shape[1],
            'Zs': design.Zs,
            'intercept_prior_mean': self.intercept_prior_mean,
            'intercept_prior_sd': self.intercept_prior_sd,
        }

        self.data_ = stan_data
        self.training_data_ = data[formula.variables].reset_index(drop=True).copy()
        return stan_data

    def fit(
        self,
        data: pd.DataFrame,
        formula: ModelFormula = DEFAULT_FORMULA
    ) -> 'BayesianGammaGAM':
        """
        Fit the Bayesian GAM via MCMC.

        Args:
            data: Analysis-ready table
            formula: Model formula (defaults to the study formula)

        Returns:
            self
        """
        if not CMDSTAN_AVAILABLE:
            raise RuntimeError("CmdStanPy required but not available")

        # Compile Stan model
        stan_file = self._get_stan_file()
        print(f"Compiling Stan model from {stan_file}...")
        self.model_ = CmdStanModel(stan_file=str(stan_file))

        # Prepare data
        print("Preparing data for Stan...")
        stan_data = self._prepare_stan_data(data, formula)
        print(f"Data summary: N={stan_data['N']}, K={stan_data['K']}, "
              f"M={stan_data['M']}, R={stan_data['R']}")
        print(f"Formula: {formula}")

        # Run MCMC
        print(f"Running MCMC: {self.n_chains} chains, {self.n_warmup} warmup, "
              f"{self.n_samples} samples, adapt_delta={self.adapt_delta}...")
        self.fit_ = self.model_.sample(
            data=stan_data,
            chains=self.n_chains,
            parallel_chains=self.n_chains,
            iter_warmup=self.n_warmup,
            iter_sampling=self.n_samples,
            adapt_delta=self.adapt_delta,
            seed=self.seed,
            show_progress=True
        )

        self._collect_draws()
        self.is_fitted = True
        return self

    def _collect_draws(self) -> None:
        """Copy draws, traces, summary and diagnostics out of the CmdStan fit."""
        self.draws_ = {
            name: np.asarray(self.fit_.stan_variable(name)) for name in DRAW_VARIABLES
        }
        self.summary_ = self.fit_.summary()
        self.stan_code_ = self.model_.code()

        raw = self.fit_.draws(concat_chains=False)  # (iterations, chains, columns)
        columns = list(self.fit_.column_names)
        self.trace_ = {
            label: raw[:, :, columns.index(stan_name)]
            for stan_name, label in self._parameter_labels().items()
            if stan_name in columns
        }

        n_divergences = int(np.sum(self.fit_.divergences))
        self.diagnostics_ = self._compute_diagnostics(n_divergences)

    def _parameter_labels(self) -> Dict[str, str]:
        """Stan parameter name -> reporting label."""
        labels = {'Intercept': 'Intercept'}
        design = self.design_.transform(self.training_data_.iloc[:1])
        for i, name in enumerate(design.fixed_names, start=1):
            labels[f'b[{i}]'] = name
        for m, name in enumerate(self.design_.smooth_names, start=1):
            labels[f'sds[{m}]'] = name
        labels['shape'] = 'shape'
        return labels

    def _parameter_draws(self) -> Dict[str, np.ndarray]:
        """Reporting label -> 1-D draw vector."""
        labels = list(self._parameter_labels().values())
        n_fixed = self.draws_['b'].shape[1] if self.draws_['b'].ndim == 2 else 0
        draws = {'Intercept': self.draws_['Intercept']}
        for i in range(n_fixed):
            draws[labels[1 + i]] = self.draws_['b'][:, i]
        for m, name in enumerate(self.design_.smooth_names):
            draws[name] = self.draws_['sds'][:, m]
        draws['shape'] = self.draws_['shape']
        return draws

    def _summary_column(self, *candidates: str) -> Optional[str]:
        for col in candidates:
            if col in self.summary_.columns:
                return col
        return None

    def _compute_diagnostics(self, n_divergences: Optional[int]) -> Dict[str, Any]:
        labels = self._parameter_labels()
        summary = self.summary_.loc[[p for p in labels if p in self.summary_.index]]

        rhat_col = self._summary_column('R_hat')
        bulk_col = self._summary_column('ESS_bulk', 'N_Eff')
        tail_col = self._summary_column('ESS_tail', 'N_Eff')

        diagnostics = {
            'n_divergences': n_divergences,
            'max_rhat': float(summary[rhat_col].max()),
            'min_ess_bulk': float(summary[bulk_col].min()),
            'min_ess_tail': float(summary[tail_col].min()),
            'parameter_summary': {}
        }

        for stan_name, row in summary.iterrows():
            diagnostics['parameter_summary'][labels[stan_name]] = {
                'mean': float(row['Mean']),
                'std': float(row['StdDev']),
                'rhat': float(row[rhat_col]),
                'ess_bulk': float(row[bulk_col]),
                'ess_tail': float(row[tail_col]),
            }

        return diagnostics

    def _require_fitted(self) -> None:
        if not self.is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")

    @property
    def n_draws(self) -> int:
        self._require_fitted()
        return int(self.draws_['mu'].shape[0])

    def posterior_epred(self, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
        """
        Posterior draws of the expected adjustment factor.

        Args:
            newdata: Rows to predict for; training rows when None

        Returns:
            Array of shape (n_draws, n_rows)
        """
        self._require_fitted()
        if newdata is None:
            return self.draws_['mu']

        self.formula.validate_data(list(newdata.columns) + [self.formula.response])
        design = self.design_.transform(newdata)
        eta = self.draws_['Intercept'][:, None] + self.draws_['s'] @ design.Zs.T
        if design.X.shape[1]:
            eta = eta + self.draws_['b'] @ design.X.T
        return np.exp(eta)

    def posterior_predict(self) -> np.ndarray:
        """
        Posterior predictive replicates of the response.

        Returns:
            Array of shape (n_draws, N)
        """
        self._require_fitted()
        return self.draws_['y_rep']

    def log_likelihood(self) -> np.ndarray:
        """Pointwise log-likelihood draws, shape (n_draws, N)."""
        self._require_fitted()
        return self.draws_['log_lik']

    def get_diagnostics(self) -> Dict[str, Any]:
        """
        Get MCMC diagnostics.

        Returns:
            Dictionary with R-hat, ESS, divergences, etc.
        """
        self._require_fitted()
        return self.diagnostics_

    def fixed_effects(self, probs: Tuple[float, float] = (2.5, 97.5)) -> pd.DataFrame:
        """
        Population-level parameter table.

        Returns:
            DataFrame with parameter, Estimate, Est.Error, l-95% CI, u-95% CI,
            Rhat, Bulk_ESS, Tail_ESS
        """
        self._require_fitted()
        stats = self.diagnostics_['parameter_summary']
        rows = []
        for label, draws in self._parameter_draws().items():
            lower, upper = np.percentile(draws, probs)
            row = {
                'parameter': label,
                'Estimate': float(np.mean(draws)),
                'Est.Error': float(np.std(draws, ddof=1)),
                'l-95% CI': float(lower),
                'u-95% CI': float(upper),
            }
            if label in stats:
                row.update({
                    'Rhat': stats[label]['rhat'],
                    'Bulk_ESS': stats[label]['ess_bulk'],
                    'Tail_ESS': stats[label]['ess_tail'],
                })
            rows.append(row)
        return pd.DataFrame(rows)

    def conditional_effect(
        self,
        variable: str,
        resolution: int = 100,
        probs: Sequence[float] = (2.5, 97.5)
    ) -> pd.DataFrame:
        """
        Expected response along one predictor, others held at their means.

        Args:
            variable: Predictor to vary
            resolution: Number of grid points over the observed range
            probs: Percentiles for the credible band

        Returns:
            DataFrame with columns [variable, estimate, lower, upper]
        """
        self._require_fitted()
        if variable not in self.formula.predictors:
            raise ValueError(f"'{variable}' is not a predictor in {self.formula}")

        observed = self.training_data_[variable]
        grid = np.linspace(observed.min(), observed.max(), resolution)
        newdata = pd.DataFrame({
            p: np.full(resolution, self.training_data_[p].mean())
            for p in self.formula.predictors
        })
        newdata[variable] = grid

        epred = self.posterior_epred(newdata)
        lower, upper = np.percentile(epred, probs, axis=0)
        return pd.DataFrame({
            variable: grid,
            'estimate': np.median(epred, axis=0),
            'lower': lower,
            'upper': upper,
        })

    def print_diagnostics(self, max_rhat: float = 1.01, min_ess: float = 400) -> None:
        """Print formatted diagnostics summary."""
        diag = self.get_diagnostics()

        print("\n" + "=" * 50)
        print("MCMC DIAGNOSTICS")
        print("=" * 50)

        print(f"\nDivergences: {diag['n_divergences']}")
        print(f"Max R-hat: {diag['max_rhat']:.4f}")
        print(f"Min ESS (bulk): {diag['min_ess_bulk']:.0f}")
        print(f"Min ESS (tail): {diag['min_ess_tail']:.0f}")

        print("\nParameter Estimates:")
        print("-" * 72)
        print(f"{'Parameter':<40} {'Mean':>10} {'Std':>8} {'R-hat':>6} {'ESS':>6}")
        print("-" * 72)

        for param, vals in diag['parameter_summary'].items():
            print(f"{param:<40} {vals['mean']:>10.3f} {vals['std']:>8.3f} "
                  f"{vals['rhat']:>6.3f} {vals['ess_bulk']:>6.0f}")

        # Diagnostic flags
        print("\n" + "-" * 50)
        n_div = diag['n_divergences'] or 0
        if n_div > 0:
            print("⚠️  WARNING: Divergences detected!")
        if diag['max_rhat'] >= max_rhat:
            print(f"⚠️  WARNING: R-hat >= {max_rhat} (chains may not have converged)")
        if diag['min_ess_bulk'] < min_ess:
            print(f"⚠️  WARNING: Low ESS (< {min_ess:g})")

        if n_div == 0 and diag['max_rhat'] < max_rhat and diag['min_ess_bulk'] >= min_ess:
            print("✓ All diagnostics passed")
