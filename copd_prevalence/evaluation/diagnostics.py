"""
Model Diagnostics and Audit Report

Evidence that the fitted GAM can be trusted, in five parts:
1. Specification  - formula, priors and Stan code written to text
2. Convergence    - R-hat / ESS checks, trace and R-hat plots
3. Model fit      - posterior predictive check (density overlay, coverage)
4. Smooths        - conditional-effect curves per predictor
5. Numbers        - fixed effects, diagnostics and PSIS-LOO in one text file
"""
import warnings
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import arviz as az
import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from scipy.stats import gaussian_kde

from copd_prevalence.common.paths import ensure_parent
from copd_prevalence.models.bayesian.gam import BayesianGammaGAM


RULE = "=" * 63
SUBRULE = "-" * 63


def check_convergence(diagnostics: Dict[str, Any], max_rhat: float = 1.01) -> bool:
    """Return True when every reported R-hat is below `max_rhat`."""
    worst = diagnostics['max_rhat']
    print(f"  Maximum Rhat: {worst:.4f}")
    if worst < max_rhat:
        print("  ✓ All Rhat values indicate good convergence")
        return True
    print(f"  ⚠ WARNING: Some Rhat values >= {max_rhat} - check convergence")
    return False


def predictive_interval_coverage(
    y: np.ndarray,
    y_rep: np.ndarray,
    probs=(2.5, 97.5)
) -> float:
    """Fraction of observations inside their posterior predictive interval."""
    y = np.asarray(y, dtype=float)
    if y_rep.shape[1] != len(y):
        raise ValueError(f"y_rep has {y_rep.shape[1]} columns, y has {len(y)} values")
    lower, upper = np.percentile(y_rep, probs, axis=0)
    return float(np.mean((y >= lower) & (y <= upper)))


def posterior_predictive_summary(y: np.ndarray, y_rep: np.ndarray) -> Dict[str, float]:
    """Observed vs replicated summary statistics."""
    y = np.asarray(y, dtype=float)
    rep_means = y_rep.mean(axis=1)
    return {
        'observed_mean': float(y.mean()),
        'replicated_mean': float(rep_means.mean()),
        'observed_sd': float(y.std(ddof=1)),
        'replicated_sd': float(y_rep.std(axis=1, ddof=1).mean()),
        # Posterior predictive p-value for the mean
        'ppp_mean': float(np.mean(rep_means >= y.mean())),
        'coverage_95': predictive_interval_coverage(y, y_rep),
    }


def _by_chain(log_lik: np.ndarray, n_chains: int) -> np.ndarray:
    """Reshape (n_draws, N) draws into (chains, draws per chain, N)."""
    n_draws, n_obs = log_lik.shape
    per_chain = n_draws // n_chains
    return log_lik[: per_chain * n_chains].reshape(n_chains, per_chain, n_obs)


def relative_efficiency(log_lik: np.ndarray, n_chains: int = 1) -> float:
    """
    Relative MCMC efficiency of the likelihood draws.

    Mean effective sample size of exp(log_lik) across observations, divided
    by the total number of draws.
    """
    chains = _by_chain(np.asarray(log_lik, dtype=float), n_chains)
    ess = az.ess(az.convert_to_dataset({'lik': np.exp(chains)}), method='mean')['lik'].values
    reff = float(np.nanmean(ess)) / (chains.shape[0] * chains.shape[1])
    if not np.isfinite(reff) or reff <= 0:
        warnings.warn("Relative efficiency undefined for these draws; using 1.0", stacklevel=2)
        return 1.0
    return reff


def compute_loo(
    log_lik: np.ndarray,
    n_chains: int = 1,
    reff: Optional[float] = None
) -> az.ELPDData:
    """
    PSIS-LOO from pointwise log-likelihood draws.

    Args:
        log_lik: Shape (n_draws, N), chains concatenated in order
        n_chains: Number of chains the draws came from
        reff: Relative MCMC efficiency for the Pareto smoothing
              (default: estimated from the draws)

    Returns:
        arviz ELPDData (elpd_loo, p_loo, looic via -2 * elpd_loo, pareto_k)
    """
    chains = _by_chain(np.asarray(log_lik, dtype=float), n_chains)
    if reff is None:
        reff = relative_efficiency(log_lik, n_chains)
    idata = az.from_dict(log_likelihood={'y': chains})
    return az.loo(idata, pointwise=True, reff=reff)


def write_model_specification(model: BayesianGammaGAM, path: Path) -> Path:
    """Formula, priors and Stan code as plain text."""
    path = ensure_parent(path)
    with open(path, 'w') as f:
        f.write(RULE + "\n           MODEL MATHEMATICAL SPECIFICATION\n" + RULE + "\n\n")
        f.write("MODEL FORMULA:\n" + SUBRULE + "\n")
        f.write(f"{model.formula}\n")
        f.write("Family: Gamma (link = log)\n\n")
        f.write("PRIOR SPECIFICATIONS:\n" + SUBRULE + "\n")
        f.write(f"Intercept ~ normal({model.intercept_prior_mean:g}, {model.intercept_prior_sd:g})\n")
        f.write("b         ~ normal(0, 10)\n")
        f.write("sds       ~ student_t(3, 0, 2.5)  (half)\n")
        f.write("shape     ~ gamma(0.01, 0.01)\n\n")
        f.write("SAMPLER:\n" + SUBRULE + "\n")
        f.write(f"chains={model.n_chains}, warmup={model.n_warmup}, "
                f"samples={model.n_samples}, adapt_delta={model.adapt_delta}, seed={model.seed}\n\n")
        f.write("STAN CODE:\n" + SUBRULE + "\n")
        f.write(f"{model.stan_code_ or ''}\n\n")
        f.write(RULE + "\nEND OF SPECIFICATION\n" + RULE + "\n")
    print(f"✓ Model specification saved to: {path}")
    return path


def plot_traces(
    model: BayesianGammaGAM,
    path: Path,
    params: Optional[Iterable[str]] = None
) -> Optional[Path]:
    """Trace plots (one panel per parameter, one line per chain)."""
    traces = model.trace_
    if params is None:
        fixed = [p for p in traces if p.startswith('b_')]
        smooth = [p for p in traces if p.startswith('bs_')][:1]
        params = ['Intercept'] + fixed + smooth
    params = [p for p in params if p in traces]
    if not params:
        print("⚠ Could not generate trace plots - parameter names not found")
        return None

    fig, axes = plt.subplots(len(params), 1, figsize=(12, 2.6 * len(params)), squeeze=False)
    for ax, param in zip(axes[:, 0], params):
        chains = traces[param]
        for c in range(chains.shape[1]):
            ax.plot(chains[:, c], linewidth=0.4, alpha=0.8, label=f"chain {c + 1}")
        ax.set_ylabel(param)
    axes[0, 0].legend(loc='upper right', fontsize=8, ncol=chains.shape[1])
    axes[-1, 0].set_xlabel("Iteration")
    fig.tight_layout()

    path = ensure_parent(path)
    fig.savefig(path, dpi=300, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    print(f"✓ Trace plots saved to: {path}")
    return path


def plot_rhat(diagnostics: Dict[str, Any], path: Path, max_rhat: float = 1.01) -> Path:
    """Horizontal R-hat bars with the convergence cut-off."""
    params = diagnostics['parameter_summary']
    names = list(params)
    rhats = [params[p]['rhat'] for p in names]

    fig, ax = plt.subplots(figsize=(10, max(3, 0.35 * len(names))))
    colors = ['#2E86AB' if r < max_rhat else '#C0392B' for r in rhats]
    ax.barh(names, rhats, color=colors)
    ax.axvline(1.0, color='black', linewidth=0.8)
    ax.axvline(max_rhat, color='#C0392B', linestyle='--', linewidth=0.8)
    ax.set_xlim(min(0.99, min(rhats)), max(max_rhat * 1.01, max(rhats) * 1.005))
    ax.set_xlabel("R-hat")
    fig.tight_layout()

    path = ensure_parent(path)
    fig.savefig(path, dpi=300, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    print(f"✓ Rhat plot saved to: {path}")
    return path


def plot_posterior_predictive(
    y: np.ndarray,
    y_rep: np.ndarray,
    path: Path,
    n_draws: int = 100,
    seed: int = 42
) -> Path:
    """Density of observed y against densities of `n_draws` replicated datasets."""
    rng = np.random.default_rng(seed)
    idx = rng.choice(y_rep.shape[0], size=min(n_draws, y_rep.shape[0]), replace=False)

    lo = min(np.min(y), np.percentile(y_rep[idx], 0.5))
    hi = max(np.max(y), np.percentile(y_rep[idx], 99.5))
    grid = np.linspace(lo, hi, 300)

    fig, ax = plt.subplots(figsize=(10, 6))
    for i in idx:
        ax.plot(grid, gaussian_kde(y_rep[i])(grid), color='#9ecae1', linewidth=0.5, alpha=0.5)
    ax.plot(grid, gaussian_kde(y)(grid), color='#08306b', linewidth=2, label='y (observed)')
    ax.plot([], [], color='#9ecae1', label='y_rep (replicated)')
    ax.set_xlabel("adjustment_factor")
    ax.set_ylabel("Density")
    ax.legend()
    fig.tight_layout()

    path = ensure_parent(path)
    fig.savefig(path, dpi=300, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    print(f"✓ Posterior predictive check saved to: {path}")
    return path


def plot_conditional_effects(model: BayesianGammaGAM, out_dir: Path) -> List[Path]:
    """One conditional-effect plot per predictor."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    smooth_vars = {t.variable for t in model.formula.smooth_terms}

    paths = []
    for variable in model.formula.predictors:
        print(f"  Processing: {variable}...")
        ce = model.conditional_effect(variable)

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.fill_between(ce[variable], ce['lower'], ce['upper'], color='#2E86AB', alpha=0.25)
        ax.plot(ce[variable], ce['estimate'], color='#2E86AB', linewidth=2)
        ax.set_xlabel(variable)
        ax.set_ylabel(model.formula.response)
        kind = "Smooth term" if variable in smooth_vars else "Linear term"
        ax.set_title(f"Conditional Effect of {variable}", fontweight='bold')
        ax.text(0.01, 0.98, f"{kind} (holding other variables at their means)",
                transform=ax.transAxes, va='top', fontsize=10)
        fig.tight_layout()

        path = out_dir / f"04_effect_{variable}.png"
        fig.savefig(path, dpi=300, bbox_inches='tight', facecolor='white')
        plt.close(fig)
        print(f"    ✓ Saved: {path}")
        paths.append(path)
    return paths


def write_numerical_summary(
    model: BayesianGammaGAM,
    path: Path,
    ppc: Optional[Dict[str, float]] = None,
    loo: Optional[az.ELPDData] = None
) -> Path:
    """Fixed effects, convergence and fit statistics in one text file."""
    diag = model.get_diagnostics()
    fixed = model.fixed_effects()

    path = ensure_parent(path)
    with open(path, 'w') as f:
        f.write(RULE + "\n           FULL NUMERICAL MODEL SUMMARY\n" + RULE + "\n\n")
        f.write(f"Formula: {model.formula}\n")
        f.write(f"Family: Gamma (log link); draws: {model.n_draws}\n\n")

        f.write("FIXED EFFECTS AND SMOOTH SDs:\n" + SUBRULE + "\n")
        f.write(fixed.to_string(index=False, float_format=lambda v: f"{v:.4f}"))
        f.write("\n\n")

        f.write("CONVERGENCE DIAGNOSTICS:\n" + SUBRULE + "\n")
        f.write(f"Divergent transitions: {diag['n_divergences']}\n")
        f.write(f"Maximum Rhat: {diag['max_rhat']:.4f}\n")
        f.write(f"Minimum ESS (Bulk): {diag['min_ess_bulk']:.0f}\n")
        f.write(f"Minimum ESS (Tail): {diag['min_ess_tail']:.0f}\n\n")

        f.write("MODEL FIT STATISTICS:\n" + SUBRULE + "\n")
        if ppc:
            for key, value in ppc.items():
                f.write(f"{key}: {value:.4f}\n")
        if loo is not None:
            f.write(f"\n{loo}\n")
        f.write("\n" + RULE + "\nEND OF NUMERICAL SUMMARY\n" + RULE + "\n")

    print(f"✓ Full numerical summary saved to: {path}")
    return path


def list_artifacts(out_dir: Path) -> pd.DataFrame:
    """Files in an output directory with their size in KB."""
    out_dir = Path(out_dir)
    rows = [
        {'file': p.name, 'size_kb': round(p.stat().st_size / 1024, 2)}
        for p in sorted(out_dir.iterdir()) if p.is_file()
    ]
    return pd.DataFrame(rows, columns=['file', 'size_kb'])
