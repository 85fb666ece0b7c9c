#!/usr/bin/env python3
"""
Experiment 04: Model Diagnostics Audit Report

Audit 1: Model specification (formula, priors, Stan code)
Audit 2: Convergence (trace plots, R-hat)
Audit 3: Model fit (posterior predictive check)
Audit 4: Conditional effects of every predictor
Audit 5: Full numerical summary (fixed effects, diagnostics, PSIS-LOO)

Output: outputs/audit_report/
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from copd_prevalence.config import load_config, get_data_path, get_project_root
from copd_prevalence.evaluation.diagnostics import (
    check_convergence,
    compute_loo,
    list_artifacts,
    plot_conditional_effects,
    plot_posterior_predictive,
    plot_rhat,
    plot_traces,
    posterior_predictive_summary,
    relative_efficiency,
    write_model_specification,
    write_numerical_summary,
)
from copd_prevalence.models.bayesian.gam import BayesianGammaGAM


def main():
    parser = argparse.ArgumentParser(description="Write the model audit report")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    root = get_project_root()
    cfg = load_config(str(root / args.config))
    diag_cfg = cfg['diagnostics']
    out_dir = get_data_path(cfg['outputs']['audit_report'])
    out_dir.mkdir(parents=True, exist_ok=True)

    print("=" * 60)
    print("COPD PREVALENCE - MODEL AUDIT REPORT")
    print("=" * 60)

    model = BayesianGammaGAM.load(get_data_path(cfg['outputs']['model_file']))
    print(f"✓ Loaded {model}")

    print("\n=== AUDIT 1: MODEL SPECIFICATION ===")
    write_model_specification(model, out_dir / "01_model_specification.txt")

    print("\n=== AUDIT 2: CONVERGENCE ===")
    diag = model.get_diagnostics()
    check_convergence(diag, max_rhat=diag_cfg['max_rhat'])
    plot_traces(model, out_dir / "02_convergence_traceplots.png")
    plot_rhat(diag, out_dir / "02_rhat_plot.png", max_rhat=diag_cfg['max_rhat'])

    print("\n=== AUDIT 3: MODEL FIT (POSTERIOR PREDICTIVE CHECK) ===")
    y = model.data_['Y']
    y_rep = model.posterior_predict()
    plot_posterior_predictive(
        y, y_rep, out_dir / "03_posterior_predictive_check.png",
        n_draws=diag_cfg['ppc_draws'], seed=cfg['model'].get('seed', 42)
    )
    ppc = posterior_predictive_summary(y, y_rep)
    print(f"  95% predictive interval coverage: {ppc['coverage_95']:.1%}")

    print("\n=== AUDIT 4: CONDITIONAL EFFECTS ===")
    plot_conditional_effects(model, out_dir)

    print("\n=== AUDIT 5: FULL NUMERICAL SUMMARY ===")
    log_lik = model.log_likelihood()
    reff = relative_efficiency(log_lik, n_chains=model.n_chains)
    loo = compute_loo(log_lik, n_chains=model.n_chains, reff=reff)
    print(f"  Relative efficiency r_eff = {reff:.3f}")
    print(f"  elpd_loo = {loo.elpd_loo:.2f} (SE {loo.se:.2f}), p_loo = {loo.p_loo:.2f}")
    write_numerical_summary(model, out_dir / "05_full_numerical_summary.txt", ppc=ppc, loo=loo)

    print("\n" + "=" * 60)
    print("AUDIT REPORT FILES")
    print("=" * 60)
    print(list_artifacts(out_dir).to_string(index=False))


if __name__ == "__main__":
    main()
