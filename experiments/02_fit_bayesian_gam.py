#!/usr/bin/env python3
"""
Experiment 02: Fit the Bayesian Gamma GAM

This script:
1. Loads the analysis-ready table
2. Fits adjustment_factor ~ smooths + total_prevalence (Gamma, log link)
3. Reports MCMC diagnostics
4. Saves the model and the fixed-effects table
5. Saves per-row fitted adjustment factors

Outputs:
  - models/final_model.pkl
  - outputs/tables/bayesian_model_summary.csv
  - outputs/tables/departmental_prevalence_estimates.csv
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from copd_prevalence.config import load_config, get_data_path, get_project_root
from copd_prevalence.data.loader import load_analysis_data
from copd_prevalence.models.bayesian.gam import BayesianGammaGAM
from copd_prevalence.models.formula import parse_formula


def main():
    parser = argparse.ArgumentParser(description="Fit the Bayesian Gamma GAM")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--n-warmup", type=int, default=None, help="MCMC warmup iterations")
    parser.add_argument("--n-samples", type=int, default=None, help="MCMC sampling iterations")
    parser.add_argument("--n-chains", type=int, default=None, help="Number of MCMC chains")
    args = parser.parse_args()

    root = get_project_root()
    cfg = load_config(str(root / args.config))

    model_cfg = dict(cfg['model'])
    for key in ('n_warmup', 'n_samples', 'n_chains'):
        override = getattr(args, key)
        if override is not None:
            model_cfg[key] = override

    print("=" * 60)
    print("COPD PREVALENCE - BAYESIAN GAM")
    print("=" * 60)

    data = load_analysis_data(get_data_path(cfg['data']['processed']['analysis_ready']))
    formula = parse_formula(model_cfg['formula'])

    print(f"\n→ Fitting model on {len(data)} observations")
    model = BayesianGammaGAM(model_cfg)
    model.fit(data, formula)
    print("\n✓ Model training completed")

    diag_cfg = cfg.get('diagnostics', {})
    model.print_diagnostics(
        max_rhat=diag_cfg.get('max_rhat', 1.01),
        min_ess=diag_cfg.get('min_ess', 400),
    )

    # Save model
    model_path = get_data_path(cfg['outputs']['model_file'])
    model.save(model_path)
    print(f"\n✓ Model object saved to: {model_path}")

    # Fixed effects
    tables_dir = get_data_path(cfg['outputs']['tables'])
    tables_dir.mkdir(parents=True, exist_ok=True)
    fixed = model.fixed_effects()
    fixed.to_csv(tables_dir / "bayesian_model_summary.csv", index=False)
    print(f"✓ Fixed effects table saved to: {tables_dir / 'bayesian_model_summary.csv'}")
    print(fixed.to_string(index=False, float_format=lambda v: f"{v:.4f}"))

    # Fitted adjustment per row
    fitted = data[['DPNOM', 'Nom_Capital', 'Year']].copy()
    fitted['predicted_adjustment'] = model.fitted()
    fitted['adjustment_factor'] = data['adjustment_factor']
    fitted['total_prevalence'] = data['total_prevalence']
    fitted.to_csv(tables_dir / "departmental_prevalence_estimates.csv", index=False)
    print(f"✓ Fitted adjustment factors saved to: "
          f"{tables_dir / 'departmental_prevalence_estimates.csv'}")


if __name__ == "__main__":
    main()
