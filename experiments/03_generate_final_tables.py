#!/usr/bin/env python3
"""
Experiment 03: Generate Final Manuscript Tables (Stage 2)

This script:
1. Loads the fitted model and the analysis-ready table
2. Attaches population weights (Pob40_Depto) from the raw extract if needed
3. Turns the posterior matrix into true-prevalence draws
4. Aggregates to departmental (median) and national (weighted mean) estimates
5. Writes the manuscript table

Output: outputs/tables/final_manuscript_tables.csv
"""
import sys
import argparse
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from copd_prevalence.config import load_config, get_data_path, get_project_root
from copd_prevalence.data.loader import (
    attach_population_weights,
    load_analysis_data,
    load_raw_data,
)
from copd_prevalence.estimation.posterior import estimate_prevalence, print_verification
from copd_prevalence.models.bayesian.gam import BayesianGammaGAM


def main():
    parser = argparse.ArgumentParser(description="Generate final prevalence tables")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    args = parser.parse_args()

    root = get_project_root()
    cfg = load_config(str(root / args.config))
    est_cfg = cfg['estimation']
    weight_col = est_cfg['weight_column']

    print("=" * 60)
    print("COPD PREVALENCE - FINAL TABLES")
    print("=" * 60)

    model_path = get_data_path(cfg['outputs']['model_file'])
    print(f"\n→ Loading Bayesian model from: {model_path}")
    model = BayesianGammaGAM.load(model_path)
    print(f"✓ {model}")

    data = load_analysis_data(get_data_path(cfg['data']['processed']['analysis_ready']))

    raw = None
    if weight_col not in data.columns:
        print(f"⚠ {weight_col} not in processed data - loading from raw extract")
        raw = load_raw_data(get_data_path(cfg['data']['raw']['copd']))
    data = attach_population_weights(data, raw, weight_col=weight_col)

    print("\n→ Extracting posterior predictions")
    epred = model.posterior_epred()
    print(f"✓ Posterior matrix: {epred.shape[0]} draws × {epred.shape[1]} observations")

    estimates = estimate_prevalence(
        data,
        epred,
        weight_col=weight_col,
        national_label=est_cfg['national_label'],
        interval=tuple(est_cfg['interval']),
        decimals=est_cfg['decimals'],
    )

    tables_dir = get_data_path(cfg['outputs']['tables'])
    tables_dir.mkdir(parents=True, exist_ok=True)
    out_path = tables_dir / "final_manuscript_tables.csv"
    estimates.table.to_csv(out_path, index=False)
    print(f"\n✓ Final manuscript tables saved to: {out_path}")

    print_verification(estimates, decimals=est_cfg['decimals'])


if __name__ == "__main__":
    main()
