#!/usr/bin/env python3
"""
Experiment 01: Preprocess Raw Data (Stage 1)

This script:
1. Loads the raw department-year extract
2. Computes the spirometry / lethality / access thresholds
3. Scores every row and builds the adjustment factor
4. Renames to English analysis columns and drops incomplete rows
5. Saves the analysis-ready table

Output: data/processed/copd_analysis_ready_data.csv
"""
import sys
import argparse
from pathlib import Path

import pandas as pd

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from copd_prevalence.config import load_config, get_data_path, get_project_root
from copd_prevalence.data.loader import load_raw_data, save_analysis_data
from copd_prevalence.features.bias_scores import preprocess, preview_columns


def main():
    parser = argparse.ArgumentParser(description="Build the analysis-ready COPD table")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Raw extract (overrides data.raw.copd)"
    )
    args = parser.parse_args()

    root = get_project_root()
    cfg = load_config(str(root / args.config))
    thresholds_cfg = cfg['thresholds']

    print("=" * 60)
    print("COPD PREVALENCE - DATA PREPROCESSING")
    print("=" * 60)

    raw_path = Path(args.input) if args.input else get_data_path(cfg['data']['raw']['copd'])
    print(f"\n→ Loading raw data from {raw_path}")
    raw = load_raw_data(raw_path)

    print("\n→ Computing bias scores and adjustment factor")
    result = preprocess(
        raw,
        spirometry_target=thresholds_cfg['spirometry_target'],
        lethality_percentile=thresholds_cfg['lethality_percentile'],
        access_percentile=thresholds_cfg['access_percentile'],
    )

    print("\n→ Saving analysis-ready table")
    out_path = get_data_path(cfg['data']['processed']['analysis_ready'])
    save_analysis_data(result.data, out_path)

    print("\nFirst rows of processed data:")
    with pd.option_context('display.width', 160, 'display.max_columns', 20):
        print(preview_columns(result.data).head())

    print("\n" + "=" * 60)
    print(f"✓ PREPROCESSING COMPLETE ({result.rows_after} rows, {result.rows_removed} removed)")
    print("=" * 60)


if __name__ == "__main__":
    main()
