#!/usr/bin/env python3
"""
Experiment 05: Manuscript Figures

Reads the final manuscript table and the analysis-ready data and writes
Fig1-Fig3 as PNG (300 dpi) and PDF.

Output: outputs/figures/
"""
import sys
import argparse
from pathlib import Path

import pandas as pd

# Add project root to path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from copd_prevalence.config import load_config, get_data_path, get_project_root
from copd_prevalence.data.loader import load_analysis_data
from copd_prevalence.visualization.figures import generate_all_figures


def load_departmental_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(
            f"Missing {path}. Run experiments/03_generate_final_tables.py first."
        )
    table = pd.read_csv(path)
    depts = table[table['Department'].notna()].copy()
    depts['Prevalence'] = depts['Prevalence'].astype(float)
    return depts


def main():
    parser = argparse.ArgumentParser(description="Generate manuscript figures")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--top-n", type=int, default=25, help="Departments in Fig1")
    args = parser.parse_args()

    root = get_project_root()
    cfg = load_config(str(root / args.config))

    print("=" * 60)
    print("COPD PREVALENCE - MANUSCRIPT FIGURES")
    print("=" * 60)

    departmental = load_departmental_table(
        get_data_path(cfg['outputs']['tables']) / "final_manuscript_tables.csv"
    )
    data = load_analysis_data(get_data_path(cfg['data']['processed']['analysis_ready']))

    generate_all_figures(
        data,
        departmental,
        get_data_path(cfg['outputs']['figures']),
        top_n=args.top_n,
        benchmark=cfg['thresholds']['spirometry_target'],
        score_threshold=cfg['departments']['score_threshold'],
    )

    print("\n" + "=" * 60)
    print("✓ FIGURES COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    main()
