#!/usr/bin/env python3
"""
Experiment 00: Sanity Check

Quick verification that the project is set up correctly:
1. Config loads
2. Raw data file exists and has the required columns
3. Basic imports work
4. Stan model file and CmdStan are available

Usage:
    python experiments/00_sanity_check.py
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def check_config():
    """Test config loading."""
    print("Checking config...", end=" ")
    try:
        from copd_prevalence.config import load_config
        cfg = load_config()
        assert 'data' in cfg
        assert 'model' in cfg
        assert 'thresholds' in cfg
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def check_data_files():
    """Test raw data existence and columns."""
    print("Checking data files...", end=" ")
    try:
        from copd_prevalence.config import load_config, get_data_path
        from copd_prevalence.data.loader import load_raw_data
        cfg = load_config()
        raw_path = get_data_path(cfg['data']['raw']['copd'])

        assert raw_path.exists(), f"Raw data not found: {raw_path}"
        raw = load_raw_data(raw_path)
        assert len(raw) > 0, "No rows loaded"
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def check_imports():
    """Test key imports."""
    print("Checking imports...", end=" ")
    try:
        import pandas as pd
        import numpy as np
        import scipy
        import yaml
        import matplotlib
        import arviz
        from rapidfuzz import fuzz
        print("✓")
        return True
    except ImportError as e:
        print(f"✗ (Missing: {e})")
        return False


def check_stan():
    """Test Stan model file and CmdStan installation."""
    print("Checking Stan...", end=" ")
    try:
        from copd_prevalence.config import load_config
        from copd_prevalence.models.bayesian.gam import BayesianGammaGAM, CMDSTAN_AVAILABLE
        cfg = load_config()

        stan_file = BayesianGammaGAM(cfg['model'])._get_stan_file()
        assert stan_file.exists(), f"Stan file not found: {stan_file}"
        assert CMDSTAN_AVAILABLE, "cmdstanpy not installed"

        import cmdstanpy
        cmdstanpy.cmdstan_path()
        print("✓")
        return True
    except Exception as e:
        print(f"✗ ({e})")
        return False


def main():
    print("=" * 60)
    print("COPD PREVALENCE - SANITY CHECK")
    print("=" * 60)

    checks = [
        ("Config", check_config),
        ("Data Files", check_data_files),
        ("Imports", check_imports),
        ("Stan", check_stan),
    ]

    results = []
    for name, check_fn in checks:
        results.append(check_fn())

    print("\n" + "=" * 60)
    passed = sum(results)
    total = len(results)

    if passed == total:
        print(f"ALL CHECKS PASSED ({passed}/{total}) ✓")
        print("Ready to proceed with experiments!")
    else:
        print(f"CHECKS FAILED ({passed}/{total}) ✗")
        print("Please fix issues before continuing.")
        sys.exit(1)


if __name__ == "__main__":
    main()
