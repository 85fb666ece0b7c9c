# COPD Prevalence Bias-Correction Pipeline
"""
COPD Prevalence Estimation for Colombia
A Bayesian GAM bias-correction pipeline for department-level prevalence.

Project Structure:
    copd_prevalence/
    ├── common/        - Shared utilities, paths and error taxonomy
    ├── data/          - STAGE 0: Raw data loading and department names
    ├── features/      - STAGE 1: Bias scores and adjustment factor
    ├── models/        - Model formula, spline basis, Bayesian Gamma GAM
    ├── estimation/    - STAGE 2: Posterior aggregation (department + national)
    ├── evaluation/    - Model diagnostics and audit report
    └── visualization/ - Manuscript figures
"""

__version__ = "0.1.0"
__author__ = "COPD Colombia Study Team"
