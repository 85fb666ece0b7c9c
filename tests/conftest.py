import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def raw_df():
    """
    Raw extract with Spanish column names: 3 departments x 2 years.

    P75 of Letalidad = 0.0575 and P25 of Tasa_pts = 162.5 (linear interpolation).
    """
    return pd.DataFrame({
        "DPNOM": ["Antioquia", "Antioquia", "Boyacá", "Boyacá", "Cauca", "Cauca"],
        "Nom_Capital": ["Medellín", "Medellín", "Tunja", "Tunja", "Popayán", "Popayán"],
        "Year": [2022, 2023, 2022, 2023, 2022, 2023],
        "Espiro_NalTasa": [1000.0, 1200.0, 500.0, 1105.08, 800.0, 2000.0],
        "Letalidad": [0.02, 0.05, 0.08, 0.03, 0.04, 0.06],
        "Tasa_pts": [150.0, 250.0, 300.0, 200.0, 100.0, 400.0],
        "Estufa": [0.05, 0.04, 0.20, 0.18, 0.35, 0.33],
        "IPM": [15.0, 14.0, 25.0, 24.0, 40.0, 38.0],
        "Porc40_may": [0.42, 0.43, 0.45, 0.46, 0.38, 0.39],
        "Prev_Total": [0.012, 0.013, 0.020, 0.021, 0.008, 0.009],
        "Pob40_Depto": [2800000, 2850000, 560000, 565000, 610000, 615000],
        "Vero_Ajuste": [1.1, 1.2, 1.3, 1.1, 1.0, 1.4],
        "Factor_Ajuste": [0.9, 0.8, 0.7, 0.9, 1.0, 0.6],
    })


@pytest.fixture
def analysis_df():
    """Analysis-ready table: 4 departments x 3 years with positive responses."""
    rng = np.random.default_rng(0)
    n = 12
    return pd.DataFrame({
        "DPNOM": np.repeat(["Antioquia", "Boyacá", "Cauca", "Nariño"], 3),
        "Nom_Capital": np.repeat(["Medellín", "Tunja", "Popayán", "Pasto"], 3),
        "Year": np.tile([2021, 2022, 2023], 4),
        "spirometry_rate": rng.uniform(300, 1600, n),
        "lethality_rate": rng.uniform(0.01, 0.09, n),
        "patients_rate": rng.uniform(80, 420, n),
        "biomass_stove_usage": rng.uniform(0.01, 0.4, n),
        "multidimensional_poverty_index": rng.uniform(8, 45, n),
        "pop_over_40_percent": rng.uniform(0.3, 0.5, n),
        "total_prevalence": rng.uniform(0.005, 0.03, n),
        "adjustment_factor": 1 + rng.uniform(0, 1.2, n),
        "Pob40_Depto": np.repeat([2800000, 560000, 610000, 700000], 3),
    })
