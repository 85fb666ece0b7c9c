"""
Base Model Interface for the COPD pipeline

Abstract base class for the external posterior engine. Keeps the modeling
collaborator behind a narrow interface: a table and a formula go in, a
posterior matrix of expected responses (draws × observations) comes out.
"""
from abc import ABC, abstractmethod
import numpy as np
import pandas as pd
from typing import Dict, Optional
import pickle
from pathlib import Path

from copd_prevalence.models.formula import ModelFormula


class BaseModel(ABC):
    """Abstract base class for posterior engines."""

    def __init__(self, name: str, config: Optional[Dict] = None):
        """
        Initialize model.

        Args:
            name: Model identifier
            config: Model-specific configuration
        """
        self.name = name
        self.config = config or {}
        self.is_fitted = False
        self.formula: Optional[ModelFormula] = None

    @abstractmethod
    def fit(self, data: pd.DataFrame, formula: ModelFormula) -> 'BaseModel':
        """
        Fit model to the analysis-ready table.

        Args:
            data: One row per observation
            formula: Response and predictor specification

        Returns:
            self
        """
        pass

    @abstractmethod
    def posterior_epred(self, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
        """
        Posterior draws of the expected response.

        Args:
            newdata: Rows to predict for (training rows when None)

        Returns:
            Array of shape (n_draws, n_rows), columns in row order
        """
        pass

    def fitted(self, newdata: Optional[pd.DataFrame] = None) -> np.ndarray:
        """Posterior mean of the expected response per row."""
        return self.posterior_epred(newdata).mean(axis=0)

    def save(self, path: str) -> None:
        """Save model to disk."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f:
            pickle.dump(self, f)

    @classmethod
    def load(cls, path: str) -> 'BaseModel':
        """Load model from disk."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(
                f"Model file not found: {path}. Run experiments/02_fit_bayesian_gam.py first."
            )
        with open(path, 'rb') as f:
            model = pickle.load(f)
        if not isinstance(model, cls):
            raise TypeError(f"{path} holds a {type(model).__name__}, expected {cls.__name__}")
        return model

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', fitted={self.is_fitted})"
