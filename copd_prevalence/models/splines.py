"""
Penalised spline basis for GAM smooth terms.

Each smooth s(x, k) is a cubic B-spline basis of dimension k with a
second-order difference penalty. The basis is centred (columns sum to zero
over the training data) so the intercept stays identifiable, then split into

- an unpenalised "fixed" part (the null space of the penalty), and
- a penalised "random" part scaled so its coefficients can take an
  iid normal prior with a single standard deviation per smooth.

This is the same reparameterisation mgcv/brms use to fit smooths as mixed
models, which is what lets the Stan program stay generic.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from scipy.interpolate import BSpline


DEGREE = 3
NULL_SPACE_TOL = 1e-8


def difference_penalty(n_basis: int, order: int = 2) -> np.ndarray:
    """Return S = D'D for the `order`-th difference matrix D."""
    D = np.diff(np.eye(n_basis), n=order, axis=0)
    return D.T @ D


@dataclass
class SplineBasis:
    """Centred, reparameterised cubic B-spline basis for one variable."""
    variable: str
    k: int = 5
    degree: int = DEGREE

    knots_: Optional[np.ndarray] = field(default=None, repr=False)
    lower_: Optional[float] = None
    upper_: Optional[float] = None
    fixed_map_: Optional[np.ndarray] = field(default=None, repr=False)
    random_map_: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def is_fitted(self) -> bool:
        return self.knots_ is not None

    @property
    def n_fixed(self) -> int:
        return 0 if self.fixed_map_ is None else self.fixed_map_.shape[1]

    @property
    def n_random(self) -> int:
        return 0 if self.random_map_ is None else self.random_map_.shape[1]

    def _raw_basis(self, x: np.ndarray) -> np.ndarray:
        x = np.clip(np.asarray(x, dtype=float), self.lower_, self.upper_)
        return BSpline.design_matrix(x, self.knots_, self.degree).toarray()

    def fit(self, x: np.ndarray) -> 'SplineBasis':
        """
        Place knots and build the reparameterisation from training values.

        Interior knots sit at evenly spaced quantiles of x.
        """
        x = np.asarray(x, dtype=float)
        if np.isnan(x).any():
            raise ValueError(f"Smooth '{self.variable}' has missing values")
        if self.k <= self.degree:
            raise ValueError(f"Smooth '{self.variable}': k must exceed degree {self.degree}")

        self.lower_, self.upper_ = float(x.min()), float(x.max())
        if self.upper_ <= self.lower_:
            raise ValueError(f"Smooth '{self.variable}' needs at least two distinct values")

        n_interior = self.k - self.degree - 1
        interior = np.quantile(x, np.linspace(0, 1, n_interior + 2)[1:-1]) if n_interior else []
        self.knots_ = np.concatenate([
            np.repeat(self.lower_, self.degree + 1),
            np.asarray(interior, dtype=float),
            np.repeat(self.upper_, self.degree + 1),
        ])

        B = self._raw_basis(x)

        # Sum-to-zero constraint: null space of the column sums
        C = B.sum(axis=0, keepdims=True)
        Q, _ = np.linalg.qr(C.T, mode='complete')
        Z = Q[:, 1:]

        S = Z.T @ difference_penalty(self.k) @ Z
        eigvals, eigvecs = np.linalg.eigh(S)
        null = eigvals < NULL_SPACE_TOL * eigvals.max()

        self.fixed_map_ = Z @ eigvecs[:, null]
        self.random_map_ = Z @ (eigvecs[:, ~null] / np.sqrt(eigvals[~null]))
        return self

    def transform(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Evaluate the basis at new values.

        Values outside the training range are clamped to it.

        Returns:
            (fixed columns, random columns)
        """
        if not self.is_fitted:
            raise ValueError("Basis not fitted. Call fit() first.")
        B = self._raw_basis(x)
        return B @ self.fixed_map_, B @ self.random_map_
