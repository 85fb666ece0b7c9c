import numpy as np
import pytest

from copd_prevalence.models.splines import SplineBasis, difference_penalty


@pytest.fixture
def x():
    return np.random.default_rng(1).uniform(0, 10, 40)


def test_difference_penalty_null_space():
    S = difference_penalty(5)
    assert S.shape == (5, 5)
    np.testing.assert_allclose(S @ np.ones(5), 0, atol=1e-12)
    np.testing.assert_allclose(S @ np.arange(5.0), 0, atol=1e-12)


def test_basis_dimensions(x):
    basis = SplineBasis("spirometry_rate", k=5).fit(x)
    fixed, random = basis.transform(x)
    # Centring removes one column; the linear direction stays unpenalised
    assert basis.n_fixed == 1
    assert basis.n_random == 3
    assert fixed.shape == (40, 1)
    assert random.shape == (40, 3)


def test_columns_sum_to_zero_on_training_data(x):
    basis = SplineBasis("v", k=6).fit(x)
    fixed, random = basis.transform(x)
    np.testing.assert_allclose(fixed.sum(axis=0), 0, atol=1e-8)
    np.testing.assert_allclose(random.sum(axis=0), 0, atol=1e-8)


def test_new_values_are_clamped(x):
    basis = SplineBasis("v").fit(x)
    below = basis.transform(np.array([-100.0]))
    at_min = basis.transform(np.array([x.min()]))
    np.testing.assert_allclose(below[0], at_min[0])
    np.testing.assert_allclose(below[1], at_min[1])


def test_fit_errors():
    with pytest.raises(ValueError):
        SplineBasis("v").fit(np.array([1.0, np.nan, 2.0]))
    with pytest.raises(ValueError):
        SplineBasis("v").fit(np.full(10, 3.0))
    with pytest.raises(ValueError):
        SplineBasis("v", k=3).fit(np.arange(10.0))
    with pytest.raises(ValueError):
        SplineBasis("v").transform(np.arange(3.0))
