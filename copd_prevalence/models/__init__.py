"""Models module - formula, spline basis and the Bayesian Gamma GAM."""
