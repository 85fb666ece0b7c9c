"""Bayesian models fit with Stan via CmdStanPy."""
