"""Core mathematics for the Football Edge prediction engine.

This package contains pure building blocks:

- ``odds_math``:     implied probability, fair odds, overround removal
- ``poisson_model``: scoreline matrix and derived market probabilities
- ``kelly``:         Kelly criterion staking, risk tiers, risk of ruin

Nothing in this package imports from ``football_edge.services``.
All modules are side-effect-free and unit-testable in isolation.
"""
