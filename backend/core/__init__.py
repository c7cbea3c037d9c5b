"""Core mathematics and rules for the AI Picks bankroll tracker.

This package contains pure building blocks:

- ``odds_math``    — American odds payout and the fixed unit-profit convention
- ``risk_policy``  — unit sizing and daily risk-limit checks
- ``sport_config`` — league labels and confidence-tier constants
- ``errors``       — the exception hierarchy raised by ledger operations

Nothing in this package imports from ``backend.services`` or ``backend.models``.
All modules are side-effect-free and unit-testable in isolation.
"""
