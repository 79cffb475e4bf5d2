"""Core mathematics and types for the SHIVA pick engine.

This package contains pure, side-effect-free building blocks:

- ``sport_config``  — sports, bet types, league anchors and pipeline constants
- ``signal_math``   — clamp/sigmoid/tanh helpers, side scores, legacy confidence
- ``factor_types``  — stats bundle, run context and factor result DTOs
- ``injury_impact`` — status multipliers and team injury impact scores

Nothing in this package imports from ``pickgen.services`` or ``pickgen.models``.
All modules are unit-testable in isolation.
"""
