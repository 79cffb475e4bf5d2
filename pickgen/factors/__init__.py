"""Scoring factors for the SHIVA pick pipeline.

- ``registry`` — ``FactorRegistry`` and the process-wide default registry
- ``totals``   — NBA TOTAL factors F1-F7 (positive signal = OVER)
- ``spread``   — NBA SPREAD factors S1-S9 (positive signal = AWAY)
- ``config``   — factor metadata, default capper profiles, weight validation

Factor functions are pure: they read an ``NBAStatsBundle`` and a
``RunContext`` and never touch the database or the network.
"""
