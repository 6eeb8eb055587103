"""Centralized domain constants for decay simulation and planning.

All magic numbers that appear across multiple modules are defined here.
Consuming modules should import from this module rather than defining
their own inline literals.
"""

from __future__ import annotations

CHAIN_PENALTY = 2
"""Extra timer loss applied to each solid 8-neighbor of a collapsed tile."""

STABILIZER_FLOOR = 5
"""Timer value a stabilizer raises every tile in its neighborhood to."""

STABILIZER_RADIUS = 1
"""Chebyshev radius of the stabilizer neighborhood (1 means 3x3)."""

PILLAR_RATE_DIVISOR = 2
"""Rate divisor for tiles 8-adjacent to a pillar (half rate)."""

HARD_MODE_RATE_DIVISOR = 2
"""Global rate divisor applied by the harder difficulty tier."""

DEFAULT_HORIZON = 4
"""Number of intents committed per plan before a forced re-plan."""

MAX_CANDIDATES = 24
"""Upper bound on route candidates proposed per planning pass."""

MOVE_BUDGET = 3000
"""Default turn budget for a single run."""

PROACTIVE_LOOKAHEAD = 8
"""Route steps the proactive rule dry-runs ahead when looking for a chokepoint."""

RISK_WEIGHTS: tuple[float, ...] = (0.0, 1.0, 4.0, 16.0)
"""Risk-penalty weights used by the candidate generator, one search per weight."""

DIVERSITY_ROUNDS = 3
"""Alternate routes searched per risk weight by penalising already-used tiles."""

DIVERSITY_PENALTY = 3.0
"""Cost added for stepping on a tile an earlier candidate already uses."""
