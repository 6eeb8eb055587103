"""Configuration layer: constants and typed config dataclasses."""

from decay_oracle.config.constants import (
    CHAIN_PENALTY,
    DEFAULT_HORIZON,
    MAX_CANDIDATES,
    MOVE_BUDGET,
    PROACTIVE_LOOKAHEAD,
    STABILIZER_FLOOR,
    STABILIZER_RADIUS,
)
from decay_oracle.config.types import (
    BatchConfig,
    DecayRules,
    PlannerConfig,
    PolicyKind,
    StabilizationMode,
    TerminalReason,
)

__all__ = [
    "BatchConfig",
    "CHAIN_PENALTY",
    "DEFAULT_HORIZON",
    "DecayRules",
    "MAX_CANDIDATES",
    "MOVE_BUDGET",
    "PROACTIVE_LOOKAHEAD",
    "PlannerConfig",
    "PolicyKind",
    "STABILIZER_FLOOR",
    "STABILIZER_RADIUS",
    "StabilizationMode",
    "TerminalReason",
]
