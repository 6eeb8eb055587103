"""Decay-world simulation engine and lookahead planning agent."""

from decay_oracle.config.types import DecayRules, PlannerConfig, PolicyKind, TerminalReason
from decay_oracle.domain.level import Level, load_level, parse_level
from decay_oracle.domain.snapshot import WorldSnapshot
from decay_oracle.simulation.runner import RunOutcome, run_to_completion
from decay_oracle.simulation.stepper import step

__all__ = [
    "DecayRules",
    "Level",
    "PlannerConfig",
    "PolicyKind",
    "RunOutcome",
    "TerminalReason",
    "WorldSnapshot",
    "load_level",
    "parse_level",
    "run_to_completion",
    "step",
]
