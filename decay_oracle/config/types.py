"""Configuration dataclasses and enums for decay simulation and planning.

All frozen dataclasses that parameterise the stepper, the planner, and
batch runs live here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from decay_oracle.config.constants import (
    CHAIN_PENALTY,
    DEFAULT_HORIZON,
    MAX_CANDIDATES,
    MOVE_BUDGET,
    PROACTIVE_LOOKAHEAD,
    STABILIZER_FLOOR,
    STABILIZER_RADIUS,
)

__all__ = [
    "BatchConfig",
    "DecayRules",
    "PlannerConfig",
    "PolicyKind",
    "StabilizationMode",
    "TerminalReason",
]

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class PolicyKind(Enum):
    """Closed set of agent policies selectable by tag."""

    ORACLE = "oracle"
    GREEDY = "greedy"
    TACTICAL = "tactical"


class StabilizationMode(Enum):
    """When the agent spends a stabilizer along a route."""

    NECESSITY = "necessity"
    PROACTIVE = "proactive"


class TerminalReason(Enum):
    """Why a run ended."""

    GOAL_REACHED = "goal_reached"
    COLLAPSED = "collapsed"
    NO_FEASIBLE_PLAN = "no_feasible_plan"
    MOVE_BUDGET = "move_budget"
    RESOURCE_BUDGET = "resource_budget"


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecayRules:
    """World physics shared by real execution and every simulated lookahead."""

    chain_penalty: int = CHAIN_PENALTY
    stabilizer_floor: int = STABILIZER_FLOOR
    stabilizer_radius: int = STABILIZER_RADIUS
    hard_mode: bool = False
    """Harder tier: every tile decays at half rate on top of other modifiers."""

    def __post_init__(self) -> None:
        if self.chain_penalty not in (1, 2):
            raise ValueError("chain_penalty must be 1 or 2")
        if self.stabilizer_floor < 1:
            raise ValueError("stabilizer_floor must be >= 1")
        if self.stabilizer_radius < 1:
            raise ValueError("stabilizer_radius must be >= 1")


@dataclass(frozen=True)
class PlannerConfig:
    """Planner knobs: commitment horizon, candidate bound, and budgets."""

    horizon: int = DEFAULT_HORIZON
    max_candidates: int = MAX_CANDIDATES
    move_budget: int = MOVE_BUDGET
    resource_budget: int | None = None
    """Maximum stabilizers the run may spend; None means whatever the level holds."""
    early_accept_margin: int | None = None
    """Stop simulating candidates once a feasible one reaches this margin."""
    proactive_lookahead: int = PROACTIVE_LOOKAHEAD

    def __post_init__(self) -> None:
        if self.horizon < 1:
            raise ValueError("horizon must be >= 1")
        if self.max_candidates < 1:
            raise ValueError("max_candidates must be >= 1")
        if self.move_budget < 1:
            raise ValueError("move_budget must be >= 1")
        if self.resource_budget is not None and self.resource_budget < 0:
            raise ValueError("resource_budget must be >= 0")
        if self.early_accept_margin is not None and self.early_accept_margin < 0:
            raise ValueError("early_accept_margin must be >= 0")
        if self.proactive_lookahead < 1:
            raise ValueError("proactive_lookahead must be >= 1")


@dataclass(frozen=True)
class BatchConfig:
    """Settings for running many independent levels under several policies."""

    policies: tuple[PolicyKind, ...] = (PolicyKind.ORACLE,)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    rules: DecayRules = field(default_factory=DecayRules)
    workers: int = 1
    out_dir: Path = Path("data")

    def __post_init__(self) -> None:
        if not self.policies:
            raise ValueError("policies must not be empty")
        if len(set(self.policies)) != len(self.policies):
            raise ValueError("policies must be distinct")
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
