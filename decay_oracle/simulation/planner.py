"""Oracle planner: plan, commit a short script, execute, re-plan on need.

State machine::

    PLANNING --feasible plan--> COMMITTED --script done / divergence--> REPLAN_REQUIRED
        |                           |                                        |
        +--nothing feasible--+      +--goal reached--> TERMINAL_WIN          |
                             v      +--fell / budget--> TERMINAL_LOSS        |
                       TERMINAL_LOSS      PLANNING <-------------------------+

The planner is the only owner of the real snapshot. Planning always starts
from the current real snapshot; a stale script is never resumed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from decay_oracle.config.types import DecayRules, PlannerConfig, TerminalReason
from decay_oracle.domain.errors import ParityError
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import Intent, IntentKind
from decay_oracle.simulation.candidates import generate_candidates, validate_goal
from decay_oracle.simulation.path_sim import (
    FailureReason,
    PlanSearch,
    Verdict,
    evaluate_candidates,
    tile_margin,
)
from decay_oracle.simulation.stepper import intent_problem, step

logger = logging.getLogger(__name__)

Disturbance = Callable[[WorldSnapshot], WorldSnapshot]
"""Exogenous level logic applied to the real snapshot after each executed turn."""


class PlannerState(Enum):
    PLANNING = "planning"
    COMMITTED = "committed"
    REPLAN_REQUIRED = "replan_required"
    TERMINAL_WIN = "terminal_win"
    TERMINAL_LOSS = "terminal_loss"


TERMINAL_STATES = frozenset({PlannerState.TERMINAL_WIN, PlannerState.TERMINAL_LOSS})


@dataclass
class ActionScript:
    """Committed intents with the snapshot predicted after each one."""

    base_turn: int
    intents: tuple[Intent, ...]
    predictions: tuple[WorldSnapshot, ...]
    cursor: int = 0

    @classmethod
    def from_verdict(cls, verdict: Verdict, base_turn: int, horizon: int) -> ActionScript:
        return cls(
            base_turn=base_turn,
            intents=verdict.intents[:horizon],
            predictions=verdict.predictions[:horizon],
        )

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.intents)

    def pop(self) -> tuple[Intent, WorldSnapshot]:
        if self.exhausted:
            raise IndexError("action script is exhausted")
        item = (self.intents[self.cursor], self.predictions[self.cursor])
        self.cursor += 1
        return item


@dataclass(frozen=True)
class TurnRecord:
    """What one real turn did, for HUD, replay recording, and tests."""

    turn: int
    intent: Intent
    snapshot: WorldSnapshot
    collapsed: tuple[Coord, ...]
    diverged: bool
    terminal: bool
    won: bool


@dataclass
class OraclePlanner:
    """Lookahead agent driving one real world snapshot to `goal`."""

    snapshot: WorldSnapshot
    goal: Coord
    rules: DecayRules = field(default_factory=DecayRules)
    config: PlannerConfig = field(default_factory=PlannerConfig)
    disturbance: Disturbance | None = None
    state: PlannerState = field(init=False, default=PlannerState.PLANNING)
    reason: TerminalReason | None = field(init=False, default=None)
    script: ActionScript | None = field(init=False, default=None)
    moves: int = field(init=False, default=0)
    resources_used: int = field(init=False, default=0)
    plans: int = field(init=False, default=0)
    divergences: int = field(init=False, default=0)
    tightest_margin: int = field(init=False, default=0)
    """Lowest timer under the actor so far, starting tile included; 0 after a fall."""
    last_search: PlanSearch | None = field(init=False, default=None)
    _divergence_keys: set[tuple[str, str]] = field(init=False, default_factory=set)

    def __post_init__(self) -> None:
        validate_goal(self.snapshot, self.goal)
        self.tightest_margin = tile_margin(self.snapshot, self.snapshot.actor)
        if self.snapshot.actor == self.goal:
            self._finish(PlannerState.TERMINAL_WIN, TerminalReason.GOAL_REACHED)

    # -- bookkeeping ------------------------------------------------------

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def allowance(self) -> int:
        """Stabilizers the planner may still spend."""
        if self.config.resource_budget is None:
            return self.snapshot.stabilizers
        remaining = self.config.resource_budget - self.resources_used
        return max(0, min(self.snapshot.stabilizers, remaining))

    def _finish(self, state: PlannerState, reason: TerminalReason) -> None:
        self.state = state
        self.reason = reason
        self.script = None
        logger.debug("turn %d: %s (%s)", self.snapshot.turn, state.value, reason.value)

    def _exhaustion_reason(self, search: PlanSearch) -> TerminalReason:
        budget_capped = (
            self.config.resource_budget is not None
            and self.allowance < self.snapshot.stabilizers
        )
        if budget_capped:
            return TerminalReason.RESOURCE_BUDGET
        if any(v.failure_reason == FailureReason.TURN_LIMIT for v in search.verdicts):
            return TerminalReason.MOVE_BUDGET
        return TerminalReason.NO_FEASIBLE_PLAN

    # -- transitions ------------------------------------------------------

    def plan(self) -> None:
        """PLANNING: pick the best simulated candidate and commit its prefix."""
        if self.state != PlannerState.PLANNING:
            raise RuntimeError(f"plan() called in state {self.state.value}")
        remaining = self.config.move_budget - self.moves
        if remaining <= 0:
            self._finish(PlannerState.TERMINAL_LOSS, TerminalReason.MOVE_BUDGET)
            return
        candidates = generate_candidates(
            self.snapshot, self.goal, self.rules, self.config.max_candidates
        )
        search = evaluate_candidates(
            self.snapshot, candidates, self.rules, self.config, self.allowance, remaining
        )
        self.last_search = search
        if search.best is None:
            reason = self._exhaustion_reason(search)
            logger.info(
                "turn %d: no feasible plan among %d candidates (%s)",
                self.snapshot.turn,
                len(candidates),
                reason.value,
            )
            self._finish(PlannerState.TERMINAL_LOSS, reason)
            return
        self.plans += 1
        self.script = ActionScript.from_verdict(
            search.best, base_turn=self.snapshot.turn, horizon=self.config.horizon
        )
        self.state = PlannerState.COMMITTED

    def _record_divergence(self, before: WorldSnapshot, intent: Intent) -> None:
        self.divergences += 1
        key = (before.fingerprint(), str(intent))
        if key in self._divergence_keys:
            raise ParityError(
                f"turn {before.turn}: {intent} diverged twice from an identical snapshot"
            )
        self._divergence_keys.add(key)

    def execute(self) -> TurnRecord | None:
        """COMMITTED: run the next scripted intent against the real snapshot."""
        if self.state != PlannerState.COMMITTED or self.script is None:
            raise RuntimeError(f"execute() called in state {self.state.value}")
        intent, predicted = self.script.pop()
        before = self.snapshot
        if intent_problem(before, intent) is not None:
            # The world moved under the script before it could act.
            self._record_divergence(before, intent)
            logger.warning("turn %d: scripted %s is no longer legal", before.turn, intent)
            self.state = PlannerState.REPLAN_REQUIRED
            return None

        result = step(before, intent, self.rules)
        real = result.snapshot
        if self.disturbance is not None:
            real = self.disturbance(real).freeze()
        self.snapshot = real
        self.moves += 1
        if intent.kind == IntentKind.STABILIZE:
            self.resources_used += 1

        fell = real.is_void(*real.actor)
        self.tightest_margin = min(
            self.tightest_margin, 0 if fell else tile_margin(real, real.actor)
        )

        diverged = real != predicted
        if diverged:
            self._record_divergence(before, intent)
            logger.warning(
                "turn %d: real outcome diverged from plan: %s",
                before.turn,
                "; ".join(predicted.diff(real)),
            )

        if fell:
            self._finish(PlannerState.TERMINAL_LOSS, TerminalReason.COLLAPSED)
        elif real.actor == self.goal:
            self._finish(PlannerState.TERMINAL_WIN, TerminalReason.GOAL_REACHED)
        elif self.moves >= self.config.move_budget:
            self._finish(PlannerState.TERMINAL_LOSS, TerminalReason.MOVE_BUDGET)
        elif diverged or self.script.exhausted:
            self.state = PlannerState.REPLAN_REQUIRED

        return TurnRecord(
            turn=before.turn,
            intent=intent,
            snapshot=real,
            collapsed=result.collapsed,
            diverged=diverged,
            terminal=self.terminal,
            won=self.state == PlannerState.TERMINAL_WIN,
        )

    def advance(self) -> TurnRecord | None:
        """Perform state transitions until one real turn is executed or play ends."""
        while not self.terminal:
            if self.state == PlannerState.REPLAN_REQUIRED:
                self.script = None
                self.state = PlannerState.PLANNING
            elif self.state == PlannerState.PLANNING:
                self.plan()
            else:
                record = self.execute()
                if record is not None:
                    return record
        return None

    def run(self) -> list[TurnRecord]:
        """Play until a terminal state; returns every executed turn."""
        records: list[TurnRecord] = []
        while not self.terminal:
            record = self.advance()
            if record is not None:
                records.append(record)
        return records
