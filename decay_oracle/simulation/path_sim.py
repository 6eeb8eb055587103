"""Path simulator: replay the stepper along a candidate route.

Each trial works from the caller's sealed snapshot; the stepper copies
before mutating, so a trial can be abandoned at any point without
touching the real world. The trial records every intent it chose and the
snapshot the stepper predicted after it, which is what the planner later
commits to and checks real execution against.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from decay_oracle.config.constants import PROACTIVE_LOOKAHEAD
from decay_oracle.config.types import DecayRules, PlannerConfig, StabilizationMode
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import Intent, IntentKind
from decay_oracle.simulation.candidates import Candidate
from decay_oracle.simulation.policies import stabilization_intent
from decay_oracle.simulation.stepper import step

logger = logging.getLogger(__name__)

UNBOUNDED_MARGIN = 2**31 - 1
"""Margin reported while the actor has only stood on tiles that never decay."""


class FailureReason(Enum):
    """Why a simulated route did not reach its goal."""

    COLLAPSED = "collapsed"
    BLOCKED = "blocked"
    TURN_LIMIT = "turn_limit"


@dataclass(frozen=True)
class Verdict:
    """Outcome of simulating one candidate under one stabilization mode."""

    candidate: Candidate
    mode: StabilizationMode
    feasible: bool
    arrival_turn: int | None
    resources_consumed: int
    margin: int
    """Lowest timer under the actor on its starting tile and after every simulated turn."""
    failure_reason: FailureReason | None
    intents: tuple[Intent, ...]
    predictions: tuple[WorldSnapshot, ...]

    def rank_key(self) -> tuple[int, int, int]:
        """Sort key: widest margin, then fewest stabilizers, then shortest route."""
        return (-self.margin, self.resources_consumed, self.candidate.length)


@dataclass(frozen=True)
class PlanSearch:
    """All verdicts from one planning pass and the winner, if any."""

    best: Verdict | None
    verdicts: tuple[Verdict, ...]


def tile_margin(world: WorldSnapshot, pos: Coord) -> int:
    """Timer under `pos` as a safety margin; anchors never run out."""
    if world.has_anchor(*pos):
        return UNBOUNDED_MARGIN
    return world.timer_at(*pos)


def simulate_path(
    snapshot: WorldSnapshot,
    candidate: Candidate,
    rules: DecayRules,
    mode: StabilizationMode,
    allowance: int,
    turn_limit: int,
    proactive_lookahead: int = PROACTIVE_LOOKAHEAD,
) -> Verdict:
    """Drive the stepper along `candidate` and report whether the actor arrives.

    `allowance` caps how many stabilizers the trial may spend and
    `turn_limit` how many turns it may take.
    """
    if candidate.path[0] != snapshot.actor:
        raise ValueError("candidate path must start at the actor position")
    path = candidate.path
    world = snapshot
    index = 0
    spent = 0
    margin = tile_margin(world, world.actor)
    intents: list[Intent] = []
    predictions: list[WorldSnapshot] = []

    def verdict(reason: FailureReason | None) -> Verdict:
        return Verdict(
            candidate=candidate,
            mode=mode,
            feasible=reason is None,
            arrival_turn=world.turn if reason is None else None,
            resources_consumed=spent,
            margin=margin,
            failure_reason=reason,
            intents=tuple(intents),
            predictions=tuple(predictions),
        )

    while index < len(path) - 1:
        if len(intents) >= turn_limit:
            return verdict(FailureReason.TURN_LIMIT)
        intent = stabilization_intent(
            world, path, index, rules, mode, allowance - spent, proactive_lookahead
        )
        if intent is None:
            return verdict(FailureReason.BLOCKED)
        result = step(world, intent, rules)
        world = result.snapshot
        intents.append(intent)
        predictions.append(world)
        if intent.kind == IntentKind.STABILIZE:
            spent += 1
        else:
            index += 1
        if result.actor_fell:
            margin = min(margin, 0)
            return verdict(FailureReason.COLLAPSED)
        margin = min(margin, tile_margin(world, world.actor))
    return verdict(None)


def evaluate_candidates(
    snapshot: WorldSnapshot,
    candidates: Sequence[Candidate],
    rules: DecayRules,
    config: PlannerConfig,
    allowance: int,
    turn_limit: int,
) -> PlanSearch:
    """Simulate candidates under necessity-driven, then proactive, stabilization.

    The proactive pass only runs when no candidate survives the necessity
    pass. Among feasible verdicts the best ``rank_key`` wins; with
    ``config.early_accept_margin`` set, simulation stops at the first
    feasible verdict reaching that margin.
    """
    verdicts: list[Verdict] = []
    for mode in (StabilizationMode.NECESSITY, StabilizationMode.PROACTIVE):
        feasible: list[Verdict] = []
        for candidate in candidates:
            result = simulate_path(
                snapshot,
                candidate,
                rules,
                mode,
                allowance,
                turn_limit,
                proactive_lookahead=config.proactive_lookahead,
            )
            verdicts.append(result)
            if not result.feasible:
                continue
            feasible.append(result)
            if (
                config.early_accept_margin is not None
                and result.margin >= config.early_accept_margin
            ):
                break
        if feasible:
            best = min(feasible, key=Verdict.rank_key)
            logger.debug(
                "turn %d: %s plan over %d tiles, margin %d, %d stabilizers (%d/%d feasible)",
                snapshot.turn,
                mode.value,
                best.candidate.length,
                best.margin,
                best.resources_consumed,
                len(feasible),
                len(candidates),
            )
            return PlanSearch(best=best, verdicts=tuple(verdicts))
        logger.debug(
            "turn %d: no candidate feasible under %s stabilization", snapshot.turn, mode.value
        )
    return PlanSearch(best=None, verdicts=tuple(verdicts))
