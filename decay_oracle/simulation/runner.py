"""Run-to-completion entry point shared by the CLI and batch harness."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from decay_oracle.config.types import DecayRules, PlannerConfig, PolicyKind, TerminalReason
from decay_oracle.domain.level import Level
from decay_oracle.domain.snapshot import Coord
from decay_oracle.domain.tiles import IntentKind
from decay_oracle.simulation.candidates import validate_goal
from decay_oracle.simulation.path_sim import tile_margin
from decay_oracle.simulation.planner import Disturbance, OraclePlanner, TurnRecord
from decay_oracle.simulation.policies import REACTIVE_POLICIES
from decay_oracle.simulation.stepper import step

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    """Terminal classification plus summary statistics for one run."""

    level_name: str
    policy: PolicyKind
    won: bool
    reason: TerminalReason
    moves: int
    resources_used: int
    tightest_margin: int
    plans: int
    divergences: int
    final_turn: int
    turns: tuple[TurnRecord, ...] = ()

    def summary(self) -> dict[str, object]:
        return {
            "level": self.level_name,
            "policy": self.policy.value,
            "won": self.won,
            "reason": self.reason.value,
            "moves": self.moves,
            "resources_used": self.resources_used,
            "tightest_margin": self.tightest_margin,
            "plans": self.plans,
            "divergences": self.divergences,
            "final_turn": self.final_turn,
        }


def _run_oracle(
    level: Level,
    goal: Coord,
    rules: DecayRules,
    config: PlannerConfig,
    disturbance: Disturbance | None,
    record_turns: bool,
) -> RunOutcome:
    planner = OraclePlanner(
        snapshot=level.snapshot,
        goal=goal,
        rules=rules,
        config=config,
        disturbance=disturbance,
    )
    records = planner.run()
    assert planner.reason is not None
    return RunOutcome(
        level_name=level.name,
        policy=PolicyKind.ORACLE,
        won=planner.reason == TerminalReason.GOAL_REACHED,
        reason=planner.reason,
        moves=planner.moves,
        resources_used=planner.resources_used,
        tightest_margin=planner.tightest_margin,
        plans=planner.plans,
        divergences=planner.divergences,
        final_turn=planner.snapshot.turn,
        turns=tuple(records) if record_turns else (),
    )


def _run_reactive(
    policy: PolicyKind,
    level: Level,
    goal: Coord,
    rules: DecayRules,
    config: PlannerConfig,
    disturbance: Disturbance | None,
    record_turns: bool,
) -> RunOutcome:
    choose = REACTIVE_POLICIES[policy]
    world = level.snapshot
    moves = 0
    resources_used = 0
    tightest = tile_margin(world, world.actor)
    records: list[TurnRecord] = []
    reason: TerminalReason | None = None
    if world.actor == goal:
        reason = TerminalReason.GOAL_REACHED

    while reason is None:
        if moves >= config.move_budget:
            reason = TerminalReason.MOVE_BUDGET
            break
        allowance = world.stabilizers
        if config.resource_budget is not None:
            allowance = max(0, min(allowance, config.resource_budget - resources_used))
        intent = choose(world, goal, rules, allowance)
        if intent is None:
            reason = TerminalReason.NO_FEASIBLE_PLAN
            break
        result = step(world, intent, rules)
        world = result.snapshot
        if disturbance is not None:
            world = disturbance(world).freeze()
        moves += 1
        if intent.kind == IntentKind.STABILIZE:
            resources_used += 1
        fell = world.is_void(*world.actor)
        tightest = min(tightest, 0 if fell else tile_margin(world, world.actor))
        if fell:
            reason = TerminalReason.COLLAPSED
        elif world.actor == goal:
            reason = TerminalReason.GOAL_REACHED
        if record_turns:
            records.append(
                TurnRecord(
                    turn=world.turn - 1,
                    intent=intent,
                    snapshot=world,
                    collapsed=result.collapsed,
                    diverged=False,
                    terminal=reason is not None,
                    won=reason == TerminalReason.GOAL_REACHED,
                )
            )

    assert reason is not None
    return RunOutcome(
        level_name=level.name,
        policy=policy,
        won=reason == TerminalReason.GOAL_REACHED,
        reason=reason,
        moves=moves,
        resources_used=resources_used,
        tightest_margin=tightest,
        plans=0,
        divergences=0,
        final_turn=world.turn,
        turns=tuple(records),
    )


def run_to_completion(
    policy: PolicyKind,
    move_budget: int,
    resource_budget: int | None,
    goal: Coord | None,
    level: Level,
    rules: DecayRules | None = None,
    config: PlannerConfig | None = None,
    disturbance: Disturbance | None = None,
    record_turns: bool = False,
) -> RunOutcome:
    """Play `level` with `policy` until win or loss and summarise the run.

    `goal` defaults to the level's stairs (or first crystal). `move_budget`
    and `resource_budget` override the matching `config` fields. Holds no
    state between calls, so independent levels can run concurrently.
    """
    rules = rules or DecayRules()
    config = replace(
        config or PlannerConfig(), move_budget=move_budget, resource_budget=resource_budget
    )
    target = goal if goal is not None else level.default_goal()
    validate_goal(level.snapshot, target)

    if policy == PolicyKind.ORACLE:
        outcome = _run_oracle(level, target, rules, config, disturbance, record_turns)
    else:
        outcome = _run_reactive(policy, level, target, rules, config, disturbance, record_turns)
    logger.info(
        "%s on %s: %s after %d moves (%d stabilizers)",
        policy.value,
        level.name,
        outcome.reason.value,
        outcome.moves,
        outcome.resources_used,
    )
    return outcome
