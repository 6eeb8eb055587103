"""Turn policies: the shared stabilization rule and the comparison bots.

Every policy here is a plain function from a snapshot (plus the route
followed so far) to the next intent. ``stabilization_intent`` is the rule
the path simulator applies along a candidate route; committed scripts are
built from its output, so live execution follows exactly the same choices.
``greedy_intent`` and ``tactical_intent`` are simpler bots kept for
head-to-head comparison runs; the oracle never falls back to them.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from decay_oracle.config.constants import PROACTIVE_LOOKAHEAD
from decay_oracle.config.types import DecayRules, PolicyKind, StabilizationMode
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import Direction, Intent
from decay_oracle.simulation.candidates import (
    UNREACHABLE,
    distance_field,
    estimated_lifetimes,
)
from decay_oracle.simulation.stepper import intent_problem, step


def _within_reach(center: Coord, pos: Coord, radius: int) -> bool:
    return max(abs(center[0] - pos[0]), abs(center[1] - pos[1])) <= radius


def advance_intent(world: WorldSnapshot, here: Coord, there: Coord) -> Intent:
    """Step from `here` onto the adjacent `there`, pushing the pillar if one stands there."""
    direction = Direction.between(here, there)
    if world.in_bounds(*there) and world.has_pillar(*there):
        return Intent.push(direction)
    return Intent.move(direction)


def _collapse_group(collapsed: Sequence[Coord], seed: Coord) -> set[Coord]:
    """Tiles from one turn's collapse list 8-connected to `seed` (the chain it fell in)."""
    pending = set(collapsed)
    pending.discard(seed)
    group = {seed}
    frontier = [seed]
    while frontier:
        x, y = frontier.pop()
        for pos in [p for p in pending if max(abs(p[0] - x), abs(p[1] - y)) <= 1]:
            pending.discard(pos)
            group.add(pos)
            frontier.append(pos)
    return group


def _chokepoint_here(
    world: WorldSnapshot,
    path: Sequence[Coord],
    index: int,
    rules: DecayRules,
    lookahead: int,
) -> bool:
    """True if the first chokepoint ahead can only still be shielded from here.

    Dry-runs plain advances along `path` with the real stepper. The first
    advance that is illegal or drops the actor names the chokepoint tile;
    the turn it collapsed on and the chain it collapsed with are what a
    stabilizer would have to reach. The stabilizer is due now when no later
    route position both reaches that chain and is reached before it goes.
    """
    dry = world
    collapse_turn: dict[Coord, int] = {}
    chains: dict[int, tuple[Coord, ...]] = {}
    failed_at: int | None = None
    for ahead in range(1, min(lookahead, len(path) - 1 - index) + 1):
        advance = advance_intent(dry, path[index + ahead - 1], path[index + ahead])
        if intent_problem(dry, advance) is not None:
            failed_at = ahead
            break
        result = step(dry, advance, rules)
        dry = result.snapshot
        chains[ahead] = result.collapsed
        for pos in result.collapsed:
            collapse_turn.setdefault(pos, ahead)
        if result.actor_fell:
            failed_at = ahead
            break
    if failed_at is None:
        return False

    chokepoint = path[index + failed_at]
    died = collapse_turn.get(chokepoint)
    if died is None:
        # Blocked by something other than decay; no stabilizer helps.
        return False
    group = _collapse_group(chains[died], chokepoint)
    radius = rules.stabilizer_radius
    # Position path[index + k] is stood on at the start of turn k + 1.
    reachable = [
        k
        for k in range(0, min(failed_at, died))
        if any(_within_reach(path[index + k], pos, radius) for pos in group)
    ]
    return bool(reachable) and max(reachable) == 0


def stabilization_intent(
    world: WorldSnapshot,
    path: Sequence[Coord],
    index: int,
    rules: DecayRules,
    mode: StabilizationMode,
    allowance: int,
    proactive_lookahead: int = PROACTIVE_LOOKAHEAD,
) -> Intent | None:
    """Next intent for an actor standing on ``path[index]`` and heading along `path`.

    Returns None when the route is already broken (the next tile is gone
    or blocked). Otherwise returns either the advance onto
    ``path[index + 1]`` (a move, or a push when a pillar stands there) or a
    stabilizer use:

    * necessity: only when the advance, resolved by the real stepper, would
      drop the actor or collapse a route tile the stabilizer can still
      reach from here;
    * proactive: additionally, when a dry run of up to
      `proactive_lookahead` advances hits a chokepoint whose collapse chain
      is within reach now but out of reach from every later position that
      comes before the collapse. This covers chains set off by tiles off
      the route, which the one-turn necessity check cannot see.
    """
    here = path[index]
    advance = advance_intent(world, here, path[index + 1])
    if intent_problem(world, advance) is not None:
        return None
    can_stabilize = allowance > 0 and world.stabilizers > 0
    if not can_stabilize:
        return advance

    if mode == StabilizationMode.PROACTIVE and _chokepoint_here(
        world, path, index, rules, proactive_lookahead
    ):
        return Intent.stabilize()

    trial = step(world, advance, rules)
    if trial.actor_fell:
        return Intent.stabilize()
    lost = set(trial.collapsed)
    for pos in path[index + 2 :]:
        if not _within_reach(here, pos, rules.stabilizer_radius):
            break
        if pos in lost:
            return Intent.stabilize()
    return advance


def _progress_moves(world: WorldSnapshot, field: np.ndarray) -> list[tuple[Direction, Coord]]:
    ax, ay = world.actor
    current = int(field[world.index(ax, ay)])
    moves: list[tuple[Direction, Coord]] = []
    for direction in Direction:
        tx, ty = ax + direction.dx, ay + direction.dy
        if not world.is_walkable(tx, ty):
            continue
        value = int(field[world.index(tx, ty)])
        if value != UNREACHABLE and value < current:
            moves.append((direction, (tx, ty)))
    return moves


def greedy_intent(
    world: WorldSnapshot, goal: Coord, rules: DecayRules, allowance: int
) -> Intent | None:
    """Step straight down the distance field; no lookahead, no stabilizers."""
    field = distance_field(world, goal)
    if field[world.index(*world.actor)] == UNREACHABLE:
        return None
    moves = _progress_moves(world, field)
    if not moves:
        return None
    direction, _ = min(moves, key=lambda m: int(field[world.index(*m[1])]))
    return Intent.move(direction)


def tactical_intent(
    world: WorldSnapshot, goal: Coord, rules: DecayRules, allowance: int
) -> Intent | None:
    """Pick the longest-lived progressing neighbor, stabilizing when the move would kill."""
    field = distance_field(world, goal)
    if field[world.index(*world.actor)] == UNREACHABLE:
        return None
    moves = _progress_moves(world, field)
    if not moves:
        return None
    lifetimes = estimated_lifetimes(world, rules)
    _, target = max(
        moves,
        key=lambda m: (int(lifetimes[world.index(*m[1])]), -int(field[world.index(*m[1])])),
    )
    return stabilization_intent(
        world, (world.actor, target), 0, rules, StabilizationMode.NECESSITY, allowance
    )


REACTIVE_POLICIES = {
    PolicyKind.GREEDY: greedy_intent,
    PolicyKind.TACTICAL: tactical_intent,
}
"""Single-turn policies selected by tag; the oracle is driven by the planner instead."""
