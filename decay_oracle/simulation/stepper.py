"""Decay stepper: advance a world snapshot by exactly one turn.

The same function drives real execution and every simulated lookahead, so
it takes no randomness and never mutates its input. Order of resolution:

1. apply the actor's intent (positions and resources only);
2. decrement live timers, at reduced rate next to pre-step pillars;
3. collapse every live tile whose timer reached zero;
4. propagate chain penalties from each collapse until a pass adds none;
5. report whether the actor's own tile is gone.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from decay_oracle.config.constants import HARD_MODE_RATE_DIVISOR, PILLAR_RATE_DIVISOR
from decay_oracle.config.types import DecayRules
from decay_oracle.domain.errors import PreconditionViolation
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import DECAYING_KINDS, Intent, IntentKind, TileKind

_DEFAULT_RULES = DecayRules()


@dataclass(frozen=True)
class StepResult:
    """Per-turn record: the sealed next snapshot and what happened on the way."""

    snapshot: WorldSnapshot
    intent: Intent
    collapsed: tuple[Coord, ...]
    chain_passes: int
    actor_fell: bool


def intent_problem(snapshot: WorldSnapshot, intent: Intent) -> str | None:
    """Return why `intent` cannot be taken from `snapshot`, or None if legal."""
    ax, ay = snapshot.actor
    if intent.kind == IntentKind.MOVE:
        assert intent.direction is not None
        tx, ty = ax + intent.direction.dx, ay + intent.direction.dy
        if not snapshot.is_walkable(tx, ty):
            return f"cannot move {intent.direction.name} onto ({tx}, {ty})"
    elif intent.kind == IntentKind.PUSH:
        assert intent.direction is not None
        px, py = ax + intent.direction.dx, ay + intent.direction.dy
        if not snapshot.in_bounds(px, py) or not snapshot.has_pillar(px, py):
            return f"no pillar to push at ({px}, {py})"
        dx, dy = px + intent.direction.dx, py + intent.direction.dy
        if not (
            snapshot.in_bounds(dx, dy)
            and snapshot.kind_at(dx, dy) == TileKind.FLOOR
            and not snapshot.has_pillar(dx, dy)
            and not snapshot.has_anchor(dx, dy)
        ):
            return f"pillar cannot slide onto ({dx}, {dy})"
    elif intent.kind == IntentKind.STABILIZE:
        if snapshot.stabilizers <= 0:
            return "no stabilizers remaining"
    return None


def _apply_intent(
    world: WorldSnapshot, intent: Intent, rules: DecayRules, immune: np.ndarray
) -> None:
    ax, ay = world.actor
    if intent.kind == IntentKind.MOVE:
        assert intent.direction is not None
        world.actor = (ax + intent.direction.dx, ay + intent.direction.dy)
    elif intent.kind == IntentKind.PUSH:
        assert intent.direction is not None
        px, py = ax + intent.direction.dx, ay + intent.direction.dy
        world.pillars[world.index(px, py)] = False
        world.pillars[world.index(px + intent.direction.dx, py + intent.direction.dy)] = True
        world.actor = (px, py)
    elif intent.kind == IntentKind.STABILIZE:
        world.stabilizers -= 1
        radius = rules.stabilizer_radius
        for y in range(max(0, ay - radius), min(world.height, ay + radius + 1)):
            for x in range(max(0, ax - radius), min(world.width, ax + radius + 1)):
                idx = world.index(x, y)
                if TileKind(int(world.kinds[idx])) not in DECAYING_KINDS:
                    continue
                world.timers[idx] = max(int(world.timers[idx]), rules.stabilizer_floor)
                immune[idx] = True


def rate_divisors(snapshot: WorldSnapshot, rules: DecayRules) -> np.ndarray:
    """Per-tile decay rate divisor (1, 2 or 4) for the given pillar layout."""
    base = HARD_MODE_RATE_DIVISOR if rules.hard_mode else 1
    near_pillar = snapshot.pillar_adjacency_mask()
    return np.where(near_pillar, base * PILLAR_RATE_DIVISOR, base).astype(np.int32)


def step(
    snapshot: WorldSnapshot, intent: Intent, rules: DecayRules = _DEFAULT_RULES
) -> StepResult:
    """Resolve one full turn from `snapshot`; the input is left untouched."""
    ax, ay = snapshot.actor
    if snapshot.is_void(ax, ay):
        raise PreconditionViolation(f"actor at ({ax}, {ay}) is already standing on void")
    problem = intent_problem(snapshot, intent)
    if problem is not None:
        raise PreconditionViolation(f"illegal intent {intent}: {problem}")

    world = snapshot.thaw()
    immune = np.zeros(world.size, dtype=bool)
    _apply_intent(world, intent, rules, immune)

    # Frozen tiles: pillars before or after the push, and anchors.
    live = world.decaying_mask() & ~snapshot.pillars
    divisors = rate_divisors(snapshot, rules)
    due = (snapshot.turn + 1) % divisors == 0
    world.timers[live & ~immune & due] -= 1

    collapsed_now = np.flatnonzero(live & (world.timers <= 0))
    world.kinds[collapsed_now] = int(TileKind.VOID)
    world.timers[collapsed_now] = 0
    collapsed: list[int] = [int(idx) for idx in collapsed_now]

    frontier = list(collapsed)
    chain_passes = 0
    while frontier:
        chain_passes += 1
        eligible = world.decaying_mask() & ~snapshot.pillars & ~immune
        for idx in frontier:
            for neighbor in world.neighbor_indices(idx):
                if eligible[neighbor]:
                    world.timers[neighbor] -= rules.chain_penalty
        newly = np.flatnonzero(eligible & (world.timers <= 0))
        world.kinds[newly] = int(TileKind.VOID)
        world.timers[newly] = 0
        frontier = [int(idx) for idx in newly]
        collapsed.extend(frontier)

    world.turn += 1
    world.freeze()
    return StepResult(
        snapshot=world,
        intent=intent,
        collapsed=tuple(world.coords(idx) for idx in collapsed),
        chain_passes=chain_passes,
        actor_fell=world.is_void(*world.actor),
    )
