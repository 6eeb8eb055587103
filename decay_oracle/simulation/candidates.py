"""Candidate route generation toward a goal tile.

Routes are proposals, not guarantees: the path simulator decides which of
them survive. Generation combines

* a BFS distance field from the goal (8-directional, uniform step cost),
  used as the A* heuristic, in which pillar tiles count as passable, and
* a decay-aware edge cost that penalises tiles whose estimated remaining
  lifetime is short relative to when the actor would stand on them.

Several risk weights are searched, and for each weight a few diversity
rounds penalise tiles already used by earlier routes, so the simulator gets
genuinely different options to compare.

A route may step onto a pillar tile when the pillar can slide one tile
further in the same direction onto free floor; the simulator turns that
step into a push. The search does not track pillars it has moved, except
that it never steps straight onto the tile a pillar was just pushed to.
"""

from __future__ import annotations

import heapq
from collections import Counter, deque
from dataclasses import dataclass

import numpy as np

from decay_oracle.config.constants import (
    DIVERSITY_PENALTY,
    DIVERSITY_ROUNDS,
    MAX_CANDIDATES,
    RISK_WEIGHTS,
)
from decay_oracle.config.types import DecayRules
from decay_oracle.domain.errors import PreconditionViolation
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import DECAYING_KINDS, TileKind
from decay_oracle.simulation.stepper import rate_divisors

UNREACHABLE = -1

_DEFAULT_RULES = DecayRules()

# Lifetime reported for tiles that never decay (anchors).
_ENDLESS = np.iinfo(np.int32).max // 4


@dataclass(frozen=True)
class Candidate:
    """A proposed route from the actor (first entry) to the goal (last entry)."""

    path: tuple[Coord, ...]
    estimated_slack: int
    """Smallest (lifetime - arrival turn) along the route; negative means a tile dies first."""

    @property
    def length(self) -> int:
        return len(self.path) - 1

    @property
    def goal(self) -> Coord:
        return self.path[-1]


def validate_goal(snapshot: WorldSnapshot, goal: Coord) -> None:
    """Raise PreconditionViolation unless `goal` is a standable tile on the grid."""
    gx, gy = goal
    if not snapshot.in_bounds(gx, gy):
        raise PreconditionViolation(f"goal {goal} is outside the grid")
    if not snapshot.is_walkable(gx, gy):
        raise PreconditionViolation(f"goal {goal} is not present on the grid")


def _passable(snapshot: WorldSnapshot, idx: int, through_pillars: bool) -> bool:
    x, y = snapshot.coords(idx)
    if snapshot.is_walkable(x, y):
        return True
    return (
        through_pillars
        and bool(snapshot.pillars[idx])
        and snapshot.kind_at(x, y) in DECAYING_KINDS
    )


def distance_field(
    snapshot: WorldSnapshot, goal: Coord, through_pillars: bool = False
) -> np.ndarray:
    """Walkable 8-directional step distance from every tile to `goal`.

    Unreachable tiles hold ``UNREACHABLE``. The actor's own tile counts as
    walkable so the field is defined at the route start. With
    `through_pillars`, pillar tiles are crossed as if already pushed aside,
    which keeps the field a lower bound for routes that push.
    """
    field = np.full(snapshot.size, UNREACHABLE, dtype=np.int32)
    if not snapshot.is_walkable(*goal):
        return field
    start = snapshot.index(*goal)
    field[start] = 0
    queue: deque[int] = deque([start])
    while queue:
        idx = queue.popleft()
        for neighbor in snapshot.neighbor_indices(idx):
            if field[neighbor] != UNREACHABLE:
                continue
            if not _passable(snapshot, neighbor, through_pillars):
                continue
            field[neighbor] = field[idx] + 1
            queue.append(neighbor)
    return field


def estimated_lifetimes(snapshot: WorldSnapshot, rules: DecayRules) -> np.ndarray:
    """Turns until each tile collapses under plain decay, ignoring cascades.

    Anchors never collapse. A pillar tile is frozen only until the pillar is
    pushed off it, so it is scored from its own timer like any other tile.
    """
    lifetimes = snapshot.timers.astype(np.int64) * rate_divisors(snapshot, rules)
    lifetimes[snapshot.anchors] = _ENDLESS
    return lifetimes


def _route_slack(snapshot: WorldSnapshot, path: tuple[Coord, ...], lifetimes: np.ndarray) -> int:
    if len(path) == 1:
        return int(lifetimes[snapshot.index(*path[0])])
    return min(
        int(lifetimes[snapshot.index(*pos)]) - arrival
        for arrival, pos in enumerate(path[1:], start=1)
    )


def _push_landing(snapshot: WorldSnapshot, src: int, pillar: int) -> int | None:
    """Tile the pillar on `pillar` slides onto when pushed from `src`, if it can move."""
    sx, sy = snapshot.coords(src)
    px, py = snapshot.coords(pillar)
    lx, ly = 2 * px - sx, 2 * py - sy
    if not snapshot.in_bounds(lx, ly):
        return None
    landing = snapshot.index(lx, ly)
    if (
        snapshot.kind_at(lx, ly) != TileKind.FLOOR
        or snapshot.pillars[landing]
        or snapshot.anchors[landing]
    ):
        return None
    return landing


def _search(
    snapshot: WorldSnapshot,
    goal: Coord,
    field: np.ndarray,
    lifetimes: np.ndarray,
    risk_weight: float,
    used: Counter[int],
) -> tuple[Coord, ...] | None:
    """A* from the actor to `goal` under the decay-aware edge cost."""
    start = snapshot.index(*snapshot.actor)
    target = snapshot.index(*goal)
    g_score: dict[int, float] = {start: 0.0}
    depth: dict[int, int] = {start: 0}
    came_from: dict[int, int] = {}
    # Pillar tile reached by a push -> where that pillar lands.
    landed: dict[int, int] = {}
    closed: set[int] = set()
    open_set: list[tuple[float, int, int]] = [(float(field[start]), int(field[start]), start)]

    while open_set:
        _, _, idx = heapq.heappop(open_set)
        if idx in closed:
            continue
        if idx == target:
            route = [idx]
            while route[-1] in came_from:
                route.append(came_from[route[-1]])
            route.reverse()
            return tuple(snapshot.coords(i) for i in route)
        closed.add(idx)
        arrival = depth[idx] + 1
        for neighbor in snapshot.neighbor_indices(idx):
            if neighbor in closed or field[neighbor] == UNREACHABLE:
                continue
            if neighbor == landed.get(idx):
                continue
            landing = None
            if snapshot.pillars[neighbor]:
                landing = _push_landing(snapshot, idx, neighbor)
                if landing is None:
                    continue
            slack = int(lifetimes[neighbor]) - arrival
            cost = 1.0 + risk_weight * max(0.0, 2.0 - slack)
            cost += DIVERSITY_PENALTY * used[neighbor]
            tentative = g_score[idx] + cost
            if tentative >= g_score.get(neighbor, float("inf")):
                continue
            g_score[neighbor] = tentative
            depth[neighbor] = arrival
            came_from[neighbor] = idx
            if landing is None:
                landed.pop(neighbor, None)
            else:
                landed[neighbor] = landing
            h = int(field[neighbor])
            heapq.heappush(open_set, (tentative + h, h, neighbor))
    return None


def generate_candidates(
    snapshot: WorldSnapshot,
    goal: Coord,
    rules: DecayRules = _DEFAULT_RULES,
    max_candidates: int = MAX_CANDIDATES,
) -> list[Candidate]:
    """Distinct routes from the actor to `goal`, best-first.

    Ranked by estimated slack (descending) then length (ascending). Returns
    an empty list when the goal is currently unreachable.
    """
    if max_candidates < 1:
        raise ValueError("max_candidates must be >= 1")
    validate_goal(snapshot, goal)
    if snapshot.actor == goal:
        path = (goal,)
        lifetimes = estimated_lifetimes(snapshot, rules)
        return [Candidate(path=path, estimated_slack=_route_slack(snapshot, path, lifetimes))]

    field = distance_field(snapshot, goal, through_pillars=True)
    if field[snapshot.index(*snapshot.actor)] == UNREACHABLE:
        return []
    lifetimes = estimated_lifetimes(snapshot, rules)

    seen: set[tuple[Coord, ...]] = set()
    candidates: list[Candidate] = []
    for weight in RISK_WEIGHTS:
        used: Counter[int] = Counter()
        for _ in range(DIVERSITY_ROUNDS):
            path = _search(snapshot, goal, field, lifetimes, weight, used)
            if path is None:
                break
            used.update(snapshot.index(*pos) for pos in path[1:-1])
            if path in seen:
                continue
            seen.add(path)
            candidates.append(
                Candidate(path=path, estimated_slack=_route_slack(snapshot, path, lifetimes))
            )

    candidates.sort(key=lambda c: (-c.estimated_slack, c.length, c.path))
    return candidates[:max_candidates]
