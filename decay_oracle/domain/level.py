"""Level fixtures: ASCII maps and JSON level files turned into snapshots.

Legend::

    .  floor        #  wall         ~ or space  void
    >  stairs       *  crystal      P  pillar (on floor)
    A  anchor       @  actor (on floor)

Level generation lives outside this package; this module only loads
layouts a generator (or a test) already produced.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from decay_oracle.domain.errors import PreconditionViolation
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import TileKind

_KIND_BY_CHAR: dict[str, TileKind] = {
    ".": TileKind.FLOOR,
    "#": TileKind.WALL,
    "~": TileKind.VOID,
    " ": TileKind.VOID,
    ">": TileKind.STAIRS,
    "*": TileKind.CRYSTAL,
    "P": TileKind.FLOOR,
    "A": TileKind.FLOOR,
    "@": TileKind.FLOOR,
}


@dataclass(frozen=True)
class Level:
    """A loaded level: the initial snapshot plus its goal tiles."""

    name: str
    snapshot: WorldSnapshot
    goals: tuple[Coord, ...]

    def default_goal(self) -> Coord:
        """First stairs tile, else first crystal, else the first declared goal."""
        for kind in (TileKind.STAIRS, TileKind.CRYSTAL):
            found = [pos for pos in self.goals if self.snapshot.kind_at(*pos) == kind]
            if found:
                return found[0]
        if not self.goals:
            raise PreconditionViolation(f"level {self.name!r} has no goal tile")
        return self.goals[0]


def parse_level(
    rows: Sequence[str],
    timers: int | Sequence[Sequence[int]] = 10,
    stabilizers: int = 0,
    goals: Sequence[Coord] | None = None,
    name: str = "level",
) -> Level:
    """Build a level from ASCII rows and a uniform or per-tile timer setting."""
    if not rows:
        raise ValueError("level must have at least one row")
    width = max(len(row) for row in rows)
    height = len(rows)
    size = width * height
    kinds = np.full(size, int(TileKind.VOID), dtype=np.int8)
    pillars = np.zeros(size, dtype=bool)
    anchors = np.zeros(size, dtype=bool)
    actor: Coord | None = None

    for y, row in enumerate(rows):
        for x, char in enumerate(row):
            if char not in _KIND_BY_CHAR:
                raise ValueError(f"unknown level character {char!r} at ({x}, {y})")
            idx = y * width + x
            kinds[idx] = int(_KIND_BY_CHAR[char])
            if char == "P":
                pillars[idx] = True
            elif char == "A":
                anchors[idx] = True
            elif char == "@":
                if actor is not None:
                    raise ValueError("level must contain exactly one actor '@'")
                actor = (x, y)
    if actor is None:
        raise ValueError("level must contain exactly one actor '@'")

    if isinstance(timers, int):
        timer_values = np.full(size, timers, dtype=np.int32)
    else:
        if len(timers) != height or any(len(line) != width for line in timers):
            raise ValueError(f"timer matrix must be {height} rows of {width} values")
        timer_values = np.asarray(timers, dtype=np.int32).reshape(-1)
    # Only decaying tiles carry a meaningful timer.
    timer_values[(kinds == int(TileKind.VOID)) | (kinds == int(TileKind.WALL))] = 0
    solid = (kinds != int(TileKind.VOID)) & (kinds != int(TileKind.WALL))
    if np.any(solid & (timer_values <= 0) & ~anchors & ~pillars):
        raise ValueError("solid tiles must start with a positive timer")

    snapshot = WorldSnapshot(
        width=width,
        height=height,
        kinds=kinds,
        timers=timer_values,
        pillars=pillars,
        anchors=anchors,
        actor=actor,
        stabilizers=stabilizers,
    ).freeze()

    if goals is None:
        found = snapshot.positions_of(TileKind.STAIRS) + snapshot.positions_of(TileKind.CRYSTAL)
        goal_tuple = tuple(found)
    else:
        goal_tuple = tuple((int(x), int(y)) for x, y in goals)
    return Level(name=name, snapshot=snapshot, goals=goal_tuple)


def load_level(path: Path) -> Level:
    """Load a JSON level file: ``{"rows": [...], "timers": ..., "stabilizers": n}``."""
    path = Path(path)
    payload = json.loads(path.read_text())
    if "rows" not in payload:
        raise ValueError(f"level file {path} is missing 'rows'")
    return parse_level(
        rows=payload["rows"],
        timers=payload.get("timers", 10),
        stabilizers=int(payload.get("stabilizers", 0)),
        goals=payload.get("goals"),
        name=str(payload.get("name", path.stem)),
    )
