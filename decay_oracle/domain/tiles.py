"""Tile kinds, compass directions, and per-turn actor intents."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class TileKind(IntEnum):
    """Terrain kind stored in the snapshot arena (int8)."""

    VOID = 0
    FLOOR = 1
    WALL = 2
    STAIRS = 3
    CRYSTAL = 4


DECAYING_KINDS: frozenset[TileKind] = frozenset(
    {TileKind.FLOOR, TileKind.STAIRS, TileKind.CRYSTAL}
)
"""Kinds that carry a live decay timer. WALL is permanent; VOID is already gone."""


class Direction(Enum):
    """Eight compass directions; y grows downward."""

    N = (0, -1)
    NE = (1, -1)
    E = (1, 0)
    SE = (1, 1)
    S = (0, 1)
    SW = (-1, 1)
    W = (-1, 0)
    NW = (-1, -1)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]

    @classmethod
    def between(cls, src: tuple[int, int], dst: tuple[int, int]) -> Direction:
        """Direction of a single king-move step from `src` to `dst`."""
        delta = (dst[0] - src[0], dst[1] - src[1])
        for direction in cls:
            if direction.value == delta:
                return direction
        raise ValueError(f"{src} -> {dst} is not a single step")


class IntentKind(Enum):
    """What the actor does with its turn."""

    MOVE = "move"
    PUSH = "push"
    STABILIZE = "stabilize"
    WAIT = "wait"


@dataclass(frozen=True)
class Intent:
    """One committed turn intent. MOVE and PUSH carry a direction."""

    kind: IntentKind
    direction: Direction | None = None

    def __post_init__(self) -> None:
        directional = self.kind in (IntentKind.MOVE, IntentKind.PUSH)
        if directional and self.direction is None:
            raise ValueError(f"{self.kind.value} intent requires a direction")
        if not directional and self.direction is not None:
            raise ValueError(f"{self.kind.value} intent takes no direction")

    @classmethod
    def move(cls, direction: Direction) -> Intent:
        return cls(IntentKind.MOVE, direction)

    @classmethod
    def push(cls, direction: Direction) -> Intent:
        return cls(IntentKind.PUSH, direction)

    @classmethod
    def stabilize(cls) -> Intent:
        return cls(IntentKind.STABILIZE)

    @classmethod
    def wait(cls) -> Intent:
        return cls(IntentKind.WAIT)

    def __str__(self) -> str:
        if self.direction is None:
            return self.kind.value
        return f"{self.kind.value}:{self.direction.name}"
