"""World snapshot: flat tile arena plus actor and resource state.

Tiles live in one flat buffer per attribute, addressed by
``index(x, y) = y * width + x``. A snapshot handed out by the stepper is
sealed: its arrays are read-only and its attributes cannot be reassigned.
``thaw()`` produces the private, writable deep copy that the stepper or a
simulator mutates.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field, replace

import numpy as np

from decay_oracle.domain.tiles import DECAYING_KINDS, TileKind

Coord = tuple[int, int]

_DECAYING_INTS = frozenset(int(kind) for kind in DECAYING_KINDS)
_DECAYING_CODES = np.array(sorted(_DECAYING_INTS), dtype=np.int8)

_NEIGHBOR_OFFSETS: tuple[Coord, ...] = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (-1, 0),
    (1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)


@dataclass(eq=False)
class WorldSnapshot:
    """Complete world state at one turn boundary."""

    width: int
    height: int
    kinds: np.ndarray
    timers: np.ndarray
    pillars: np.ndarray
    anchors: np.ndarray
    actor: Coord
    turn: int = 0
    stabilizers: int = 0
    _sealed: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("grid dimensions must be >= 1")
        size = self.width * self.height
        for name in ("kinds", "timers", "pillars", "anchors"):
            if getattr(self, name).shape != (size,):
                raise ValueError(f"{name} must be a flat array of length {size}")
        if not self.in_bounds(*self.actor):
            raise ValueError(f"actor {self.actor} is outside the grid")
        if self.stabilizers < 0:
            raise ValueError("stabilizers must be >= 0")

    def __setattr__(self, name: str, value: object) -> None:
        if getattr(self, "_sealed", False):
            raise AttributeError(f"cannot set {name!r} on a sealed snapshot; thaw() it first")
        object.__setattr__(self, name, value)

    # -- construction -----------------------------------------------------

    @classmethod
    def blank(
        cls,
        width: int,
        height: int,
        timer: int,
        actor: Coord = (0, 0),
        stabilizers: int = 0,
    ) -> WorldSnapshot:
        """All-floor grid with a uniform timer; handy for tests and fixtures."""
        size = width * height
        return cls(
            width=width,
            height=height,
            kinds=np.full(size, int(TileKind.FLOOR), dtype=np.int8),
            timers=np.full(size, timer, dtype=np.int32),
            pillars=np.zeros(size, dtype=bool),
            anchors=np.zeros(size, dtype=bool),
            actor=actor,
            stabilizers=stabilizers,
        ).freeze()

    def thaw(self) -> WorldSnapshot:
        """Return a writable deep copy; the original is never touched."""
        return replace(
            self,
            kinds=self.kinds.copy(),
            timers=self.timers.copy(),
            pillars=self.pillars.copy(),
            anchors=self.anchors.copy(),
        )

    def freeze(self) -> WorldSnapshot:
        """Seal arrays and attributes in place and return self."""
        for array in (self.kinds, self.timers, self.pillars, self.anchors):
            array.flags.writeable = False
        object.__setattr__(self, "_sealed", True)
        return self

    # -- addressing -------------------------------------------------------

    @property
    def size(self) -> int:
        return self.width * self.height

    def index(self, x: int, y: int) -> int:
        return y * self.width + x

    def coords(self, idx: int) -> Coord:
        return (idx % self.width, idx // self.width)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def neighbors(self, x: int, y: int) -> list[Coord]:
        """In-bounds 8-neighbors of (x, y)."""
        return [
            (x + dx, y + dy) for dx, dy in _NEIGHBOR_OFFSETS if self.in_bounds(x + dx, y + dy)
        ]

    def neighbor_indices(self, idx: int) -> list[int]:
        x, y = self.coords(idx)
        return [self.index(nx, ny) for nx, ny in self.neighbors(x, y)]

    # -- tile queries -----------------------------------------------------

    def kind_at(self, x: int, y: int) -> TileKind:
        return TileKind(int(self.kinds[self.index(x, y)]))

    def timer_at(self, x: int, y: int) -> int:
        return int(self.timers[self.index(x, y)])

    def has_pillar(self, x: int, y: int) -> bool:
        return bool(self.pillars[self.index(x, y)])

    def has_anchor(self, x: int, y: int) -> bool:
        return bool(self.anchors[self.index(x, y)])

    def is_void(self, x: int, y: int) -> bool:
        return self.kind_at(x, y) == TileKind.VOID

    def is_walkable(self, x: int, y: int) -> bool:
        """Actor may stand here: in bounds, solid ground, no pillar."""
        if not self.in_bounds(x, y):
            return False
        idx = self.index(x, y)
        return int(self.kinds[idx]) in _DECAYING_INTS and not self.pillars[idx]

    def decaying_mask(self) -> np.ndarray:
        """Tiles whose timer is live: solid decaying kind, no pillar, no anchor."""
        return np.isin(self.kinds, _DECAYING_CODES) & ~self.pillars & ~self.anchors

    def pillar_adjacency_mask(self) -> np.ndarray:
        """Tiles 8-adjacent to any pillar (the pillar tiles themselves excluded)."""
        grid = self.pillars.reshape(self.height, self.width)
        padded = np.pad(grid, 1, constant_values=False)
        near = np.zeros_like(grid)
        for dx, dy in _NEIGHBOR_OFFSETS:
            near |= padded[1 + dy : 1 + dy + self.height, 1 + dx : 1 + dx + self.width]
        return (near & ~grid).reshape(-1)

    def positions_of(self, kind: TileKind) -> list[Coord]:
        return [self.coords(int(idx)) for idx in np.flatnonzero(self.kinds == int(kind))]

    # -- equality ---------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorldSnapshot):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.actor == other.actor
            and self.turn == other.turn
            and self.stabilizers == other.stabilizers
            and np.array_equal(self.kinds, other.kinds)
            and np.array_equal(self.timers, other.timers)
            and np.array_equal(self.pillars, other.pillars)
            and np.array_equal(self.anchors, other.anchors)
        )

    __hash__ = None  # type: ignore[assignment]

    def fingerprint(self) -> str:
        """SHA-256 hex digest of the full state; equal snapshots share it."""
        digest = hashlib.sha256()
        header = (self.width, self.height, *self.actor, self.turn, self.stabilizers)
        digest.update(np.asarray(header, dtype=np.int64).tobytes())
        for array in (self.kinds, self.timers, self.pillars, self.anchors):
            digest.update(np.ascontiguousarray(array).tobytes())
        return digest.hexdigest()

    def diff(self, other: WorldSnapshot) -> list[str]:
        """Human-readable differences, for divergence reports."""
        notes: list[str] = []
        for name in ("width", "height", "actor", "turn", "stabilizers"):
            if getattr(self, name) != getattr(other, name):
                notes.append(f"{name}: {getattr(self, name)} != {getattr(other, name)}")
        if self.size != other.size:
            return notes
        for name in ("kinds", "timers", "pillars", "anchors"):
            mine, theirs = getattr(self, name), getattr(other, name)
            for idx in np.flatnonzero(mine != theirs)[:8]:
                notes.append(
                    f"{name}@{self.coords(int(idx))}: {mine[idx].item()} != {theirs[idx].item()}"
                )
        return notes
