"""Domain layer: tiles, intents, snapshots, levels, and errors."""

from decay_oracle.domain.errors import ParityError, PreconditionViolation
from decay_oracle.domain.level import Level, load_level, parse_level
from decay_oracle.domain.snapshot import Coord, WorldSnapshot
from decay_oracle.domain.tiles import DECAYING_KINDS, Direction, Intent, IntentKind, TileKind

__all__ = [
    "Coord",
    "DECAYING_KINDS",
    "Direction",
    "Intent",
    "IntentKind",
    "Level",
    "ParityError",
    "PreconditionViolation",
    "TileKind",
    "WorldSnapshot",
    "load_level",
    "parse_level",
]
