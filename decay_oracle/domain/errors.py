"""Exceptions surfaced by the stepper and planner."""

from __future__ import annotations


class PreconditionViolation(ValueError):
    """Caller handed the core an invalid snapshot, intent, or goal."""


class ParityError(RuntimeError):
    """Real execution diverged twice from identical inputs.

    The stepper is deterministic, so a repeated divergence on the same turn
    transition means simulation and execution disagree about the world.
    """
