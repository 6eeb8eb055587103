import numpy as np
import pytest

from decay_oracle.config.types import DecayRules
from decay_oracle.domain.errors import PreconditionViolation
from decay_oracle.domain.level import parse_level
from decay_oracle.domain.snapshot import WorldSnapshot
from decay_oracle.domain.tiles import Direction, Intent, TileKind
from decay_oracle.simulation.stepper import intent_problem, rate_divisors, step

WAIT = Intent.wait()


def _wait(snapshot: WorldSnapshot, turns: int, rules: DecayRules | None = None) -> WorldSnapshot:
    for _ in range(turns):
        snapshot = step(snapshot, WAIT, rules or DecayRules()).snapshot
    return snapshot


class TestPlainDecay:
    def test_uniform_grid_collapses_all_at_once(self) -> None:
        world = WorldSnapshot.blank(5, 5, timer=10, actor=(2, 2))
        for turn in range(9):
            result = step(world, WAIT)
            assert result.collapsed == ()
            assert not result.actor_fell
            world = result.snapshot
            assert world.turn == turn + 1
            assert world.timer_at(0, 0) == 10 - (turn + 1)
        final = step(world, WAIT)
        assert len(final.collapsed) == 25
        assert final.actor_fell
        assert final.snapshot.kinds.tolist() == [int(TileKind.VOID)] * 25

    def test_input_snapshot_is_untouched(self) -> None:
        world = WorldSnapshot.blank(3, 1, timer=2, stabilizers=1)
        before = world.thaw()
        step(world, Intent.move(Direction.E))
        step(world, Intent.stabilize())
        assert world == before

    def test_same_input_same_output(self) -> None:
        level = parse_level(
            ["@.P.", ".A.>", "*.#."],
            timers=[[3, 4, 5, 2], [6, 2, 1, 7], [2, 3, 0, 4]],
        )
        first = step(level.snapshot, Intent.move(Direction.SE))
        second = step(level.snapshot, Intent.move(Direction.SE))
        assert first.snapshot == second.snapshot
        assert first.collapsed == second.collapsed

    def test_walls_and_anchors_never_decay(self) -> None:
        world = _wait(parse_level(["@#A.."], timers=3).snapshot, 2)
        assert world.kind_at(1, 0) == TileKind.WALL
        assert world.timer_at(2, 0) == 3
        assert world.timer_at(4, 0) == 1


class TestPillarRate:
    def test_pillar_neighbors_decay_at_half_rate(self) -> None:
        world = parse_level(["P@..."], timers=4).snapshot
        once = _wait(world, 1)
        assert once.timer_at(1, 0) == 4
        assert once.timer_at(2, 0) == 3
        twice = _wait(once, 1)
        assert twice.timer_at(1, 0) == 3
        assert twice.timer_at(2, 0) == 2
        assert twice.timer_at(0, 0) == 4

    def test_hard_mode_stacks_with_pillar(self) -> None:
        rules = DecayRules(hard_mode=True)
        world = parse_level(["P@..."], timers=8).snapshot
        divisors = rate_divisors(world, rules)
        assert divisors.tolist() == [2, 4, 2, 2, 2]
        later = _wait(world, 4, rules)
        assert later.timer_at(1, 0) == 7
        assert later.timer_at(3, 0) == 6


class TestCascade:
    def test_chain_penalty_propagates_until_stable(self) -> None:
        world = parse_level(["....@"], timers=[[1, 3, 1, 10, 10]]).snapshot
        result = step(world, WAIT)
        assert set(result.collapsed) == {(0, 0), (1, 0), (2, 0)}
        assert result.chain_passes == 2
        assert result.snapshot.timer_at(3, 0) == 7
        assert result.snapshot.timer_at(4, 0) == 9
        assert not result.actor_fell

    def test_domino_run_reaches_the_actor(self) -> None:
        world = parse_level([".........@"], timers=[[1] + [3] * 9]).snapshot
        result = step(world, WAIT)
        assert len(result.collapsed) == 10
        assert result.chain_passes == 10
        assert result.actor_fell

    def test_mild_penalty_breaks_the_domino(self) -> None:
        world = parse_level([".........@"], timers=[[1] + [3] * 9]).snapshot
        result = step(world, WAIT, DecayRules(chain_penalty=1))
        assert result.collapsed == ((0, 0),)
        assert result.snapshot.timer_at(1, 0) == 1

    def test_collapsed_tiles_read_zero(self) -> None:
        world = parse_level(["..@"], timers=[[1, 9, 9]]).snapshot
        result = step(world, WAIT)
        assert result.snapshot.timer_at(0, 0) == 0
        assert result.snapshot.is_void(0, 0)


class TestStabilizer:
    def test_raises_timers_and_shields_from_chain(self) -> None:
        world = parse_level(["..@.."], timers=[[1, 1, 3, 3, 3]], stabilizers=1).snapshot
        result = step(world, Intent.stabilize())
        after = result.snapshot
        assert after.stabilizers == 0
        assert result.collapsed == ((0, 0),)
        assert after.timer_at(1, 0) == 5
        assert after.timer_at(2, 0) == 5
        assert after.timer_at(3, 0) == 5
        assert after.timer_at(4, 0) == 2

    def test_floor_never_lowers_a_timer(self) -> None:
        world = parse_level(["@."], timers=[[9, 2]], stabilizers=1).snapshot
        after = step(world, Intent.stabilize()).snapshot
        assert after.timer_at(0, 0) == 9
        assert after.timer_at(1, 0) == 5


class TestNoResurrection:
    def test_void_stays_void_through_stabilizers_and_cascades(self) -> None:
        # Voids at (0, 0) and (0, 2) sit inside the stabilizer square around
        # the actor; (3, 0) collapses on the first turn and takes (3, 1) along.
        world = parse_level(
            ["~...", ".@..", "~..~"],
            timers=[[0, 3, 3, 1], [3, 3, 3, 3], [0, 3, 3, 0]],
            stabilizers=3,
        ).snapshot
        void = int(TileKind.VOID)
        gone = set(np.flatnonzero(world.kinds == void).tolist())
        assert gone == {0, 8, 11}
        saw_collapse = False
        for turn in range(20):
            intent = Intent.stabilize() if turn % 3 == 0 and world.stabilizers else WAIT
            result = step(world, intent)
            world = result.snapshot
            now_gone = set(np.flatnonzero(world.kinds == void).tolist())
            assert gone <= now_gone
            assert all(world.timers[idx] == 0 for idx in now_gone)
            saw_collapse = saw_collapse or bool(result.collapsed)
            gone = now_gone
            if result.actor_fell:
                break
        assert saw_collapse
        assert {3, 7} <= gone


class TestPush:
    def test_push_moves_pillar_and_actor(self) -> None:
        world = parse_level(["@P.."], timers=5).snapshot
        after = step(world, Intent.push(Direction.E)).snapshot
        assert after.actor == (1, 0)
        assert after.has_pillar(2, 0)
        assert not after.has_pillar(1, 0)
        assert after.timers.tolist() == [5, 5, 5, 4]

    def test_push_blocked_by_wall(self) -> None:
        world = parse_level(["@P#"], timers=5).snapshot
        assert intent_problem(world, Intent.push(Direction.E)) is not None


class TestPreconditions:
    def test_move_into_wall(self) -> None:
        world = parse_level(["@#"], timers=5).snapshot
        with pytest.raises(PreconditionViolation):
            step(world, Intent.move(Direction.E))

    def test_move_off_grid(self) -> None:
        world = parse_level(["@."], timers=5).snapshot
        with pytest.raises(PreconditionViolation):
            step(world, Intent.move(Direction.N))

    def test_stabilize_without_resources(self) -> None:
        world = parse_level(["@."], timers=5).snapshot
        with pytest.raises(PreconditionViolation, match="stabilizers"):
            step(world, Intent.stabilize())

    def test_actor_already_on_void(self) -> None:
        world = parse_level(["@."], timers=5).snapshot.thaw()
        world.kinds[0] = int(TileKind.VOID)
        world.freeze()
        with pytest.raises(PreconditionViolation, match="void"):
            step(world, WAIT)
