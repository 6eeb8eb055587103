from decay_oracle.config.types import DecayRules, StabilizationMode
from decay_oracle.domain.level import parse_level
from decay_oracle.domain.tiles import Direction, Intent
from decay_oracle.simulation.policies import (
    greedy_intent,
    stabilization_intent,
    tactical_intent,
)
from decay_oracle.simulation.stepper import step

RULES = DecayRules()
NECESSITY = StabilizationMode.NECESSITY
PROACTIVE = StabilizationMode.PROACTIVE
CORRIDOR = ((0, 0), (1, 0), (2, 0), (3, 0))

FUSE = parse_level(
    ["#.###", "@...>", "##P##"],
    timers=[[0, 1, 0, 0, 0], [9, 9, 2, 9, 9], [0, 0, 9, 0, 0]],
    stabilizers=1,
)
FUSE_ROUTE = ((0, 1), (1, 1), (2, 1), (3, 1), (4, 1))


class TestStabilizationIntent:
    def test_necessity_waits_until_the_move_would_kill(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]], stabilizers=1).snapshot
        first = stabilization_intent(world, CORRIDOR, 0, RULES, NECESSITY, 1)
        assert first == Intent.move(Direction.E)
        world = step(world, first, RULES).snapshot
        second = stabilization_intent(world, CORRIDOR, 1, RULES, NECESSITY, 1)
        assert second == Intent.stabilize()

    def test_no_allowance_means_plain_move(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]], stabilizers=1).snapshot
        world = step(world, Intent.move(Direction.E), RULES).snapshot
        intent = stabilization_intent(world, CORRIDOR, 1, RULES, NECESSITY, 0)
        assert intent == Intent.move(Direction.E)

    def test_proactive_shields_the_tile_that_sets_off_a_chain(self) -> None:
        # (1, 0) collapses on the first turn; its chain penalty takes out
        # (2, 1), two route steps ahead and out of the stabilizer's reach.
        world = FUSE.snapshot
        proactive = stabilization_intent(world, FUSE_ROUTE, 0, RULES, PROACTIVE, 1)
        necessity = stabilization_intent(world, FUSE_ROUTE, 0, RULES, NECESSITY, 1)
        assert proactive == Intent.stabilize()
        assert necessity == Intent.move(Direction.E)

    def test_proactive_lookahead_bounds_the_dry_run(self) -> None:
        intent = stabilization_intent(
            FUSE.snapshot,
            FUSE_ROUTE,
            0,
            RULES,
            PROACTIVE,
            1,
            proactive_lookahead=1,
        )
        assert intent == Intent.move(Direction.E)

    def test_proactive_keeps_the_stabilizer_when_the_route_holds(self) -> None:
        world = parse_level(["@..>"], timers=[[9, 3, 9, 9]], stabilizers=1).snapshot
        intent = stabilization_intent(world, CORRIDOR, 0, RULES, PROACTIVE, 1)
        assert intent == Intent.move(Direction.E)

    def test_pillar_on_the_route_is_pushed(self) -> None:
        world = parse_level(["#####", "@P.##", "##.>#"], timers=20).snapshot
        route = ((0, 1), (1, 1), (2, 2), (3, 2))
        intent = stabilization_intent(world, route, 0, RULES, NECESSITY, 0)
        assert intent == Intent.push(Direction.E)

    def test_broken_route_returns_none(self) -> None:
        world = parse_level(["@.~>"], timers=5, stabilizers=1).snapshot
        world = step(world, Intent.move(Direction.E), RULES).snapshot
        assert (
            stabilization_intent(world, CORRIDOR, 1, RULES, NECESSITY, 1)
            is None
        )


class TestReactiveBots:
    LAYOUT = ["...", "@.>", "..."]
    TIMERS = [[9, 3, 9], [9, 4, 9], [9, 9, 9]]

    def test_greedy_takes_first_progressing_step(self) -> None:
        world = parse_level(self.LAYOUT, timers=self.TIMERS).snapshot
        assert greedy_intent(world, (2, 1), RULES, 0) == Intent.move(Direction.NE)

    def test_tactical_prefers_longest_lived_step(self) -> None:
        world = parse_level(self.LAYOUT, timers=self.TIMERS).snapshot
        assert tactical_intent(world, (2, 1), RULES, 0) == Intent.move(Direction.SE)

    def test_tactical_stabilizes_when_step_would_kill(self) -> None:
        world = parse_level(["@.>"], timers=[[1, 1, 9]], stabilizers=1).snapshot
        assert tactical_intent(world, (2, 0), RULES, 1) == Intent.stabilize()

    def test_bots_give_up_when_cut_off(self) -> None:
        world = parse_level(["@~>"], timers=9).snapshot
        assert greedy_intent(world, (2, 0), RULES, 0) is None
        assert tactical_intent(world, (2, 0), RULES, 0) is None
