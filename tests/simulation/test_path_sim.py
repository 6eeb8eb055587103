import pytest

from decay_oracle.config.types import DecayRules, PlannerConfig, StabilizationMode
from decay_oracle.domain.level import parse_level
from decay_oracle.domain.tiles import Direction, Intent
from decay_oracle.simulation.candidates import Candidate, generate_candidates
from decay_oracle.simulation.path_sim import (
    FailureReason,
    evaluate_candidates,
    simulate_path,
)
from decay_oracle.simulation.stepper import step

RULES = DecayRules()
NECESSITY = StabilizationMode.NECESSITY

# (1, 0) collapses on the first turn and its chain takes (2, 1) with it,
# unless a stabilizer from the start tile shields it.
FUSE = parse_level(
    ["#.###", "@...>", "##P##"],
    timers=[[0, 1, 0, 0, 0], [9, 9, 2, 9, 9], [0, 0, 9, 0, 0]],
    stabilizers=1,
)
FUSE_ROUTE = Candidate(path=((0, 1), (1, 1), (2, 1), (3, 1), (4, 1)), estimated_slack=2)


def _straight(length: int) -> Candidate:
    return Candidate(path=tuple((x, 0) for x in range(length + 1)), estimated_slack=0)


class TestSimulatePath:
    def test_safe_corridor(self) -> None:
        world = parse_level(["@...>"], timers=10).snapshot
        verdict = simulate_path(world, _straight(4), RULES, NECESSITY, 0, turn_limit=100)
        assert verdict.feasible
        assert verdict.failure_reason is None
        assert verdict.arrival_turn == 4
        assert verdict.margin == 6
        assert verdict.resources_consumed == 0
        assert verdict.intents == (Intent.move(Direction.E),) * 4

    def test_predictions_match_the_stepper(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]], stabilizers=1).snapshot
        verdict = simulate_path(world, _straight(3), RULES, NECESSITY, 1, turn_limit=100)
        replay = world
        for intent, predicted in zip(verdict.intents, verdict.predictions):
            replay = step(replay, intent, RULES).snapshot
            assert replay == predicted

    def test_stabilizer_spent_only_when_needed(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]], stabilizers=1).snapshot
        verdict = simulate_path(world, _straight(3), RULES, NECESSITY, 1, turn_limit=100)
        assert verdict.feasible
        assert verdict.intents == (
            Intent.move(Direction.E),
            Intent.stabilize(),
            Intent.move(Direction.E),
            Intent.move(Direction.E),
        )
        assert verdict.resources_consumed == 1
        assert verdict.margin == 1
        assert verdict.arrival_turn == 4

    def test_no_stabilizer_means_collapse(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]]).snapshot
        verdict = simulate_path(world, _straight(3), RULES, NECESSITY, 0, turn_limit=100)
        assert not verdict.feasible
        assert verdict.failure_reason == FailureReason.COLLAPSED
        assert verdict.margin == 0
        assert verdict.arrival_turn is None

    def test_turn_limit(self) -> None:
        world = parse_level(["@...>"], timers=10).snapshot
        verdict = simulate_path(world, _straight(4), RULES, NECESSITY, 0, turn_limit=2)
        assert verdict.failure_reason == FailureReason.TURN_LIMIT
        assert len(verdict.intents) == 2

    def test_blocked_route(self) -> None:
        world = parse_level(["@.~>"], timers=10).snapshot
        verdict = simulate_path(world, _straight(3), RULES, NECESSITY, 0, turn_limit=100)
        assert verdict.failure_reason == FailureReason.BLOCKED

    def test_route_must_start_at_actor(self) -> None:
        world = parse_level([".@.>"], timers=10).snapshot
        with pytest.raises(ValueError, match="actor"):
            simulate_path(world, _straight(3), RULES, NECESSITY, 0, turn_limit=100)

    def test_caller_snapshot_untouched(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]], stabilizers=1).snapshot
        before = world.thaw()
        simulate_path(world, _straight(3), RULES, NECESSITY, 1, turn_limit=100)
        assert world == before


class TestEvaluateCandidates:
    def test_necessity_pass_wins_without_proactive_pass(self) -> None:
        world = parse_level(["@...", "....", "...>"], timers=9).snapshot
        candidates = generate_candidates(world, (3, 2))
        search = evaluate_candidates(world, candidates, RULES, PlannerConfig(), 0, 100)
        assert search.best is not None
        assert search.best.mode == NECESSITY
        assert all(v.mode == NECESSITY for v in search.verdicts)
        assert len(search.verdicts) == len(candidates)
        feasible = [v for v in search.verdicts if v.feasible]
        assert search.best.rank_key() == min(v.rank_key() for v in feasible)

    def test_early_accept_stops_simulating(self) -> None:
        world = parse_level(["@...", "....", "...>"], timers=9).snapshot
        candidates = generate_candidates(world, (3, 2))
        assert len(candidates) > 1
        config = PlannerConfig(early_accept_margin=0)
        search = evaluate_candidates(world, candidates, RULES, config, 0, 100)
        assert len(search.verdicts) == 1
        assert search.best is search.verdicts[0]

    def test_proactive_pass_rescues_what_necessity_loses(self) -> None:
        search = evaluate_candidates(FUSE.snapshot, [FUSE_ROUTE], RULES, PlannerConfig(), 1, 100)
        necessity, proactive = search.verdicts
        assert necessity.mode == NECESSITY
        assert necessity.failure_reason == FailureReason.BLOCKED
        assert search.best is proactive
        assert proactive.mode == StabilizationMode.PROACTIVE
        assert proactive.intents == (Intent.stabilize(),) + (Intent.move(Direction.E),) * 4
        assert proactive.resources_consumed == 1
        assert proactive.arrival_turn == 5
        assert proactive.margin == 1

    def test_nothing_feasible(self) -> None:
        world = parse_level(["@..>"], timers=[[2, 2, 2, 9]]).snapshot
        candidates = generate_candidates(world, (3, 0))
        search = evaluate_candidates(world, candidates, RULES, PlannerConfig(), 0, 100)
        assert search.best is None
        assert {v.mode for v in search.verdicts} == set(StabilizationMode)
