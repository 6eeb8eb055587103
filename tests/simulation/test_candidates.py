import pytest

from decay_oracle.config.types import DecayRules
from decay_oracle.domain.errors import PreconditionViolation
from decay_oracle.domain.level import parse_level
from decay_oracle.simulation.candidates import (
    UNREACHABLE,
    distance_field,
    estimated_lifetimes,
    generate_candidates,
)


def test_distance_field_counts_king_steps() -> None:
    snap = parse_level(["@..>", "...."], timers=5).snapshot
    field = distance_field(snap, (3, 0))
    assert field.tolist() == [3, 2, 1, 0, 3, 2, 1, 1]


def test_distance_field_marks_blocked_tiles_unreachable() -> None:
    snap = parse_level(["@#P>"], timers=5).snapshot
    field = distance_field(snap, (3, 0))
    assert field.tolist() == [UNREACHABLE, UNREACHABLE, UNREACHABLE, 0]


def test_distance_field_can_cross_pillars() -> None:
    snap = parse_level(["@.P>"], timers=5).snapshot
    assert distance_field(snap, (3, 0)).tolist() == [UNREACHABLE, UNREACHABLE, UNREACHABLE, 0]
    assert distance_field(snap, (3, 0), through_pillars=True).tolist() == [3, 2, 1, 0]


def test_lifetimes_account_for_pillars_and_anchors() -> None:
    snap = parse_level(["P@.A"], timers=3).snapshot
    lifetimes = estimated_lifetimes(snap, DecayRules())
    assert lifetimes[1] == 6
    assert lifetimes[2] == 3
    assert lifetimes[3] > 10_000
    # A pillar tile keeps its own timer for when the pillar is pushed off.
    assert lifetimes[0] == 3


class TestGenerateCandidates:
    def test_routes_run_from_actor_to_goal(self) -> None:
        snap = parse_level(["@...", "....", "...>"], timers=9).snapshot
        candidates = generate_candidates(snap, (3, 2))
        assert candidates
        assert len({c.path for c in candidates}) == len(candidates)
        for candidate in candidates:
            assert candidate.path[0] == (0, 0)
            assert candidate.goal == (3, 2)
            for a, b in zip(candidate.path, candidate.path[1:]):
                assert max(abs(a[0] - b[0]), abs(a[1] - b[1])) == 1

    def test_decay_aware_route_ranks_first(self) -> None:
        snap = parse_level(["@.>", "..."], timers=[[9, 1, 9], [9, 9, 9]]).snapshot
        candidates = generate_candidates(snap, (2, 0))
        paths = [c.path for c in candidates]
        assert ((0, 0), (1, 0), (2, 0)) in paths
        assert candidates[0].path == ((0, 0), (1, 1), (2, 0))
        assert candidates[0].estimated_slack == 7

    def test_candidate_bound_respected(self) -> None:
        snap = parse_level(["@...", "....", "...>"], timers=9).snapshot
        assert len(generate_candidates(snap, (3, 2), max_candidates=1)) == 1

    def test_unreachable_goal_yields_nothing(self) -> None:
        snap = parse_level(["@~>"], timers=9).snapshot
        assert generate_candidates(snap, (2, 0)) == []

    def test_actor_on_goal_yields_empty_route(self) -> None:
        snap = parse_level(["@."], timers=9).snapshot
        [candidate] = generate_candidates(snap, (0, 0))
        assert candidate.length == 0

    @pytest.mark.parametrize("goal", [(5, 0), (1, 0)])
    def test_goal_must_be_standable(self, goal: tuple[int, int]) -> None:
        snap = parse_level(["@#."], timers=9).snapshot
        with pytest.raises(PreconditionViolation):
            generate_candidates(snap, goal)


class TestPillarRoutes:
    def test_route_pushes_pillar_and_steps_around_it(self) -> None:
        snap = parse_level(["#####", "@P.##", "##.>#"], timers=20).snapshot
        candidates = generate_candidates(snap, (3, 2))
        assert candidates[0].path == ((0, 1), (1, 1), (2, 2), (3, 2))
        for candidate in candidates:
            steps = list(zip(candidate.path, candidate.path[1:]))
            # Never straight onto the tile the pillar was pushed to.
            assert ((1, 1), (2, 1)) not in steps

    def test_pillar_that_cannot_slide_is_not_crossed(self) -> None:
        snap = parse_level(["@P#", "..>"], timers=20).snapshot
        candidates = generate_candidates(snap, (2, 1))
        assert candidates
        assert all((1, 0) not in c.path for c in candidates)
