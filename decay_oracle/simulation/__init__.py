"""Simulation engine: decay stepper, route candidates, path simulation, and planning."""

from decay_oracle.simulation.candidates import Candidate, distance_field, generate_candidates
from decay_oracle.simulation.path_sim import (
    FailureReason,
    PlanSearch,
    Verdict,
    evaluate_candidates,
    simulate_path,
)
from decay_oracle.simulation.planner import (
    ActionScript,
    OraclePlanner,
    PlannerState,
    TurnRecord,
)
from decay_oracle.simulation.policies import (
    greedy_intent,
    stabilization_intent,
    tactical_intent,
)
from decay_oracle.simulation.runner import RunOutcome, run_to_completion
from decay_oracle.simulation.stepper import StepResult, intent_problem, step

__all__ = [
    "ActionScript",
    "Candidate",
    "FailureReason",
    "OraclePlanner",
    "PlanSearch",
    "PlannerState",
    "RunOutcome",
    "StepResult",
    "TurnRecord",
    "Verdict",
    "distance_field",
    "evaluate_candidates",
    "generate_candidates",
    "greedy_intent",
    "intent_problem",
    "run_to_completion",
    "simulate_path",
    "stabilization_intent",
    "step",
    "tactical_intent",
]
