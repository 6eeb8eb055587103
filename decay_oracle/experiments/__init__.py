"""Experiments layer: batch evaluation and policy comparison."""

from decay_oracle.experiments.batch import (
    compare_policies,
    run_batch,
    summarize_outcomes,
    write_comparison,
)

__all__ = [
    "compare_policies",
    "run_batch",
    "summarize_outcomes",
    "write_comparison",
]
