"""Batch evaluation: many independent levels under one or more policies.

Runs share nothing, so with ``workers > 1`` they are spread over a process
pool one run per task. Results come back in submission order regardless
of which worker finished first.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path
from typing import Any

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

from decay_oracle.config.types import BatchConfig, PolicyKind
from decay_oracle.domain.level import Level
from decay_oracle.io.schemas import COMPARISON_SCHEMA, RUN_PAYLOAD_SCHEMA_VERSION, RUNS_SCHEMA
from decay_oracle.simulation.runner import RunOutcome, run_to_completion

logger = logging.getLogger(__name__)


def _deterministic_run_id(policy: PolicyKind, level_name: str, level_index: int) -> str:
    """Build a run ID stable across invocations for identical inputs."""
    return f"{policy.value}_l{level_index}_{level_name}"


def _run_job(job: tuple[Level, PolicyKind, BatchConfig]) -> RunOutcome:
    level, policy, config = job
    # Arrays arrive writable after pickling; reseal before play.
    level.snapshot.freeze()
    return run_to_completion(
        policy=policy,
        move_budget=config.planner.move_budget,
        resource_budget=config.planner.resource_budget,
        goal=None,
        level=level,
        rules=config.rules,
        config=config.planner,
    )


def run_batch(levels: Sequence[Level], config: BatchConfig) -> list[RunOutcome]:
    """Play every level under every configured policy and persist the results.

    Writes ``logs/runs.parquet`` and one JSON payload per run under
    ``runs/`` inside ``config.out_dir``. Returns outcomes ordered level by
    level, policies in configured order.
    """
    if not levels:
        raise ValueError("levels must not be empty")

    jobs = [(level, policy, config) for level in levels for policy in config.policies]
    if config.workers > 1 and len(jobs) > 1:
        logger.info("running %d games on %d workers", len(jobs), config.workers)
        with ProcessPoolExecutor(max_workers=config.workers) as pool:
            outcomes = list(pool.map(_run_job, jobs))
    else:
        outcomes = [_run_job(job) for job in jobs]

    out_dir = Path(config.out_dir)
    runs_dir = out_dir / "runs"
    logs_dir = out_dir / "logs"
    runs_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    rows: list[dict[str, Any]] = []
    for job_index, outcome in enumerate(outcomes):
        level_index = job_index // len(config.policies)
        run_id = _deterministic_run_id(outcome.policy, outcome.level_name, level_index)
        payload = {
            "run_id": run_id,
            **outcome.summary(),
            "metadata": {
                "level_index": level_index,
                "move_budget": config.planner.move_budget,
                "resource_budget": config.planner.resource_budget,
                "horizon": config.planner.horizon,
                "max_candidates": config.planner.max_candidates,
                "chain_penalty": config.rules.chain_penalty,
                "stabilizer_floor": config.rules.stabilizer_floor,
                "stabilizer_radius": config.rules.stabilizer_radius,
                "hard_mode": config.rules.hard_mode,
                "schema_version": RUN_PAYLOAD_SCHEMA_VERSION,
            },
        }
        (runs_dir / f"{run_id}.json").write_text(
            json.dumps(payload, ensure_ascii=False, indent=2)
        )
        rows.append(
            {"schema_version": RUN_PAYLOAD_SCHEMA_VERSION, "run_id": run_id, **outcome.summary()}
        )

    pq.write_table(pa.Table.from_pylist(rows, schema=RUNS_SCHEMA), logs_dir / "runs.parquet")
    return outcomes


def summarize_outcomes(outcomes: Sequence[RunOutcome]) -> dict[str, Any]:
    """Aggregate win rate, move statistics, and terminal reasons."""
    if not outcomes:
        raise ValueError("outcomes must not be empty")
    wins = [o for o in outcomes if o.won]
    win_moves = np.array([o.moves for o in wins], dtype=float)
    margins = np.array([o.tightest_margin for o in wins], dtype=float)
    return {
        "runs": len(outcomes),
        "wins": len(wins),
        "win_rate": len(wins) / len(outcomes),
        "mean_moves_won": float(win_moves.mean()) if win_moves.size else None,
        "p50_moves_won": float(np.percentile(win_moves, 50)) if win_moves.size else None,
        "mean_resources_used": float(np.mean([o.resources_used for o in outcomes])),
        "min_margin_won": float(margins.min()) if margins.size else None,
        "divergences": sum(o.divergences for o in outcomes),
        "reasons": dict(sorted(Counter(o.reason.value for o in outcomes).items())),
    }


def compare_policies(
    outcomes: Sequence[RunOutcome], policy_a: PolicyKind, policy_b: PolicyKind
) -> dict[str, Any]:
    """Head-to-head counts for two policies run over the same levels.

    Pairs outcomes by their position among each policy's runs, which is
    level order in ``run_batch`` output.
    """
    runs_a = [o for o in outcomes if o.policy == policy_a]
    runs_b = [o for o in outcomes if o.policy == policy_b]
    if not runs_a or len(runs_a) != len(runs_b):
        raise ValueError("both policies must have the same, non-zero number of runs")
    counts = Counter(
        (a.won, b.won) for a, b in zip(runs_a, runs_b, strict=True)
    )
    levels = len(runs_a)
    return {
        "schema_version": RUN_PAYLOAD_SCHEMA_VERSION,
        "policy_a": policy_a.value,
        "policy_b": policy_b.value,
        "levels": levels,
        "both_win": counts[(True, True)],
        "both_lose": counts[(False, False)],
        "only_a": counts[(True, False)],
        "only_b": counts[(False, True)],
        "win_rate_a": (counts[(True, True)] + counts[(True, False)]) / levels,
        "win_rate_b": (counts[(True, True)] + counts[(False, True)]) / levels,
    }


def write_comparison(comparison: dict[str, Any], out_dir: Path) -> Path:
    """Persist one head-to-head comparison row as Parquet."""
    logs_dir = Path(out_dir) / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    path = logs_dir / "comparison.parquet"
    pq.write_table(pa.Table.from_pylist([comparison], schema=COMPARISON_SCHEMA), path)
    return path
