"""CLI entrypoint for oracle runs, batch evaluation, and policy comparison.

This module owns CLI argument parsing and mode dispatch. All domain logic
lives in the extracted modules:

- ``decay_oracle.domain.level``         – level file loading
- ``decay_oracle.config``               – configuration dataclasses
- ``decay_oracle.simulation.runner``    – ``run_to_completion`` entry point
- ``decay_oracle.experiments.batch``    – batch runs and head-to-head comparison
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from decay_oracle.config.constants import MOVE_BUDGET
from decay_oracle.config.types import BatchConfig, DecayRules, PlannerConfig, PolicyKind
from decay_oracle.domain.level import load_level
from decay_oracle.experiments.batch import (
    compare_policies,
    run_batch,
    summarize_outcomes,
    write_comparison,
)

# ---------------------------------------------------------------------------
# CLI parsing helpers
# ---------------------------------------------------------------------------


def _parse_policy(raw_policy: str) -> PolicyKind:
    """Parse CLI policy tag into PolicyKind enum."""
    try:
        return PolicyKind(raw_policy.strip())
    except ValueError as exc:
        valid = ", ".join(p.value for p in PolicyKind)
        raise ValueError(f"policy must be one of {valid}") from exc


def _parse_compare(raw_compare: str) -> tuple[PolicyKind, PolicyKind]:
    """Parse ``A,B`` into two distinct policies."""
    parts = [part.strip() for part in raw_compare.split(",") if part.strip()]
    if len(parts) != 2:
        raise ValueError("compare must name exactly two policies, e.g. oracle,greedy")
    first, second = (_parse_policy(part) for part in parts)
    if first == second:
        raise ValueError("compare must name two distinct policies")
    return first, second


_CONFIG_KEYS = frozenset(
    {
        "levels",
        "policy",
        "compare",
        "move_budget",
        "resource_budget",
        "horizon",
        "max_candidates",
        "early_accept_margin",
        "proactive_lookahead",
        "chain_penalty",
        "hard_mode",
        "workers",
        "out_dir",
    }
)
"""Keys a ``--config`` file may set; each mirrors the command-line option of the same name."""


class _RunSettings:
    """Run settings taken from the command line, else the config file, else a default."""

    def __init__(self, args: argparse.Namespace, file_cfg: object) -> None:
        if not isinstance(file_cfg, dict):
            raise ValueError("config file must hold a JSON object")
        unknown = sorted(set(file_cfg) - _CONFIG_KEYS)
        if unknown:
            raise ValueError(f"unknown config keys: {', '.join(unknown)}")
        self._args = args
        self._file = file_cfg

    def pick(self, key: str, default: object = None) -> object:
        chosen = getattr(self._args, key, None)
        return chosen if chosen is not None else self._file.get(key, default)

    def count(self, key: str, default: int | None) -> int | None:
        """Whole-number setting such as a budget or a bound; floats and booleans are refused."""
        raw = self.pick(key, default)
        if raw is None or (isinstance(raw, int) and not isinstance(raw, bool)):
            return raw
        if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
            return int(raw)
        raise ValueError(f"{key} must be a whole number, got {raw!r}")

    def switch(self, key: str, default: bool) -> bool:
        raw = self.pick(key, default)
        if not isinstance(raw, bool):
            raise ValueError(f"{key} must be true or false, got {raw!r}")
        return raw

    def text(self, key: str, default: str | None = None) -> str | None:
        raw = self.pick(key, default)
        if raw is None or isinstance(raw, (str, Path)):
            return None if raw is None else str(raw)
        raise ValueError(f"{key} must be a string, got {raw!r}")

    def level_paths(self) -> list[Path]:
        """Level files from the command line, else the config file; directories expand to *.json."""
        raw = self._args.levels or self._file.get("levels", [])
        if isinstance(raw, (str, Path)):
            raw = [raw]
        if not isinstance(raw, list) or not all(isinstance(e, (str, Path)) for e in raw):
            raise ValueError("levels must be a list of paths")
        paths: list[Path] = []
        for entry in map(Path, raw):
            if entry.is_dir():
                paths.extend(sorted(entry.glob("*.json")))
            else:
                paths.append(entry)
        if not paths:
            raise ValueError("at least one level file is required")
        return paths


def _build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Run the decay oracle on level files")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file (CLI args override file values)",
    )
    parser.add_argument(
        "levels", nargs="*", type=Path, help="Level JSON files or directories of them"
    )
    parser.add_argument(
        "--policy", type=str, choices=[p.value for p in PolicyKind], default=None
    )
    parser.add_argument(
        "--compare", type=str, default=None, help="Two policies to compare, e.g. oracle,greedy"
    )
    parser.add_argument("--move-budget", type=int, default=None)
    parser.add_argument("--resource-budget", type=int, default=None)
    parser.add_argument("--horizon", type=int, default=None)
    parser.add_argument("--max-candidates", type=int, default=None)
    parser.add_argument("--early-accept-margin", type=int, default=None)
    parser.add_argument("--proactive-lookahead", type=int, default=None)
    parser.add_argument("--chain-penalty", type=int, default=None)
    parser.add_argument("--hard-mode", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--out-dir", type=Path, default=None)
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


# ---------------------------------------------------------------------------
# Main CLI
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for oracle runs.

    Supports ``--config path/to/config.json`` for reproducible batches.
    CLI arguments override config-file values; config-file values override
    built-in defaults.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(name)s: %(message)s")

    file_cfg: object = {}
    if args.config is not None:
        try:
            file_cfg = json.loads(Path(args.config).read_text())
        except FileNotFoundError:
            parser.error(f"Config file not found: {args.config}")
        except json.JSONDecodeError as exc:
            parser.error(f"Config file is not valid JSON: {args.config}: {exc}")

    try:
        settings = _RunSettings(args, file_cfg)
        level_paths = settings.level_paths()
        compare = settings.text("compare")
        if compare is not None:
            policies = _parse_compare(compare)
        else:
            policies = (_parse_policy(settings.text("policy", "oracle")),)
        planner = PlannerConfig(
            horizon=settings.count("horizon", PlannerConfig.horizon),
            max_candidates=settings.count("max_candidates", PlannerConfig.max_candidates),
            move_budget=settings.count("move_budget", MOVE_BUDGET),
            resource_budget=settings.count("resource_budget", None),
            early_accept_margin=settings.count("early_accept_margin", None),
            proactive_lookahead=settings.count(
                "proactive_lookahead", PlannerConfig.proactive_lookahead
            ),
        )
        rules = DecayRules(
            chain_penalty=settings.count("chain_penalty", DecayRules.chain_penalty),
            hard_mode=settings.switch("hard_mode", False),
        )
        batch_config = BatchConfig(
            policies=policies,
            planner=planner,
            rules=rules,
            workers=settings.count("workers", 1),
            out_dir=Path(settings.text("out_dir", "data")),
        )
        levels = [load_level(path) for path in level_paths]
    except (ValueError, OSError) as exc:
        parser.error(str(exc))

    outcomes = run_batch(levels, batch_config)
    summary: dict[str, object] = {
        "levels": len(levels),
        "policies": {
            policy.value: summarize_outcomes([o for o in outcomes if o.policy == policy])
            for policy in batch_config.policies
        },
    }
    if len(batch_config.policies) == 2:
        comparison = compare_policies(outcomes, *batch_config.policies)
        write_comparison(comparison, batch_config.out_dir)
        summary["comparison"] = comparison
    if len(outcomes) == 1:
        summary["run"] = outcomes[0].summary()
    print(json.dumps(summary, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
