"""Parquet schema definitions for batch run artifacts.

Every module that writes or reads run tables works against the column
contracts defined here.
"""

from __future__ import annotations

import pyarrow as pa

RUN_PAYLOAD_SCHEMA_VERSION = 1

RUNS_SCHEMA = pa.schema(
    [
        ("schema_version", pa.int64()),
        ("run_id", pa.string()),
        ("level", pa.string()),
        ("policy", pa.string()),
        ("won", pa.bool_()),
        ("reason", pa.string()),
        ("moves", pa.int64()),
        ("resources_used", pa.int64()),
        ("tightest_margin", pa.int64()),
        ("plans", pa.int64()),
        ("divergences", pa.int64()),
        ("final_turn", pa.int64()),
    ]
)

COMPARISON_SCHEMA = pa.schema(
    [
        ("schema_version", pa.int64()),
        ("policy_a", pa.string()),
        ("policy_b", pa.string()),
        ("levels", pa.int64()),
        ("both_win", pa.int64()),
        ("both_lose", pa.int64()),
        ("only_a", pa.int64()),
        ("only_b", pa.int64()),
        ("win_rate_a", pa.float64()),
        ("win_rate_b", pa.float64()),
    ]
)
