"""Tabular views of capital call allocations.

Rows are built with pandas so they can be printed or written to CSV.
"""
from __future__ import annotations

from dataclasses import asdict
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from engine.allocation_engine import InvestorAllocation
from engine.capital_call_engine import CallAllocation

AllocationRow = Union[InvestorAllocation, CallAllocation]

COLUMNS = [
    "hierarchy_level",
    "structure_name",
    "investor_id",
    "investor_name",
    "investor_type",
    "commitment",
    "ownership_percent",
    "call_amount",
    "uncalled_capital",
]


def allocations_frame(allocations: Sequence[AllocationRow]) -> pd.DataFrame:
    """One row per allocation; payment columns are kept when present."""
    if not allocations:
        return pd.DataFrame(columns=COLUMNS)
    df = pd.DataFrame([asdict(a) for a in allocations])
    extra = [c for c in df.columns if c not in COLUMNS]
    return df[COLUMNS + extra]


def level_breakdown(allocations: Sequence[AllocationRow]) -> pd.DataFrame:
    """Per hierarchy level: investor count, commitment and call subtotals."""
    df = allocations_frame(allocations)
    if df.empty:
        return pd.DataFrame(columns=["hierarchy_level", "investors", "commitment", "call_amount"])
    df["hierarchy_level"] = pd.to_numeric(df["hierarchy_level"]).fillna(1).astype(int)
    out = (
        df.groupby("hierarchy_level")
        .agg(
            investors=("investor_id", "count"),
            commitment=("commitment", "sum"),
            call_amount=("call_amount", "sum"),
        )
        .reset_index()
    )
    # Intermediate level is called first
    return out.sort_values("hierarchy_level", ascending=False).reset_index(drop=True)


def export_allocations_csv(allocations: List[AllocationRow], path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    allocations_frame(allocations).to_csv(p, index=False)
    return p
