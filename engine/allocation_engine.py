"""Capital-call allocation engine.

Splits a capital call across investors pro rata to their commitments.
Multi-level master structures split the call between the intermediate
(level 2) and master (level 1) groups first:

- level-2 share = total x (sum of level-2 ownership %) / 100
- level-1 share = total - level-2 share

and each group is then distributed pro rata over its own commitments.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from structures.hierarchy import InvestorPosition
from structures.structure import Structure

logger = logging.getLogger(__name__)

MASTER_LEVEL = 1
INTERMEDIATE_LEVEL = 2


class AllocationError(ValueError):
    """Raised when an allocation request is malformed."""

    pass


@dataclass(frozen=True)
class InvestorAllocation:
    """One investor's share of a capital call."""

    investor_id: str
    investor_name: str
    investor_type: str
    commitment: float
    ownership_percent: float
    call_amount: float
    called_to_date: float
    uncalled_capital: float
    hierarchy_level: Optional[int] = None
    structure_id: Optional[str] = None
    structure_name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.investor_name}: call ${self.call_amount:,.2f} of ${self.commitment:,.2f} committed"


def _check_total(total_call_amount: float) -> float:
    total = float(total_call_amount)
    if total < 0:
        raise AllocationError(f"Total call amount must be >= 0, got {total}")
    return total


def _distribute(amount: float, positions: List[InvestorPosition]) -> List[InvestorAllocation]:
    total_commitment = sum(p.commitment for p in positions)
    out: List[InvestorAllocation] = []
    for p in positions:
        fraction = p.commitment / total_commitment if total_commitment > 0 else 0.0
        call = amount * fraction
        out.append(
            InvestorAllocation(
                investor_id=p.investor_id,
                investor_name=p.investor_name,
                investor_type=p.investor_type,
                commitment=p.commitment,
                ownership_percent=p.ownership_percent,
                call_amount=call,
                called_to_date=p.called_to_date,
                uncalled_capital=p.commitment - p.called_to_date - call,
                hierarchy_level=p.hierarchy_level,
                structure_id=p.structure_id,
                structure_name=p.structure_name,
            )
        )
    return out


def allocate_pro_rata(total_call_amount: float, positions: List[InvestorPosition]) -> List[InvestorAllocation]:
    """Distribute a call proportionally to commitment.

    Args:
        total_call_amount: Amount being called (>= 0).
        positions: Investor positions; not modified.

    Returns:
        One allocation per position, in input order. All call amounts are
        zero when the commitments sum to zero.

    Raises:
        AllocationError: If the total is negative.
    """
    total = _check_total(total_call_amount)
    if positions and sum(p.commitment for p in positions) <= 0:
        logger.warning("Total commitment is zero; %d investors receive no call", len(positions))
    return _distribute(total, positions)


def intermediate_share(total_call_amount: float, positions: List[InvestorPosition]) -> float:
    """Portion of the call attributed to level 2, from its ownership of the master."""
    pct = sum(p.ownership_percent for p in positions if p.hierarchy_level == INTERMEDIATE_LEVEL)
    pct = min(max(pct, 0.0), 100.0)
    return total_call_amount * (pct / 100.0)


def allocate_hierarchical(total_call_amount: float, positions: List[InvestorPosition]) -> List[InvestorAllocation]:
    """Two-level allocation for multi-level master structures.

    Level-2 allocations come first in the result since intermediate holders
    are invoiced before the master level.

    Positions without a level are treated as master-level. Positions deeper
    than level 2 are ignored. A group with no commitment (empty, or all
    commitments zero) takes nothing and the other group takes the whole call.
    """
    total = _check_total(total_call_amount)

    level1 = [p for p in positions if (p.hierarchy_level or MASTER_LEVEL) == MASTER_LEVEL]
    level2 = [p for p in positions if p.hierarchy_level == INTERMEDIATE_LEVEL]
    skipped = len(positions) - len(level1) - len(level2)
    if skipped:
        logger.warning("Ignoring %d positions below level %d", skipped, INTERMEDIATE_LEVEL)

    level1_committed = sum(p.commitment for p in level1) > 0
    level2_committed = sum(p.commitment for p in level2) > 0

    if not level2_committed:
        level2_call = 0.0
    elif not level1_committed:
        level2_call = total
    else:
        level2_call = intermediate_share(total, level2)
    level1_call = total - level2_call

    logger.debug("Hierarchical split: level 2 %.2f, level 1 %.2f", level2_call, level1_call)
    return _distribute(level2_call, level2) + _distribute(level1_call, level1)


def compute_allocations(
    total_call_amount: float,
    structure: Optional[Structure],
    positions: List[InvestorPosition],
) -> List[InvestorAllocation]:
    """Allocate a call for ``structure``; empty when nothing can be allocated."""
    if structure is None or not positions:
        return []
    if structure.is_hierarchy_master:
        return allocate_hierarchical(total_call_amount, positions)
    return allocate_pro_rata(total_call_amount, positions)


def level_totals(allocations: List[InvestorAllocation]) -> Dict[int, float]:
    totals: Dict[int, float] = {}
    for a in allocations:
        lvl = a.hierarchy_level or MASTER_LEVEL
        totals[lvl] = totals.get(lvl, 0.0) + a.call_amount
    return totals


def validate_allocation_total(
    allocations: List[InvestorAllocation],
    total_call_amount: float,
    tolerance: float = 1e-6,
) -> List[str]:
    allocated = sum(a.call_amount for a in allocations)
    if abs(allocated - total_call_amount) > tolerance:
        return [f"Allocated {allocated:,.2f} does not match call amount {total_call_amount:,.2f}"]
    return []
