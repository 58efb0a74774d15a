from __future__ import annotations
from typing import List
from engine.allocation_engine import InvestorAllocation

def explain_allocations(allocations: List[InvestorAllocation], total_call_amount: float) -> List[str]:
    lines = []
    for a in allocations:
        share = a.call_amount / total_call_amount if total_call_amount > 0 else 0.0
        level = f"L{a.hierarchy_level} " if a.hierarchy_level else ""
        lines.append(
            f"{level}{a.investor_name}: ${a.call_amount:,.2f} ({share:.2%} of call)  |  "
            f"commitment ${a.commitment:,.0f}, called ${a.called_to_date:,.0f}, "
            f"uncalled after call ${a.uncalled_capital:,.0f}"
        )
    return lines
