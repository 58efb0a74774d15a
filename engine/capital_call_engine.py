"""Capital call drafting engine.

Builds a capital call for a structure: resolves the investors that take part
(across the whole hierarchy for multi-level masters), allocates the call,
numbers it, and works out the due date from the notice period.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from engine.allocation_engine import (
    InvestorAllocation,
    compute_allocations,
    level_totals,
    validate_allocation_total,
)
from investors.investor import Investor
from policy.call_policy import CallPolicy, validate_call_request, validate_management_fee
from structures.hierarchy import resolve_allocation_inputs
from structures.structure import Structure

logger = logging.getLogger(__name__)

CallStatus = Literal["Draft", "Sent", "Partially Paid", "Fully Paid", "Overdue", "Cancelled"]
PaymentStatus = Literal["Pending", "Paid", "Partial", "Overdue"]


class CapitalCallError(Exception):
    """Error raised when a capital call cannot be drafted or changed."""

    pass


@dataclass(frozen=True)
class CallAllocation:
    """An investor allocation plus its payment tracking state."""

    investor_id: str
    investor_name: str
    investor_type: str
    commitment: float
    ownership_percent: float
    call_amount: float
    called_capital_to_date: float
    uncalled_capital: float
    status: PaymentStatus = "Pending"
    amount_paid: float = 0.0
    amount_outstanding: float = 0.0
    paid_date: Optional[str] = None
    payment_method: Optional[str] = None
    transaction_reference: Optional[str] = None
    bank_details: Optional[str] = None
    notice_sent: bool = False
    hierarchy_level: Optional[int] = None
    structure_id: Optional[str] = None
    structure_name: Optional[str] = None

    @classmethod
    def from_allocation(cls, a: InvestorAllocation) -> "CallAllocation":
        return cls(
            investor_id=a.investor_id,
            investor_name=a.investor_name,
            investor_type=a.investor_type,
            commitment=a.commitment,
            ownership_percent=a.ownership_percent,
            call_amount=a.call_amount,
            called_capital_to_date=a.called_to_date,
            uncalled_capital=a.uncalled_capital,
            amount_outstanding=a.call_amount,
            hierarchy_level=a.hierarchy_level,
            structure_id=a.structure_id,
            structure_name=a.structure_name,
        )


@dataclass
class CapitalCall:
    """A capital call notice and its per-investor allocations."""

    fund_id: str
    fund_name: str
    call_number: int
    total_call_amount: float
    currency: str
    call_date: str
    due_date: str
    notice_period_days: int
    purpose: str = ""
    status: CallStatus = "Draft"
    investor_allocations: List[CallAllocation] = field(default_factory=list)
    total_paid_amount: float = 0.0
    total_outstanding_amount: float = 0.0
    transaction_type: str = "Capital Call"
    use_of_proceeds: str = ""
    management_fee_included: bool = False
    management_fee_amount: Optional[float] = None
    related_investment_id: Optional[str] = None
    related_investment_name: Optional[str] = None
    sent_date: Optional[str] = None
    cancelled_date: Optional[str] = None
    cancelled_reason: Optional[str] = None
    created_by: Optional[str] = None
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class CallRequest:
    """Form input for a new capital call."""

    fund_id: str
    total_call_amount: float
    call_date: Optional[str] = None  # ISO date, defaults to today
    notice_period_days: Optional[int] = None
    purpose: str = ""
    related_investment_id: Optional[str] = None
    related_investment_name: Optional[str] = None
    transaction_type: Optional[str] = None
    use_of_proceeds: str = ""
    management_fee_included: bool = False
    management_fee_amount: float = 0.0


@dataclass
class CallRecommendation:
    """Drafted capital call with diagnostics."""

    call: CapitalCall
    warnings: List[str]
    summary: Dict[str, Any]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def due_date(call_date: str, notice_period_days: int) -> str:
    """Due date (ISO) ``notice_period_days`` after ``call_date`` (ISO)."""
    return (date.fromisoformat(call_date) + timedelta(days=int(notice_period_days))).isoformat()


def next_call_number(calls: List[CapitalCall], fund_id: str) -> int:
    numbers = [c.call_number for c in calls if c.fund_id == fund_id]
    return max(numbers) + 1 if numbers else 1


def draft_capital_call(
    request: CallRequest,
    structures: List[Structure],
    investors: List[Investor],
    raw_policy: Dict[str, Any],
    existing_calls: Optional[List[CapitalCall]] = None,
    send_now: bool = False,
) -> CallRecommendation:
    """Draft a capital call for ``request.fund_id``.

    Args:
        request: Capital call form input.
        structures: All known structures.
        investors: All known investors.
        raw_policy: Raw policy configuration.
        existing_calls: Calls already on the ledger, used for numbering.
        send_now: Mark the call as sent instead of leaving it as a draft.

    Returns:
        CallRecommendation with the call, warnings and a summary.

    Raises:
        CapitalCallError: If the request is invalid or the fund is unknown.
    """
    pol = CallPolicy(raw_policy)

    issues = validate_call_request(request.fund_id, request.total_call_amount)
    issues += validate_management_fee(
        request.total_call_amount, request.management_fee_included, request.management_fee_amount
    )
    if issues:
        raise CapitalCallError("; ".join(issues))

    structure = next((s for s in structures if s.id == request.fund_id), None)
    if structure is None:
        raise CapitalCallError(f"Fund {request.fund_id} not found")

    positions = resolve_allocation_inputs(structure, structures, investors)
    allocations = compute_allocations(request.total_call_amount, structure, positions)

    warnings: List[str] = []
    if 0 < structure.total_commitment < request.total_call_amount - pol.tolerance:
        warnings.append(
            f"Call of ${request.total_call_amount:,.2f} exceeds {structure.name} total commitment "
            f"of ${structure.total_commitment:,.2f}"
        )
    if not positions:
        warnings.append(f"{structure.name} has no investors; nothing was allocated")
    else:
        warnings += validate_allocation_total(allocations, request.total_call_amount, pol.tolerance)
    for a in allocations:
        if a.uncalled_capital < -pol.tolerance:
            warnings.append(
                f"{a.investor_name} would be called beyond commitment by ${-a.uncalled_capital:,.2f}"
            )

    call_date = request.call_date or date.today().isoformat()
    notice = request.notice_period_days if request.notice_period_days is not None else pol.notice_period_days

    call = CapitalCall(
        fund_id=structure.id,
        fund_name=structure.name,
        call_number=next_call_number(existing_calls or [], structure.id),
        total_call_amount=float(request.total_call_amount),
        currency=structure.currency or pol.default_currency,
        call_date=call_date,
        due_date=due_date(call_date, notice),
        notice_period_days=notice,
        purpose=request.purpose,
        status="Sent" if send_now else "Draft",
        sent_date=utc_now_iso() if send_now else None,
        investor_allocations=[CallAllocation.from_allocation(a) for a in allocations],
        total_paid_amount=0.0,
        total_outstanding_amount=float(request.total_call_amount),
        transaction_type=request.transaction_type or pol.transaction_type,
        use_of_proceeds=request.use_of_proceeds,
        management_fee_included=request.management_fee_included,
        management_fee_amount=request.management_fee_amount if request.management_fee_included else None,
        related_investment_id=request.related_investment_id,
        related_investment_name=request.related_investment_name,
        created_by=pol.created_by,
    )

    logger.info(
        "Drafted capital call #%d for %s: %d allocations, status %s",
        call.call_number, structure.id, len(allocations), call.status,
    )

    summary = {
        "fund": structure.name,
        "call_number": call.call_number,
        "total_call_amount": call.total_call_amount,
        "structure_commitment": structure.total_commitment,
        "num_investors": len(allocations),
        "allocated": sum(a.call_amount for a in allocations),
        "hierarchical": structure.is_hierarchy_master,
        "by_level": level_totals(allocations) if structure.is_hierarchy_master else {},
        "due_date": call.due_date,
    }
    return CallRecommendation(call=call, warnings=warnings, summary=summary)
