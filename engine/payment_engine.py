"""Payment tracking for capital calls.

All operations return an updated copy of the call; the input is left as is.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Dict, List, Optional

from engine.capital_call_engine import CallAllocation, CapitalCall, CallStatus, utc_now_iso

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("Fully Paid", "Cancelled")


class PaymentError(Exception):
    """Error raised when a payment cannot be applied to a call."""

    pass


@dataclass(frozen=True)
class PaymentDetails:
    payment_method: Optional[str] = None
    transaction_reference: Optional[str] = None
    bank_details: Optional[str] = None


def _payment_status(alloc: CallAllocation, paid: float, outstanding: float, tolerance: float) -> str:
    if outstanding <= tolerance:
        return "Paid"
    if paid > 0:
        return "Partial"
    return alloc.status


def record_payment(
    call: CapitalCall,
    investor_id: str,
    amount: float,
    details: Optional[PaymentDetails] = None,
    tolerance: float = 0.01,
    structure_id: Optional[str] = None,
) -> CapitalCall:
    """Apply an investor payment and roll the totals up to the call.

    An investor holding in more than one structure of a hierarchy has one
    allocation per structure; ``structure_id`` picks which one is paid.

    Raises:
        PaymentError: If the amount is not positive, the call is cancelled,
            the investor has no matching allocation on the call, or several
            allocations match and no ``structure_id`` tells them apart.
    """
    if amount <= 0:
        raise PaymentError(f"Payment amount must be positive, got {amount}")
    if call.status == "Cancelled":
        raise PaymentError(f"Capital call #{call.call_number} is cancelled")

    matches = [
        i for i, a in enumerate(call.investor_allocations)
        if a.investor_id == investor_id and (structure_id is None or a.structure_id == structure_id)
    ]
    if not matches:
        where = f" in structure {structure_id}" if structure_id else ""
        raise PaymentError(f"Investor {investor_id}{where} not found on capital call #{call.call_number}")
    if len(matches) > 1:
        held = ", ".join(str(call.investor_allocations[i].structure_id) for i in matches)
        raise PaymentError(
            f"Investor {investor_id} has {len(matches)} allocations on capital call #{call.call_number} "
            f"({held}); specify the structure"
        )

    idx = matches[0]
    alloc = call.investor_allocations[idx]
    paid = alloc.amount_paid + float(amount)
    outstanding = alloc.call_amount - paid
    if outstanding < -tolerance:
        logger.warning("Investor %s overpaid call #%d by %.2f", investor_id, call.call_number, -outstanding)

    status = _payment_status(alloc, paid, outstanding, tolerance)
    d = details or PaymentDetails()
    updated = replace(
        alloc,
        amount_paid=paid,
        amount_outstanding=outstanding,
        status=status,
        paid_date=utc_now_iso() if status == "Paid" else alloc.paid_date,
        payment_method=d.payment_method or alloc.payment_method,
        transaction_reference=d.transaction_reference or alloc.transaction_reference,
        bank_details=d.bank_details or alloc.bank_details,
    )
    allocations = list(call.investor_allocations)
    allocations[idx] = updated

    total_paid = sum(a.amount_paid for a in allocations)
    total_outstanding = call.total_call_amount - total_paid
    new_status: CallStatus = call.status
    if total_outstanding <= tolerance:
        new_status = "Fully Paid"
    elif total_paid > 0:
        new_status = "Partially Paid"

    logger.info("Recorded %.2f from %s on call #%d (%s)", amount, investor_id, call.call_number, new_status)
    return replace(
        call,
        investor_allocations=allocations,
        total_paid_amount=total_paid,
        total_outstanding_amount=total_outstanding,
        status=new_status,
        updated_at=utc_now_iso(),
    )


def mark_sent(call: CapitalCall) -> CapitalCall:
    if call.status != "Draft":
        raise PaymentError(f"Only drafts can be sent; call #{call.call_number} is {call.status}")
    return replace(call, status="Sent", sent_date=utc_now_iso(), updated_at=utc_now_iso())


def cancel_call(call: CapitalCall, reason: str) -> CapitalCall:
    if call.status == "Fully Paid":
        raise PaymentError(f"Capital call #{call.call_number} is fully paid and cannot be cancelled")
    now = utc_now_iso()
    return replace(call, status="Cancelled", cancelled_date=now, cancelled_reason=reason, updated_at=now)


def is_overdue(call: CapitalCall, today: Optional[date] = None) -> bool:
    if call.status in CLOSED_STATUSES:
        return False
    return date.fromisoformat(call.due_date) < (today or date.today())


def overdue_calls(calls: List[CapitalCall], today: Optional[date] = None) -> List[CapitalCall]:
    return [c for c in calls if is_overdue(c, today)]


def call_summary(calls: List[CapitalCall], today: Optional[date] = None) -> Dict[str, Any]:
    def count(status: str) -> int:
        return sum(1 for c in calls if c.status == status)

    return {
        "total": len(calls),
        "draft": count("Draft"),
        "sent": count("Sent"),
        "partially_paid": count("Partially Paid"),
        "fully_paid": count("Fully Paid"),
        "cancelled": count("Cancelled"),
        "overdue": len(overdue_calls(calls, today)),
        "total_call_amount": sum(c.total_call_amount for c in calls),
        "total_paid_amount": sum(c.total_paid_amount for c in calls),
        "total_outstanding_amount": sum(c.total_outstanding_amount for c in calls),
    }
