"""Tests for capital call payment tracking."""
from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from engine.capital_call_engine import CallAllocation, CapitalCall
from engine.payment_engine import (
    PaymentDetails,
    PaymentError,
    call_summary,
    cancel_call,
    is_overdue,
    mark_sent,
    overdue_calls,
    record_payment,
)


def alloc(investor_id: str, amount: float) -> CallAllocation:
    return CallAllocation(
        investor_id=investor_id,
        investor_name=investor_id.upper(),
        investor_type="individual",
        commitment=amount * 10,
        ownership_percent=0.0,
        call_amount=amount,
        called_capital_to_date=0.0,
        uncalled_capital=amount * 9,
        amount_outstanding=amount,
    )


def make_call(status: str = "Sent", due: str = "2025-01-11") -> CapitalCall:
    return CapitalCall(
        fund_id="fund",
        fund_name="Fund",
        call_number=1,
        total_call_amount=1_000.0,
        currency="USD",
        call_date="2025-01-01",
        due_date=due,
        notice_period_days=10,
        status=status,
        investor_allocations=[alloc("a", 600.0), alloc("b", 400.0)],
        total_outstanding_amount=1_000.0,
    )


class TestRecordPayment:
    """Tests for applying investor payments."""

    def test_partial_payment(self):
        """A partial payment leaves the allocation and call partially paid."""
        call = record_payment(make_call(), "a", 200)

        a = call.investor_allocations[0]
        assert a.status == "Partial"
        assert a.amount_paid == 200
        assert a.amount_outstanding == 400
        assert call.status == "Partially Paid"
        assert call.total_paid_amount == 200
        assert call.total_outstanding_amount == 800

    def test_full_payment_marks_paid(self):
        call = record_payment(make_call(), "b", 400, PaymentDetails(payment_method="wire", transaction_reference="T1"))

        b = call.investor_allocations[1]
        assert b.status == "Paid"
        assert b.paid_date is not None
        assert b.payment_method == "wire"
        assert b.transaction_reference == "T1"

    def test_all_paid_marks_call_fully_paid(self):
        call = record_payment(make_call(), "a", 600)
        call = record_payment(call, "b", 400)

        assert call.status == "Fully Paid"
        assert call.total_outstanding_amount == pytest.approx(0)

    def test_payments_accumulate(self):
        call = record_payment(make_call(), "a", 100)
        call = record_payment(call, "a", 500)

        assert call.investor_allocations[0].amount_paid == 600
        assert call.investor_allocations[0].status == "Paid"

    def test_input_call_not_modified(self):
        original = make_call()
        record_payment(original, "a", 100)

        assert original.investor_allocations[0].amount_paid == 0
        assert original.status == "Sent"

    def test_unknown_investor_rejected(self):
        with pytest.raises(PaymentError, match="not found"):
            record_payment(make_call(), "zzz", 10)

    def test_non_positive_amount_rejected(self):
        with pytest.raises(PaymentError, match="positive"):
            record_payment(make_call(), "a", 0)

    def test_cancelled_call_rejected(self):
        with pytest.raises(PaymentError, match="cancelled"):
            record_payment(make_call(status="Cancelled"), "a", 10)

    def test_investor_in_two_structures_needs_structure(self):
        """An investor allocated at two levels must name the structure being paid."""
        call = replace(
            make_call(),
            investor_allocations=[
                replace(alloc("a", 300.0), structure_id="trust", hierarchy_level=2),
                replace(alloc("a", 700.0), structure_id="master", hierarchy_level=1),
            ],
        )

        with pytest.raises(PaymentError, match="2 allocations.*specify the structure"):
            record_payment(call, "a", 700)

        paid = record_payment(call, "a", 700, structure_id="master")
        trust, master = paid.investor_allocations
        assert master.status == "Paid"
        assert trust.amount_paid == 0
        assert paid.total_paid_amount == 700

    def test_unknown_structure_rejected(self):
        call = replace(make_call(), investor_allocations=[replace(alloc("a", 1_000.0), structure_id="fund")])

        with pytest.raises(PaymentError, match="in structure other not found"):
            record_payment(call, "a", 10, structure_id="other")


class TestStatusChanges:
    """Tests for sending and cancelling calls."""

    def test_mark_sent(self):
        call = mark_sent(make_call(status="Draft"))
        assert call.status == "Sent"
        assert call.sent_date is not None

    def test_only_drafts_can_be_sent(self):
        with pytest.raises(PaymentError, match="Only drafts"):
            mark_sent(make_call(status="Sent"))

    def test_cancel(self):
        call = cancel_call(make_call(), "Deal fell through")
        assert call.status == "Cancelled"
        assert call.cancelled_reason == "Deal fell through"
        assert call.cancelled_date is not None

    def test_cannot_cancel_fully_paid(self):
        with pytest.raises(PaymentError, match="fully paid"):
            cancel_call(make_call(status="Fully Paid"), "late")


class TestOverdueAndSummary:
    """Tests for overdue detection and ledger statistics."""

    def test_past_due_is_overdue(self):
        assert is_overdue(make_call(due="2025-01-11"), today=date(2025, 2, 1))

    def test_not_yet_due(self):
        assert not is_overdue(make_call(due="2025-01-11"), today=date(2025, 1, 11))

    def test_closed_calls_never_overdue(self):
        assert not is_overdue(make_call(status="Fully Paid"), today=date(2030, 1, 1))
        assert not is_overdue(make_call(status="Cancelled"), today=date(2030, 1, 1))

    def test_summary_counts(self):
        calls = [
            make_call(status="Draft", due="2099-01-01"),
            make_call(status="Sent", due="2025-01-01"),
            record_payment(make_call(), "a", 600),
        ]

        stats = call_summary(calls, today=date(2025, 6, 1))

        assert stats["total"] == 3
        assert stats["draft"] == 1
        assert stats["sent"] == 1
        assert stats["partially_paid"] == 1
        assert stats["overdue"] == 2
        assert stats["total_call_amount"] == 3_000
        assert stats["total_paid_amount"] == 600
        assert len(overdue_calls(calls, today=date(2025, 6, 1))) == 2
