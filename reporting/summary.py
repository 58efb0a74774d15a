from __future__ import annotations
from typing import Dict, Any
from engine.capital_call_engine import CapitalCall

def capital_call_summary(call: CapitalCall) -> Dict[str, Any]:
    return {
        "id": call.id,
        "fund": call.fund_name,
        "call_number": call.call_number,
        "status": call.status,
        "total_call_amount": call.total_call_amount,
        "total_paid_amount": call.total_paid_amount,
        "total_outstanding_amount": call.total_outstanding_amount,
        "currency": call.currency,
        "call_date": call.call_date,
        "due_date": call.due_date,
        "investors": len(call.investor_allocations),
    }
