from __future__ import annotations
from dataclasses import asdict
from typing import Dict, Any, List
from engine.capital_call_engine import CapitalCall
from reporting.summary import capital_call_summary

def call_report(call: CapitalCall, warnings: List[str]) -> Dict[str, Any]:
    return {
        "summary": capital_call_summary(call),
        "warnings": warnings,
        "allocations": [asdict(a) for a in call.investor_allocations],
    }
