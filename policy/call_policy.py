from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

@dataclass(frozen=True)
class CallPolicy:
    raw: Dict[str, Any]

    def _section(self) -> Dict[str, Any]:
        return self.raw.get("capital_calls") or {}

    @property
    def notice_period_days(self) -> int:
        return int(self._section().get("notice_period_days", 10))

    @property
    def default_currency(self) -> str:
        return str(self._section().get("default_currency", "USD"))

    @property
    def transaction_type(self) -> str:
        return str(self._section().get("transaction_type", "Capital Call"))

    @property
    def tolerance(self) -> float:
        return float(self._section().get("tolerance", 0.01))

    @property
    def created_by(self) -> Optional[str]:
        return self._section().get("created_by")

    @property
    def ledger_path(self) -> str:
        return str((self.raw.get("storage") or {}).get("capital_calls_path", "data/capital_calls.yaml"))

    @property
    def log_level(self) -> str:
        return str((self.raw.get("logging") or {}).get("level", "WARNING")).upper()

def validate_call_request(fund_id: str, total_call_amount: float) -> List[str]:
    issues: List[str] = []
    if not fund_id:
        issues.append("No fund selected for capital call")
    if total_call_amount <= 0:
        issues.append(f"Call amount must be positive, got {total_call_amount:,.2f}")
    return issues

def validate_management_fee(total_call_amount: float, fee_included: bool, fee_amount: float) -> List[str]:
    if not fee_included:
        return []
    if fee_amount < 0:
        return [f"Management fee cannot be negative: {fee_amount:,.2f}"]
    if fee_amount > total_call_amount:
        return [f"Management fee {fee_amount:,.2f} exceeds call amount {total_call_amount:,.2f}"]
    return []
