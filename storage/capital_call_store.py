"""YAML-backed capital call ledger."""
from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from common.config_loader import load_yaml
from engine.capital_call_engine import CallAllocation, CapitalCall, next_call_number, utc_now_iso

logger = logging.getLogger(__name__)


def _known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


def call_to_dict(call: CapitalCall) -> Dict[str, Any]:
    return asdict(call)


def call_from_dict(data: Dict[str, Any]) -> CapitalCall:
    d = _known(CapitalCall, data)
    d["investor_allocations"] = [
        CallAllocation(**_known(CallAllocation, a)) for a in (data.get("investor_allocations") or [])
    ]
    return CapitalCall(**d)


class CapitalCallStore:
    """Capital calls persisted to a single YAML file."""

    def __init__(self, path: str | Path = "data/capital_calls.yaml"):
        self.path = Path(path)

    def _read(self) -> List[CapitalCall]:
        if not self.path.exists():
            return []
        raw = load_yaml(self.path)
        return [call_from_dict(c) for c in (raw.get("capital_calls") or [])]

    def _write(self, calls: List[CapitalCall]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        output = {"capital_calls": [call_to_dict(c) for c in calls]}
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(output, f, default_flow_style=False, sort_keys=False)

    def list_calls(self) -> List[CapitalCall]:
        return self._read()

    def get(self, call_id: str) -> Optional[CapitalCall]:
        return next((c for c in self._read() if c.id == call_id), None)

    def by_fund(self, fund_id: str) -> List[CapitalCall]:
        return [c for c in self._read() if c.fund_id == fund_id]

    def by_status(self, status: str) -> List[CapitalCall]:
        return [c for c in self._read() if c.status == status]

    def next_call_number(self, fund_id: str) -> int:
        return next_call_number(self._read(), fund_id)

    def save(self, call: CapitalCall) -> CapitalCall:
        """Store a new call, assigning a unique id and timestamps."""
        calls = self._read()
        existing = {c.id for c in calls}
        new_id = f"cc-{uuid.uuid4().hex[:12]}"
        while new_id in existing:
            new_id = f"cc-{uuid.uuid4().hex[:12]}"
        now = utc_now_iso()
        saved = replace(call, id=new_id, created_at=now, updated_at=now)
        calls.append(saved)
        self._write(calls)
        logger.info("Saved capital call %s (#%d, %s)", saved.id, saved.call_number, saved.fund_id)
        return saved

    def update(self, call: CapitalCall) -> Optional[CapitalCall]:
        """Replace a stored call by id; None if the id is unknown."""
        calls = self._read()
        for i, c in enumerate(calls):
            if c.id == call.id:
                calls[i] = replace(call, updated_at=utc_now_iso())
                self._write(calls)
                return calls[i]
        return None

    def delete(self, call_id: str) -> bool:
        calls = self._read()
        kept = [c for c in calls if c.id != call_id]
        if len(kept) == len(calls):
            return False
        self._write(kept)
        logger.info("Deleted capital call %s", call_id)
        return True
