from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Literal, Optional

InvestorType = Literal["individual", "institution", "family-office", "fund-of-funds"]

@dataclass(frozen=True)
class FundOwnership:
    fund_id: str
    fund_name: str
    commitment: float
    ownership_percent: float
    called_capital: float = 0.0
    # level this holding sits at when its structure does not say
    hierarchy_level: Optional[int] = None

@dataclass
class Investor:
    id: str
    name: str
    type: InvestorType
    fund_ownerships: List[FundOwnership] = field(default_factory=list)

    def ownership_for(self, fund_id: str) -> Optional[FundOwnership]:
        for fo in self.fund_ownerships:
            if fo.fund_id == fund_id:
                return fo
        return None
