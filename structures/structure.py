from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

@dataclass(frozen=True)
class Structure:
    id: str
    name: str
    total_commitment: float = 0.0
    currency: str = "USD"
    hierarchy_level: Optional[int] = None  # 1 = master, 2 = intermediate
    parent_structure_id: Optional[str] = None

    @property
    def is_hierarchy_master(self) -> bool:
        return self.hierarchy_level == 1
