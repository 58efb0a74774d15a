"""Structure hierarchy resolution.

Turns the investor register into the per-structure positions the allocation
engine works on. A multi-level master structure pulls in every descendant
structure (by ``parent_structure_id``) and tags each position with the
hierarchy level of the structure it was found in.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from investors.investor import Investor
from structures.structure import Structure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvestorPosition:
    """An investor's stake in one structure, as seen by a capital call."""

    investor_id: str
    investor_name: str
    investor_type: str
    commitment: float
    called_to_date: float = 0.0
    ownership_percent: float = 0.0
    hierarchy_level: Optional[int] = None
    structure_id: Optional[str] = None
    structure_name: Optional[str] = None


def _position(investor: Investor, structure: Structure, default_level: Optional[int]) -> Optional[InvestorPosition]:
    fo = investor.ownership_for(structure.id)
    if fo is None:
        return None
    # structure level wins, then the holding's own level, then the caller's
    level = structure.hierarchy_level
    if level is None:
        level = fo.hierarchy_level if fo.hierarchy_level is not None else default_level
    return InvestorPosition(
        investor_id=investor.id,
        investor_name=investor.name,
        investor_type=investor.type,
        commitment=float(fo.commitment),
        called_to_date=float(fo.called_capital),
        ownership_percent=float(fo.ownership_percent),
        hierarchy_level=level,
        structure_id=structure.id,
        structure_name=structure.name,
    )


def investors_in_structure(structure: Structure, investors: List[Investor]) -> List[InvestorPosition]:
    """Positions of every investor holding an ownership in ``structure``."""
    out: List[InvestorPosition] = []
    for inv in investors:
        pos = _position(inv, structure, None)
        if pos is not None:
            out.append(pos)
    return out


def descendant_structures(master: Structure, structures: List[Structure]) -> List[Structure]:
    """Master first, then descendants depth-first in registration order."""
    children: Dict[str, List[Structure]] = {}
    for s in structures:
        if s.parent_structure_id:
            children.setdefault(s.parent_structure_id, []).append(s)

    ordered: List[Structure] = []
    seen = set()

    def walk(node: Structure) -> None:
        if node.id in seen:
            logger.warning("Cycle in structure hierarchy at %s", node.id)
            return
        seen.add(node.id)
        ordered.append(node)
        for child in children.get(node.id, []):
            walk(child)

    walk(master)
    return ordered


def investors_by_hierarchy(
    master_id: str,
    structures: List[Structure],
    investors: List[Investor],
) -> List[InvestorPosition]:
    """Resolve positions across a master structure and all its descendants.

    Args:
        master_id: Id of the level-1 structure.
        structures: All known structures.
        investors: All known investors.

    Returns:
        Positions sorted by hierarchy level (level 1 first). Empty if the
        master is unknown.
    """
    master = next((s for s in structures if s.id == master_id), None)
    if master is None:
        logger.info("Master structure %s not found", master_id)
        return []

    depth = {master.id: 1}
    result: List[InvestorPosition] = []
    for s in descendant_structures(master, structures):
        if s.parent_structure_id in depth and s.id not in depth:
            depth[s.id] = depth[s.parent_structure_id] + 1
        for inv in investors:
            pos = _position(inv, s, depth.get(s.id))
            if pos is not None:
                result.append(pos)

    return sorted(result, key=lambda p: p.hierarchy_level or 0)


def resolve_allocation_inputs(
    structure: Optional[Structure],
    structures: List[Structure],
    investors: List[Investor],
) -> List[InvestorPosition]:
    if structure is None:
        return []
    if structure.is_hierarchy_master:
        return investors_by_hierarchy(structure.id, structures, investors)
    return investors_in_structure(structure, investors)
