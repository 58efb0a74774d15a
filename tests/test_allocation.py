"""Tests for pro-rata capital call allocation.

Covers:
- Proportional split by commitment
- Sum of call amounts equals the requested total
- Zero total / zero commitment guards
- Uncalled capital after the call
"""
from __future__ import annotations

import pytest

from engine.allocation_engine import (
    AllocationError,
    allocate_pro_rata,
    compute_allocations,
    validate_allocation_total,
)
from structures.hierarchy import InvestorPosition
from structures.structure import Structure


def pos(investor_id: str, commitment: float, called: float = 0.0, pct: float = 0.0) -> InvestorPosition:
    """Helper to create a single-level position."""
    return InvestorPosition(
        investor_id=investor_id,
        investor_name=f"Investor {investor_id}",
        investor_type="institution",
        commitment=commitment,
        called_to_date=called,
        ownership_percent=pct,
    )


class TestProRataSplit:
    """Tests for proportional allocation."""

    def test_two_investors_split_by_commitment(self):
        """1,000,000 across 600k/400k commitments should split 600k/400k."""
        allocs = allocate_pro_rata(1_000_000, [pos("A", 600_000), pos("B", 400_000)])

        assert allocs[0].call_amount == pytest.approx(600_000)
        assert allocs[1].call_amount == pytest.approx(400_000)

    def test_sum_matches_total(self):
        """Call amounts should add up to the requested total."""
        positions = [pos("A", 333_333), pos("B", 123_457), pos("C", 987_654), pos("D", 1)]

        allocs = allocate_pro_rata(250_000.75, positions)

        assert sum(a.call_amount for a in allocs) == pytest.approx(250_000.75)

    def test_share_proportional_to_commitment(self):
        """Each call share should equal the commitment share."""
        positions = [pos("A", 100), pos("B", 300), pos("C", 600)]
        total_commitment = 1000

        allocs = allocate_pro_rata(5_000, positions)

        for a in allocs:
            assert a.call_amount / 5_000 == pytest.approx(a.commitment / total_commitment)

    def test_uncalled_capital_after_call(self):
        """Uncalled capital is commitment minus called-to-date minus this call."""
        allocs = allocate_pro_rata(100_000, [pos("A", 600_000, called=150_000), pos("B", 400_000, called=100_000)])

        assert allocs[0].uncalled_capital == pytest.approx(600_000 - 150_000 - 60_000)
        assert allocs[1].uncalled_capital == pytest.approx(400_000 - 100_000 - 40_000)

    def test_order_and_identity_preserved(self):
        """Allocations follow input order and carry investor details."""
        positions = [pos("B", 1), pos("A", 1)]

        allocs = allocate_pro_rata(10, positions)

        assert [a.investor_id for a in allocs] == ["B", "A"]
        assert allocs[0].investor_name == "Investor B"
        assert allocs[0].investor_type == "institution"

    def test_inputs_not_mutated(self):
        """Source positions should be left untouched."""
        positions = [pos("A", 600_000), pos("B", 400_000)]
        before = list(positions)

        allocate_pro_rata(1_000_000, positions)

        assert positions == before


class TestZeroGuards:
    """Tests for division-by-zero guards."""

    def test_zero_total_gives_zero_calls(self):
        """A zero call amount allocates zero to everyone."""
        allocs = allocate_pro_rata(0, [pos("A", 600_000), pos("B", 400_000)])

        assert len(allocs) == 2
        assert all(a.call_amount == 0 for a in allocs)

    def test_zero_commitments_give_zero_calls(self):
        """All-zero commitments should not raise."""
        allocs = allocate_pro_rata(100, [pos("A", 0), pos("B", 0)])

        assert [a.call_amount for a in allocs] == [0, 0]

    def test_empty_investor_list(self):
        """No investors means no allocations."""
        assert allocate_pro_rata(100, []) == []

    def test_negative_total_rejected(self):
        """Negative call amounts are invalid."""
        with pytest.raises(AllocationError, match=">= 0"):
            allocate_pro_rata(-1, [pos("A", 10)])

    def test_allocation_error_is_value_error(self):
        """AllocationError should be catchable as ValueError."""
        with pytest.raises(ValueError):
            allocate_pro_rata(-5, [])


class TestComputeAllocations:
    """Tests for the structure-level dispatch."""

    def test_missing_structure_gives_empty_result(self):
        """No structure selected means nothing to allocate."""
        assert compute_allocations(100, None, [pos("A", 10)]) == []

    def test_no_positions_gives_empty_result(self):
        """Structure without investors yields an empty result."""
        s = Structure("f1", "Fund One", 1_000_000)
        assert compute_allocations(100, s, []) == []

    def test_single_level_structure_uses_pro_rata(self):
        """Non-master structures are allocated pro rata."""
        s = Structure("f1", "Fund One", 1_000_000)

        allocs = compute_allocations(1_000, s, [pos("A", 750), pos("B", 250)])

        assert [a.call_amount for a in allocs] == pytest.approx([750, 250])


class TestValidateAllocationTotal:
    """Tests for the allocation total check."""

    def test_matching_total_passes(self):
        allocs = allocate_pro_rata(1_000, [pos("A", 1), pos("B", 2)])
        assert validate_allocation_total(allocs, 1_000) == []

    def test_mismatch_reported(self):
        allocs = allocate_pro_rata(1_000, [pos("A", 0)])
        issues = validate_allocation_total(allocs, 1_000)
        assert len(issues) == 1
        assert "does not match" in issues[0]
