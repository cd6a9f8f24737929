# medicore/services/fefo.py
"""
FEFO (First-Expiry-First-Out) allocation.

Pure decision logic: takes a snapshot of one medicine's batches and a required
quantity, returns which batches to draw from. No database access and no
mutation of the input; the dispense coordinator applies the result.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Union

from medicore.schemas.medicine import BatchEntry

ZERO = Decimal("0")


@dataclass(frozen=True)
class BatchPick:
    batch_no: str
    qty: Decimal


@dataclass(frozen=True)
class Allocation:
    need: Decimal
    picks: List[BatchPick] = field(default_factory=list)

    def as_deltas(self) -> Dict[str, Decimal]:
        """Ledger deltas (negative) keyed by batch_no."""
        return {p.batch_no: -p.qty for p in self.picks}


@dataclass(frozen=True)
class Insufficient:
    need: Decimal
    available: Decimal

    @property
    def shortfall(self) -> Decimal:
        return self.need - self.available


AllocationResult = Union[Allocation, Insufficient]


def is_eligible(batch: BatchEntry, today: date) -> bool:
    """Positive stock that has not expired (expiring today counts as expired)."""
    return batch.qty > 0 and batch.expiry_date > today


def fefo_order(batches: Iterable[BatchEntry], today: date) -> List[BatchEntry]:
    # sorted() is stable: equal expiry keeps storage order
    eligible = [b for b in batches if is_eligible(b, today)]
    return sorted(eligible, key=lambda b: b.expiry_date)


def allocate_fefo(batches: Iterable[BatchEntry], need: Decimal, *, today: date) -> AllocationResult:
    """
    Allocate ``need`` units from ``batches``.

    - Only eligible batches (qty > 0, expiry_date > today) are considered
    - Earliest expiry first, ties broken by storage order
    - Returns Allocation whose picks sum exactly to ``need``
    - Returns Insufficient (with what was available) when eligible stock
      cannot cover ``need``; a partial allocation is never returned
    - Raises ValueError when ``need`` is not positive
    """
    if need is None:
        raise ValueError("Quantity is required")
    need = Decimal(str(need))
    if need <= 0:
        raise ValueError("Quantity must be > 0")

    ordered = fefo_order(batches, today)
    remaining = need
    picks: List[BatchPick] = []

    for batch in ordered:
        if remaining <= 0:
            break
        take = batch.qty if batch.qty <= remaining else remaining
        picks.append(BatchPick(batch_no=batch.batch_no, qty=take))
        remaining -= take

    if remaining > 0:
        return Insufficient(need=need, available=need - remaining)

    return Allocation(need=need, picks=picks)
