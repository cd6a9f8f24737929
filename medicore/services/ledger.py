# medicore/services/ledger.py
"""
Batch ledger primitives.

A ``Medicine`` row embeds its batches as JSON. Every primitive here works on
a row already loaded into the caller's session and only stages the change:
nothing commits except ``commit_or_conflict`` / ``run_unit_of_work``, so the
dispense coordinator can group mutations over several medicines (plus the
prescription flip) into one transaction.

Writers are serialized per medicine by ``SELECT ... FOR UPDATE`` where the
database supports it, and by the row ``version`` counter everywhere: a write
based on a stale read fails with ``StaleDataError`` at flush time, which is
surfaced as ``ConcurrencyConflict`` so the caller re-reads and retries.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from medicore.models.medicine import Medicine, MedicineForm
from medicore.schemas.medicine import BatchEntry
from medicore.services.errors import (
    BatchNotFound,
    ConcurrencyConflict,
    InvariantViolation,
    MedicineNotFound,
)
from medicore.utils.timezone import now_local

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
T = TypeVar("T")

BATCH_FIELDS = ("unit", "unit_price", "expiry_date", "received_at", "supplier_name")


def D(v, default="0") -> Decimal:
    if v is None:
        return Decimal(default)
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


# -------------------------
# Reads
# -------------------------
def get_medicine(db: Session, code: str, *, for_update: bool = False) -> Medicine:
    q = db.query(Medicine).filter(Medicine.code == code)
    if for_update:
        q = q.with_for_update()
    med = q.first()
    if not med:
        raise MedicineNotFound(code)
    return med


def find_medicine(db: Session, code: str, *, for_update: bool = False) -> Optional[Medicine]:
    try:
        return get_medicine(db, code, for_update=for_update)
    except MedicineNotFound:
        return None


def read_batches(med: Medicine) -> List[BatchEntry]:
    """Embedded batches as models, in storage (insertion) order."""
    try:
        return [BatchEntry.model_validate(raw) for raw in (med.batches or [])]
    except ValidationError as e:
        raise InvariantViolation(f"Corrupted batch data on medicine {med.code}: {e}") from e


def total_quantity(source: Union[Medicine, Iterable[BatchEntry]]) -> Decimal:
    batches = read_batches(source) if isinstance(source, Medicine) else source
    return sum((b.qty for b in batches), ZERO)


def _write_batches(med: Medicine, batches: List[BatchEntry]) -> None:
    # assign a new list so the JSON column is flagged dirty
    med.batches = [b.model_dump(mode="json") for b in batches]


def _validated(data: Mapping[str, Any]) -> BatchEntry:
    try:
        return BatchEntry.model_validate(dict(data))
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ()))
        raise ValueError(f"Invalid batch data ({field}): {first.get('msg')}") from e


def _index_of(batches: List[BatchEntry], batch_no: str) -> int:
    for i, b in enumerate(batches):
        if b.batch_no == batch_no:
            return i
    return -1


# -------------------------
# Mutations (staged, not committed)
# -------------------------
def apply_batch_deltas(med: Medicine, deltas: Mapping[str, Decimal]) -> List[BatchEntry]:
    """
    Apply signed quantity deltas keyed by batch_no.
    Either every delta is applied or none is.
    """
    batches = read_batches(med)

    new_qty: Dict[str, Decimal] = {}
    for batch_no, delta in deltas.items():
        idx = _index_of(batches, batch_no)
        if idx < 0:
            raise InvariantViolation(f"Batch {batch_no} does not exist on medicine {med.code}")
        current = new_qty.get(batch_no, batches[idx].qty)
        result = current + D(delta)
        if result < 0:
            raise InvariantViolation(
                f"Negative stock for batch {batch_no} of {med.code} "
                f"(on hand {current}, delta {D(delta)})")
        new_qty[batch_no] = result

    for b in batches:
        if b.batch_no in new_qty:
            b.qty = new_qty[b.batch_no]

    _write_batches(med, batches)
    return batches


def upsert_batch(
    med: Medicine,
    batch_no: str,
    *,
    qty_delta: Decimal = ZERO,
    **fields: Any,
) -> Tuple[BatchEntry, bool]:
    """
    Add ``qty_delta`` to an existing batch and overwrite the metadata given in
    ``fields``, or append a new batch. Returns (batch, created).
    """
    unknown = set(fields) - set(BATCH_FIELDS)
    if unknown:
        raise ValueError(f"Unknown batch fields: {', '.join(sorted(unknown))}")

    qty_delta = D(qty_delta)
    meta = {k: v for k, v in fields.items() if v is not None}
    batches = read_batches(med)
    idx = _index_of(batches, batch_no)

    if idx >= 0:
        current = batches[idx]
        qty = current.qty + qty_delta
        if qty < 0:
            raise InvariantViolation(
                f"Negative stock for batch {batch_no} of {med.code} "
                f"(on hand {current.qty}, delta {qty_delta})")
        updated = _validated({**current.model_dump(), **meta, "qty": qty})
        batches[idx] = updated
        _write_batches(med, batches)
        return updated, False

    if qty_delta < 0:
        raise InvariantViolation(f"Cannot open batch {batch_no} of {med.code} with negative qty")
    meta.setdefault("received_at", now_local())
    created = _validated({"batch_no": batch_no, "qty": qty_delta, **meta})
    batches.append(created)
    _write_batches(med, batches)
    return created, True


def update_batch(med: Medicine, batch_no: str, changes: Mapping[str, Any]) -> BatchEntry:
    """Administrative correction: may rename the batch or set qty outright."""
    batches = read_batches(med)
    idx = _index_of(batches, batch_no)
    if idx < 0:
        raise BatchNotFound(med.code, batch_no)

    changes = {k: v for k, v in changes.items() if v is not None}
    new_no = changes.get("batch_no")
    if new_no and new_no != batch_no and _index_of(batches, new_no) >= 0:
        raise ValueError(f"Batch {new_no} already exists on medicine {med.code}")

    updated = _validated({**batches[idx].model_dump(), **changes})

    batches[idx] = updated
    _write_batches(med, batches)
    return updated


def remove_batch(med: Medicine, batch_no: str) -> BatchEntry:
    batches = read_batches(med)
    idx = _index_of(batches, batch_no)
    if idx < 0:
        raise BatchNotFound(med.code, batch_no)
    removed = batches.pop(idx)
    _write_batches(med, batches)
    return removed


def upsert_medicine(
    db: Session,
    code: str,
    *,
    name: Optional[str] = None,
    form: Optional[Union[MedicineForm, str]] = None,
    strength: Optional[str] = None,
    reorder_level: Optional[Decimal] = None,
) -> Tuple[Medicine, bool]:
    """Create or update descriptive fields; ``code`` never changes."""
    form_value = form.value if isinstance(form, MedicineForm) else form
    med = find_medicine(db, code, for_update=True)

    if med is None:
        if not (name or "").strip():
            raise ValueError("name is required to create a medicine")
        med = Medicine(
            code=code,
            name=name.strip(),
            form=form_value or MedicineForm.OTHER.value,
            strength=strength or "",
            reorder_level=D(reorder_level),
            batches=[],
        )
        db.add(med)
        return med, True

    if name is not None and name.strip():
        med.name = name.strip()
    if form_value is not None:
        med.form = form_value
    if strength is not None:
        med.strength = strength
    if reorder_level is not None:
        med.reorder_level = D(reorder_level)
    return med, False


# -------------------------
# Unit of work
# -------------------------
def store_conflict(e: OperationalError, what: str) -> ConcurrencyConflict:
    """Deadlock, lock-wait timeout or dropped connection while reading under lock."""
    return ConcurrencyConflict(f"Store busy or unavailable during {what}; please retry")


def commit_or_conflict(db: Session, what: str = "ledger update") -> None:
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        raise ConcurrencyConflict(f"Concurrent modification during {what}; please retry") from e
    except IntegrityError as e:
        db.rollback()
        raise ConcurrencyConflict(f"Conflicting write during {what}; please retry") from e
    except OperationalError as e:
        db.rollback()
        raise store_conflict(e, what) from e
    except Exception:
        db.rollback()
        raise


def run_unit_of_work(
    db: Session,
    work: Callable[[], T],
    *,
    attempts: int,
    what: str,
) -> T:
    """
    Run ``work`` and commit, re-running it from fresh state on
    ``ConcurrencyConflict``. ``work`` must read everything it needs itself.
    Lock errors raised by ``work`` itself count as conflicts too.
    """
    attempts = max(1, int(attempts))
    last: Optional[ConcurrencyConflict] = None
    for attempt in range(1, attempts + 1):
        try:
            try:
                result = work()
            except OperationalError as e:
                raise store_conflict(e, what) from e
            commit_or_conflict(db, what)
            return result
        except ConcurrencyConflict as e:
            db.rollback()
            last = e
            logger.warning("%s conflicted (attempt %s/%s): %s", what, attempt, attempts, e.msg)
        except Exception:
            db.rollback()
            raise
    raise last
