# medicore/services/rx_numbers.py
"""
Prescription numbers: ``<RX_NUMBER_PREFIX><yyyymmdd><seq:04d>``, restarting at
0001 every hospital-local day.

Call inside ``ledger.run_unit_of_work``. Two first-of-day issues race on the
counter insert; the loser gets ``ConcurrencyConflict`` and its whole unit of
work (prescription included) is rebuilt on the next attempt.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from medicore.core.config import settings
from medicore.models.rx_counter import RxCounter
from medicore.services.errors import ConcurrencyConflict

SEQ_WIDTH = 4


def format_rx_number(prefix: str, issued_on: date, seq: int) -> str:
    return f"{prefix}{issued_on.strftime('%Y%m%d')}{seq:0{SEQ_WIDTH}d}"


def next_rx_number(db: Session, issued_on: date) -> str:
    prefix = settings.RX_NUMBER_PREFIX or ""

    counter = (
        db.query(RxCounter)
        .filter(RxCounter.prefix == prefix, RxCounter.issued_on == issued_on)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = RxCounter(prefix=prefix, issued_on=issued_on, last_seq=0)
        db.add(counter)

    counter.last_seq = int(counter.last_seq or 0) + 1
    try:
        db.flush()
    except IntegrityError as e:
        raise ConcurrencyConflict(
            f"Prescription counter for {issued_on.isoformat()} was opened concurrently; please retry") from e

    return format_rx_number(prefix, issued_on, counter.last_seq)
