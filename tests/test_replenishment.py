from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from conftest import add_medicine, batch, days
from medicore.schemas.medicine import BatchStockIn
from medicore.schemas.supplier import ShipmentLine
from medicore.services import ledger
from medicore.services.errors import MedicineNotFound
from medicore.services.replenishment import (
    MergeAction,
    merge_line,
    merge_shipment,
    stock_in,
)


def _line(code, batch_no, qty, expiry, **extra):
    return ShipmentLine(code=code, batch_no=batch_no, quantity=Decimal(str(qty)),
                        expiry_date=expiry, **extra)


def _batches(db, code):
    db.expire_all()
    return {b.batch_no: b for b in ledger.read_batches(ledger.get_medicine(db, code))}


def test_same_batch_twice_merges_into_one_entry(db, today):
    exp = today + days(120)
    merge_line(db, _line("CETZ10", "L1", 3, exp, description="Cetirizine 10mg"), today=today)
    outcome = merge_line(db, _line("CETZ10", "L1", 4, exp), today=today)

    assert outcome.action == MergeAction.UPDATED
    batches = _batches(db, "CETZ10")
    assert list(batches) == ["L1"]
    assert batches["L1"].qty == Decimal("7")


def test_unknown_code_creates_medicine(db, today):
    outcome = merge_line(
        db, _line("ORS01", "L1", 50, today + days(200), description="ORS sachet"), today=today)

    assert outcome.action == MergeAction.CREATED
    assert outcome.medicine_created is True
    med = ledger.get_medicine(db, "ORS01")
    assert med.name == "ORS sachet"
    assert ledger.total_quantity(med) == Decimal("50")


def test_unknown_code_without_description_uses_code_as_name(db, today):
    merge_line(db, _line("ORS02", "L1", 5, today + days(200)), today=today)
    assert ledger.get_medicine(db, "ORS02").name == "ORS02"


def test_existing_batch_metadata_is_overwritten(db, today):
    add_medicine(db, "CETZ10", [
        batch("L1", 10, today + days(30), unit_price="2.00", supplier_name="Old Co"),
    ])

    merge_line(db, _line("CETZ10", "L1", 5, today + days(60),
                         unit_price=Decimal("2.50"), supplier_name="New Co"), today=today)

    b = _batches(db, "CETZ10")["L1"]
    assert b.qty == Decimal("15")
    assert b.unit_price == Decimal("2.50")
    assert b.expiry_date == today + days(60)
    assert b.supplier_name == "New Co"


def test_new_batch_is_appended_after_existing(db, today):
    add_medicine(db, "CETZ10", [batch("L1", 10, today + days(30))])

    merge_line(db, _line("CETZ10", "L2", 5, today + days(10)), today=today)

    assert list(_batches(db, "CETZ10")) == ["L1", "L2"]


@pytest.mark.parametrize("offset", [None, 0, -5])
def test_line_without_usable_expiry_is_skipped(db, today, offset):
    add_medicine(db, "CETZ10", [batch("L1", 10, today + days(30))])
    expiry = None if offset is None else today + days(offset)

    outcome = merge_line(db, _line("CETZ10", "L9", 5, expiry), today=today)

    assert outcome.action == MergeAction.SKIPPED
    assert outcome.reason
    assert list(_batches(db, "CETZ10")) == ["L1"]


def test_shipment_reports_counts_and_keeps_earlier_lines(db, today):
    add_medicine(db, "CETZ10", [batch("L1", 10, today + days(30))])
    lines = [
        _line("CETZ10", "L1", 5, today + days(30)),
        _line("CETZ10", "BAD", 5, None),
        _line("NEWMED", "N1", 8, today + days(90)),
        _line("CETZ10", "OLD", 5, today - days(1)),
    ]

    summary = merge_shipment(db, lines, today=today)

    assert (summary.created, summary.updated, summary.skipped, summary.failed) == (1, 1, 2, 0)
    assert [o.action for o in summary.outcomes] == [
        MergeAction.UPDATED, MergeAction.SKIPPED, MergeAction.CREATED, MergeAction.SKIPPED,
    ]
    assert _batches(db, "CETZ10")["L1"].qty == Decimal("15")
    assert _batches(db, "NEWMED")["N1"].qty == Decimal("8")
    out = summary.to_out()
    assert out.skipped == 2
    assert len(out.lines) == 4


def test_stock_in_unknown_medicine_is_not_found(db, today):
    payload = BatchStockIn(batchNo="L1", qty=Decimal("1"), expiryDate=today + days(30))
    with pytest.raises(MedicineNotFound):
        stock_in(db, "GHOST", payload, today=today)


def test_stock_in_adds_to_existing_medicine(db, today):
    add_medicine(db, "CETZ10")
    payload = BatchStockIn(batchNo="L1", qty=Decimal("12"), expiryDate=today + days(30),
                           unitPrice=Decimal("0.75"), supplierName="Acme")

    outcome = stock_in(db, "CETZ10", payload, today=today)

    assert outcome.action == MergeAction.CREATED
    b = _batches(db, "CETZ10")["L1"]
    assert b.qty == Decimal("12")
    assert b.unit_price == Decimal("0.75")
    assert b.received_at is not None


def test_replenishment_and_dispense_deltas_compose(db, today):
    add_medicine(db, "CETZ10", [batch("L1", 10, today + days(30))])
    med = ledger.get_medicine(db, "CETZ10")
    ledger.apply_batch_deltas(med, {"L1": Decimal("-4")})
    ledger.commit_or_conflict(db)

    merge_line(db, _line("CETZ10", "L1", 6, today + days(30)), today=today)

    assert _batches(db, "CETZ10")["L1"].qty == Decimal("12")


@pytest.mark.parametrize("error", [
    OperationalError("SELECT ... FOR UPDATE", {}, Exception("(1213) Deadlock found")),
    SQLAlchemyError("connection reset"),
])
def test_failing_middle_line_does_not_stop_the_shipment(db, today, monkeypatch, error):
    add_medicine(db, "CETZ10", [batch("L1", 10, today + days(30))])
    real_find = ledger.find_medicine

    def find_or_fail(db_, code, *, for_update=False):
        if code == "BROKEN":
            raise error
        return real_find(db_, code, for_update=for_update)

    monkeypatch.setattr(ledger, "find_medicine", find_or_fail)
    lines = [
        _line("CETZ10", "L1", 5, today + days(30)),
        _line("BROKEN", "X1", 5, today + days(30)),
        _line("NEWMED", "N1", 8, today + days(90)),
    ]

    summary = merge_shipment(db, lines, today=today)

    assert [o.action for o in summary.outcomes] == [
        MergeAction.UPDATED, MergeAction.FAILED, MergeAction.CREATED,
    ]
    assert summary.outcomes[1].reason
    monkeypatch.undo()
    assert _batches(db, "CETZ10")["L1"].qty == Decimal("15")
    assert _batches(db, "NEWMED")["N1"].qty == Decimal("8")


def test_line_without_price_or_supplier_keeps_existing_values(db, today):
    add_medicine(db, "CETZ10", [
        batch("L1", 10, today + days(30), unit_price="2.00", supplier_name="Acme"),
    ])

    merge_line(db, _line("CETZ10", "L1", 5, today + days(30)), today=today)
    stock_in(db, "CETZ10", BatchStockIn(batchNo="L1", qty=Decimal("1"),
                                        expiryDate=today + days(30)), today=today)

    b = _batches(db, "CETZ10")["L1"]
    assert b.qty == Decimal("16")
    assert b.unit_price == Decimal("2.00")
    assert b.supplier_name == "Acme"


def test_new_batch_without_price_defaults_to_zero(db, today):
    add_medicine(db, "CETZ10")

    merge_line(db, _line("CETZ10", "L1", 5, today + days(30)), today=today)

    assert _batches(db, "CETZ10")["L1"].unit_price == Decimal("0")
