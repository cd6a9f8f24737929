import os
from datetime import date, timedelta
from decimal import Decimal

# must be set before medicore.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from medicore.db.base import Base  # noqa: E402
from medicore.db.session import get_db, make_engine  # noqa: E402
from medicore.models.medicine import Medicine  # noqa: E402
from medicore.models.prescription import Prescription, PrescriptionStatus  # noqa: E402
from medicore.utils.timezone import today_local  # noqa: E402


@pytest.fixture()
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'pharmacy_test.sqlite'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def today() -> date:
    return today_local()


@pytest.fixture()
def client(session_factory):
    from medicore.main import app

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def batch(batch_no, qty, expiry, **extra):
    return {
        "batch_no": batch_no,
        "qty": str(qty),
        "unit": extra.pop("unit", "units"),
        "unit_price": str(extra.pop("unit_price", "0")),
        "expiry_date": expiry.isoformat(),
        **extra,
    }


def add_medicine(db, code, batches=(), reorder_level=0, name=None):
    med = Medicine(
        code=code,
        name=name or code,
        form="tablet",
        strength="",
        reorder_level=Decimal(str(reorder_level)),
        batches=list(batches),
    )
    db.add(med)
    db.commit()
    return med


def add_prescription(db, rx_number, items):
    rx = Prescription(
        rx_number=rx_number,
        patient_id="P-001",
        doctor_id="D-001",
        items=[{"medicine_code": code, "qty": str(qty)} for code, qty in items],
        status=PrescriptionStatus.PENDING.value,
    )
    db.add(rx)
    db.commit()
    return rx


def days(n: int) -> timedelta:
    return timedelta(days=n)
