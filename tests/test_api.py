from decimal import Decimal

from jose import jwt

from conftest import days
from medicore.core.config import settings


def _iso(d):
    return d.isoformat()


def _create_medicine(client, code="PARA500", reorder_level=10, **extra):
    body = {"code": code, "name": extra.pop("name", "Paracetamol 500mg"), "form": "tablet",
            "strength": "500mg", "reorderLevel": reorder_level, **extra}
    return client.post("/medicines", json=body)


def _stock_in(client, code, batch_no, qty, expiry, **extra):
    body = {"batchNo": batch_no, "qty": qty, "expiryDate": _iso(expiry) if expiry else None, **extra}
    return client.post(f"/medicines/{code}/batches", json=body)


def test_health(client):
    r = client.get("/")
    assert r.status_code == 200
    assert "running" in r.json()["message"]


def test_medicine_upsert_create_then_update(client):
    r = _create_medicine(client)
    assert r.status_code == 201
    body = r.json()
    assert body["status"] is True
    assert body["data"]["code"] == "PARA500"
    assert body["data"]["batches"] == []

    r = _create_medicine(client, name="Paracetamol", reorder_level=25)
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "Paracetamol"
    assert Decimal(r.json()["data"]["reorder_level"]) == Decimal("25")


def test_medicine_validation_and_not_found(client):
    r = client.post("/medicines", json={"name": "No code"})
    assert r.status_code == 422
    assert r.json()["status"] is False

    r = client.post("/medicines", json={"code": "X1", "form": "lozenge", "name": "X"})
    assert r.status_code == 422

    r = client.post("/medicines", json={"code": "X1"})
    assert r.status_code == 400

    r = client.get("/medicines/NOPE")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


def test_stock_in_and_skip(client, today):
    _create_medicine(client)

    r = _stock_in(client, "PARA500", "B1", 20, today + days(10), unitPrice=1.5, supplierName="Acme")
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["skipped"] is False
    assert Decimal(data["medicine"]["total_quantity"]) == Decimal("20")

    r = _stock_in(client, "PARA500", "OLD", 5, today - days(1))
    assert r.status_code == 200
    assert r.json()["data"]["skipped"] is True
    assert [b["batch_no"] for b in r.json()["data"]["medicine"]["batches"]] == ["B1"]

    r = _stock_in(client, "GHOST", "B1", 5, today + days(10))
    assert r.status_code == 404

    r = _stock_in(client, "PARA500", "B2", 0, today + days(10))
    assert r.status_code == 422


def test_batch_edit_and_delete(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 20, today + days(10))

    r = client.put("/medicines/PARA500/batches/B1", json={"batchNo": "B1X", "qty": 18})
    assert r.status_code == 200
    batches = r.json()["data"]["batches"]
    assert [(b["batch_no"], Decimal(b["qty"])) for b in batches] == [("B1X", Decimal("18"))]

    r = client.put("/medicines/PARA500/batches/NOPE", json={"qty": 1})
    assert r.status_code == 404

    r = client.delete("/medicines/PARA500/batches/B1X")
    assert r.status_code == 200
    assert r.json()["data"]["batches"] == []

    r = client.delete("/medicines/PARA500/batches/B1X")
    assert r.status_code == 404


def test_list_filters(client, today):
    _create_medicine(client, "PARA500", reorder_level=10)
    _create_medicine(client, "AMOX250", name="Amoxicillin", reorder_level=5)
    _stock_in(client, "PARA500", "P1", 100, today + days(200))
    _stock_in(client, "AMOX250", "A1", 3, today + days(7))

    codes = lambda r: [m["code"] for m in r.json()["data"]]  # noqa: E731

    assert codes(client.get("/medicines")) == ["AMOX250", "PARA500"]
    assert codes(client.get("/medicines", params={"lowStock": "true"})) == ["AMOX250"]
    assert codes(client.get("/medicines", params={"expiringInDays": 30})) == ["AMOX250"]
    assert client.get("/medicines", params={"expiringInDays": -3}).status_code == 400


def test_prescription_dispense_flow(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 20, today + days(10))
    _stock_in(client, "PARA500", "B2", 15, today + days(40))

    r = client.post("/prescriptions", json={
        "patientId": "P-100", "doctorId": "D-7",
        "items": [{"medicineCode": "PARA500", "qty": 25, "dose": "1 tab", "frequency": "TDS"}],
    })
    assert r.status_code == 201
    rx = r.json()["data"]
    assert rx["status"] == "PENDING"
    assert rx["rx_number"].startswith(settings.RX_NUMBER_PREFIX + today.strftime("%Y%m%d"))

    r = client.get(f"/prescriptions/{rx['rx_number']}")
    assert r.status_code == 200
    assert r.json()["data"]["id"] == rx["id"]

    r = client.post(f"/prescriptions/{rx['id']}/dispense", headers={"X-User-Id": "pharm-42"})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["prescription"]["status"] == "DISPENSED"
    assert data["prescription"]["dispensed_by"] == "pharm-42"
    assert [(p["batch_no"], Decimal(p["qty"])) for p in data["allocations"]["PARA500"]] == [
        ("B1", Decimal("20")), ("B2", Decimal("5")),
    ]

    r = client.post(f"/prescriptions/{rx['id']}/dispense")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "ALREADY_PROCESSED"

    r = client.get("/reports/alerts")
    assert r.status_code == 200
    report = r.json()["data"]
    assert report["expiring_in_days"] == settings.DEFAULT_EXPIRY_WINDOW_DAYS
    assert [m["code"] for m in report["low_stock"]] == ["PARA500"]


def test_dispense_errors(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 3, today + days(10))

    rx = client.post("/prescriptions", json={
        "patientId": "P-1", "doctorId": "D-1",
        "items": [{"medicineCode": "PARA500", "qty": 5}],
    }).json()["data"]
    r = client.post(f"/prescriptions/{rx['id']}/dispense")
    assert r.status_code == 400
    assert "PARA500" in r.json()["error"]["msg"]
    assert "2" in r.json()["error"]["msg"]

    r = client.post("/prescriptions/999/dispense")
    assert r.status_code == 404

    rx = client.post("/prescriptions", json={
        "patientId": "P-1", "doctorId": "D-1",
        "items": [{"medicineCode": "GHOST", "qty": 1}],
    }).json()["data"]
    r = client.post(f"/prescriptions/{rx['id']}/dispense")
    assert r.status_code == 404

    r = client.post("/prescriptions", json={"patientId": "P-1", "doctorId": "D-1", "items": []})
    assert r.status_code == 422


def test_bearer_identity(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 3, today + days(10))
    rx = client.post("/prescriptions", json={
        "patientId": "P-1", "doctorId": "D-1",
        "items": [{"medicineCode": "PARA500", "qty": 1}],
    }).json()["data"]

    r = client.post(f"/prescriptions/{rx['id']}/dispense",
                    headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401

    token = jwt.encode({"sub": "dr.silva"}, settings.JWT_SECRET, algorithm=settings.JWT_ALG)
    r = client.post(f"/prescriptions/{rx['id']}/dispense",
                    headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["data"]["prescription"]["dispensed_by"] == "dr.silva"


def test_supplier_intake_triggers_replenishment(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 10, today + days(30))

    r = client.post("/suppliers", json={
        "name": "Acme Pharma",
        "contactPerson": "R. Perera",
        "items": [
            {"code": "PARA500", "batchNo": "B1", "quantity": 5, "unitPrice": 2,
             "expiryDate": _iso(today + days(30))},
            {"code": "ORS01", "batchNo": "O1", "quantity": 10, "unitPrice": "0.5",
             "expiryDate": _iso(today + days(300)), "description": "ORS sachet"},
            {"code": "PARA500", "batchNo": "B9", "quantity": 3, "unitPrice": 1},
        ],
    })
    assert r.status_code == 201
    data = r.json()["data"]
    assert Decimal(data["supplier"]["total_price"]) == Decimal("18")
    summary = data["replenishment"]
    assert (summary["created"], summary["updated"], summary["skipped"]) == (1, 1, 1)

    para = client.get("/medicines/PARA500").json()["data"]
    assert Decimal(para["total_quantity"]) == Decimal("15")
    assert para["batches"][0]["supplier_name"] == "Acme Pharma"
    assert client.get("/medicines/ORS01").json()["data"]["name"] == "ORS sachet"

    r = client.get("/suppliers")
    assert [s["name"] for s in r.json()["data"]] == ["Acme Pharma"]


def test_alert_exports(client, today):
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 3, today + days(10))

    r = client.get("/reports/alerts/export", params={"format": "xlsx"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")
    assert r.content[:2] == b"PK"

    r = client.get("/reports/alerts/export", params={"format": "pdf", "expiringInDays": 7})
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")

    r = client.get("/reports/alerts/export", params={"format": "csv"})
    assert r.status_code == 422


def test_digit_only_rx_numbers_are_addressable(client, today, monkeypatch):
    monkeypatch.setattr(settings, "RX_NUMBER_PREFIX", "")
    _create_medicine(client)
    _stock_in(client, "PARA500", "B1", 3, today + days(10))

    rx = client.post("/prescriptions", json={
        "patientId": "P-1", "doctorId": "D-1",
        "items": [{"medicineCode": "PARA500", "qty": 1}],
    }).json()["data"]
    assert rx["rx_number"] == today.strftime("%Y%m%d") + "0001"

    r = client.get(f"/prescriptions/{rx['rx_number']}")
    assert r.status_code == 200
    assert r.json()["data"]["id"] == rx["id"]

    r = client.post(f"/prescriptions/{rx['rx_number']}/dispense")
    assert r.status_code == 200
    assert r.json()["data"]["prescription"]["status"] == "DISPENSED"


def test_supplier_line_without_price(client, today):
    r = client.post("/suppliers", json={
        "name": "Gift Pharma",
        "items": [{"code": "ORS01", "batchNo": "O1", "quantity": 10,
                   "expiryDate": _iso(today + days(300))}],
    })
    assert r.status_code == 201
    supplier = r.json()["data"]["supplier"]
    assert supplier["items"][0]["unit_price"] is None
    assert Decimal(supplier["total_price"]) == Decimal("0")
