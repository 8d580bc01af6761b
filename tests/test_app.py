from __future__ import annotations

from pathlib import Path

import pytest

from fundcalc.app import create_app
from fundcalc.config import Config


@pytest.fixture
def client(tmp_path: Path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'app.db'}"
        DATA_DIR = str(tmp_path / "data")
        INGEST_ON_STARTUP = False

    app = create_app(TestConfig)
    with app.test_client() as c:
        yield c


def _fund(client, name="Pension") -> int:
    resp = client.post("/api/funds", json={"name": name})
    assert resp.status_code == 201
    return resp.get_json()["id"]


def _seed(client) -> int:
    fid = _fund(client)
    for cf in (
        {"date": "2024-01-01", "amount": 1000, "direction": "deposit"},
        {"date": "2024-04-01", "amount": 1000, "direction": "deposit"},
    ):
        assert client.post(f"/api/funds/{fid}/cashflows", json=cf).status_code == 201
    resp = client.put(f"/api/funds/{fid}/valuation", json={"date": "2025-01-01", "value": 2200})
    assert resp.status_code == 200
    return fid


def test_live_metrics(client):
    fid = _seed(client)
    m = client.get(f"/api/funds/{fid}/metrics").get_json()

    assert m["net_invested"] == 2000
    assert m["profit"] == 200
    assert m["simple_rate"] == pytest.approx(200 * 365 / 641000)
    assert 0.1 < m["irr"] < 0.2
    assert m["net_invested_was_persisted"] is False


def test_metrics_without_valuation_have_no_rates(client):
    fid = _fund(client)
    client.post(f"/api/funds/{fid}/cashflows", json={"date": "2024-01-01", "amount": 10, "direction": "deposit"})
    m = client.get(f"/api/funds/{fid}/metrics").get_json()
    assert m["irr"] is None
    assert m["simple_rate"] is None


def test_snapshot_keeps_net_invested_until_edited(client):
    fid = _seed(client)
    resp = client.post(f"/api/funds/{fid}/snapshots")
    assert resp.status_code == 201
    sid = resp.get_json()["id"]

    # a later ledger change must not alter the saved snapshot's invested capital
    client.post(f"/api/funds/{fid}/cashflows", json={"date": "2024-06-01", "amount": 500, "direction": "deposit"})
    [row] = client.get(f"/api/funds/{fid}/history").get_json()
    assert row["net_invested"] == 2000
    assert row["net_invested_was_persisted"] is True
    assert row["valuation_date"] == "2025-01-01"

    resp = client.patch(f"/api/funds/{fid}/snapshots/{sid}", json={"current_value": 2600})
    assert resp.status_code == 200
    edited = resp.get_json()
    assert edited["net_invested"] == 2500
    assert edited["profit"] == 100
    assert edited["net_invested_was_persisted"] is False

    assert client.delete(f"/api/funds/{fid}/snapshots/{sid}").status_code == 204
    assert client.get(f"/api/funds/{fid}/history").get_json() == []


def test_snapshot_save_validation(client):
    fid = _fund(client)
    resp = client.post(f"/api/funds/{fid}/snapshots")
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Add at least one cash flow before saving."


def test_cashflow_update_and_delete(client):
    fid = _seed(client)
    cf = client.get(f"/api/funds/{fid}").get_json()["cashflows"][1]

    resp = client.patch(f"/api/funds/{fid}/cashflows/{cf['id']}", json={"direction": "withdrawal", "amount": 400})
    assert resp.get_json() == {"id": cf["id"], "date": "2024-04-01", "amount": 400, "direction": "withdrawal"}
    assert client.get(f"/api/funds/{fid}/metrics").get_json()["net_invested"] == 600

    assert client.delete(f"/api/funds/{fid}/cashflows/{cf['id']}").status_code == 204
    assert client.get(f"/api/funds/{fid}/metrics").get_json()["net_invested"] == 1000


def test_invalid_input_is_rejected(client):
    fid = _fund(client)
    resp = client.post(
        f"/api/funds/{fid}/cashflows",
        data='{"date": "2024-01-01", "amount": NaN, "direction": "deposit"}',
        content_type="application/json",
    )
    assert resp.status_code == 400
    assert "finite" in resp.get_json()["error"]

    resp = client.post(f"/api/funds/{fid}/cashflows", json={"date": "2024-01-01", "amount": 5, "direction": "x"})
    assert resp.status_code == 400


def test_unknown_fund_is_404(client):
    assert client.get("/api/funds/999/metrics").status_code == 404
    assert client.post("/api/funds/999/cashflows",
                       json={"date": "2024-01-01", "amount": 5, "direction": "deposit"}).status_code == 404


def test_export_import_and_summary(client):
    fid = _seed(client)
    client.post(f"/api/funds/{fid}/snapshots")
    doc = client.get(f"/api/funds/{fid}/export").get_json()

    assert doc["version"] == 1
    assert doc["fundName"] == "Pension"
    assert doc["history"][0]["netInvested"] == 2000
    assert "irr" not in doc["history"][0]

    doc["fundName"] = "Pension copy"
    resp = client.post("/api/import", json=doc)
    assert resp.status_code == 201
    assert resp.get_json()["snapshots"] == 1

    bad = client.post("/api/import", json={"version": 3})
    assert bad.status_code == 400

    summary = client.get("/api/summary?rate=simple_rate").get_json()
    assert [r["fund_name"] for r in summary["latest"]] == ["Pension", "Pension copy"]
    assert summary["series"][0]["points"][0]["date"] == "2025-01-01"
    assert summary["series"][0]["points"][0]["rate"] == pytest.approx(200 * 365 / 641000)

    assert client.get("/api/summary?rate=twr").status_code == 400


def test_snapshot_timestamp_keeps_utc_offset(client):
    fid = _seed(client)
    saved = client.post(f"/api/funds/{fid}/snapshots").get_json()["calculation_timestamp"]
    assert saved.endswith("+00:00")

    [row] = client.get(f"/api/funds/{fid}/history").get_json()
    doc = client.get(f"/api/funds/{fid}/export").get_json()
    assert row["calculation_timestamp"] == saved
    assert doc["history"][0]["calculationTimestamp"] == saved
