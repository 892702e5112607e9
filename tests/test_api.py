"""Tests for the HTTP API."""

import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedGenerator
from rfpflow.advisor import NarrativeAdvisor
from rfpflow.main import create_app
from rfpflow.storage import seed_demo_data


@pytest.fixture
def seeded(store):
    seed_demo_data(store)
    return store


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "ai_enabled": False}


def test_comparison_on_sample_rfp(client, seeded):
    resp = client.get("/api/v1/rfps/rfp-sample-1/comparison")
    assert resp.status_code == 200
    body = resp.json()

    assert set(body) == {"scores", "summary", "recommendedVendorId", "reason"}
    assert body["recommendedVendorId"] == "vendor-3"
    first = body["scores"][0]
    assert first["proposalId"] == "proposal-1"
    assert isinstance(first["totalScore"], float)
    assert first["deliveryScore"] == 130.0
    assert body["scores"][1]["priceScore"] == 100.0
    assert client.get("/api/v1/rfps/rfp-sample-1").json()["status"] == "compared"


def test_comparison_errors(client, seeded):
    resp = client.get("/api/v1/rfps/nope/comparison")
    assert resp.status_code == 404
    assert resp.json() == {"message": "RFP not found"}

    rfp = client.post("/api/v1/rfps", json={"title": "Desks", "items": [{"name": "desk", "qty": 2}]}).json()
    resp = client.get(f"/api/v1/rfps/{rfp['id']}/comparison")
    assert resp.status_code == 400
    assert "at least 2" in resp.json()["message"]


def test_comparison_with_failing_narrative(store, test_settings):
    seed_demo_data(store)
    advisor = NarrativeAdvisor(ScriptedGenerator(error=RuntimeError("503 from provider")))
    with TestClient(create_app(cfg=test_settings, store=store, advisor=advisor)) as c:
        resp = c.get("/api/v1/rfps/rfp-sample-1/comparison")
    assert resp.status_code == 200
    assert resp.json()["recommendedVendorId"] == "vendor-3"
    assert resp.json()["summary"].startswith("Comparing 2 proposals.")


def test_rfp_crud(client):
    resp = client.post("/api/v1/rfps", json={
        "title": "Monitors",
        "items": [{"name": "monitor", "qty": 15, "specs": "27-inch"}],
        "totalBudget": 9000,
        "deliveryDays": 14,
        "mandatoryCriteria": ["VESA mount"],
    })
    assert resp.status_code == 201
    rfp = resp.json()
    assert rfp["status"] == "draft"
    assert rfp["totalBudget"] == 9000
    assert rfp["sentVendorIds"] == []

    resp = client.patch(f"/api/v1/rfps/{rfp['id']}", json={"notes": "Matte screens", "status": "sent"})
    assert resp.status_code == 200
    assert resp.json()["notes"] == "Matte screens"
    assert resp.json()["status"] == "sent"

    resp = client.patch(f"/api/v1/rfps/{rfp['id']}", json={"notes": None, "totalBudget": None})
    assert resp.json()["notes"] is None
    assert resp.json()["totalBudget"] is None
    assert resp.json()["deliveryDays"] == 14

    assert [r["id"] for r in client.get("/api/v1/rfps/recent").json()] == [rfp["id"]]
    assert client.delete(f"/api/v1/rfps/{rfp['id']}").status_code == 204
    assert client.get(f"/api/v1/rfps/{rfp['id']}").status_code == 404
    assert client.delete(f"/api/v1/rfps/{rfp['id']}").status_code == 404


def test_create_rfp_validation(client):
    resp = client.post("/api/v1/rfps", json={"title": "Bad", "items": [{"name": "x", "qty": 0}]})
    assert resp.status_code == 422


def test_rfp_from_nl_returns_draft(client, store):
    resp = client.post("/api/v1/rfps/from-nl", json={
        "text": "I need 20 laptops (16GB RAM). Budget $50,000. Delivery within 30 days."
    })
    assert resp.status_code == 200
    draft = resp.json()["rfp"]
    assert draft["items"] == [{"name": "laptops", "qty": 20, "specs": "16GB RAM"}]
    assert draft["totalBudget"] == 50000
    assert store.list_rfps() == []


def test_rfp_from_nl_requires_detail(client):
    assert client.post("/api/v1/rfps/from-nl", json={"text": "laptops"}).status_code == 422


def test_vendor_crud(client):
    resp = client.post("/api/v1/vendors", json={
        "name": "Acme", "email": "sales@acme.com", "contactPerson": "Ann", "rating": 4,
        "capabilities": ["Furniture"],
    })
    assert resp.status_code == 201
    vendor = resp.json()
    assert vendor["lastContactedAt"] is None

    resp = client.patch(f"/api/v1/vendors/{vendor['id']}", json={"rating": 5})
    assert resp.json()["rating"] == 5
    assert client.get("/api/v1/vendors").json()[0]["contactPerson"] == "Ann"
    assert client.delete(f"/api/v1/vendors/{vendor['id']}").status_code == 204
    assert client.get(f"/api/v1/vendors/{vendor['id']}").status_code == 404


def test_vendor_validation(client):
    assert client.post("/api/v1/vendors", json={"name": "Bad", "email": "not-an-email"}).status_code == 422
    assert client.post("/api/v1/vendors", json={"name": "Bad", "email": "a@acme.com", "rating": 6}).status_code == 422


def test_send_and_webhook_flow(client, store):
    rfp = client.post("/api/v1/rfps", json={"title": "Standing desks", "items": [{"name": "desk", "qty": 10}]}).json()
    vendor = client.post("/api/v1/vendors", json={"name": "Acme", "email": "sales@acme.com"}).json()

    resp = client.post(f"/api/v1/rfps/{rfp['id']}/send", json={"vendorIds": [vendor["id"]]})
    assert resp.status_code == 200
    assert resp.json()["sentCount"] == 1
    assert client.get(f"/api/v1/rfps/{rfp['id']}").json()["status"] == "sent"
    [msg] = client.get("/api/v1/outbox").json()
    assert msg["subject"] == f"Request for Proposal - Standing desks [RFPID:{rfp['id']}]"

    resp = client.post("/api/v1/email/webhook", json={
        "from": "sales@acme.com",
        "subject": "RE: Request for Proposal - Standing desks",
        "text": "10 x Standing desk @ $450\nDelivery 20 days. 5 year warranty.",
    })
    assert resp.status_code == 201
    proposal_id = resp.json()["proposalId"]

    proposals = client.get(f"/api/v1/rfps/{rfp['id']}/proposals").json()
    assert [p["id"] for p in proposals] == [proposal_id]
    assert proposals[0]["totalPrice"] == 4500
    assert client.get(f"/api/v1/proposals/{proposal_id}").json()["vendorName"] == "Acme"
    assert client.get(f"/api/v1/rfps/{rfp['id']}").json()["status"] == "received"

    stats = client.get("/api/v1/dashboard/stats").json()
    assert stats == {"totalRfps": 1, "activeRfps": 1, "totalVendors": 1, "proposalsReceived": 1}


def test_send_errors(client):
    assert client.post("/api/v1/rfps/missing/send", json={"vendorIds": ["v"]}).status_code == 404
    rfp = client.post("/api/v1/rfps", json={"title": "Chairs"}).json()
    resp = client.post(f"/api/v1/rfps/{rfp['id']}/send", json={"vendorIds": ["ghost"]})
    assert resp.status_code == 400
    assert resp.json() == {"message": "No valid vendors found"}
    assert client.post(f"/api/v1/rfps/{rfp['id']}/send", json={"vendorIds": []}).status_code == 422


def test_webhook_unknown_sender(client):
    resp = client.post("/api/v1/email/webhook", json={"from": "x@unknown.com", "subject": "hi", "text": "$1"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Sender not recognized as a vendor", "proposalId": None}


def test_missing_proposal(client):
    assert client.get("/api/v1/proposals/nope").status_code == 404
