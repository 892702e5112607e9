"""Shared fixtures for the rfpflow test suite."""

from typing import List, Optional

import pytest
from fastapi.testclient import TestClient

from rfpflow.advisor import NarrativeAdvisor
from rfpflow.config import Settings
from rfpflow.models import (
    Proposal,
    ProposalCreate,
    ProposalLineItem,
    Rfp,
    RfpCreate,
    RfpItem,
    RfpStatus,
    RfpUpdate,
    VendorCreate,
)
from rfpflow.storage import Storage


def make_rfp(rfp_id: str = "rfp-1", item_count: int = 3, delivery_days: Optional[int] = 30, **overrides) -> Rfp:
    fields = {
        "id": rfp_id,
        "title": "Laptop refresh",
        "items": [RfpItem(name=f"item-{i}", qty=10, specs="") for i in range(item_count)],
        "total_budget": 75000,
        "delivery_days": delivery_days,
    }
    fields.update(overrides)
    return Rfp(**fields)


def make_line_items(count: int = 3, delivery_days: Optional[int] = 21,
                    warranty: Optional[str] = "1 year") -> List[ProposalLineItem]:
    return [
        ProposalLineItem(item_name=f"item-{i}", qty=10, unit_price=100, total_price=1000,
                         warranty=warranty, delivery_days=delivery_days)
        for i in range(count)
    ]


def make_proposal(proposal_id: str, total_price: float, vendor_id: str = "vendor-1",
                  line_items: Optional[List[ProposalLineItem]] = None, rfp_id: str = "rfp-1") -> Proposal:
    return Proposal(
        id=proposal_id,
        rfp_id=rfp_id,
        vendor_id=vendor_id,
        vendor_name=f"Vendor {vendor_id}",
        line_items=make_line_items() if line_items is None else line_items,
        total_price=total_price,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="",
        seed_demo_data=False,
        smtp_host="",
        data_dir=None,
    )


@pytest.fixture
def store() -> Storage:
    return Storage()


@pytest.fixture
def scenario(store):
    """RFP with 3 items and a 30-day target, two competing proposals.

    A: 64000, 21 days, vendor rating 5
    B: 61000, 28 days, vendor rating 4
    """
    rfp = store.create_rfp(RfpCreate(
        title="Office Laptop Procurement",
        items=[RfpItem(name=n, qty=50) for n in ("Laptop", "Bag", "Mouse")],
        total_budget=75000,
        delivery_days=30,
    ))
    vendor_a = store.create_vendor(VendorCreate(name="TechSupply Co.", email="sales@techsupply.com", rating=5))
    vendor_b = store.create_vendor(VendorCreate(name="Global Tech Partners", email="bids@globaltech.com", rating=4))
    store.update_rfp(rfp.id, RfpUpdate(status=RfpStatus.sent, sent_vendor_ids=[vendor_a.id, vendor_b.id]))

    a = store.create_proposal(ProposalCreate(
        rfp_id=rfp.id, vendor_id=vendor_a.id, vendor_name=vendor_a.name,
        line_items=make_line_items(delivery_days=21, warranty="3 years"), total_price=64000,
    ))
    b = store.create_proposal(ProposalCreate(
        rfp_id=rfp.id, vendor_id=vendor_b.id, vendor_name=vendor_b.name,
        line_items=make_line_items(delivery_days=28, warranty="2 years"), total_price=61000,
    ))
    return {"rfp": rfp, "vendor_a": vendor_a, "vendor_b": vendor_b, "a": a, "b": b}


class ScriptedGenerator:
    """Narrative generator fake: returns a canned reply or raises."""

    def __init__(self, reply=None, error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.contexts = []

    def generate(self, context):
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def client(store, test_settings):
    from rfpflow.main import create_app

    app = create_app(cfg=test_settings, store=store, advisor=NarrativeAdvisor())
    with TestClient(app) as c:
        yield c
