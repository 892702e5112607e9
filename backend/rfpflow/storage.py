# storage.py
# Entity store for RFPs, vendors, proposals and the simulated outbox.
# Records live in memory; pass data_dir to mirror each collection to a JSON file.
# Every getter hands back a copy so callers can't mutate stored state.

import json
import threading
import uuid
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel

from .log import get_logger
from .models import (
    DashboardStats,
    OutboxMessage,
    Proposal,
    ProposalCreate,
    Rfp,
    RfpCreate,
    RfpStatus,
    RfpUpdate,
    Vendor,
    VendorCreate,
    VendorUpdate,
    utcnow,
)

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

COLLECTIONS = {
    "rfps": Rfp,
    "vendors": Vendor,
    "proposals": Proposal,
    "outbox": OutboxMessage,
}

ACTIVE_STATUSES = (RfpStatus.sent, RfpStatus.received)

CLEARABLE_RFP_FIELDS = frozenset(
    name for name, field in Rfp.model_fields.items() if not field.is_required() and field.default is None
)


def new_id() -> str:
    return str(uuid.uuid4())


class Storage:
    def __init__(self, data_dir: Optional[Path] = None):
        self._lock = threading.RLock()
        self._data_dir = Path(data_dir) if data_dir else None
        self._tables: Dict[str, Dict[str, BaseModel]] = {name: {} for name in COLLECTIONS}
        if self._data_dir:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            for name, model in COLLECTIONS.items():
                self._tables[name] = self._read_json(name, model)

    # --- persistence ---

    def _file(self, name: str) -> Path:
        return self._data_dir / f"{name}.json"

    def _read_json(self, name: str, model: Type[M]) -> Dict[str, M]:
        p = self._file(name)
        if not p.exists():
            p.write_text("[]")
            return {}
        try:
            rows = json.loads(p.read_text())
        except json.JSONDecodeError:
            log.warning("collection_unreadable", collection=name, path=str(p))
            return {}
        records = [model.model_validate(r) for r in rows]
        return {r.id: r for r in records}

    def _write_json(self, name: str) -> None:
        if not self._data_dir:
            return
        rows = [r.model_dump(mode="json", by_alias=True) for r in self._tables[name].values()]
        self._file(name).write_text(json.dumps(rows, indent=2, default=str))

    def _get(self, name: str, entity_id: str):
        with self._lock:
            r = self._tables[name].get(entity_id)
            return r.model_copy(deep=True) if r is not None else None

    def _all(self, name: str) -> list:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._tables[name].values()]

    def _put(self, name: str, record: BaseModel) -> None:
        with self._lock:
            self._tables[name][record.id] = record.model_copy(deep=True)
            self._write_json(name)

    def _delete(self, name: str, entity_id: str) -> bool:
        with self._lock:
            if self._tables[name].pop(entity_id, None) is None:
                return False
            self._write_json(name)
            return True

    # --- RFPs ---

    def list_rfps(self) -> List[Rfp]:
        return sorted(self._all("rfps"), key=lambda r: r.created_at, reverse=True)

    def get_rfp(self, rfp_id: str) -> Optional[Rfp]:
        return self._get("rfps", rfp_id)

    def create_rfp(self, body: RfpCreate) -> Rfp:
        rfp = Rfp(id=new_id(), **body.model_dump())
        self._put("rfps", rfp)
        log.info("rfp_created", rfp_id=rfp.id, items=len(rfp.items))
        return rfp

    def update_rfp(self, rfp_id: str, updates: RfpUpdate) -> Optional[Rfp]:
        """Merge a partial update. Status only moves forward and vendor ids only accumulate."""
        with self._lock:
            current = self._tables["rfps"].get(rfp_id)
            if current is None:
                return None
            changes = updates.model_dump(exclude_unset=True)
            if changes.get("status") is not None:
                changes["status"] = RfpStatus.advance(current.status, changes["status"])
            if changes.get("sent_vendor_ids") is not None:
                changes["sent_vendor_ids"] = current.sent_vendor_ids + [
                    v for v in changes["sent_vendor_ids"] if v not in current.sent_vendor_ids
                ]
            # an explicit null clears optional fields; required ones keep their value
            changes = {k: v for k, v in changes.items() if v is not None or k in CLEARABLE_RFP_FIELDS}
            updated = Rfp.model_validate({**current.model_dump(), **changes})
            self._put("rfps", updated)
            return updated.model_copy(deep=True)

    def delete_rfp(self, rfp_id: str) -> bool:
        return self._delete("rfps", rfp_id)

    # --- Vendors ---

    def list_vendors(self) -> List[Vendor]:
        return self._all("vendors")

    def get_vendor(self, vendor_id: str) -> Optional[Vendor]:
        return self._get("vendors", vendor_id)

    def find_vendor_by_email(self, sender: str) -> Optional[Vendor]:
        # sender may be a bare address or "Name <address>"
        sender = sender.lower()
        return next((v for v in self.list_vendors() if v.email.lower() in sender), None)

    def create_vendor(self, body: VendorCreate) -> Vendor:
        vendor = Vendor(id=new_id(), **body.model_dump())
        self._put("vendors", vendor)
        return vendor

    def update_vendor(self, vendor_id: str, updates: VendorUpdate) -> Optional[Vendor]:
        with self._lock:
            current = self._tables["vendors"].get(vendor_id)
            if current is None:
                return None
            changes = {k: v for k, v in updates.model_dump(exclude_unset=True).items() if v is not None}
            updated = Vendor.model_validate({**current.model_dump(), **changes})
            self._put("vendors", updated)
            return updated.model_copy(deep=True)

    def touch_vendor(self, vendor_id: str) -> Optional[Vendor]:
        with self._lock:
            current = self._tables["vendors"].get(vendor_id)
            if current is None:
                return None
            updated = current.model_copy(update={"last_contacted_at": utcnow()})
            self._put("vendors", updated)
            return updated.model_copy(deep=True)

    def delete_vendor(self, vendor_id: str) -> bool:
        return self._delete("vendors", vendor_id)

    # --- Proposals ---

    def list_proposals(self) -> List[Proposal]:
        return self._all("proposals")

    def get_proposal(self, proposal_id: str) -> Optional[Proposal]:
        return self._get("proposals", proposal_id)

    def get_proposals_by_rfp(self, rfp_id: str) -> List[Proposal]:
        return [p for p in self._all("proposals") if p.rfp_id == rfp_id]

    def create_proposal(self, body: ProposalCreate) -> Proposal:
        proposal = Proposal(id=new_id(), **body.model_dump())
        with self._lock:
            self._put("proposals", proposal)
            rfp = self._tables["rfps"].get(proposal.rfp_id)
            if rfp is not None and rfp.status == RfpStatus.sent:
                self._put("rfps", rfp.model_copy(update={"status": RfpStatus.received}))
        log.info("proposal_created", proposal_id=proposal.id, rfp_id=proposal.rfp_id)
        return proposal

    # --- Outbox ---

    def append_outbox(self, message: OutboxMessage) -> None:
        self._put("outbox", message)

    def list_outbox(self) -> List[OutboxMessage]:
        return sorted(self._all("outbox"), key=lambda m: m.queued_at)

    # --- Dashboard ---

    def dashboard_stats(self) -> DashboardStats:
        with self._lock:
            rfps = list(self._tables["rfps"].values())
            return DashboardStats(
                total_rfps=len(rfps),
                active_rfps=len([r for r in rfps if r.status in ACTIVE_STATUSES]),
                total_vendors=len(self._tables["vendors"]),
                proposals_received=len(self._tables["proposals"]),
            )


def seed_demo_data(store: Storage) -> None:
    """Load three vendors, one sample RFP and two proposals into an empty store."""
    if store.list_vendors() or store.list_rfps():
        return
    now = utcnow()
    vendors = [
        Vendor(id="vendor-1", name="TechSupply Co.", email="sales@techsupply.com",
               contact_person="John Smith", rating=5,
               capabilities=["IT Hardware", "Laptops", "Servers", "Networking"],
               tags=["Preferred", "Enterprise"]),
        Vendor(id="vendor-2", name="Office Solutions Inc.", email="rfp@officesolutions.com",
               contact_person="Sarah Johnson", rating=4,
               capabilities=["Office Equipment", "Furniture", "Supplies"],
               tags=["Local", "Small Business"]),
        Vendor(id="vendor-3", name="Global Tech Partners", email="procurement@globaltech.com",
               contact_person="Michael Chen", rating=4,
               capabilities=["IT Hardware", "Software", "Cloud Services", "Support"],
               tags=["International", "24/7 Support"]),
    ]
    for v in vendors:
        store._put("vendors", v)

    store._put("rfps", Rfp.model_validate({
        "id": "rfp-sample-1",
        "title": "Office Laptop Procurement Q1 2025",
        "items": [
            {"name": "Business Laptop", "qty": 50, "specs": "Intel i7, 16GB RAM, 512GB SSD"},
            {"name": "Laptop Bag", "qty": 50, "specs": "Professional carry bag with padding"},
            {"name": "Wireless Mouse", "qty": 50, "specs": "Ergonomic, Bluetooth/USB receiver"},
        ],
        "total_budget": 75000,
        "delivery_days": 30,
        "payment_terms": "Net 30",
        "warranty": "3 years",
        "notes": "Prefer energy-efficient models with Windows 11 Pro pre-installed.",
        "mandatory_criteria": ["3-year warranty", "Windows 11 Pro", "On-site support"],
        "optional_criteria": ["Extended battery", "Fingerprint reader"],
        "status": RfpStatus.received,
        "sent_vendor_ids": ["vendor-1", "vendor-3"],
        "created_at": now - timedelta(days=7),
    }))

    def items(prices, days):
        names = ["Business Laptop", "Laptop Bag", "Wireless Mouse"]
        warranties = ["3 years", "1 year", "2 years"]
        return [
            {"item_name": n, "qty": 50, "unit_price": p, "total_price": p * 50,
             "warranty": w, "delivery_days": days}
            for n, p, w in zip(names, prices, warranties)
        ]

    store._put("proposals", Proposal.model_validate({
        "id": "proposal-1", "rfp_id": "rfp-sample-1", "vendor_id": "vendor-1",
        "vendor_name": "TechSupply Co.", "line_items": items([1200, 45, 35], 21),
        "total_price": 64000, "payment_terms": "Net 30",
        "notes": "Includes free setup and deployment assistance. Extended warranty options available.",
        "received_at": now - timedelta(days=3),
    }))
    store._put("proposals", Proposal.model_validate({
        "id": "proposal-2", "rfp_id": "rfp-sample-1", "vendor_id": "vendor-3",
        "vendor_name": "Global Tech Partners", "line_items": items([1150, 40, 30], 28),
        "total_price": 61000, "payment_terms": "Net 45",
        "notes": "Bulk discount applied. 24/7 support included for first year.",
        "received_at": now - timedelta(days=2),
    }))
    log.info("demo_data_seeded", vendors=len(vendors))
