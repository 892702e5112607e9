# services.py
# Send-RFP and inbound-reply workflows. Both sit between the HTTP layer and
# the store and own the RFP status moves they cause.

import re
from typing import List, Optional

from .ai_helpers import OpenAIJsonClient, parse_vendor_reply
from .emailer import EmailSender
from .errors import InvalidRequestError, NotFoundError
from .log import get_logger
from .models import (
    Attachment,
    EmailWebhookPayload,
    IngestResult,
    ProposalCreate,
    Rfp,
    RfpStatus,
    RfpUpdate,
    SendRfpResult,
)
from .storage import Storage

log = get_logger(__name__)

RFP_TOKEN = re.compile(r"RFPID:([A-Za-z0-9\-]+)")


def send_rfp(store: Storage, sender: EmailSender, rfp_id: str, vendor_ids: List[str]) -> SendRfpResult:
    rfp = store.get_rfp(rfp_id)
    if rfp is None:
        raise NotFoundError("RFP", rfp_id)

    vendors = [v for v in (store.get_vendor(vid) for vid in vendor_ids) if v is not None]
    if not vendors:
        raise InvalidRequestError("No valid vendors found")

    sent = 0
    for vendor in vendors:
        if sender.send(vendor, rfp):
            sent += 1
        store.touch_vendor(vendor.id)

    store.update_rfp(rfp.id, RfpUpdate(
        sent_vendor_ids=[v.id for v in vendors],
        status=RfpStatus.sent,
    ))
    log.info("rfp_sent", rfp_id=rfp.id, sent=sent, vendors=len(vendors))
    return SendRfpResult(
        message=f"RFP sent to {sent} of {len(vendors)} vendors",
        sent_count=sent,
        vendor_count=len(vendors),
    )


def match_rfp(store: Storage, subject: str) -> Optional[Rfp]:
    """Find the RFP a reply belongs to: RFPID token first, then title in subject."""
    m = RFP_TOKEN.search(subject)
    if m:
        rfp = store.get_rfp(m.group(1))
        if rfp is not None:
            return rfp
    lowered = subject.lower()
    candidates = [r for r in store.list_rfps() if r.title and r.title.lower() in lowered]
    if not candidates:
        return None
    # "Laptops Q1" must not win over "Laptops Q1 Refresh"
    return max(candidates, key=lambda r: len(r.title))


def ingest_vendor_reply(store: Storage, payload: EmailWebhookPayload,
                        client: Optional[OpenAIJsonClient] = None) -> IngestResult:
    vendor = store.find_vendor_by_email(payload.from_email)
    if vendor is None:
        log.info("webhook_unknown_sender", sender=payload.from_email)
        return IngestResult(message="Sender not recognized as a vendor")

    rfp = match_rfp(store, payload.subject)
    if rfp is None:
        log.info("webhook_unmatched_rfp", subject=payload.subject, vendor_id=vendor.id)
        return IngestResult(message="Could not match to an RFP")

    parsed = parse_vendor_reply(payload.text, payload.from_email, client=client)
    proposal = store.create_proposal(ProposalCreate(
        rfp_id=rfp.id,
        vendor_id=vendor.id,
        vendor_name=parsed.vendor_name or vendor.name,
        line_items=parsed.line_items,
        total_price=parsed.total_price,
        payment_terms=parsed.payment_terms,
        notes=parsed.notes,
        attachments=[Attachment(filename=a.filename) for a in payload.attachments],
    ))
    log.info("webhook_proposal_created", proposal_id=proposal.id, vendor=vendor.name)
    return IngestResult(message="Proposal created", proposal_id=proposal.id)
