# models.py
# Pydantic models + small helpers.
# Fields are snake_case in Python and camelCase on the wire; input accepts both.

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe(values: List[str]) -> List[str]:
    seen = []
    for v in values:
        if v not in seen:
            seen.append(v)
    return seen


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- RFP ---

class RfpStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    received = "received"
    compared = "compared"

    @property
    def rank(self) -> int:
        return list(RfpStatus).index(self)

    @classmethod
    def advance(cls, current: "RfpStatus", target: "RfpStatus") -> "RfpStatus":
        """Return whichever of the two is further along; status never moves back."""
        current, target = cls(current), cls(target)
        return target if target.rank > current.rank else current


class RfpItem(ApiModel):
    name: str
    qty: int = Field(gt=0)
    specs: str = ""


class RfpFields(ApiModel):
    title: str
    items: List[RfpItem] = Field(default_factory=list)
    total_budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: str = "USD"
    delivery_days: Optional[int] = Field(default=None, gt=0)
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    notes: Optional[str] = None
    mandatory_criteria: List[str] = Field(default_factory=list)
    optional_criteria: List[str] = Field(default_factory=list)

    @field_validator("mandatory_criteria", "optional_criteria")
    @classmethod
    def unique_criteria(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


class RfpCreate(RfpFields):
    pass


class RfpUpdate(ApiModel):
    title: Optional[str] = None
    items: Optional[List[RfpItem]] = None
    total_budget: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    delivery_days: Optional[int] = Field(default=None, gt=0)
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    notes: Optional[str] = None
    mandatory_criteria: Optional[List[str]] = None
    optional_criteria: Optional[List[str]] = None
    status: Optional[RfpStatus] = None
    sent_vendor_ids: Optional[List[str]] = None


class Rfp(RfpFields):
    id: str
    status: RfpStatus = RfpStatus.draft
    sent_vendor_ids: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("sent_vendor_ids")
    @classmethod
    def unique_vendor_ids(cls, v: List[str]) -> List[str]:
        return _dedupe(v)


# --- Vendor ---

class VendorCreate(ApiModel):
    name: str
    email: EmailStr
    contact_person: str = ""
    rating: int = Field(default=3, ge=1, le=5)
    capabilities: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class VendorUpdate(ApiModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    contact_person: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    capabilities: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class Vendor(VendorCreate):
    id: str
    last_contacted_at: Optional[datetime] = None


# --- Proposal ---

class ProposalLineItem(ApiModel):
    item_name: str
    qty: int = 0
    unit_price: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    total_price: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    warranty: Optional[str] = None
    delivery_days: Optional[int] = None


class Attachment(ApiModel):
    filename: str
    url: str = ""


class ProposalCreate(ApiModel):
    rfp_id: str
    vendor_id: str
    vendor_name: str
    line_items: List[ProposalLineItem] = Field(default_factory=list)
    total_price: float = Field(default=0.0, ge=0, allow_inf_nan=False)
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)


class Proposal(ProposalCreate):
    id: str
    received_at: datetime = Field(default_factory=utcnow)


# --- Comparison ---

class ProposalScore(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    proposal_id: str
    vendor_name: str
    price_score: float
    delivery_score: float
    warranty_score: float
    completeness_score: float
    vendor_rating_score: float
    total_score: float


class ComparisonResult(ApiModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    scores: Tuple[ProposalScore, ...]
    summary: str
    recommended_vendor_id: str
    reason: str


# --- Request / response payloads ---

class NlInput(ApiModel):
    text: str = Field(min_length=10)


class SendRfpRequest(ApiModel):
    vendor_ids: List[str] = Field(min_length=1)


class SendRfpResult(ApiModel):
    message: str
    sent_count: int
    vendor_count: int


class WebhookAttachment(ApiModel):
    filename: str
    content: str = ""
    content_type: str = "application/octet-stream"


class EmailWebhookPayload(ApiModel):
    from_email: str = Field(validation_alias=AliasChoices("from", "fromEmail", "from_email"))
    subject: str = ""
    text: str
    html: Optional[str] = None
    attachments: List[WebhookAttachment] = Field(default_factory=list)


class IngestResult(ApiModel):
    message: str
    proposal_id: Optional[str] = None


class OutboxMessage(ApiModel):
    id: str
    rfp_id: str
    vendor_id: str
    vendor_email: str
    subject: str
    html: str
    queued_at: datetime = Field(default_factory=utcnow)


class DashboardStats(ApiModel):
    total_rfps: int
    active_rfps: int
    total_vendors: int
    proposals_received: int
