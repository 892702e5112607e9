# ai_helpers.py
# OpenAI JSON-mode wrapper + the two extraction jobs built on it:
#   prose -> RfpCreate, vendor email -> ParsedReply.
# Without an API key both fall back to simple deterministic regex parsers.

import json
import math
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .config import Settings, settings
from .errors import ExternalCapabilityError
from .log import get_logger
from .models import ProposalLineItem, RfpCreate, RfpItem

log = get_logger(__name__)

EXTRACT_RFP_PROMPT = """You are an assistant that extracts procurement requirements into strict JSON. Input: a natural language paragraph describing what to buy. Output: a single JSON object with keys:
title, items (array of {name, qty, specs}), totalBudget (number or null), currency (string, default "USD"), deliveryDays (integer or null), paymentTerms (string or null), warranty (string or null), notes (string or null), mandatoryCriteria (array of strings), optionalCriteria (array of strings).

If any numeric field is not stated, set it to null. Return valid JSON only.

Rules:
- Extract specific product names and quantities
- Parse budget amounts and convert to numbers
- Identify delivery timeline requirements
- Extract payment and warranty terms
- List any mandatory requirements as mandatoryCriteria
- List nice-to-have features as optionalCriteria
- Generate a concise title summarizing the procurement"""

PARSE_REPLY_PROMPT = """You receive a vendor email body (free text, possibly pasted tables). Extract a proposal JSON:
{ vendorName, lineItems: [{ itemName, qty, unitPrice, totalPrice, warranty, deliveryDays }], totalPrice, paymentTerms, notes }.

Rules:
- Identify the vendor name from the email signature or content
- Extract all line items with quantities and prices
- Parse currencies and convert to numbers
- Calculate totals if not explicitly stated
- Extract warranty and delivery information per item if available
- Capture payment terms and any additional notes

Return JSON only."""

# words that follow a number in prose but are not things being bought
_NON_ITEM_WORDS = {
    "day", "days", "week", "weeks", "month", "months", "year", "years",
    "percent", "usd", "dollars", "hours", "business", "calendar",
}


class OpenAIJsonClient:
    """Single-shot chat completion in JSON mode. No retries."""

    def __init__(self, api_key: str, model: str, timeout: float):
        from openai import OpenAI

        self.model = model
        self._client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    def complete_json(self, system_prompt: str, user_content: str, max_tokens: int = 2048) -> Dict[str, Any]:
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format={"type": "json_object"},
                temperature=0,
                max_tokens=max_tokens,
            )
        except Exception as e:
            raise ExternalCapabilityError(f"OpenAI request failed: {e}") from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise ExternalCapabilityError("No response from AI")
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExternalCapabilityError("AI response was not valid JSON") from e
        if not isinstance(parsed, dict):
            raise ExternalCapabilityError("AI response was not a JSON object")
        return parsed


def default_client(cfg: Settings = settings, timeout: Optional[float] = None) -> Optional[OpenAIJsonClient]:
    if not cfg.ai_enabled:
        return None
    return OpenAIJsonClient(
        api_key=cfg.openai_api_key,
        model=cfg.openai_model,
        timeout=timeout or cfg.extraction_timeout_seconds,
    )


# --- coercion helpers ---

def _num(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            n = float(value)
        except OverflowError:
            return default
    else:
        m = re.search(r"\d[\d,]*(?:\.\d+)?", str(value))
        if not m:
            return default
        n = float(m.group(0).replace(",", ""))
    # overlong digit strings and JSON Infinity/NaN come through as inf or nan
    return n if math.isfinite(n) and n >= 0 else default


def _int_or_none(value: Any) -> Optional[int]:
    n = _num(value, default=-1)
    return int(n) if n > 0 else None


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if v is not None and str(v).strip()]


def _specs_text(specs: Any) -> str:
    if isinstance(specs, dict):
        return ", ".join(f"{k}: {v}" for k, v in specs.items())
    if isinstance(specs, list):
        return ", ".join(str(s) for s in specs)
    return str(specs or "")


# --- RFP extraction ---

def normalize_rfp(parsed: Dict[str, Any]) -> RfpCreate:
    items = []
    for raw in parsed.get("items") or []:
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        qty = _int_or_none(raw.get("qty"))
        if qty is None:
            log.info("rfp_item_dropped", name=raw.get("name"), qty=raw.get("qty"))
            continue
        items.append(RfpItem(name=str(raw["name"]).strip(), qty=qty, specs=_specs_text(raw.get("specs"))))

    budget = parsed.get("totalBudget", parsed.get("total_budget"))
    delivery = parsed.get("deliveryDays", parsed.get("delivery_days"))
    return RfpCreate(
        title=_str_or_none(parsed.get("title")) or "Untitled RFP",
        items=items,
        total_budget=_num(budget) if budget is not None else None,
        currency=_str_or_none(parsed.get("currency")) or "USD",
        delivery_days=_int_or_none(delivery),
        payment_terms=_str_or_none(parsed.get("paymentTerms", parsed.get("payment_terms"))),
        warranty=_str_or_none(parsed.get("warranty")),
        notes=_str_or_none(parsed.get("notes")),
        mandatory_criteria=_str_list(parsed.get("mandatoryCriteria", parsed.get("mandatory_criteria"))),
        optional_criteria=_str_list(parsed.get("optionalCriteria", parsed.get("optional_criteria"))),
    )


def parse_rfp_from_text_mock(text: str) -> Dict[str, Any]:
    items = []
    for m in re.finditer(r"\b(\d+)\s+([A-Za-z][A-Za-z\-]+)(?:\s*\(([^)]*)\))?", text):
        name = m.group(2)
        if name.lower() in _NON_ITEM_WORDS:
            continue
        items.append({"name": name.lower(), "qty": int(m.group(1)), "specs": m.group(3) or ""})

    budget = None
    m = re.search(r"\$\s?(\d[\d,]*(?:\.\d+)?)", text)
    if m:
        budget = _num(m.group(1), default=None)
    delivery_days = None
    m = re.search(r"(\d+)\s*days", text.lower())
    if m:
        delivery_days = int(m.group(1))
    warranty = None
    m = re.search(r"(\d+)[\s-]*(month|year)s?\s+warranty|warranty\D{0,20}(\d+)\s*(month|year)", text.lower())
    if m:
        n, unit = (m.group(1), m.group(2)) if m.group(1) else (m.group(3), m.group(4))
        warranty = f"{n} {unit}s" if n != "1" else f"1 {unit}"
    payment_terms = None
    m = re.search(r"net\s*(\d+)", text.lower())
    if m:
        payment_terms = f"Net {m.group(1)}"

    return {
        "title": text.strip().split("\n")[0][:80],
        "items": items,
        "totalBudget": budget,
        "deliveryDays": delivery_days,
        "paymentTerms": payment_terms,
        "warranty": warranty,
        "notes": text.strip(),
    }


def extract_rfp_from_text(text: str, client: Optional[OpenAIJsonClient] = None) -> RfpCreate:
    """Turn a prose procurement request into an RFP draft (not saved)."""
    if client is None:
        return normalize_rfp(parse_rfp_from_text_mock(text))
    parsed = client.complete_json(EXTRACT_RFP_PROMPT, text)
    return normalize_rfp(parsed)


# --- vendor reply parsing ---

class ParsedReply(BaseModel):
    vendor_name: Optional[str] = None
    line_items: List[ProposalLineItem] = Field(default_factory=list)
    total_price: float = Field(default=0.0, allow_inf_nan=False)
    payment_terms: Optional[str] = None
    notes: Optional[str] = None


def normalize_reply(parsed: Dict[str, Any]) -> ParsedReply:
    line_items = []
    for raw in parsed.get("lineItems", parsed.get("line_items")) or []:
        if not isinstance(raw, dict):
            continue
        qty = int(_num(raw.get("qty")))
        unit_price = _num(raw.get("unitPrice", raw.get("unit_price")))
        total = _num(raw.get("totalPrice", raw.get("total_price")))
        if not total and qty and unit_price:
            total = _num(qty * unit_price)
        line_items.append(ProposalLineItem(
            item_name=str(raw.get("itemName", raw.get("item_name")) or ""),
            qty=qty,
            unit_price=unit_price,
            total_price=total,
            warranty=_str_or_none(raw.get("warranty")),
            delivery_days=_int_or_none(raw.get("deliveryDays", raw.get("delivery_days"))),
        ))

    total_price = _num(parsed.get("totalPrice", parsed.get("total_price")))
    if not total_price:
        total_price = _num(sum(li.total_price for li in line_items))
    return ParsedReply(
        vendor_name=_str_or_none(parsed.get("vendorName", parsed.get("vendor_name"))),
        line_items=line_items,
        total_price=total_price,
        payment_terms=_str_or_none(parsed.get("paymentTerms", parsed.get("payment_terms"))),
        notes=_str_or_none(parsed.get("notes")),
    )


def parse_proposal_from_text_mock(text: str) -> Dict[str, Any]:
    lower = text.lower()
    m = re.search(r"(\d+)\s*days", lower)
    delivery = _int_or_none(m.group(1)) if m else None
    m = re.search(r"(\d+)\s*(month|year)s?", lower)
    warranty = f"{m.group(1)} {m.group(2)}s" if m else None
    m = re.search(r"net\s*(\d+)", lower)
    payment_terms = f"Net {m.group(1)}" if m else None

    # "50 x Business Laptop @ $1,150" style rows
    line_items = []
    for row in re.finditer(r"(\d+)\s*x\s*([^@\n]+?)\s*@\s*\$?\s?(\d[\d,]*(?:\.\d+)?)", text, re.IGNORECASE):
        qty = int(_num(row.group(1)))
        unit = _num(row.group(3))
        line_items.append({
            "itemName": row.group(2).strip(), "qty": qty, "unitPrice": unit,
            "totalPrice": _num(qty * unit), "warranty": warranty, "deliveryDays": delivery,
        })

    total_price = None
    m = re.search(r"total[^$\n]*\$\s?(\d[\d,]*(?:\.\d+)?)", text, re.IGNORECASE)
    if m:
        total_price = _num(m.group(1), default=None)
    elif not line_items:
        m = re.search(r"\$\s?(\d[\d,]*(?:\.\d+)?)", text)
        total_price = _num(m.group(1), default=None) if m else None

    if not line_items and total_price:
        line_items.append({
            "itemName": "Quoted supply", "qty": 1, "unitPrice": total_price,
            "totalPrice": total_price, "warranty": warranty, "deliveryDays": delivery,
        })

    return {
        "lineItems": line_items,
        "totalPrice": total_price,
        "paymentTerms": payment_terms,
        "notes": text.strip()[:800],
    }


def parse_vendor_reply(text: str, from_email: str, client: Optional[OpenAIJsonClient] = None) -> ParsedReply:
    if client is None:
        return normalize_reply(parse_proposal_from_text_mock(text))
    parsed = client.complete_json(PARSE_REPLY_PROMPT, f"Email from: {from_email}\n\n{text}")
    return normalize_reply(parsed)
