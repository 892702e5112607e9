# advisor.py
# Narrative for a comparison: summary, recommended vendor and reason.
#
# The text comes from an external generator when one is configured. Whatever
# it fails to provide is filled in from a deterministic fallback built only
# from the scores, so a comparison never fails because of the generator.

import concurrent.futures
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

from .ai_helpers import OpenAIJsonClient
from .log import get_logger
from .models import Proposal, ProposalScore, Rfp
from .scoring import WEIGHTS

log = get_logger(__name__)

COMPARE_PROMPT = """You are a procurement advisor. Compare the following vendor proposals for an RFP and provide:
1. A summary paragraph comparing the key differences
2. Your recommendation for which vendor to select
3. The reason for your recommendation

Consider: total price, delivery time, warranty coverage, completeness of proposal, and vendor reliability.

Return JSON with keys: summary (string), recommendedVendorId (string), reason (string)."""


class NarrativeGenerator(Protocol):
    def generate(self, context: Dict[str, Any]) -> Mapping[str, Any]:
        ...


@dataclass(frozen=True)
class Narrative:
    summary: str
    recommended_vendor_id: str
    reason: str


class OpenAINarrativeGenerator:
    def __init__(self, client: OpenAIJsonClient):
        self.client = client

    def generate(self, context: Dict[str, Any]) -> Mapping[str, Any]:
        user = (
            f"RFP: {context['title']}\n"
            f"Budget: {context['budget'] if context['budget'] is not None else 'Not specified'}\n"
            f"Required items: {context['required_items']}\n\n"
            f"Proposals:\n{json.dumps(context['proposals'], indent=2)}"
        )
        return self.client.complete_json(COMPARE_PROMPT, user, max_tokens=1024)


def _pct(weight: float) -> str:
    return f"{round(weight * 100)}%"


def fallback_narrative(proposals: Sequence[Proposal], scores: Sequence[ProposalScore]) -> Narrative:
    """Recommend the top total score; the first proposal wins ties."""
    best_index = 0
    for i, s in enumerate(scores):
        if s.total_score > scores[best_index].total_score:
            best_index = i
    best_score = scores[best_index]
    best = proposals[best_index]

    summary = (
        f"Comparing {len(proposals)} proposals. Scores are based on price ({_pct(WEIGHTS['price'])}), "
        f"delivery ({_pct(WEIGHTS['delivery'])}), warranty ({_pct(WEIGHTS['warranty'])}), "
        f"completeness ({_pct(WEIGHTS['completeness'])}), and vendor rating ({_pct(WEIGHTS['vendor_rating'])})."
    )
    reason = (
        f"Based on the weighted scoring analysis, {best.vendor_name} achieves the highest "
        f"overall score of {best_score.total_score:.1f}/100."
    )
    return Narrative(summary=summary, recommended_vendor_id=best.vendor_id, reason=reason)


def build_context(rfp: Rfp, proposals: Sequence[Proposal], scores: Sequence[ProposalScore]) -> Dict[str, Any]:
    return {
        "title": rfp.title,
        "budget": rfp.total_budget,
        "required_items": len(rfp.items),
        "proposals": [
            {
                "vendorName": p.vendor_name,
                "vendorId": p.vendor_id,
                "totalPrice": p.total_price,
                "itemCount": len(p.line_items),
                "score": s.total_score,
            }
            for p, s in zip(proposals, scores)
        ],
    }


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class NarrativeAdvisor:
    """Best-effort narrative with a bounded wait and a per-field fallback."""

    def __init__(self, generator: Optional[NarrativeGenerator] = None, timeout: float = 20.0):
        self.generator = generator
        self.timeout = timeout

    def narrate(self, rfp: Rfp, proposals: Sequence[Proposal], scores: Sequence[ProposalScore]) -> Narrative:
        fallback = fallback_narrative(proposals, scores)
        if self.generator is None:
            return fallback

        try:
            generated = self._generate(build_context(rfp, proposals, scores))
        except Exception as e:
            log.warning("narrative_failed", rfp_id=rfp.id, error=repr(e))
            return fallback

        if not isinstance(generated, Mapping):
            log.warning("narrative_failed", rfp_id=rfp.id, error="response is not an object")
            return fallback

        vendor_ids = {p.vendor_id for p in proposals}
        recommended = _text(generated.get("recommendedVendorId"))
        if recommended not in vendor_ids:
            if recommended is not None:
                log.info("narrative_unknown_vendor", rfp_id=rfp.id, vendor_id=recommended)
            recommended = None

        return Narrative(
            summary=_text(generated.get("summary")) or fallback.summary,
            recommended_vendor_id=recommended or fallback.recommended_vendor_id,
            reason=_text(generated.get("reason")) or fallback.reason,
        )

    def _generate(self, context: Dict[str, Any]) -> Mapping[str, Any]:
        # a hung generator must not hold the request past self.timeout
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.generator.generate, context)
            return future.result(timeout=self.timeout)
        finally:
            executor.shutdown(wait=False)
