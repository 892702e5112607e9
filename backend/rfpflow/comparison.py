# comparison.py
# Scores an RFP's proposals, adds the narrative and marks the RFP compared.

from .advisor import NarrativeAdvisor
from .errors import InsufficientDataError, NotFoundError
from .log import get_logger
from .models import ComparisonResult, RfpStatus, RfpUpdate
from .scoring import score_proposals
from .storage import Storage

log = get_logger(__name__)

MIN_PROPOSALS = 2


class ComparisonService:
    def __init__(self, store: Storage, advisor: NarrativeAdvisor):
        self.store = store
        self.advisor = advisor

    def compare(self, rfp_id: str) -> ComparisonResult:
        rfp = self.store.get_rfp(rfp_id)
        if rfp is None:
            raise NotFoundError("RFP", rfp_id)

        proposals = self.store.get_proposals_by_rfp(rfp_id)
        if len(proposals) < MIN_PROPOSALS:
            raise InsufficientDataError(f"Need at least {MIN_PROPOSALS} proposals to compare")

        scores = score_proposals(rfp, proposals, self.store.get_vendor)
        narrative = self.advisor.narrate(rfp, proposals, scores)

        self.store.update_rfp(rfp_id, RfpUpdate(status=RfpStatus.compared))
        log.info(
            "rfp_compared",
            rfp_id=rfp_id,
            proposals=len(proposals),
            recommended_vendor_id=narrative.recommended_vendor_id,
        )
        return ComparisonResult(
            scores=scores,
            summary=narrative.summary,
            recommended_vendor_id=narrative.recommended_vendor_id,
            reason=narrative.reason,
        )
