# scoring.py
# Deterministic weighted scoring of competing proposals for one RFP.
#
# Scores are relative to the batch: the price criterion ranks each proposal
# between the cheapest and most expensive offer in the same comparison, so
# the same proposal can score differently against different competitors.
#
# Criteria and weights:
#   price         40%  (max_price - price) / max(max_price - min_price, 1) * 100
#   delivery      20%  100 - (avg_days - target) / target * 100, floored at 0
#   warranty      15%  share of line items carrying a warranty
#   completeness  15%  proposal line items / requested RFP items, capped at 100
#   vendor rating 10%  rating / 5 * 100
#
# Policy notes:
#   * An all-equal-price batch (or a batch of one) gives every proposal a
#     price score of 0, not 100. The range floor of 1 keeps the formula
#     defined but makes the numerator 0 for everyone. This is kept as-is so
#     scores line up with previously produced comparisons.
#   * Delivery has no upper cap (DELIVERY_SCORE_CAP = None): beating the
#     target keeps adding points.
#   * A proposal without line items scores 0 on delivery, warranty and
#     completeness and stays in the batch.
#   * Rounding is half-up to one decimal, applied after the weighted total is
#     computed from the unrounded components.

from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional, Sequence

from .errors import DegenerateInputError
from .log import get_logger
from .models import Proposal, ProposalScore, Rfp, Vendor

log = get_logger(__name__)

WEIGHTS = {
    "price": 0.40,
    "delivery": 0.20,
    "warranty": 0.15,
    "completeness": 0.15,
    "vendor_rating": 0.10,
}

DEFAULT_DELIVERY_DAYS = 30
DEFAULT_VENDOR_RATING = 3
MAX_VENDOR_RATING = 5
MIN_PRICE_RANGE = 1.0
DELIVERY_SCORE_CAP: Optional[float] = None

VendorLookup = Callable[[str], Optional[Vendor]]


def round1(value: float) -> float:
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def price_score(price: float, min_price: float, max_price: float) -> float:
    price_range = max(max_price - min_price, MIN_PRICE_RANGE)
    return (max_price - price) / price_range * 100


def delivery_score(proposal: Proposal, rfp: Rfp) -> float:
    if not proposal.line_items:
        return 0.0
    days = [item.delivery_days or DEFAULT_DELIVERY_DAYS for item in proposal.line_items]
    avg_delivery = sum(days) / len(days)
    target = rfp.delivery_days or DEFAULT_DELIVERY_DAYS
    score = max(0.0, 100 - (avg_delivery - target) / target * 100)
    if DELIVERY_SCORE_CAP is not None:
        score = min(score, DELIVERY_SCORE_CAP)
    return score


def warranty_score(proposal: Proposal) -> float:
    if not proposal.line_items:
        return 0.0
    covered = len([item for item in proposal.line_items if item.warranty and item.warranty.strip()])
    return covered / len(proposal.line_items) * 100


def completeness_score(proposal: Proposal, rfp: Rfp) -> float:
    if not proposal.line_items:
        return 0.0
    if not rfp.items:
        # nothing was requested, so anything offered covers it
        return 100.0
    return min(100.0, len(proposal.line_items) / len(rfp.items) * 100)


def vendor_rating_score(vendor: Optional[Vendor]) -> float:
    rating = vendor.rating if vendor is not None and vendor.rating else DEFAULT_VENDOR_RATING
    return rating / MAX_VENDOR_RATING * 100


def weighted_total(price: float, delivery: float, warranty: float,
                   completeness: float, vendor_rating: float) -> float:
    return (
        price * WEIGHTS["price"]
        + delivery * WEIGHTS["delivery"]
        + warranty * WEIGHTS["warranty"]
        + completeness * WEIGHTS["completeness"]
        + vendor_rating * WEIGHTS["vendor_rating"]
    )


def score_proposals(rfp: Rfp, proposals: Sequence[Proposal], get_vendor: VendorLookup) -> List[ProposalScore]:
    """Score every proposal in the batch, keeping input order.

    get_vendor is called once per proposal to read the vendor rating; a
    missing vendor falls back to DEFAULT_VENDOR_RATING.
    """
    if not proposals:
        raise DegenerateInputError("cannot score an empty batch of proposals")

    prices = [p.total_price for p in proposals]
    min_price, max_price = min(prices), max(prices)

    scores = []
    for proposal in proposals:
        if not proposal.line_items:
            log.warning("degenerate_proposal", proposal_id=proposal.id, reason="no line items")

        vendor = get_vendor(proposal.vendor_id)
        if vendor is None:
            log.info("vendor_missing_default_rating", proposal_id=proposal.id, vendor_id=proposal.vendor_id)

        price = price_score(proposal.total_price, min_price, max_price)
        delivery = delivery_score(proposal, rfp)
        warranty = warranty_score(proposal)
        completeness = completeness_score(proposal, rfp)
        rating = vendor_rating_score(vendor)
        total = weighted_total(price, delivery, warranty, completeness, rating)

        scores.append(ProposalScore(
            proposal_id=proposal.id,
            vendor_name=proposal.vendor_name,
            price_score=round1(price),
            delivery_score=round1(delivery),
            warranty_score=round1(warranty),
            completeness_score=round1(completeness),
            vendor_rating_score=round1(rating),
            total_score=round1(total),
        ))

    log.debug("proposals_scored", rfp_id=rfp.id, count=len(scores))
    return scores
