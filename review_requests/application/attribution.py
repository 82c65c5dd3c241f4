"""
Review Attribution Use Case
===========================

Loads the candidate pool (emailed, not yet reviewed), runs the pure name
matcher over an external review feed and persists each assignment.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from ..domain.models import ReviewMatchUpdate, utc_now_iso
from ..domain.name_matching import ExternalReview, MatchCandidate, match_reviews
from ..infrastructure.persistence import Database

logger = logging.getLogger(__name__)

ReviewInput = Union[ExternalReview, Mapping[str, Any]]


@dataclass(frozen=True)
class MatchedCustomer:
    customer_id: str
    customer_name: str
    reviewer_name: str
    rating: Optional[int]

    def to_dict(self) -> dict:
        return {
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "reviewerName": self.reviewer_name,
            "rating": self.rating,
        }


@dataclass
class AttributionResult:
    matched: int
    total: int
    matched_customers: List[MatchedCustomer] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "matched": self.matched,
            "total": self.total,
            "matchedCustomers": [m.to_dict() for m in self.matched_customers],
        }


class ReviewAttributor:
    """Matches external reviews back to the customers who were asked for them."""

    def __init__(self, db: Database):
        self.db = db

    def match_reviews(
        self,
        user_id: str,
        location_id: str,
        reviews: Optional[Sequence[ReviewInput]],
    ) -> AttributionResult:
        reviews = [
            r if isinstance(r, ExternalReview) else ExternalReview.from_mapping(r)
            for r in (reviews or [])
        ]

        customers = self.db.get_review_candidates(user_id, location_id)
        if not customers:
            return AttributionResult(matched=0, total=len(reviews))

        candidates = tuple(MatchCandidate(c.id, c.customer_name) for c in customers)
        outcome = match_reviews(candidates, reviews)

        result = AttributionResult(matched=0, total=len(reviews))
        for assignment in outcome.assignments:
            review = assignment.review
            update = ReviewMatchUpdate(
                review_date=review.time or utc_now_iso(),
                review_rating=review.rating,
                review_text=review.text,
            )
            # Guarded write: a concurrent sync may have matched this customer already
            if not self.db.mark_reviewed(assignment.candidate.customer_id, update):
                continue

            result.matched += 1
            result.matched_customers.append(MatchedCustomer(
                customer_id=assignment.candidate.customer_id,
                customer_name=assignment.candidate.customer_name,
                reviewer_name=review.reviewer_name,
                rating=review.rating,
            ))

        logger.info(f"Matched {result.matched} of {result.total} reviews with customers")
        return result
