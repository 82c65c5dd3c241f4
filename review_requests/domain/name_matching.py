"""
Review Attribution - Fuzzy Name Matching
========================================

Reconciles externally observed reviews (e.g. Google Business Profile reviews)
with customers who were emailed a review request.

ARCHITECTURAL DECISION:
- Pure functions only; the caller loads candidates and persists assignments
- Matching is greedy and first-fit: reviews are considered in input order and
  each one takes the first remaining candidate whose name matches
- A matched candidate leaves the pool, so each customer and each review is
  used at most once

Handles reviewer name variations like:
- "Pavan Reddy.K" = "pavan reddy k"
- "John S."       = "John Smith"
- "Ram K"         = "Ram Kumar"
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

# Google Business Profile star rating enum
STAR_RATINGS = {
    "ONE": 1,
    "TWO": 2,
    "THREE": 3,
    "FOUR": 4,
    "FIVE": 5,
}

# A shared first name this long is treated as distinctive on its own.
DISTINCTIVE_FIRST_NAME_LENGTH = 4


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a person name for comparison.

    Lowercases, turns dots into spaces ("reddy.k" -> "reddy k"), drops
    everything outside [a-z0-9] and whitespace, then collapses whitespace.
    """
    if not name:
        return ""

    normalized = name.lower().strip().replace(".", " ")
    normalized = _NON_ALNUM.sub("", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def names_match(name1: str, name2: str) -> bool:
    """Fuzzy comparison of two already-normalized names."""
    if not name1 or not name2:
        return False

    # 1. Exact
    if name1 == name2:
        return True

    # 2. Compact (no whitespace)
    if _WHITESPACE.sub("", name1) == _WHITESPACE.sub("", name2):
        return True

    # 3. Same first name, distinctive or backed by a compatible last name
    parts1 = name1.split()
    parts2 = name2.split()

    if parts1[0] == parts2[0]:
        if len(parts1[0]) >= DISTINCTIVE_FIRST_NAME_LENGTH:
            return True

        if len(parts1) > 1 and len(parts2) > 1:
            last1, last2 = parts1[-1], parts2[-1]
            if last1 == last2 or last2 in last1 or last1 in last2:
                return True

    # 4. One full name contains the other
    return name1 in name2 or name2 in name1


def parse_star_rating(star_rating: Any) -> Optional[int]:
    """
    Map a review rating onto 1..5.

    Accepts the FIVE/FOUR/... enum, numbers and numeric strings. Anything else
    (including STAR_RATING_UNSPECIFIED) gives None.
    """
    if star_rating is None or isinstance(star_rating, bool):
        return None

    if isinstance(star_rating, str):
        key = star_rating.strip().upper()
        if key in STAR_RATINGS:
            return STAR_RATINGS[key]
        try:
            star_rating = float(key)
        except ValueError:
            return None

    try:
        value = int(star_rating)
    except (TypeError, ValueError):
        return None

    return value if 1 <= value <= 5 else None


@dataclass(frozen=True)
class ExternalReview:
    """A review fetched from the review platform, reduced to what matching needs."""
    reviewer_name: str
    rating: Optional[int] = None
    text: Optional[str] = None
    time: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ExternalReview":
        """
        Build from either a Google API review (reviewer.displayName, starRating,
        comment, createTime) or a flat feed item (reviewerName / author_name,
        rating, text, time).
        """
        reviewer = data.get("reviewer") or {}
        reviewer_name = (
            (reviewer.get("displayName") if isinstance(reviewer, Mapping) else None)
            or data.get("reviewerName")
            or data.get("author_name")
            or ""
        )

        rating = parse_star_rating(data.get("starRating"))
        if rating is None:
            rating = parse_star_rating(data.get("rating"))

        time = data.get("createTime") or data.get("time")

        return cls(
            reviewer_name=str(reviewer_name),
            rating=rating,
            text=data.get("comment") or data.get("text") or None,
            time=str(time) if time is not None else None,
        )


@dataclass(frozen=True)
class MatchCandidate:
    """A customer eligible for attribution."""
    customer_id: str
    customer_name: str


@dataclass(frozen=True)
class MatchAssignment:
    """One review attributed to one customer."""
    candidate: MatchCandidate
    review: ExternalReview


@dataclass(frozen=True)
class MatchOutcome:
    assignments: Tuple[MatchAssignment, ...]
    remaining: Tuple[MatchCandidate, ...]


def match_reviews(
    candidates: Sequence[MatchCandidate],
    reviews: Sequence[ExternalReview],
) -> MatchOutcome:
    """
    Assign reviews to candidates, first fit.

    When several candidates could match a review, the one earliest in the
    remaining pool wins. Reviews without a reviewer name are skipped.
    """
    pool = list(candidates)
    assignments = []

    for review in reviews:
        reviewer = normalize_name(review.reviewer_name)
        if not reviewer:
            continue

        for index, candidate in enumerate(pool):
            if names_match(reviewer, normalize_name(candidate.customer_name)):
                assignments.append(MatchAssignment(candidate=candidate, review=review))
                del pool[index]
                break

    return MatchOutcome(assignments=tuple(assignments), remaining=tuple(pool))
