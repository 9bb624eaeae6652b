from typing import Dict, Mapping

from .schemas import RatingSummary, ReviewRecord

STAR_VALUES = (5, 4, 3, 2, 1)


def aggregate(reviews: Mapping[str, ReviewRecord]) -> RatingSummary:
    """
    Compute the average rating and review count of a spot.

    The average is the plain arithmetic mean of the integer ratings, with
    no weighting or rounding. An empty mapping gives the zero-review
    sentinel ``RatingSummary(average=0, total_reviews=0)``.
    """
    total_reviews = len(reviews)
    if total_reviews == 0:
        return RatingSummary()

    total_rating = sum(review.rating for review in reviews.values())
    return RatingSummary(average=total_rating / total_reviews, total_reviews=total_reviews)


def rating_breakdown(reviews: Mapping[str, ReviewRecord]) -> Dict[int, int]:
    """Count reviews per star value; every value 5..1 is present."""
    breakdown = {stars: 0 for stars in STAR_VALUES}
    for review in reviews.values():
        if review.rating in breakdown:
            breakdown[review.rating] += 1
    return breakdown
