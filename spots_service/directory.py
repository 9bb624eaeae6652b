import logging
from typing import Dict, List, NamedTuple

from sqlalchemy.orm import Session

from . import store
from .aggregator import aggregate
from .catalog import Catalog
from .errors import SpotNotFound, StorageFailure
from .filters import SpotEntry, similar_spots
from .schemas import RatingSummary, ReviewRecord, StudySpot

logger = logging.getLogger(__name__)


class SpotDetailResult(NamedTuple):
    spot: StudySpot
    rating: RatingSummary
    reviews: Dict[str, ReviewRecord]
    # False when the review store could not be read and the sentinel was used
    reviews_available: bool = True


def rating_for_spot(db: Session, spot_key: str) -> RatingSummary:
    """
    Aggregate a spot's reviews from a fresh read of its partition.

    A storage failure degrades to the zero-review sentinel for this spot
    only; it is logged, not raised.
    """
    try:
        return aggregate(store.list_reviews(db, spot_key))
    except StorageFailure as exc:
        logger.warning("Rating unavailable for %s, using sentinel: %s", spot_key, exc)
        return RatingSummary()


def list_spots_with_ratings(catalog: Catalog, db: Session) -> List[SpotEntry]:
    """
    Join every catalog spot with its current rating summary.

    Catalog order is preserved and every spot is listed, even when its
    rating could not be computed.
    """
    return [(spot, rating_for_spot(db, spot.spot_key)) for spot in catalog]


def get_spot_detail(catalog: Catalog, db: Session, spot_key: str) -> SpotDetailResult:
    """
    Load a spot together with its rating summary and all of its reviews.

    Parameters
    ----------
    catalog : Catalog
        The study-spot catalog.
    db : Session
        Database session.
    spot_key : str
        Key of the requested spot.

    Returns
    -------
    SpotDetailResult
        Spot, rating, reviews keyed by author. If the store cannot be read,
        the rating is the sentinel, reviews are empty and
        ``reviews_available`` is False.

    Raises
    ------
    SpotNotFound
        If no catalog entry has this key.
    """
    spot = catalog.get(spot_key)
    if spot is None:
        logger.debug("No study spot with key %r", spot_key)
        raise SpotNotFound(spot_key)

    try:
        reviews = store.list_reviews(db, spot_key)
    except StorageFailure as exc:
        logger.warning("Reviews unavailable for %s: %s", spot_key, exc)
        return SpotDetailResult(spot, RatingSummary(), {}, reviews_available=False)

    return SpotDetailResult(spot, aggregate(reviews), reviews)


def similar_spots_with_ratings(
    catalog: Catalog, db: Session, spot: StudySpot, limit: int
) -> List[SpotEntry]:
    return [
        (candidate, rating_for_spot(db, candidate.spot_key))
        for candidate in similar_spots(catalog, spot, limit)
    ]
