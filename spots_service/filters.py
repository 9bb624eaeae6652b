from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from .schemas import RatingSummary, ReviewRecord, StudySpot

ALL = "all"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SMALL_MAX_SEATS = 20
MEDIUM_MAX_SEATS = 40

SpotEntry = Tuple[StudySpot, RatingSummary]
SpotPredicate = Callable[[StudySpot], bool]
T = TypeVar("T")


class CapacityFilter(str, Enum):
    ALL = "all"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    HIGHEST = "highest"
    LOWEST = "lowest"


# ---------- Directory ----------


def capacity_bucket(capacity: Optional[int]) -> Optional[CapacityFilter]:
    """
    Classify a seat count: small is at most 20, medium is 21–40, large is
    over 40. A non-numeric capacity (None) belongs to no bucket.
    """
    if capacity is None:
        return None
    if capacity <= SMALL_MAX_SEATS:
        return CapacityFilter.SMALL
    if capacity <= MEDIUM_MAX_SEATS:
        return CapacityFilter.MEDIUM
    return CapacityFilter.LARGE


def matches_search(spot: StudySpot, search_term: str) -> bool:
    term = search_term.strip().lower()
    if not term:
        return True
    return (
        term in spot.building.lower()
        or term in spot.room_number.lower()
        or term in spot.space_type.lower()
    )


def matches_type(spot: StudySpot, type_filter: str) -> bool:
    if type_filter.lower() == ALL:
        return True
    return spot.space_type.lower() == type_filter.lower()


def matches_capacity(spot: StudySpot, capacity_filter: Union[CapacityFilter, str]) -> bool:
    wanted = CapacityFilter(capacity_filter)
    if wanted is CapacityFilter.ALL:
        return True
    return capacity_bucket(spot.capacity) is wanted


def spot_predicates(
    search_term: str = "",
    type_filter: str = ALL,
    capacity_filter: Union[CapacityFilter, str] = CapacityFilter.ALL,
) -> List[SpotPredicate]:
    """
    Build the independent predicates that make up a directory filter.

    The predicates do not depend on each other, so applying them in any
    order selects the same spots.

    Raises
    ------
    ValueError
        If ``capacity_filter`` is not one of all/small/medium/large.
    """
    capacity_filter = CapacityFilter(capacity_filter)
    return [
        lambda spot: matches_search(spot, search_term),
        lambda spot: matches_type(spot, type_filter),
        lambda spot: matches_capacity(spot, capacity_filter),
    ]


def filter_spots(
    spots: Sequence[Tuple[StudySpot, T]],
    search_term: str = "",
    type_filter: str = ALL,
    capacity_filter: Union[CapacityFilter, str] = CapacityFilter.ALL,
) -> List[Tuple[StudySpot, T]]:
    """
    Select the directory entries that pass every filter.

    Parameters
    ----------
    spots : Sequence[Tuple[StudySpot, RatingSummary]]
        Catalog entries, usually paired with their rating summary. The
        input is not modified.
    search_term : str
        Case-insensitive substring looked up in building, room number and
        space type. Blank matches everything.
    type_filter : str
        ``"all"`` or a space type, compared case-insensitively.
    capacity_filter : CapacityFilter or str
        ``"all"``, ``"small"``, ``"medium"`` or ``"large"``.

    Returns
    -------
    List[Tuple[StudySpot, RatingSummary]]
        Matching entries in their original order.
    """
    predicates = spot_predicates(search_term, type_filter, capacity_filter)
    return [entry for entry in spots if all(check(entry[0]) for check in predicates)]


def space_type_options(spots: Iterable[StudySpot]) -> List[str]:
    """Distinct space types in first-seen order, prefixed with ``"all"``."""
    options = [ALL]
    seen = set()
    for spot in spots:
        if spot.space_type not in seen:
            seen.add(spot.space_type)
            options.append(spot.space_type)
    return options


def similar_spots(spots: Iterable[StudySpot], spot: StudySpot, limit: int = 3) -> List[StudySpot]:
    """Other spots of exactly the same space type, in catalog order."""
    similar = []
    for candidate in spots:
        if len(similar) >= limit:
            break
        if candidate.space_type == spot.space_type and candidate.spot_key != spot.spot_key:
            similar.append(candidate)
    return similar


# ---------- Reviews ----------


def _timestamp_or_epoch(review: ReviewRecord) -> datetime:
    return review.timestamp if review.timestamp is not None else EPOCH


def parse_min_rating(min_rating: Union[int, str, None]) -> Optional[int]:
    """
    Turn a minimum-rating filter value into a threshold.

    ``None`` and ``"all"`` mean no threshold.

    Raises
    ------
    ValueError
        If the value is neither ``"all"`` nor an integer.
    """
    if min_rating is None:
        return None
    if isinstance(min_rating, str):
        if min_rating.strip().lower() == ALL:
            return None
        return int(min_rating)
    return int(min_rating)


def filter_and_sort_reviews(
    reviews: Mapping[str, ReviewRecord],
    min_rating: Union[int, str, None] = ALL,
    sort_order: Union[SortOrder, str] = SortOrder.NEWEST,
) -> List[ReviewRecord]:
    """
    Filter a spot's reviews by minimum rating and put them in display order.

    Ordering
    --------
    - newest / oldest: by timestamp descending / ascending. A missing
      timestamp counts as the epoch, so such reviews never jump to the top
      of "newest".
    - highest / lowest: by rating descending / ascending, ties broken by
      timestamp, most recent first.

    All sorts are stable, so entries with equal keys keep their input order.
    The input mapping is not modified.
    """
    threshold = parse_min_rating(min_rating)
    sort_order = SortOrder(sort_order)

    selected = [
        review for review in reviews.values()
        if threshold is None or review.rating >= threshold
    ]

    if sort_order is SortOrder.NEWEST:
        return sorted(selected, key=_timestamp_or_epoch, reverse=True)
    if sort_order is SortOrder.OLDEST:
        return sorted(selected, key=_timestamp_or_epoch)

    # tie-break first; the stable rating sort keeps it within equal ratings
    by_recency = sorted(selected, key=_timestamp_or_epoch, reverse=True)
    return sorted(
        by_recency,
        key=lambda review: review.rating,
        reverse=sort_order is SortOrder.HIGHEST,
    )
