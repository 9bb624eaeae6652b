import json
import logging
from types import MappingProxyType
from typing import Iterable, Iterator, List, Optional, Tuple

from .schemas import StudySpot

logger = logging.getLogger(__name__)


class Catalog:
    """
    Immutable, ordered collection of study spots.

    Built once at startup and handed to whatever needs it; nothing mutates
    it afterwards. Lookup is by derived spot key. When two records derive
    the same key, both stay in the listing but lookups resolve to the
    first one.
    """

    def __init__(self, spots: Iterable[StudySpot]):
        self._spots: Tuple[StudySpot, ...] = tuple(spots)
        by_key = {}
        for spot in self._spots:
            if spot.spot_key in by_key:
                logger.warning(
                    "Duplicate spot key %r in catalog; keeping the first entry",
                    spot.spot_key,
                )
                continue
            by_key[spot.spot_key] = spot
        self._by_key = MappingProxyType(by_key)

    @property
    def spots(self) -> Tuple[StudySpot, ...]:
        return self._spots

    def get(self, key: str) -> Optional[StudySpot]:
        return self._by_key.get(key)

    def __iter__(self) -> Iterator[StudySpot]:
        return iter(self._spots)

    def __len__(self) -> int:
        return len(self._spots)


def parse_catalog(raw) -> Catalog:
    """
    Build a catalog from decoded JSON.

    Accepts either ``{"study_spaces": [...]}`` or a bare list of records
    using the source column names (``Building``, ``Room Number``, ...).
    """
    records: List[dict] = raw["study_spaces"] if isinstance(raw, dict) else raw
    return Catalog(StudySpot.model_validate(record) for record in records)


def load_catalog(path: str) -> Catalog:
    """
    Load the static study-spot catalog from a JSON file.

    Parameters
    ----------
    path : str
        Location of the catalog file.

    Returns
    -------
    Catalog
        The parsed, immutable catalog.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    catalog = parse_catalog(raw)
    logger.info("Loaded %d study spots from %s", len(catalog), path)
    return catalog
