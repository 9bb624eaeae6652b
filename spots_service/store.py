import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Union

from pydantic import ValidationError
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import OperationNotSupported, StorageFailure, ValidationFailure
from .keys import author_key
from .schemas import Amenities, ReviewInput, ReviewRecord

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}

_KEY_COLUMNS = ("spot_key", "author_key")


def upsert_statement(db: Session, values: dict):
    """
    Build a single-statement create-or-overwrite of one review slot.

    The conflict on ``(spot_key, author_key)`` is resolved by the database,
    so concurrent writes to the same slot never fail: the last one wins.

    Raises
    ------
    StorageFailure
        If the session's backend has no ``ON CONFLICT`` upsert.
    """
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise StorageFailure(f"Review store does not support the '{dialect}' backend")

    stmt = insert(models.Review).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=list(_KEY_COLUMNS),
        set_={
            name: stmt.excluded[name]
            for name in values
            if name not in _KEY_COLUMNS
        },
    )


def validate_review_input(
    author: str,
    text: str,
    rating: int,
    tags: Optional[Iterable[str]] = None,
    amenities: Optional[Union[Amenities, dict]] = None,
) -> ReviewInput:
    """
    Check review fields before anything is written.

    Raises
    ------
    ValidationFailure
        If author or text is empty after trimming, the rating is outside
        1–5, or an amenity sub-rating is out of range.
    """
    try:
        return ReviewInput.model_validate(
            {
                "author": author,
                "text": text,
                "rating": rating,
                "tags": list(tags or []),
                "amenities": amenities,
            }
        )
    except ValidationError as exc:
        raise ValidationFailure(
            "Invalid review",
            errors=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc


def submit_review(
    db: Session,
    spot_key: str,
    author: str,
    text: str,
    rating: int,
    tags: Optional[Iterable[str]] = None,
    amenities: Optional[Union[Amenities, dict]] = None,
) -> ReviewRecord:
    """
    Create or overwrite an author's review of a spot.

    Behavior
    --------
    - Input is validated first; nothing is written on a validation error.
    - The slot is keyed by ``(spot_key, author_key(author))``, so a second
      submission from the same author replaces the first.
    - A fresh server timestamp is assigned on every write, including
      overwrites.

    Parameters
    ----------
    db : Session
        Database session.
    spot_key : str
        Key of the spot being reviewed.
    author, text, rating, tags, amenities
        Review content.

    Returns
    -------
    ReviewRecord
        The review as stored.

    Raises
    ------
    ValidationFailure
        If the input is rejected.
    StorageFailure
        If the write fails. The write is not retried.
    """
    review_in = validate_review_input(author, text, rating, tags, amenities)

    values = {
        "spot_key": spot_key,
        "author_key": author_key(review_in.author),
        "author": review_in.author,
        "text": review_in.text,
        "rating": review_in.rating,
        "timestamp": datetime.now(timezone.utc),
        "tags": review_in.tags,
        "amenities": (
            review_in.amenities.model_dump(exclude_none=True)
            if review_in.amenities is not None
            else None
        ),
    }

    try:
        db.execute(upsert_statement(db, values))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to store review for %s by %r: %s", spot_key, review_in.author, exc)
        raise StorageFailure(f"Could not store review for '{spot_key}'") from exc

    record = ReviewRecord.model_validate(values)
    logger.info("Stored review for %s by %r (rating=%d)", spot_key, record.author, record.rating)
    return record


def get_review(db: Session, spot_key: str, author: str) -> Optional[ReviewRecord]:
    """
    Point lookup of one author's review of a spot.

    Returns None when the author has not reviewed the spot.
    """
    try:
        row = db.get(models.Review, (spot_key, author_key(author)))
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailure(f"Could not read review for '{spot_key}'") from exc

    if row is None:
        return None
    return ReviewRecord.model_validate(row)


def list_reviews(db: Session, spot_key: str) -> Dict[str, ReviewRecord]:
    """
    Scan every review stored for a spot.

    Returns
    -------
    Dict[str, ReviewRecord]
        Reviews keyed by author key. Iteration order carries no meaning;
        sort explicitly before display.

    Raises
    ------
    StorageFailure
        If the partition cannot be read.
    """
    try:
        rows = db.query(models.Review).filter(models.Review.spot_key == spot_key).all()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailure(f"Could not list reviews for '{spot_key}'") from exc

    return {row.author_key: ReviewRecord.model_validate(row) for row in rows}


def delete_review(db: Session, spot_key: str, author: str) -> None:
    """
    Delete an author's review of a spot.

    Not supported: reviews cannot currently be removed. Always raises,
    and never touches storage.

    Raises
    ------
    OperationNotSupported
        On every call.
    """
    raise OperationNotSupported("Deleting reviews is not supported")
