from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from .database import Base


class Review(Base):
    """
    SQLAlchemy model representing one author's review of a study spot.

    Each row is a single storage slot addressed by ``(spot_key, author_key)``,
    the relational form of ``spots/{spot_key}/reviews/{author_key}``. A repeat
    submission from the same author overwrites the slot.

    Attributes
    ----------
    spot_key : str
        Partition key; the catalog-derived key of the reviewed spot.
    author_key : str
        Normalized author name, unique within the partition.
    author : str
        Author display name as submitted.
    text : str
        Free-text review body.
    rating : int
        Overall rating, constrained to the range 1–5.
    timestamp : datetime
        Server-assigned time of the latest write to this slot.
    tags : list
        Optional list of short tags.
    amenities : dict
        Optional amenity sub-ratings (noise, outlets, wifi, lighting).
    """
    __tablename__ = "spot_reviews"

    spot_key = Column(String(255), primary_key=True)
    author_key = Column(String(255), primary_key=True)
    author = Column(String(255), nullable=False)
    text = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)  # 1–5
    timestamp = Column(DateTime(timezone=True), nullable=True)
    tags = Column(JSON(none_as_null=True), nullable=True)
    amenities = Column(JSON(none_as_null=True), nullable=True)
