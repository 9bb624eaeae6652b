from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, connect_args=connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Yield a SQLAlchemy database session for the Spots service.

    This function is intended for use as a FastAPI dependency, providing
    a scoped session per request and ensuring that the session is closed
    once the request is finished.

    Yields
    ------
    Session
        Active SQLAlchemy session bound to the review store engine.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
