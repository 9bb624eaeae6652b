import logging
from typing import List

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import schemas, store
from .aggregator import rating_breakdown
from .catalog import Catalog, load_catalog
from .config import LOG_FORMAT, LOG_LEVEL, SERVICE_NAME, SIMILAR_SPOTS_LIMIT, STUDY_SPOTS_PATH
from .database import Base, engine, get_db
from .directory import (
    get_spot_detail,
    list_spots_with_ratings,
    rating_for_spot,
    similar_spots_with_ratings,
)
from .errors import OperationNotSupported, SpotNotFound, StorageFailure, ValidationFailure
from .filters import (
    ALL,
    CapacityFilter,
    SortOrder,
    filter_and_sort_reviews,
    filter_spots,
    space_type_options,
)

logging.basicConfig(level=getattr(logging, LOG_LEVEL.upper(), logging.INFO), format=LOG_FORMAT)
logger = logging.getLogger(__name__)

# Create tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Study Spots Service", version="1.0.0")

# Loaded once; read-only for the life of the process
app.state.catalog = load_catalog(STUDY_SPOTS_PATH)

router_v1 = APIRouter(prefix="/api/v1")

MIN_RATING_PATTERN = r"^(all|[1-5])$"


def error_response(request: Request, status_code: int, detail) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            {
                "service": SERVICE_NAME,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "detail": detail,
            }
        ),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(request, exc.status_code, exc.detail)


@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return error_response(request, status.HTTP_422_UNPROCESSABLE_ENTITY, exc.errors or exc.message)


@app.exception_handler(SpotNotFound)
async def spot_not_found_handler(request: Request, exc: SpotNotFound):
    return error_response(request, status.HTTP_404_NOT_FOUND, "Study spot not found")


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    return error_response(request, status.HTTP_503_SERVICE_UNAVAILABLE, str(exc))


@app.exception_handler(OperationNotSupported)
async def not_supported_handler(request: Request, exc: OperationNotSupported):
    return error_response(request, status.HTTP_501_NOT_IMPLEMENTED, str(exc))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def get_catalog(request: Request) -> Catalog:
    """
    Return the study-spot catalog loaded at startup.

    Used as a FastAPI dependency so tests can substitute their own catalog
    through ``app.dependency_overrides``.
    """
    return request.app.state.catalog


def get_spot_or_404(catalog: Catalog, spot_key: str) -> schemas.StudySpot:
    spot = catalog.get(spot_key)
    if spot is None:
        raise SpotNotFound(spot_key)
    return spot


@app.get("/")
def root():
    """
    Health-check endpoint for the Spots service.

    Returns
    -------
    dict
        A small JSON payload indicating that the service is running.
    """
    return {"service": SERVICE_NAME, "status": "running"}


# ---------- Directory ----------


@router_v1.get("/spots", response_model=List[schemas.SpotWithRating])
def list_spots(
    search: str = "",
    space_type: str = Query(default=ALL, alias="type"),
    capacity: CapacityFilter = CapacityFilter.ALL,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    List study spots with their ratings, filtered for the directory view.

    Behavior
    --------
    - Every catalog spot is joined with a freshly computed rating summary.
    - A spot whose rating cannot be read is still listed, with the
      zero-review sentinel.
    - Filters combine with AND:
      * search : substring of building, room number or space type
      * type : exact space type, or "all"
      * capacity : all / small (<=20) / medium (21-40) / large (>40)

    Returns
    -------
    List[SpotWithRating]
        Matching spots in catalog order.
    """
    entries = filter_spots(
        list_spots_with_ratings(catalog, db),
        search_term=search,
        type_filter=space_type,
        capacity_filter=capacity,
    )
    return [schemas.SpotWithRating(spot=spot, rating=rating) for spot, rating in entries]


@router_v1.get("/spots/types", response_model=List[str])
def list_space_types(catalog: Catalog = Depends(get_catalog)):
    """
    Space-type menu for the directory filter, always starting with "all".
    """
    return space_type_options(catalog)


@router_v1.get("/spots/{spot_key}", response_model=schemas.SpotDetail)
def get_spot(
    spot_key: str,
    min_rating: str = Query(default=ALL, pattern=MIN_RATING_PATTERN),
    sort: SortOrder = SortOrder.NEWEST,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Detail view of one study spot.

    Behavior
    --------
    - Unknown spot keys give HTTP 404.
    - Reviews are filtered by ``min_rating`` and ordered by ``sort``.
    - Includes a per-star breakdown and up to a few spots of the same type.
    - If reviews cannot be read, the view still renders with the
      sentinel rating and ``reviews_available`` set to False.

    Returns
    -------
    SpotDetail
        Spot, rating, breakdown, ordered reviews and similar spots.
    """
    detail = get_spot_detail(catalog, db, spot_key)
    similar = similar_spots_with_ratings(catalog, db, detail.spot, SIMILAR_SPOTS_LIMIT)

    return schemas.SpotDetail(
        spot=detail.spot,
        rating=detail.rating,
        breakdown=rating_breakdown(detail.reviews),
        reviews=filter_and_sort_reviews(detail.reviews, min_rating, sort),
        similar=[schemas.SpotWithRating(spot=s, rating=r) for s, r in similar],
        reviews_available=detail.reviews_available,
    )


@router_v1.get("/spots/{spot_key}/rating", response_model=schemas.RatingSummary)
def get_spot_rating(
    spot_key: str,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Average rating and review count of one spot.

    Falls back to the zero-review sentinel when the store is unavailable.
    """
    get_spot_or_404(catalog, spot_key)
    return rating_for_spot(db, spot_key)


# ---------- Reviews ----------


@router_v1.get("/spots/{spot_key}/reviews", response_model=List[schemas.ReviewRecord])
def list_spot_reviews(
    spot_key: str,
    min_rating: str = Query(default=ALL, pattern=MIN_RATING_PATTERN),
    sort: SortOrder = SortOrder.NEWEST,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Reviews of one spot, filtered and ordered.

    Parameters
    ----------
    spot_key : str
        Key of the spot.
    min_rating : str
        "all" or a threshold 1-5; reviews rated below it are dropped.
    sort : SortOrder
        newest, oldest, highest or lowest.

    Returns
    -------
    List[ReviewRecord]
        The selected reviews in display order.

    Raises
    ------
    StorageFailure
        Surfaced as HTTP 503 when the store cannot be read.
    """
    get_spot_or_404(catalog, spot_key)
    return filter_and_sort_reviews(store.list_reviews(db, spot_key), min_rating, sort)


@router_v1.get("/spots/{spot_key}/reviews/{author}", response_model=schemas.ReviewRecord)
def get_author_review(
    spot_key: str,
    author: str,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    One author's review of a spot, or HTTP 404 if there is none.
    """
    get_spot_or_404(catalog, spot_key)
    review = store.get_review(db, spot_key, author)
    if review is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Review not found",
        )
    return review


@router_v1.post(
    "/spots/{spot_key}/reviews",
    response_model=schemas.ReviewRecord,
    status_code=status.HTTP_201_CREATED,
)
def submit_spot_review(
    spot_key: str,
    review_in: schemas.ReviewInput,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Submit a review of a study spot.

    Behavior
    --------
    - Each author has one review per spot; submitting again overwrites it
      and refreshes its timestamp.
    - Author and text are stripped and must not be empty; rating is 1-5.

    Parameters
    ----------
    spot_key : str
        Key of the reviewed spot.
    review_in : ReviewInput
        Author, text, rating and optional tags and amenity ratings.

    Returns
    -------
    ReviewRecord
        The stored review.

    Raises
    ------
    SpotNotFound
        HTTP 404 for an unknown spot.
    StorageFailure
        HTTP 503 when the write fails; the caller may retry.
    """
    get_spot_or_404(catalog, spot_key)
    return store.submit_review(
        db,
        spot_key,
        author=review_in.author,
        text=review_in.text,
        rating=review_in.rating,
        tags=review_in.tags,
        amenities=review_in.amenities,
    )


@router_v1.delete("/spots/{spot_key}/reviews/{author}", status_code=status.HTTP_204_NO_CONTENT)
def delete_author_review(
    spot_key: str,
    author: str,
    db: Session = Depends(get_db),
    catalog: Catalog = Depends(get_catalog),
):
    """
    Delete an author's review.

    Not supported yet: always answers HTTP 501 and leaves the review in place.
    """
    get_spot_or_404(catalog, spot_key)
    store.delete_review(db, spot_key, author)


app.include_router(router_v1)
