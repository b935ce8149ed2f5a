# app/crud.py
"""Listing store operations.

Filtered/sorted/paginated reads over `Listing`, lookups by id, the atomic view
counter increment used by the view recorder, and the trend score write-back.
Everything here speaks SQLAlchemy; callers add error translation.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from sqlalchemy import and_, func, update
from sqlalchemy.orm import Session

from .models import Listing, ListingAmenity, ListingStatus
from .query import CompiledQuery, Range

LIKE_ESCAPE = "\\"


def like_pattern(text: str) -> str:
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


def contains_ci(column, text: str):
    return column.ilike(like_pattern(text), escape=LIKE_ESCAPE)


def visible():
    return [Listing.is_active.is_(True), Listing.status == ListingStatus.active.value]


def _range_conditions(column, rng: Range) -> List[Any]:
    conds = []
    if rng.low is not None:
        conds.append(column >= rng.low)
    if rng.high is not None:
        conds.append(column <= rng.high)
    return conds


def listing_conditions(query: CompiledQuery) -> List[Any]:
    """AND of every structured filter clause; free text is handled by the ranker."""
    conds = visible()
    if query.listing_type:
        conds.append(Listing.listing_type == query.listing_type)
    conds += _range_conditions(Listing.price, query.price)
    conds += _range_conditions(Listing.area, query.area)
    conds += _range_conditions(Listing.bedrooms, query.bedrooms)
    if query.min_bathrooms is not None:
        conds.append(Listing.bathrooms >= query.min_bathrooms)
    if query.city:
        conds.append(contains_ci(Listing.city, query.city))
    if query.location:
        conds.append(contains_ci(Listing.location, query.location))
    # listing must carry every requested amenity
    for amenity in query.amenities:
        conds.append(Listing.amenity_rows.any(ListingAmenity.amenity == amenity))
    if query.facing:
        conds.append(func.lower(Listing.facing) == query.facing.lower())
    if query.furnishing:
        conds.append(func.lower(Listing.furnishing) == query.furnishing.lower())
    if query.min_parking is not None:
        conds.append(Listing.parking >= query.min_parking)
    if query.is_featured is not None:
        conds.append(Listing.is_featured.is_(query.is_featured))
    if query.is_verified is not None:
        conds.append(Listing.is_verified.is_(query.is_verified))
    return conds


def find_matching(
    db: Session,
    conditions: Sequence[Any],
    order_by: Sequence[Any],
    skip: int = 0,
    limit: int = 20,
    columns: Sequence[Any] = (),
) -> Tuple[List[Any], int]:
    """Return one page of matches and the total match count before paging."""
    q = db.query(Listing, *columns).filter(and_(*conditions))
    total = db.query(func.count(Listing.id)).filter(and_(*conditions)).scalar() or 0
    rows = q.order_by(*order_by).offset(skip).limit(limit).all()
    return rows, total


def get_listing(db: Session, listing_id: int):
    return db.query(Listing).filter(Listing.id == listing_id).first()


def get_visible_listing(db: Session, listing_id: int):
    return db.query(Listing).filter(Listing.id == listing_id, *visible()).first()


def get_listings(db: Session, listing_ids: Iterable[int]) -> Dict[int, Listing]:
    ids = list(listing_ids)
    if not ids:
        return {}
    return {obj.id: obj for obj in db.query(Listing).filter(Listing.id.in_(ids)).all()}


def create_listing(db: Session, data: Mapping[str, Any]) -> Listing:
    """Insert a listing; amenity names are stored lower-cased."""
    payload = dict(data)
    amenities = payload.pop("amenities", None) or []
    if payload.get("price") is not None:
        payload["price"] = Decimal(str(payload["price"]))
    obj = Listing(**payload)
    names = []
    for name in amenities:
        name = name.strip().lower()
        if name and name not in names:
            names.append(name)
    obj.amenity_rows = [ListingAmenity(amenity=name) for name in names]
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def increment_view_counters(db: Session, listing_id: int, unique: bool) -> int:
    """Bump the listing's view counters with a single UPDATE.

    The arithmetic happens inside the database, so concurrent recorders never
    lose increments. Does not commit.
    """
    # counters are not edits; keep updated_at from picking up its onupdate default
    values = {Listing.view_count: Listing.view_count + 1, Listing.updated_at: Listing.updated_at}
    if unique:
        values[Listing.unique_views] = Listing.unique_views + 1
    stmt = (
        update(Listing)
        .where(Listing.id == listing_id)
        .values(values)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount


def store_trend_scores(db: Session, scores: Mapping[int, int]) -> None:
    """Replace every listing's trend score; listings absent from `scores` drop to 0.

    Only rows whose score actually changes are written, and `updated_at` is
    left alone.
    """
    stale = [Listing.trend_score != 0]
    if scores:
        stale.append(Listing.id.notin_(list(scores)))
    db.execute(
        update(Listing)
        .where(*stale)
        .values(trend_score=0, updated_at=Listing.updated_at)
        .execution_options(synchronize_session=False)
    )
    for listing_id, score in scores.items():
        db.execute(
            update(Listing)
            .where(Listing.id == listing_id, Listing.trend_score != score)
            .values(trend_score=score, updated_at=Listing.updated_at)
            .execution_options(synchronize_session=False)
        )
    db.commit()
