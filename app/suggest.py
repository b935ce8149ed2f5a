# app/suggest.py
"""Autocomplete suggestions and filter-sidebar facets over visible listings."""
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from . import crud
from .errors import surface_store_errors
from .models import Listing, ListingAmenity
from .query import MIN_SUGGESTION_CHARS, normalize_text

# Static bands, half-open [min, max); max None means unbounded.
PRICE_BUCKETS = (
    {"label": "Under ₹50 Lakhs", "min": 0, "max": 5000000},
    {"label": "₹50L - ₹75L", "min": 5000000, "max": 7500000},
    {"label": "₹75L - ₹1 Crore", "min": 7500000, "max": 10000000},
    {"label": "₹1 Cr - ₹2 Cr", "min": 10000000, "max": 20000000},
    {"label": "Above ₹2 Crore", "min": 20000000, "max": None},
)


def _dedupe(values, limit: int) -> List[str]:
    out, seen = [], set()
    for value in values:
        if not value:
            continue
        key = value.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(value.strip())
        if len(out) >= limit:
            break
    return out


@surface_store_errors("suggestions")
def suggestions(db: Session, q: Optional[str], limit: int = 10) -> Dict[str, Any]:
    text = normalize_text(q)
    if text is None or len(text) < MIN_SUGGESTION_CHARS:
        return {"locations": [], "properties": []}

    cities = (
        db.query(Listing.city)
        .filter(*crud.visible(), crud.contains_ci(Listing.city, text))
        .group_by(Listing.city)
        .order_by(func.count(Listing.id).desc(), Listing.city.asc())
        .all()
    )
    locations = (
        db.query(Listing.location)
        .filter(*crud.visible(), crud.contains_ci(Listing.location, text))
        .group_by(Listing.location)
        .order_by(func.count(Listing.id).desc(), Listing.location.asc())
        .all()
    )
    properties = (
        db.query(Listing)
        .filter(*crud.visible(), crud.contains_ci(Listing.title, text))
        .order_by(Listing.view_count.desc(), Listing.id.desc())
        .limit(limit)
        .all()
    )
    return {
        "locations": _dedupe([r[0] for r in cities] + [r[0] for r in locations], limit),
        "properties": properties,
    }


def _bucket_condition(bucket):
    cond = Listing.price >= bucket["min"]
    if bucket["max"] is not None:
        cond = and_(cond, Listing.price < bucket["max"])
    return cond


def _counts(db: Session, key, limit: Optional[int] = None, by_key: bool = False):
    count = func.count(Listing.id).label("count")
    q = db.query(key, count).filter(*crud.visible()).group_by(key)
    q = q.order_by(key.asc()) if by_key else q.order_by(count.desc(), key.asc())
    if limit:
        q = q.limit(limit)
    return [{"value": r[0], "count": int(r[1])} for r in q.all()]


@surface_store_errors("price range categories")
def price_range_categories(db: Session) -> List[Dict[str, Any]]:
    out = []
    for bucket in PRICE_BUCKETS:
        count = db.query(func.count(Listing.id)).filter(*crud.visible(), _bucket_condition(bucket)).scalar()
        out.append({**bucket, "count": int(count or 0)})
    return out


@surface_store_errors("search facets")
def search_facets(db: Session) -> Dict[str, Any]:
    price = db.query(func.min(Listing.price), func.max(Listing.price), func.avg(Listing.price)).filter(*crud.visible()).one()
    area = db.query(func.min(Listing.area), func.max(Listing.area), func.avg(Listing.area)).filter(*crud.visible()).one()

    amenity_count = func.count(ListingAmenity.listing_id).label("count")
    amenities = (
        db.query(ListingAmenity.amenity, amenity_count)
        .join(Listing, Listing.id == ListingAmenity.listing_id)
        .filter(*crud.visible())
        .group_by(ListingAmenity.amenity)
        .order_by(amenity_count.desc(), ListingAmenity.amenity.asc())
        .limit(20)
        .all()
    )

    def _stats(row):
        if row[0] is None:
            return {}
        return {"min": float(row[0]), "max": float(row[1]), "avg": round(float(row[2]), 2)}

    return {
        "types": _counts(db, Listing.listing_type),
        "cities": _counts(db, Listing.city, limit=20),
        "locations": _counts(db, Listing.location, limit=50),
        "price_range": _stats(price),
        "area_range": _stats(area),
        "bedroom_options": _counts(db, Listing.bedrooms, by_key=True),
        "amenities": [{"value": r[0], "count": int(r[1])} for r in amenities],
        "price_buckets": price_range_categories(db),
    }


@surface_store_errors("popular locations")
def popular_locations(db: Session, limit: int = 10) -> List[Dict[str, Any]]:
    """Locations ranked by the total views of their visible listings."""
    views = func.sum(Listing.view_count).label("views")
    rows = (
        db.query(Listing.location, views)
        .filter(*crud.visible(), Listing.location.isnot(None), Listing.location != "")
        .group_by(Listing.location)
        .order_by(views.desc(), Listing.location.asc())
        .limit(limit)
        .all()
    )
    return [{"term": r[0], "type": "location", "count": int(r[1] or 0)} for r in rows]


@surface_store_errors("location stats")
def location_stats(db: Session, city: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
    conds = crud.visible()
    city = normalize_text(city)
    if city:
        conds.append(crud.contains_ci(Listing.city, city))
    count = func.count(Listing.id).label("count")
    rows = (
        db.query(
            Listing.location,
            count,
            func.avg(Listing.price),
            func.min(Listing.price),
            func.max(Listing.price),
            func.sum(Listing.view_count),
        )
        .filter(*conds)
        .group_by(Listing.location)
        .order_by(count.desc(), Listing.location.asc())
        .limit(limit)
        .all()
    )
    type_rows = (
        db.query(Listing.location, Listing.listing_type)
        .filter(*conds)
        .distinct()
        .all()
    )
    types: Dict[str, List[str]] = {}
    for location, listing_type in type_rows:
        types.setdefault(location, []).append(listing_type)
    return [
        {
            "location": r[0],
            "count": int(r[1]),
            "avg_price": round(float(r[2] or 0), 2),
            "min_price": float(r[3] or 0),
            "max_price": float(r[4] or 0),
            "total_views": int(r[5] or 0),
            "types": sorted(types.get(r[0], [])),
        }
        for r in rows
    ]
