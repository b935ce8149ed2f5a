# app/ranking.py
"""Ranking engine: executes compiled queries against the listing store.

Text relevance is a weighted substring-coverage score computed in SQL, so it
works on any backing database. Every ordering ends with creation time and id
so that consecutive pages never overlap.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, literal
from sqlalchemy.orm import Session

from . import crud
from .errors import InvalidQuery, NotFound, surface_store_errors
from .models import Listing
from .query import CompiledQuery, SortKey
from .utils import haversine_m, logger

# field weights for the relevance score; a listing matches text when > 0
TEXT_WEIGHTS = (
    (Listing.title, 3),
    (Listing.location, 2),
    (Listing.city, 2),
    (Listing.description, 1),
)
MAX_TEXT_TERMS = 10

SIMILAR_PRICE_BAND = (0.7, 1.3)
SIMILAR_CLOSE_BAND = (0.9, 1.1)
MAX_NEARBY_RADIUS_KM = 100.0


@dataclass
class SearchPage:
    results: List[Listing]
    total: int
    page: int
    page_size: int
    relevance: Dict[int, int] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def pagination(self) -> Dict[str, int]:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalItems": self.total,
            "itemsPerPage": self.page_size,
        }


@dataclass
class NearbyHit:
    listing: Listing
    distance_km: float


def text_terms(text: Optional[str]) -> List[str]:
    terms = []
    for term in (text or "").lower().split(" "):
        if term and term not in terms:
            terms.append(term)
    return terms[:MAX_TEXT_TERMS]


def relevance_expression(text: str):
    """Sum of field weights over every (term, field) substring hit."""
    score = literal(0)
    for term in text_terms(text):
        for column, weight in TEXT_WEIGHTS:
            score = score + case((crud.contains_ci(func.coalesce(column, ""), term), weight), else_=0)
    return score


_NEWEST = (Listing.created_at.desc(), Listing.id.desc())

ORDERINGS = {
    SortKey.price_asc: (Listing.price.asc(),) + _NEWEST,
    SortKey.price_desc: (Listing.price.desc(),) + _NEWEST,
    SortKey.area_asc: (Listing.area.asc(),) + _NEWEST,
    SortKey.area_desc: (Listing.area.desc(),) + _NEWEST,
    SortKey.newest: _NEWEST,
    SortKey.oldest: (Listing.created_at.asc(), Listing.id.asc()),
    SortKey.popular: (Listing.view_count.desc(), Listing.unique_views.desc()) + _NEWEST,
    SortKey.trending: (Listing.trend_score.desc(), Listing.view_count.desc()) + _NEWEST,
}


@surface_store_errors("search")
def search_listings(db: Session, query: CompiledQuery) -> SearchPage:
    conditions = crud.listing_conditions(query)
    columns = []
    if query.text:
        score = relevance_expression(query.text)
        conditions.append(score > 0)
        columns.append(score.label("relevance"))

    if query.sort is SortKey.relevance:
        order_by = (columns[0].desc(),) + _NEWEST
    else:
        order_by = ORDERINGS[query.sort]

    rows, total = crud.find_matching(
        db, conditions, order_by, skip=query.skip, limit=query.page_size, columns=columns
    )
    if columns:
        results = [row[0] for row in rows]
        relevance = {row[0].id: int(row[1]) for row in rows}
    else:
        results = list(rows)
        relevance = {}
    logger.debug("search sort=%s page=%s total=%s", query.sort.value, query.page, total)
    return SearchPage(results, total, query.page, query.page_size, relevance)


@surface_store_errors("similar listings")
def similar_listings(db: Session, listing_id: int, limit: int = 4) -> List[Listing]:
    ref = crud.get_listing(db, listing_id)
    if ref is None or not ref.is_active:
        raise NotFound(f"Listing {listing_id} not found", field="listing_id")

    price = float(ref.price)
    low, high = SIMILAR_PRICE_BAND
    close_low, close_high = SIMILAR_CLOSE_BAND
    ref_city = ref.city or ""
    similarity = (
        case((Listing.listing_type == ref.listing_type, 10), else_=0)
        + case((Listing.city == ref_city, 5), else_=0)
        + case((Listing.price.between(price * close_low, price * close_high), 5), else_=0)
    )
    conditions = crud.visible() + [
        Listing.id != ref.id,
        Listing.listing_type == ref.listing_type,
        func.lower(func.coalesce(Listing.city, "")) == ref_city.lower(),
        Listing.price.between(price * low, price * high),
    ]
    rows, _ = crud.find_matching(
        db,
        conditions,
        (similarity.desc(), Listing.view_count.desc(), Listing.unique_views.desc()) + _NEWEST,
        limit=limit,
    )
    return list(rows)


def validate_point(lat: Any, lng: Any, radius_km: Any):
    try:
        lat, lng, radius_km = float(lat), float(lng), float(radius_km)
    except (TypeError, ValueError):
        raise InvalidQuery("lat, lng and radiusKm must be numbers", field="lat")
    if not -90.0 <= lat <= 90.0:
        raise InvalidQuery("Latitude must be between -90 and 90", field="lat")
    if not -180.0 <= lng <= 180.0:
        raise InvalidQuery("Longitude must be between -180 and 180", field="lng")
    if not 0 < radius_km <= MAX_NEARBY_RADIUS_KM:
        raise InvalidQuery(f"radiusKm must be in (0, {MAX_NEARBY_RADIUS_KM:g}]", field="radiusKm")
    return lat, lng, radius_km


def nearby_listings(db: Session, lat: Any, lng: Any, radius_km: Any = 5, limit: int = 20) -> List[NearbyHit]:
    lat, lng, radius_km = validate_point(lat, lng, radius_km)
    return find_nearby(db, lat, lng, radius_km, limit)


@surface_store_errors("nearby listings")
def find_nearby(db: Session, lat: float, lng: float, radius_km: float, limit: int = 20) -> List[NearbyHit]:
    """Listings within `radius_km` of an already validated point, nearest first."""
    radius_m = radius_km * 1000

    # bounding box prefilter; exact distance is checked below
    dlat = math.degrees(radius_m / 6371000.0)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    dlng = min(180.0, dlat / cos_lat)
    conditions = crud.visible() + [
        Listing.latitude.isnot(None),
        Listing.longitude.isnot(None),
        Listing.latitude.between(lat - dlat, lat + dlat),
    ]
    if lng - dlng >= -180.0 and lng + dlng <= 180.0:
        conditions.append(Listing.longitude.between(lng - dlng, lng + dlng))

    candidates = db.query(Listing).filter(*conditions).all()
    hits = []
    for obj in candidates:
        distance = haversine_m(lat, lng, obj.latitude, obj.longitude)
        if distance <= radius_m:
            hits.append(NearbyHit(obj, round(distance / 1000, 3)))
    hits.sort(key=lambda h: (h.distance_km, -h.listing.id))
    return hits[: max(1, int(limit))]
