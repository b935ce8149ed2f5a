# app/services.py
from typing import Any, Dict, Mapping
from sqlalchemy.orm import Session
from . import analytics, ranking, schemas
from .query import compile_search

def run_search(db: Session, params: Mapping[str, Any]) -> schemas.SearchResponse:
    # validation happens in compile_search, before any store call
    query = compile_search(params)
    page = ranking.search_listings(db, query)
    results = []
    for obj in page.results:
        hit = schemas.SearchHit.model_validate(obj)
        hit.relevance = page.relevance.get(obj.id)
        results.append(hit)
    return schemas.SearchResponse(
        results=results,
        pagination=schemas.Pagination(
            current_page=page.page,
            total_pages=page.total_pages,
            total_items=page.total,
            items_per_page=page.page_size,
        ),
        filters=query.describe(),
    )

def trending(db: Session, window_days: int, limit: int) -> schemas.TrendingResponse:
    entries = analytics.compute_trending(db, window_days=window_days, limit=limit)
    return schemas.TrendingResponse(
        window_days=window_days,
        items=[
            schemas.TrendingItem(
                listing=schemas.ListingOut.model_validate(e.listing),
                raw_views=e.raw_views,
                unique_views=e.unique_views,
                inquiries=e.inquiries,
                trend_score=e.trend_score,
            )
            for e in entries
        ],
    )

def nearby(db: Session, lat, lng, radius_km, limit: int) -> schemas.NearbyResponse:
    lat, lng, radius_km = ranking.validate_point(lat, lng, radius_km)
    hits = ranking.find_nearby(db, lat, lng, radius_km, limit)
    results = [
        schemas.NearbyItem(**schemas.ListingOut.model_validate(h.listing).model_dump(), distance_km=h.distance_km)
        for h in hits
    ]
    return schemas.NearbyResponse(
        results=results,
        count=len(results),
        search_center={"lat": lat, "lng": lng},
        radius_km=radius_km,
    )
