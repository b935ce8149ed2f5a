# app/api/routes.py
from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import analytics, ranking, schemas, services, suggest, views
from ..db import get_db

router = APIRouter()

def current_viewer_id(x_viewer_id: Optional[str] = Header(None)) -> Optional[str]:
    # authentication lives upstream; it forwards the signed-in user's id
    viewer = (x_viewer_id or "").strip()
    return viewer or None

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/search", response_model=schemas.SearchResponse)
def search(
    q: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    min_area: Optional[str] = Query(None, alias="minArea"),
    max_area: Optional[str] = Query(None, alias="maxArea"),
    min_bedrooms: Optional[str] = Query(None, alias="minBedrooms"),
    max_bedrooms: Optional[str] = Query(None, alias="maxBedrooms"),
    bathrooms: Optional[str] = Query(None),
    city: Optional[str] = Query(None),
    location: Optional[str] = Query(None),
    amenities: Optional[str] = Query(None),
    facing: Optional[str] = Query(None),
    furnishing: Optional[str] = Query(None),
    parking: Optional[str] = Query(None),
    is_featured: Optional[str] = Query(None, alias="isFeatured"),
    is_verified: Optional[str] = Query(None, alias="isVerified"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    db: Session = Depends(get_db)
):
    params = {
        "q": q,
        "type": type,
        "min_price": min_price,
        "max_price": max_price,
        "min_area": min_area,
        "max_area": max_area,
        "min_bedrooms": min_bedrooms,
        "max_bedrooms": max_bedrooms,
        "bathrooms": bathrooms,
        "city": city,
        "location": location,
        "amenities": amenities,
        "facing": facing,
        "furnishing": furnishing,
        "parking": parking,
        "is_featured": is_featured,
        "is_verified": is_verified,
        "page": page,
        "limit": limit,
        "sort_by": sort_by,
    }
    return services.run_search(db, params)

@router.get("/search/suggestions", response_model=schemas.SuggestionsResponse)
def search_suggestions(
    q: Optional[str] = Query(None),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    return suggest.suggestions(db, q, limit)

@router.get("/search/trending", response_model=schemas.TrendingResponse)
def search_trending(
    days: int = Query(analytics.TRENDING_WINDOW_DAYS, ge=1, le=90),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db)
):
    return services.trending(db, days, limit)

@router.get("/search/nearby", response_model=schemas.NearbyResponse)
def search_nearby(
    lat: Optional[str] = Query(None),
    lng: Optional[str] = Query(None),
    radius_km: str = Query("5", alias="radiusKm"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return services.nearby(db, lat, lng, radius_km, limit)

@router.get("/search/filters")
def search_filters(db: Session = Depends(get_db)):
    return {"filters": suggest.search_facets(db)}

@router.get("/search/price-ranges")
def search_price_ranges(db: Session = Depends(get_db)):
    return {"categories": suggest.price_range_categories(db)}

@router.get("/search/popular")
def search_popular(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db)):
    return {"popular_searches": suggest.popular_locations(db, limit)}

@router.get("/search/locations")
def search_locations(city: Optional[str] = Query(None), db: Session = Depends(get_db)):
    return {"locations": suggest.location_stats(db, city)}

@router.get("/listings/{listing_id}/similar", response_model=List[schemas.ListingOut])
def similar(listing_id: int, limit: int = Query(4, ge=1, le=20), db: Session = Depends(get_db)):
    return ranking.similar_listings(db, listing_id, limit)

@router.get("/listings/{listing_id}/analytics")
def listing_analytics(
    listing_id: int,
    days: int = Query(analytics.ANALYTICS_WINDOW_DAYS, ge=1, le=365),
    db: Session = Depends(get_db)
):
    return analytics.listing_analytics(db, listing_id, days)

@router.post("/views", response_model=schemas.ViewEventOut, status_code=201)
def record_view(
    payload: schemas.ViewEventIn,
    request: Request,
    viewer_id: Optional[str] = Depends(current_viewer_id),
    db: Session = Depends(get_db)
):
    updates = {}
    if not payload.ip_address and request.client:
        updates["ip_address"] = request.client.host
    if not payload.user_agent:
        updates["user_agent"] = request.headers.get("user-agent")
    if updates:
        payload = payload.model_copy(update=updates)
    return views.record_view(db, payload, viewer_id=viewer_id)

@router.patch("/views/{view_id}/interactions", response_model=schemas.ViewEventOut)
def update_interaction(view_id: int, payload: schemas.InteractionUpdate, db: Session = Depends(get_db)):
    return views.update_interaction(db, view_id, payload.interaction)

@router.post("/views/{view_id}/end", response_model=schemas.ViewEventOut)
def end_view(view_id: int, payload: schemas.ViewSessionEnd, db: Session = Depends(get_db)):
    return views.end_view_session(db, view_id, payload.view_duration, payload.scroll_depth)
