# app/analytics.py
"""Aggregations over recorded view events.

`compute_trending` ranks listings by recent engagement and is shared by the
trending endpoint and the periodic trend-score refresh. `listing_analytics`
builds the per-listing dashboard breakdown.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import Integer, case, cast, func
from sqlalchemy.orm import Session

from . import crud
from .errors import NotFound, surface_store_errors
from .models import Listing, ViewEvent
from .utils import env_int, logger, utcnow

TRENDING_WINDOW_DAYS = env_int("TRENDING_WINDOW_DAYS", 7)
ANALYTICS_WINDOW_DAYS = 30
RAW_VIEW_WEIGHT = 1
UNIQUE_VIEW_WEIGHT = 2


def trend_score(raw_views: int, unique_views: int) -> int:
    return raw_views * RAW_VIEW_WEIGHT + unique_views * UNIQUE_VIEW_WEIGHT


@dataclass
class TrendingEntry:
    listing: Listing
    raw_views: int
    unique_views: int
    inquiries: int

    @property
    def trend_score(self) -> int:
        return trend_score(self.raw_views, self.unique_views)


def _flag_sum(column):
    return func.sum(case((column.is_(True), 1), else_=0))


def _trending_rows(db: Session, since: datetime, limit: Optional[int]):
    raw = func.count(ViewEvent.id).label("raw_count")
    unique = _flag_sum(ViewEvent.is_unique).label("unique_count")
    inquiries = _flag_sum(ViewEvent.inquiry_sent).label("inquiry_count")
    q = (
        db.query(ViewEvent.listing_id, raw, unique, inquiries)
        .join(Listing, Listing.id == ViewEvent.listing_id)
        .filter(ViewEvent.viewed_at >= since, *crud.visible())
        .group_by(ViewEvent.listing_id)
        .order_by(unique.desc(), raw.desc(), ViewEvent.listing_id.asc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


@surface_store_errors("compute trending")
def compute_trending(
    db: Session,
    window_days: int = TRENDING_WINDOW_DAYS,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> List[TrendingEntry]:
    since = (now or utcnow()) - timedelta(days=window_days)
    rows = _trending_rows(db, since, limit)
    listings = crud.get_listings(db, (r.listing_id for r in rows))
    return [
        TrendingEntry(listings[r.listing_id], int(r.raw_count), int(r.unique_count or 0), int(r.inquiry_count or 0))
        for r in rows
        if r.listing_id in listings
    ]


@surface_store_errors("refresh trend scores")
def refresh_trend_scores(
    db: Session,
    window_days: int = TRENDING_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> int:
    """Persist `trend_score` on every listing from the trailing window; returns listings scored."""
    since = (now or utcnow()) - timedelta(days=window_days)
    rows = _trending_rows(db, since, limit=None)
    scores = {r.listing_id: trend_score(int(r.raw_count), int(r.unique_count or 0)) for r in rows}
    crud.store_trend_scores(db, scores)
    logger.info("Refreshed trend scores for %d listings (window %d days)", len(scores), window_days)
    return len(scores)


def _grouped_counts(db: Session, key, filters) -> List[Dict[str, Any]]:
    count = func.count(ViewEvent.id).label("count")
    rows = db.query(key, count).filter(*filters).group_by(key).order_by(count.desc()).all()
    return [{"key": r[0], "count": int(r[1])} for r in rows]


@surface_store_errors("listing analytics")
def listing_analytics(
    db: Session,
    listing_id: int,
    days: int = ANALYTICS_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    if crud.get_listing(db, listing_id) is None:
        raise NotFound(f"Listing {listing_id} not found", field="listing_id")
    end = now or utcnow()
    start = end - timedelta(days=days)
    filters = [ViewEvent.listing_id == listing_id, ViewEvent.viewed_at >= start, ViewEvent.viewed_at <= end]

    overview = db.query(
        func.count(ViewEvent.id),
        _flag_sum(ViewEvent.is_unique),
        func.avg(ViewEvent.view_duration),
        func.avg(ViewEvent.scroll_depth),
        func.avg(cast(ViewEvent.bounced, Integer)),
        _flag_sum(ViewEvent.inquiry_sent),
        _flag_sum(ViewEvent.favorited),
        _flag_sum(ViewEvent.contact_clicked),
        _flag_sum(ViewEvent.is_high_intent),
        func.avg(ViewEvent.engagement_score),
    ).filter(*filters).one()
    total = int(overview[0] or 0)

    day = func.date(ViewEvent.viewed_at)
    daily = (
        db.query(day.label("day"), func.count(ViewEvent.id), _flag_sum(ViewEvent.is_unique))
        .filter(*filters)
        .group_by(day)
        .order_by(day.asc())
        .all()
    )
    origin_count = func.count(ViewEvent.id).label("count")
    origins = (
        db.query(ViewEvent.origin_city, ViewEvent.origin_state, origin_count)
        .filter(*filters, ViewEvent.origin_city.isnot(None))
        .group_by(ViewEvent.origin_city, ViewEvent.origin_state)
        .order_by(origin_count.desc())
        .limit(10)
        .all()
    )

    return {
        "listing_id": listing_id,
        "window_days": days,
        "overview": {
            "total_views": total,
            "unique_views": int(overview[1] or 0),
            "avg_duration": round(float(overview[2] or 0), 2),
            "avg_scroll_depth": round(float(overview[3] or 0), 2),
            "bounce_rate": round(float(overview[4] or 0), 4),
            "total_inquiries": int(overview[5] or 0),
            "total_favorites": int(overview[6] or 0),
            "contact_clicks": int(overview[7] or 0),
            "high_intent_views": int(overview[8] or 0),
            "avg_engagement": round(float(overview[9] or 0), 2),
        },
        "views_by_source": _grouped_counts(db, ViewEvent.source, filters),
        "views_by_device": _grouped_counts(db, ViewEvent.device_type, filters),
        "daily_views": [
            {"date": str(r[0]), "views": int(r[1]), "unique_views": int(r[2] or 0)} for r in daily
        ],
        "top_origins": [{"city": r[0], "state": r[1], "count": int(r[2])} for r in origins],
    }
