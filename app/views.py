# app/views.py
"""View recorder: ingests listing page views and keeps listing counters current.

Every call to `record_view` stores a new row; uniqueness is a classification of
that row, not a dedup gate. A view is unique when the same listing has no
earlier view inside the dedup window from the same session or the same signed-in
viewer. Later signals (interactions, page exit) update the existing row.
"""
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from . import crud
from .engagement import INTERACTION_FLAGS, apply_derived_fields
from .errors import InvalidQuery, NotFound, surface_store_errors
from .models import DeviceType, ViewEvent
from .schemas import ViewEventIn
from .utils import env_int, logger, utcnow

UNIQUE_VIEW_WINDOW_HOURS = env_int("UNIQUE_VIEW_WINDOW_HOURS", 24)
VIEW_RETENTION_DAYS = env_int("VIEW_RETENTION_DAYS", 90)

IMAGE_VIEW = "image_view"
INTERACTIONS = frozenset(INTERACTION_FLAGS) | {IMAGE_VIEW}

_TABLET_HINTS = ("ipad", "tablet", "kindle", "playbook", "silk")
_MOBILE_HINTS = ("mobi", "iphone", "ipod", "android", "blackberry", "opera mini", "windows phone")
_DESKTOP_HINTS = ("windows nt", "macintosh", "x11", "linux x86_64", "cros")


def classify_device(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if not ua:
        return DeviceType.unknown.value
    if any(h in ua for h in _TABLET_HINTS) or ("android" in ua and "mobile" not in ua):
        return DeviceType.tablet.value
    if any(h in ua for h in _MOBILE_HINTS):
        return DeviceType.mobile.value
    if any(h in ua for h in _DESKTOP_HINTS):
        return DeviceType.desktop.value
    return DeviceType.unknown.value


def seen_recently(
    db: Session,
    listing_id: int,
    session_id: str,
    viewer_id: Optional[str],
    since: datetime,
) -> bool:
    identity = ViewEvent.session_id == session_id
    # anonymous views are matched on session only
    if viewer_id is not None:
        identity = or_(identity, and_(ViewEvent.viewer_id.isnot(None), ViewEvent.viewer_id == viewer_id))
    hit = (
        db.query(ViewEvent.id)
        .filter(ViewEvent.listing_id == listing_id, ViewEvent.viewed_at >= since, identity)
        .first()
    )
    return hit is not None


@surface_store_errors("record view")
def record_view(
    db: Session,
    payload: ViewEventIn,
    viewer_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ViewEvent:
    now = now or utcnow()
    listing = crud.get_listing(db, payload.listing_id)
    if listing is None or not listing.is_active:
        raise NotFound(f"Listing {payload.listing_id} not found", field="listing_id")

    since = now - timedelta(hours=UNIQUE_VIEW_WINDOW_HOURS)
    unique = not seen_recently(db, listing.id, payload.session_id, viewer_id, since)

    data = payload.model_dump(exclude={"interactions", "device_type", "source"})
    event = ViewEvent(
        **data,
        **payload.interactions.model_dump(),
        viewer_id=viewer_id,
        device_type=(payload.device_type.value if payload.device_type else classify_device(payload.user_agent)),
        source=payload.source.value,
        is_unique=unique,
        viewed_at=now,
    )
    apply_derived_fields(event)
    db.add(event)
    crud.increment_view_counters(db, listing.id, unique)
    db.commit()
    db.refresh(event)
    logger.debug("Recorded view %s on listing %s unique=%s", event.id, listing.id, unique)
    return event


def _get_view(db: Session, view_id: int) -> ViewEvent:
    event = db.query(ViewEvent).filter(ViewEvent.id == view_id).first()
    if event is None:
        raise NotFound(f"View {view_id} not found", field="view_id")
    return event


@surface_store_errors("update interaction")
def update_interaction(db: Session, view_id: int, interaction: str) -> ViewEvent:
    """Flag a late interaction on an existing view."""
    if interaction not in INTERACTIONS:
        allowed = ", ".join(sorted(INTERACTIONS))
        raise InvalidQuery(f"Unknown interaction {interaction!r}; expected one of: {allowed}", field="interaction")
    event = _get_view(db, view_id)
    if interaction == IMAGE_VIEW:
        event.image_views = (event.image_views or 0) + 1
        event.image_gallery_opened = True
    else:
        setattr(event, interaction, True)
    apply_derived_fields(event)
    db.commit()
    db.refresh(event)
    return event


@surface_store_errors("end view session")
def end_view_session(
    db: Session,
    view_id: int,
    duration: float,
    scroll_depth: float,
    now: Optional[datetime] = None,
) -> ViewEvent:
    event = _get_view(db, view_id)
    event.view_duration = max(0.0, float(duration))
    event.scroll_depth = max(0.0, min(100.0, float(scroll_depth)))
    event.exited_at = now or utcnow()
    apply_derived_fields(event)
    db.commit()
    db.refresh(event)
    return event


@surface_store_errors("purge expired views")
def purge_expired_views(db: Session, retention_days: int = VIEW_RETENTION_DAYS, now: Optional[datetime] = None) -> int:
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    deleted = (
        db.query(ViewEvent)
        .filter(ViewEvent.viewed_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    logger.info("Purged %d view events older than %d days", deleted, retention_days)
    return deleted
