# tests/test_views.py
from datetime import timedelta

import pytest
from app import views
from app.errors import InvalidQuery, NotFound
from app.models import ViewEvent
from app.schemas import ViewEventIn
from tests.conftest import NOW


def _payload(listing_id, session="s-1", **extra):
    return ViewEventIn(listing_id=listing_id, session_id=session, ip_address="10.0.0.1", **extra)


def test_same_session_within_window_is_not_unique(db, make_listing):
    listing = make_listing()
    first = views.record_view(db, _payload(listing.id), now=NOW)
    second = views.record_view(db, _payload(listing.id), now=NOW + timedelta(hours=23))
    assert first.is_unique is True
    assert second.is_unique is False

    db.refresh(listing)
    assert listing.view_count == 2
    assert listing.unique_views == 1


def test_same_session_after_window_is_unique_again(db, make_listing):
    listing = make_listing()
    views.record_view(db, _payload(listing.id), now=NOW)
    later = views.record_view(db, _payload(listing.id), now=NOW + timedelta(hours=24, seconds=1))
    assert later.is_unique is True
    db.refresh(listing)
    assert listing.unique_views == 2


def test_signed_in_viewer_dedupes_across_sessions(db, make_listing):
    listing = make_listing()
    views.record_view(db, _payload(listing.id, session="laptop"), viewer_id="u-1", now=NOW)
    phone = views.record_view(db, _payload(listing.id, session="phone"), viewer_id="u-1", now=NOW + timedelta(hours=1))
    assert phone.is_unique is False


def test_anonymous_views_dedupe_only_by_session(db, make_listing):
    listing = make_listing()
    views.record_view(db, _payload(listing.id, session="a"), now=NOW)
    other = views.record_view(db, _payload(listing.id, session="b"), now=NOW + timedelta(minutes=5))
    assert other.is_unique is True
    # a signed-in view does not make a later anonymous session look repeated
    views.record_view(db, _payload(listing.id, session="c"), viewer_id="u-9", now=NOW)
    anon = views.record_view(db, _payload(listing.id, session="d"), now=NOW + timedelta(minutes=5))
    assert anon.is_unique is True


def test_uniqueness_is_per_listing(db, make_listing):
    a, b = make_listing(), make_listing()
    views.record_view(db, _payload(a.id), now=NOW)
    assert views.record_view(db, _payload(b.id), now=NOW).is_unique is True


def test_each_call_records_a_row(db, make_listing):
    listing = make_listing()
    for minute in range(3):
        views.record_view(db, _payload(listing.id), now=NOW + timedelta(minutes=minute))
    assert db.query(ViewEvent).count() == 3


def test_record_view_derives_fields(db, make_listing):
    listing = make_listing()
    event = views.record_view(
        db,
        _payload(listing.id, user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Mobile"),
        now=NOW,
    )
    assert event.device_type == "mobile"
    assert event.source == "direct"
    assert event.engagement_score == 0
    assert event.bounced is True
    assert event.viewer_id is None


def test_record_view_unknown_listing(db, make_listing):
    with pytest.raises(NotFound):
        views.record_view(db, _payload(12345), now=NOW)
    deleted = make_listing(is_active=False)
    with pytest.raises(NotFound):
        views.record_view(db, _payload(deleted.id), now=NOW)


def test_update_interaction_targets_existing_row(db, make_listing):
    listing = make_listing()
    event = views.record_view(db, _payload(listing.id), now=NOW)
    updated = views.update_interaction(db, event.id, "phone_revealed")
    assert updated.id == event.id
    assert updated.phone_revealed is True
    assert updated.is_high_intent is True
    assert db.query(ViewEvent).count() == 1
    db.refresh(listing)
    assert listing.view_count == 1

    updated = views.update_interaction(db, event.id, "image_view")
    assert updated.image_views == 1
    assert updated.image_gallery_opened is True


def test_update_interaction_errors(db, make_listing):
    listing = make_listing()
    event = views.record_view(db, _payload(listing.id), now=NOW)
    with pytest.raises(InvalidQuery):
        views.update_interaction(db, event.id, "teleported")
    with pytest.raises(NotFound):
        views.update_interaction(db, event.id + 100, "favorited")


def test_end_view_session_closes_out_event(db, make_listing):
    listing = make_listing()
    event = views.record_view(db, _payload(listing.id), now=NOW)
    views.update_interaction(db, event.id, "inquiry_sent")
    closed = views.end_view_session(db, event.id, duration=400, scroll_depth=100, now=NOW + timedelta(minutes=7))
    assert closed.view_duration == 400
    assert closed.scroll_depth == 100
    assert closed.exited_at is not None
    assert closed.engagement_score == 65
    assert closed.bounced is False


def test_purge_expired_views(db, make_listing):
    listing = make_listing()
    views.record_view(db, _payload(listing.id, session="old"), now=NOW - timedelta(days=91))
    views.record_view(db, _payload(listing.id, session="new"), now=NOW - timedelta(days=5))
    assert views.purge_expired_views(db, retention_days=90, now=NOW) == 1
    assert [e.session_id for e in db.query(ViewEvent).all()] == ["new"]


@pytest.mark.parametrize("ua,expected", [
    (None, "unknown"),
    ("Mozilla/5.0 (iPad; CPU OS 16_0 like Mac OS X)", "tablet"),
    ("Mozilla/5.0 (Linux; Android 13; Pixel 7) Mobile Safari", "mobile"),
    ("Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "desktop"),
])
def test_classify_device(ua, expected):
    assert views.classify_device(ua) == expected
