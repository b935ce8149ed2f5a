# tests/test_crud.py
import threading
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app import analytics, crud, views
from app.db import Base
from app.query import compile_search
from app.schemas import ViewEventIn
from tests.conftest import NOW


def test_create_and_get(db, make_listing):
    obj = make_listing(title="Test Flat", price=1000, amenities=["Parking", "Lift", "parking"])
    got = crud.get_listing(db, obj.id)
    assert got is not None
    assert got.title == "Test Flat"
    assert got.amenities == ["lift", "parking"]
    assert got.view_count == 0 and got.unique_views == 0


def test_increment_view_counters(db, make_listing):
    obj = make_listing()
    crud.increment_view_counters(db, obj.id, unique=True)
    crud.increment_view_counters(db, obj.id, unique=False)
    crud.increment_view_counters(db, obj.id, unique=False)
    db.commit()
    db.refresh(obj)
    assert obj.view_count == 3
    assert obj.unique_views == 1


def test_find_matching_counts_before_paging(db, make_listing):
    for _ in range(5):
        make_listing()
    conds = crud.listing_conditions(compile_search({}))
    rows, total = crud.find_matching(db, conds, order_by=(), skip=3, limit=10)
    assert total == 5
    assert len(rows) == 2


def test_hidden_listings_are_not_visible(db, make_listing):
    make_listing(status="sold")
    make_listing(is_active=False)
    shown = make_listing()
    rows, total = crud.find_matching(db, crud.listing_conditions(compile_search({})), order_by=())
    assert total == 1
    assert rows[0].id == shown.id
    assert crud.get_visible_listing(db, shown.id) is not None


def test_location_match_escapes_wildcards(db, make_listing):
    make_listing(location="Sector 100_A")
    make_listing(location="Sector 1000A")
    conds = crud.listing_conditions(compile_search({"location": "100_a"}))
    rows, total = crud.find_matching(db, conds, order_by=())
    assert total == 1
    assert rows[0].location == "Sector 100_A"


def test_store_trend_scores_resets_missing(db, make_listing):
    a, b = make_listing(), make_listing()
    crud.store_trend_scores(db, {a.id: 7, b.id: 3})
    crud.store_trend_scores(db, {b.id: 4})
    db.refresh(a)
    db.refresh(b)
    assert a.trend_score == 0
    assert b.trend_score == 4


def test_counter_and_trend_writes_keep_updated_at(db, make_listing):
    viewed = make_listing(updated_at=NOW - timedelta(days=30))
    idle = make_listing(updated_at=NOW - timedelta(days=30))
    viewed_before, idle_before = viewed.updated_at, idle.updated_at

    views.record_view(db, ViewEventIn(listing_id=viewed.id, session_id="s"))
    analytics.refresh_trend_scores(db)
    db.refresh(viewed)
    db.refresh(idle)
    assert viewed.view_count == 1
    assert viewed.trend_score == 3
    assert viewed.updated_at == viewed_before
    assert idle.updated_at == idle_before


def test_concurrent_increments_are_not_lost(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'counters.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False)
    with Session() as setup:
        listing_id = crud.create_listing(setup, {"title": "Busy flat", "listing_type": "flat", "price": 1}).id

    workers, per_worker = 8, 25
    start = threading.Barrier(workers)
    errors = []

    def recorder(n):
        start.wait()
        try:
            with Session() as session:
                for i in range(per_worker):
                    crud.increment_view_counters(session, listing_id, unique=(i == 0))
                    session.commit()
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=recorder, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    try:
        assert errors == []
        with Session() as check:
            obj = crud.get_listing(check, listing_id)
            assert obj.view_count == workers * per_worker
            assert obj.unique_views == workers
    finally:
        engine.dispose()
