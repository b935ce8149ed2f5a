# tests/conftest.py
import os
from datetime import datetime, timedelta, timezone

# point the app at an in-memory database before anything imports app.db
os.environ["POSTGRES_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SCHEDULER_ENABLED"] = "0"

import pytest
from fastapi.testclient import TestClient

from app import crud
from app.db import Base, engine, SessionLocal, get_db
from app.main import app as fastapi_app

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    fastapi_app.dependency_overrides[get_db] = lambda: db
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_listing(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "title": f"Listing {n}",
            "description": "",
            "listing_type": "flat",
            "price": 5000000,
            "area": 1000,
            "bedrooms": 2,
            "bathrooms": 2,
            "city": "Jaipur",
            "location": "Malviya Nagar",
            "status": "active",
            "is_active": True,
            # later listings are newer unless a test says otherwise
            "created_at": NOW - timedelta(days=100) + timedelta(hours=n),
        }
        data.update(overrides)
        return crud.create_listing(db, data)

    return _make
