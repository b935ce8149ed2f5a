# app/db.py
"""Database engine and session utilities.

Centralized SQLAlchemy engine creation and the session dependency used by the
FastAPI routes. PostgreSQL is the production store; `sqlite://` URLs are
accepted for local runs and the test suite.
"""
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

load_dotenv()

DATABASE_URL = os.getenv("POSTGRES_URL")
if not DATABASE_URL:
    raise RuntimeError("POSTGRES_URL not set")

# Normalize SQLAlchemy URL scheme (SQLAlchemy 2.x doesn't accept 'postgres://')
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)

IS_SQLITE = DATABASE_URL.startswith("sqlite")

def _engine_kwargs():
    if IS_SQLITE:
        kwargs = {"connect_args": {"check_same_thread": False}}
        # in-memory databases live on a single connection
        if ":memory:" in DATABASE_URL or DATABASE_URL.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    kwargs = {
        # tuned pool settings for cloud DB
        "pool_size": int(os.getenv("DB_POOL_SIZE", 5)),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 10)),
        "pool_pre_ping": True,
    }
    # abort long-running store calls server-side instead of hanging the request
    timeout_ms = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", 5000))
    if timeout_ms > 0:
        kwargs["connect_args"] = {"options": f"-c statement_timeout={timeout_ms}"}
    return kwargs

engine = create_engine(DATABASE_URL, **_engine_kwargs())

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
