import os
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from app.db import Base, engine
import app.models  # noqa: F401 ensure models are imported so tables are known
from app.api.routes import router as api_router
from app.errors import SearchError, SearchUnavailable
from app.scheduler import start_scheduler, stop_scheduler

# create FastAPI instance
app = FastAPI(title="Property Search & Engagement Analytics")
app.include_router(api_router)

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"


@app.exception_handler(SearchError)
async def handle_search_error(request: Request, exc: SearchError):
    if isinstance(exc, SearchUnavailable):
        # no internal detail leaves the service
        return JSONResponse(status_code=exc.status_code, content={"detail": "Search is temporarily unavailable"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "field": exc.field})


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    if SCHEDULER_ENABLED:
        start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    stop_scheduler()
