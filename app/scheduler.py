# app/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .analytics import refresh_trend_scores
from .db import SessionLocal
from .errors import SearchUnavailable
from .utils import env_int, logger
from .views import purge_expired_views

TREND_REFRESH_MINUTES = env_int("TREND_REFRESH_MINUTES", 15)
PURGE_INTERVAL_HOURS = env_int("PURGE_INTERVAL_HOURS", 24)

scheduler = BackgroundScheduler()

def _run(job, name):
    db = SessionLocal()
    try:
        job(db)
    except SearchUnavailable:
        # already logged by the store layer; the next tick tries again
        logger.warning("Scheduled %s skipped: store unavailable", name)
    finally:
        db.close()

def refresh_trends_job():
    _run(refresh_trend_scores, "trend refresh")

def purge_views_job():
    _run(purge_expired_views, "view purge")

def start_scheduler():
    if scheduler.running:
        return scheduler
    scheduler.add_job(refresh_trends_job, 'interval', minutes=TREND_REFRESH_MINUTES, id="refresh_trends", replace_existing=True)
    scheduler.add_job(purge_views_job, 'interval', hours=PURGE_INTERVAL_HOURS, id="purge_views", replace_existing=True)
    scheduler.start()
    logger.info("Scheduler started")
    return scheduler

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
