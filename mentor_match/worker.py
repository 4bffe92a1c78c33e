"""
Celery worker for the matching engine.

Start worker:    celery -A mentor_match.worker worker --loglevel=info
Start beat:      celery -A mentor_match.worker beat --loglevel=info
Start both:      celery -A mentor_match.worker worker --beat --loglevel=info
"""
from celery import Celery

from mentor_match.core.config import settings
from mentor_match.core.sentry import init_sentry

init_sentry(settings.SENTRY_DSN, settings.SENTRY_ENVIRONMENT, settings.APP_VERSION)

celery_app = Celery(
    "mentor_match_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.REDIS_URL,
    include=[
        "mentor_match.modules.matching.tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,  # 24h
)

celery_app.conf.beat_schedule = {
    # ── Matching ────────────────────────────────────────────────────────────
    "sweep-expired-matches": {
        "task": "mentor_match.modules.matching.tasks.sweep_expired_matches",
        "schedule": settings.MATCHING_SWEEP_INTERVAL_SECONDS,  # default every 5 min
    },
}
