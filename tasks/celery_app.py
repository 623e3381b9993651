"""
tasks/celery_app.py
Celery application instance shared across all task modules.

Workers are started with:
    celery -A tasks.celery_app worker --loglevel=info --concurrency=2

Beat scheduler (periodic tasks):
    celery -A tasks.celery_app beat --loglevel=info
"""

from celery import Celery

from config.settings import settings

celery_app = Celery(
    "cooliemate",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "tasks.booking_tasks",
    ],
)

# ── Configuration ─────────────────────────────────────────────────────────────

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Kolkata",
    enable_utc=True,

    # Reliability: acknowledge task AFTER execution, not before
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result expiry: keep task results for 1 hour
    result_expires=3600,

    task_routes={
        "tasks.booking_tasks.*": {"queue": "default"},
    },

    worker_prefetch_multiplier=1,
)

# ── Periodic Tasks (Beat Schedule) ────────────────────────────────────────────

celery_app.conf.beat_schedule = {
    # Ask passengers to rate trips that finished a while ago
    "send-review-requests": {
        "task": "tasks.booking_tasks.send_review_requests",
        "schedule": 900,  # every 15 minutes
    },

    # Porters who closed the dashboard without going offline
    "mark-idle-porters-offline": {
        "task": "tasks.booking_tasks.mark_idle_porters_offline",
        "schedule": 300,  # every 5 minutes
    },
}
