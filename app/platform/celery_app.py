from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from app.platform.config import settings


def create_celery_app() -> Celery:
    """
    Create and configure the Celery application.

    Queue Structure:
    - analysis.worker: one task per analysis run (one headless browser each)
    - celery: periodic maintenance tasks
    """
    celery_app = Celery(
        "aimpact_scanner",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
    )

    celery_app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        result_serializer=settings.CELERY_RESULT_SERIALIZER,
        accept_content=[settings.CELERY_ACCEPT_CONTENT],
        timezone="UTC",
        enable_utc=True,
        task_track_started=settings.CELERY_TASK_TRACK_STARTED,
        task_time_limit=settings.CELERY_TASK_TIME_LIMIT,

        result_expires=3600,

        task_routes={
            "app.features.analysis.workers.tasks.run_analysis_task": {"queue": "analysis.worker"},
            "app.features.analysis.workers.periodic_tasks.reset_monthly_quotas": {"queue": "celery"},
        },

        task_queues=(
            Queue("default"),
            Queue("celery"),
            Queue("analysis.worker"),
        ),

        task_default_queue="default",

        # One browser per worker process at a time
        worker_prefetch_multiplier=1,

        task_acks_late=True,
        task_reject_on_worker_lost=True,

        beat_schedule={
            "reset-monthly-quotas": {
                "task": "app.features.analysis.workers.periodic_tasks.reset_monthly_quotas",
                "schedule": crontab(minute=5, hour=0, day_of_month=1),
            },
        },
    )

    celery_app.autodiscover_tasks(["app.features.analysis.workers"])

    return celery_app


celery_app = create_celery_app()
