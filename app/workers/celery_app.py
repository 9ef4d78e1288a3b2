"""
Celery application instance and configuration.
"""

from celery import Celery

from app.core.config import settings

# Create Celery application
celery_app = Celery(
    "tubebrief",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.summary_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    result_expires=3600,  # 1 hour
)

# Task routing
celery_app.conf.task_routes = {
    'summaries.*': {'queue': 'summaries'},
}
