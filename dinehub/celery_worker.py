"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend, plus the
beat schedule for periodic maintenance.

Run:
    celery -A dinehub.celery_worker worker --loglevel=info
    celery -A dinehub.celery_worker beat --loglevel=info
"""

from celery import Celery
from celery.schedules import crontab

from dinehub.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'dinehub_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['dinehub.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,  # Process one task at a time
    worker_concurrency=4,

    # Result settings
    result_expires=3600,

    # Task execution settings
    task_acks_late=True,  # Acknowledge task after completion
    task_reject_on_worker_lost=True,  # Requeue task if worker dies

    broker_connection_retry_on_startup=True,

    # Periodic tasks
    beat_schedule={
        'purge-expired-sessions': {
            'task': 'dinehub.tasks.purge_expired_sessions',
            'schedule': crontab(hour=0, minute=0),  # daily, midnight UTC
        },
    },
)


if __name__ == '__main__':
    celery_app.start()
