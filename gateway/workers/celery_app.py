"""Celery application configuration."""

from celery import Celery

from gateway.core.config import settings

# Create Celery app
celery_app = Celery(
    "gateway",
    broker=str(settings.redis_url),
    backend=str(settings.redis_url),
    include=[
        "gateway.workers.tasks.embed",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task safety limits
    task_time_limit=120,
    task_soft_time_limit=90,
    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,
    # Default queue name (must match worker -Q flag)
    task_default_queue="default",
    task_routes={
        "tasks.embed.*": {"queue": "embed"},
    },
)


# Task base class with common error handling
class BaseTask(celery_app.Task):  # type: ignore[misc, name-defined]
    """Base task class with error handling."""

    abstract = True
    autoretry_for = (Exception,)
    retry_backoff = True
    retry_backoff_max = 600  # Max 10 minutes between retries
    retry_jitter = True
    max_retries = 3
