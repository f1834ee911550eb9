from celery import Celery
from telecare.core.config import settings

EMAIL_QUEUE = "emails"

# Email is fire-and-forget, so only the broker is configured
celery_app = Celery(
    "telecare",
    broker=settings.REDIS_URL,
    include=["telecare.tasks.email_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,

    # A message is acknowledged only after the mail went out
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_ignore_result=True,
    worker_prefetch_multiplier=1,

    task_default_queue="default",
    task_routes={
        "telecare.tasks.email_tasks.*": {"queue": EMAIL_QUEUE},
    },

    broker_connection_retry_on_startup=True,
)
