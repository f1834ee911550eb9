from telecare.core.celery_app import celery_app
from telecare.infrastructure.notifications import EmailDeliveryError
from loguru import logger
import asyncio


@celery_app.task(
    name="telecare.tasks.email_tasks.send_text_email_task",
    autoretry_for=(EmailDeliveryError,),
    retry_backoff=True,
    max_retries=3
)
def send_text_email_task(recipient: str, subject: str, text: str):
    """
    Celery task to send a plain-text email.

    Delivery failures are retried with exponential backoff.
    """
    from telecare.api.deps import get_email_sender

    logger.info(f"Background task: Sending '{subject}' to {recipient}")
    # The sender is async; Celery workers run tasks synchronously
    asyncio.run(get_email_sender().send_text(recipient, subject, text))
    return True
