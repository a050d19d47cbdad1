import logging
from celery.schedules import crontab
from app.celery_config import celery_app
from app.tasks import process_sequences_task, generate_lyrics_task, send_lyrics_task

logger = logging.getLogger(__name__)

# A tick still queued when the next one is due is dropped; the next one covers it.
TICK_EXPIRES_SECONDS = 55


# Configure periodic tasks
@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    logger.info("Setting up periodic tasks...")

    sender.add_periodic_task(
        crontab(minute="*"),  # Every minute
        process_sequences_task.s(),
        name="process-sequences",
        expires=TICK_EXPIRES_SECONDS
    )

    sender.add_periodic_task(
        crontab(minute="*"),
        generate_lyrics_task.s(),
        name="generate-lyrics",
        expires=TICK_EXPIRES_SECONDS
    )

    sender.add_periodic_task(
        crontab(minute="*"),
        send_lyrics_task.s(),
        name="send-lyrics",
        expires=TICK_EXPIRES_SECONDS
    )

    logger.info("Periodic tasks configured successfully")
