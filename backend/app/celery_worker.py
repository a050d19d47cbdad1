import asyncio
import logging
import sys
import time
from celery.signals import worker_process_init
from app.celery_config import celery_app
from app.core.config import ConfigurationError, require_openai_key
from app.db.init import init_db
import app.scheduler  # noqa: F401  registers the periodic passes

# This file is the entry point for the Celery worker and beat:
#   celery -A app.celery_worker.celery worker --loglevel=info
#   celery -A app.celery_worker.celery beat --loglevel=info

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@worker_process_init.connect
def on_worker_init(**kwargs):
    """
    Check required settings and the database when a worker process starts.
    A worker that cannot run the passes exits instead of failing every minute.
    """
    logger.info("Celery worker process initializing...")
    try:
        require_openai_key()
    except ConfigurationError as e:
        logger.error(f"Worker configuration invalid: {e}")
        sys.exit(1)

    try:
        asyncio.run(init_db())
        logger.info("Database connection verified for Celery worker.")
    except Exception as e:
        logger.error(f"Failed to initialize database for Celery worker: {e}", exc_info=True)
        # Retry initialization after a delay
        time.sleep(5)
        try:
            asyncio.run(init_db())
            logger.info("Database connection verified for Celery worker (retry successful).")
        except Exception as retry_error:
            logger.error(f"Failed to initialize database for Celery worker (retry failed): {retry_error}", exc_info=True)
            sys.exit(1)


# The 'celery' variable is automatically detected by Celery
# as long as it's an instance of the Celery class.
celery = celery_app
