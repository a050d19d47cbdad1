from celery import Celery
from app.core.config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, PASS_LOCK_TIMEOUT_SECONDS

celery_app = Celery(
    "crm_scheduler_tasks",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
    include=["app.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # Passes are fire-and-forget; their stats go to the log.
    task_ignore_result=True,
    task_store_errors_even_if_ignored=True,
    # A pass must end before its run-once lease can expire under it.
    task_soft_time_limit=PASS_LOCK_TIMEOUT_SECONDS - 30,
    task_time_limit=PASS_LOCK_TIMEOUT_SECONDS,
    # One pass at a time per process; beat fires all three each minute.
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
    result_expires=3600,  # 1 hour
    # Connection error handling
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,
)
