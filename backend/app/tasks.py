import asyncio
import logging

from app.celery_config import celery_app
from app.db.init import init_db
from app.db.mongo_store import MongoStore
from app.services.dispatcher import MessageDispatcher
from app.services.lyric_generator import LyricGenerator
from app.services.lyric_pipeline import LyricPipeline
from app.services.pass_lock import run_once
from app.services.sequence_engine import SequenceEngine
from app.services.whatsapp import ConnectionManager

logger = logging.getLogger(__name__)


def _run_pass(pass_name: str, coro_factory):
    """Run one scheduled pass under its run-once lease."""
    with run_once(pass_name) as acquired:
        if not acquired:
            return {"status": "skipped", "reason": "previous run still active"}
        try:
            stats = asyncio.run(coro_factory())
            return {"status": "completed", **stats}
        except Exception as e:
            logger.error(f"=== {pass_name.upper()} TASK FAILED ===")
            logger.error(f"Error: {e}", exc_info=True)
            raise


@celery_app.task(name="app.tasks.process_sequences_task", ignore_result=True)
def process_sequences_task():
    """
    Celery task that advances every lead's active sequences by one tick.
    Runs every minute.
    """
    async def process():
        await init_db()
        async with ConnectionManager() as connection:
            engine = SequenceEngine(MongoStore(), MessageDispatcher(connection))
            return await engine.tick()

    return _run_pass("process-sequences", process)


@celery_app.task(name="app.tasks.generate_lyrics_task", ignore_result=True)
def generate_lyrics_task():
    """
    Celery task that writes lyrics for every request still without one.
    """
    async def generate():
        await init_db()
        pipeline = LyricPipeline(MongoStore(), generator=LyricGenerator())
        return await pipeline.generate_tick()

    return _run_pass("generate-lyrics", generate)


@celery_app.task(name="app.tasks.send_lyrics_task", ignore_result=True)
def send_lyrics_task():
    """
    Celery task that delivers generated lyrics once their review window has passed.
    """
    async def send():
        await init_db()
        async with ConnectionManager() as connection:
            pipeline = LyricPipeline(MongoStore(), connection=connection)
            return await pipeline.send_tick()

    return _run_pass("send-lyrics", send)
