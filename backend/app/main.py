import asyncio
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.db.init import init_db
from app.api.whatsapp import router as whatsapp_router
from app.api.leads import router as leads_router
from app.services.whatsapp import ConnectionManager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _kick_lyric_passes():
    """Queue one generate and one send pass right away instead of waiting for beat."""
    from app.tasks import generate_lyrics_task, send_lyrics_task
    try:
        generate_lyrics_task.delay()
        send_lyrics_task.delay()
        logger.info("Initial lyric passes queued")
    except Exception as e:
        logger.error(f"Could not queue initial lyric passes: {e}", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=== APPLICATION STARTUP ===")
    logger.info("Initializing database...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise

    connection = ConnectionManager()
    app.state.connection = connection
    watcher = asyncio.create_task(connection.run())
    logger.info("WhatsApp connection watcher started")

    _kick_lyric_passes()
    logger.info("Celery worker and beat should be running in separate processes.")
    logger.info("=== APPLICATION STARTUP COMPLETE ===")

    yield

    logger.info("=== APPLICATION SHUTDOWN ===")
    connection.stop()
    watcher.cancel()
    try:
        await watcher
    except asyncio.CancelledError:
        pass
    await connection.close()
    logger.info("=== APPLICATION SHUTDOWN COMPLETE ===")


app = FastAPI(lifespan=lifespan)

# The CRM frontend is served from a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(whatsapp_router, prefix="/api", tags=["whatsapp"])
app.include_router(leads_router, prefix="/api", tags=["leads"])


@app.get("/")
async def root():
    return {"message": "WhatsApp CRM scheduler API is running"}


@app.get("/health")
async def health():
    connection = getattr(app.state, "connection", None)
    return {
        "status": "ok",
        "whatsapp": connection.status.value if connection else "not_started",
    }
