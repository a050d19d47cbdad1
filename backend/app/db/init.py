import logging
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from app.core.config import MONGO_URI, DB_NAME
from app.models.lead import LeadModel
from app.models.lead_message import LeadMessage
from app.models.sequence import SequenceModel
from app.models.lyric_request import LyricRequestModel
from app.models.app_config import AppConfigModel

logger = logging.getLogger(__name__)

DOCUMENT_MODELS = [LeadModel, LeadMessage, SequenceModel, LyricRequestModel, AppConfigModel]


async def init_db():
    try:
        logger.info("Initializing database connection...")
        client = AsyncIOMotorClient(MONGO_URI, serverSelectionTimeoutMS=10000)

        # Test the connection
        await client.admin.command('ping')
        logger.info("MongoDB connection test successful.")

        await init_beanie(database=client[DB_NAME], document_models=DOCUMENT_MODELS)
        logger.info("MongoDB connection established and Beanie initialized.")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise
