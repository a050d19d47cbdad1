from fastapi import HTTPException, Request

from app.db.mongo_store import MongoStore
from app.db.store import DocumentStore
from app.services.whatsapp import ConnectionManager


def get_store() -> DocumentStore:
    return MongoStore()


def get_connection(request: Request) -> ConnectionManager:
    connection = getattr(request.app.state, "connection", None)
    if connection is None:
        raise HTTPException(status_code=503, detail="WhatsApp connection not initialized")
    return connection
