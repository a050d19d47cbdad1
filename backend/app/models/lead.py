import uuid
from beanie import Document
from pydantic import ConfigDict, Field
from datetime import datetime, timezone
from typing import Any, List, Optional


class LeadModel(Document):
    # Field names follow the documents already written by the CRM frontend.
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    telefono: Optional[str] = Field(default=None, example="5215512345678")
    nombre: Optional[str] = Field(default=None, example="Ana María")
    source: Optional[str] = Field(default=None, example="WhatsApp")
    fecha_creacion: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    estado: str = Field(default="nuevo", example="nuevo")
    etiquetas: List[str] = Field(default_factory=list)
    unreadCount: int = Field(default=0)
    lastMessageAt: Optional[datetime] = None
    secuenciasActivas: Optional[Any] = None  # list of {trigger, startTime, index, completed}

    class Settings:
        name = "leads"
