import uuid
from beanie import Document
from pydantic import ConfigDict, Field
from datetime import datetime
from typing import Optional, Union


class LyricRequestModel(Document):
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    purpose: Optional[str] = None
    includeName: Optional[Union[str, bool]] = None
    anecdotes: Optional[str] = None
    leadId: Optional[str] = None
    leadPhone: Optional[str] = None
    requesterName: Optional[str] = None
    status: str = Field(default="Sin letra", index=True)
    letra: Optional[str] = None
    letraGeneratedAt: Optional[datetime] = None

    class Settings:
        name = "letras"
