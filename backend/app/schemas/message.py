from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.utils.clock import utcnow


class Sender(str, Enum):
    LEAD = "lead"
    BUSINESS = "business"
    SYSTEM = "system"


class MessageRecord(BaseModel):
    """One append-only entry of a lead's conversation log."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    content: Optional[str] = None
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    sender: Sender
    timestamp: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
