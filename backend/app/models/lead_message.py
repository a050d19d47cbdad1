from beanie import Document
from pydantic import Field
from datetime import datetime, timezone
from typing import Literal, Optional


class LeadMessage(Document):
    """
    A single entry in a lead's conversation log. Written once, never updated.
    """
    lead_id: str = Field(..., index=True)
    content: Optional[str] = None
    mediaType: Optional[str] = None
    mediaUrl: Optional[str] = None
    sender: Literal["lead", "business", "system"]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "lead_messages"
