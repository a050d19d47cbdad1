from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.clock import ensure_aware


class LyricStatus(str, Enum):
    PENDING = "Sin letra"
    GENERATED = "enviarLetra"
    SENT = "enviada"


class LyricRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    purpose: Optional[str] = None
    include_name: Optional[Union[str, bool]] = Field(default=None, alias="includeName")
    anecdotes: Optional[str] = None
    lead_id: Optional[str] = Field(default=None, alias="leadId")
    lead_phone: Optional[str] = Field(default=None, alias="leadPhone")
    requester_name: Optional[str] = Field(default=None, alias="requesterName")
    status: Optional[str] = None
    letra: Optional[str] = None
    letra_generated_at: Optional[datetime] = Field(default=None, alias="letraGeneratedAt")

    @field_validator("letra_generated_at")
    @classmethod
    def _aware_generated_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(value) if value is not None else None
