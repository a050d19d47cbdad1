from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InboundEvent(BaseModel):
    """Message event pushed by the WhatsApp gateway."""

    model_config = ConfigDict(populate_by_name=True)

    from_address: Optional[str] = Field(default=None, alias="fromAddress")
    is_group: bool = Field(default=False, alias="isGroup")
    from_me: bool = Field(default=False, alias="fromMe")
    push_name: Optional[str] = Field(default=None, alias="pushName")
    text: Optional[str] = None
    media_type: Optional[str] = Field(default=None, alias="mediaType")
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: str = Field(..., alias="leadId")
    message: str = Field(..., min_length=1)


class MarkReadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lead_id: str = Field(..., alias="leadId")


class DispatchStepRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    content: str = Field(default="", alias="contenido")
