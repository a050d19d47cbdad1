from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.utils.clock import ensure_aware


class Enrollment(BaseModel):
    """A lead's live progress marker through one sequence."""

    # Keys the CRM adds to an entry are carried through when it is rewritten.
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    trigger: str = Field(..., min_length=1)
    start_time: datetime = Field(..., alias="startTime")
    index: int = Field(default=0, ge=0)
    completed: bool = False

    @field_validator("start_time")
    @classmethod
    def _aware_start_time(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class Lead(BaseModel):
    # Unknown attributes are kept so templates can reference custom fields.
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    phone: Optional[str] = Field(default=None, alias="telefono")
    name: Optional[str] = Field(default=None, alias="nombre")
    created_at: Optional[datetime] = Field(default=None, alias="fecha_creacion")
    state: Optional[str] = Field(default="nuevo", alias="estado")
    labels: List[str] = Field(default_factory=list, alias="etiquetas")
    unread_count: int = Field(default=0, alias="unreadCount")
    last_message_at: Optional[datetime] = Field(default=None, alias="lastMessageAt")
    source: Optional[str] = None
    # Left loosely typed: entries are validated one by one by the sequence engine.
    active_sequences: Optional[Any] = Field(default=None, alias="secuenciasActivas")

    @field_validator("labels", mode="before")
    @classmethod
    def _null_labels(cls, value):
        return [] if value is None else value

    @field_validator("unread_count", mode="before")
    @classmethod
    def _null_unread_count(cls, value):
        return 0 if value is None else value

    def template_fields(self) -> Dict[str, Any]:
        """Attributes addressable from `{{field}}` placeholders, by stored and Python name."""
        fields = self.model_dump(by_alias=False)
        fields.update(self.model_dump(by_alias=True))
        return fields
