from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StepType(str, Enum):
    TEXT = "text"
    FORM = "form"
    AUDIO = "audio"
    IMAGE = "image"
    VIDEO = "video"


# Sequences authored in the CRM frontend use the Spanish names.
STEP_TYPE_SYNONYMS = {
    "texto": StepType.TEXT,
    "formulario": StepType.FORM,
    "imagen": StepType.IMAGE,
}


def resolve_step_type(raw) -> Optional[StepType]:
    if not isinstance(raw, str):
        return None
    key = raw.strip().lower()
    if key in STEP_TYPE_SYNONYMS:
        return STEP_TYPE_SYNONYMS[key]
    try:
        return StepType(key)
    except ValueError:
        return None


class Step(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    # Raw value is kept so unknown types survive loading and are reported at dispatch.
    type: Optional[str] = None
    content: str = Field(default="", alias="contenido")
    delay_minutes: float = Field(default=0, alias="delay")

    @field_validator("content", mode="before")
    @classmethod
    def _content_default(cls, value):
        return "" if value is None else value

    @field_validator("delay_minutes", mode="before")
    @classmethod
    def _delay_default(cls, value):
        return 0 if value is None else value

    @property
    def step_type(self) -> Optional[StepType]:
        return resolve_step_type(self.type)


class SequenceDefinition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    trigger: str
    steps: List[Step] = Field(default_factory=list, alias="messages")
