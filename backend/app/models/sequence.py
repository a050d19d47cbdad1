from beanie import Document
from pydantic import Field
from typing import List


class SequenceModel(Document):
    trigger: str = Field(..., example="NuevoLead")
    messages: List[dict] = Field(default_factory=list)  # {type, contenido, delay}

    class Settings:
        name = "secuencias"

    class Config:
        json_schema_extra = {
            "example": {
                "trigger": "NuevoLead",
                "messages": [
                    {"type": "texto", "contenido": "Hola {{nombre}}, gracias por escribirnos", "delay": 0},
                    {"type": "video", "contenido": "https://example.com/intro.mp4", "delay": 60},
                ],
            }
        }
