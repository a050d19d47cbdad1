from beanie import Document
from pydantic import Field
from typing import Optional

APP_CONFIG_ID = "appConfig"


class AppConfigModel(Document):
    id: str = Field(default=APP_CONFIG_ID)
    autoSaveLeads: bool = False
    defaultTrigger: Optional[str] = None

    class Settings:
        name = "config"
