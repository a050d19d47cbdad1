from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LEAD_TRIGGER = "NuevoLead"


class AppConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    auto_save_leads: bool = Field(default=False, alias="autoSaveLeads")
    default_trigger: Optional[str] = Field(default=None, alias="defaultTrigger")

    @property
    def new_lead_trigger(self) -> str:
        return self.default_trigger or DEFAULT_LEAD_TRIGGER
