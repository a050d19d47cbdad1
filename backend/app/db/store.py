"""
Document store interface used by the scheduler passes and the message handlers.

The passes only ever talk to this interface, so the Mongo implementation can be
swapped (or faked in tests) without touching the engines. In particular
`find_leads_with_sequences` is the due-item discovery hook: the Mongo version is
a full scan, an indexed strategy can replace it as long as it returns every
lead with an active enrollment.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.schemas.app_config import AppConfig
from app.schemas.lead import Lead
from app.schemas.lyric_request import LyricRequest
from app.schemas.message import MessageRecord
from app.schemas.sequence import SequenceDefinition


class DocumentStore(ABC):

    # Leads

    @abstractmethod
    async def find_leads_with_sequences(self) -> List[Lead]:
        """Every lead whose `secuenciasActivas` is not null."""

    @abstractmethod
    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        ...

    @abstractmethod
    async def find_lead_by_phone(self, phone: str) -> Optional[Lead]:
        ...

    @abstractmethod
    async def create_lead(self, fields: Dict[str, Any]) -> Lead:
        """Insert a lead from stored field names and return it with its new id."""

    @abstractmethod
    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def array_union(self, lead_id: str, values: Dict[str, List[Any]]) -> None:
        """Atomically add each value to its array field, ignoring values already present."""

    @abstractmethod
    async def increment(self, lead_id: str, field: str, amount: int = 1) -> None:
        ...

    @abstractmethod
    async def add_message(self, lead_id: str, record: MessageRecord) -> None:
        ...

    # Sequences

    @abstractmethod
    async def find_sequence(self, trigger: str) -> Optional[SequenceDefinition]:
        ...

    # Lyric requests

    @abstractmethod
    async def find_lyric_requests(self, status: str) -> List[LyricRequest]:
        ...

    @abstractmethod
    async def update_lyric_request(self, request_id: str, fields: Dict[str, Any]) -> None:
        ...

    # Settings

    @abstractmethod
    async def get_app_config(self) -> AppConfig:
        ...
