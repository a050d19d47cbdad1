"""Shared test fixtures."""
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from app.db.store import DocumentStore
from app.schemas.app_config import AppConfig
from app.schemas.lead import Lead
from app.schemas.lyric_request import LyricRequest
from app.schemas.message import MessageRecord
from app.schemas.sequence import SequenceDefinition
from app.services.whatsapp import ConnectionStatus


class InMemoryStore(DocumentStore):
    """DocumentStore over plain dicts keyed by stored (Spanish/camelCase) field names."""

    def __init__(self):
        self.leads: Dict[str, dict] = {}
        self.sequences: Dict[str, dict] = {}
        self.lyric_requests: Dict[str, dict] = {}
        self.messages: List[Tuple[str, MessageRecord]] = []
        self.app_config: dict = {}
        self.lead_updates: List[Tuple[str, dict]] = []
        self.sequence_lookups: List[str] = []

    # Seeding helpers

    def add_lead(self, lead_id: str = None, **fields) -> str:
        lead_id = lead_id or uuid.uuid4().hex
        doc = {"telefono": "5215512345678", "nombre": "Ana María", "etiquetas": [], "unreadCount": 0}
        doc.update(fields)
        self.leads[lead_id] = doc
        return lead_id

    def add_sequence(self, trigger: str, messages: List[dict]):
        self.sequences[trigger] = {"trigger": trigger, "messages": messages}

    def add_lyric_request(self, request_id: str = None, **fields) -> str:
        request_id = request_id or uuid.uuid4().hex
        self.lyric_requests[request_id] = dict(fields)
        return request_id

    def messages_for(self, lead_id: str) -> List[MessageRecord]:
        return [record for owner, record in self.messages if owner == lead_id]

    # DocumentStore

    async def find_leads_with_sequences(self) -> List[Lead]:
        return [
            Lead.model_validate({"id": lead_id, **copy.deepcopy(doc)})
            for lead_id, doc in self.leads.items()
            if doc.get("secuenciasActivas") is not None
        ]

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        doc = self.leads.get(lead_id)
        return Lead.model_validate({"id": lead_id, **copy.deepcopy(doc)}) if doc is not None else None

    async def find_lead_by_phone(self, phone: str) -> Optional[Lead]:
        for lead_id, doc in self.leads.items():
            if doc.get("telefono") == phone:
                return await self.get_lead(lead_id)
        return None

    async def create_lead(self, fields: Dict[str, Any]) -> Lead:
        lead_id = uuid.uuid4().hex
        self.leads[lead_id] = copy.deepcopy(fields)
        return await self.get_lead(lead_id)

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        self.lead_updates.append((lead_id, copy.deepcopy(fields)))
        self.leads.setdefault(lead_id, {}).update(copy.deepcopy(fields))

    async def array_union(self, lead_id: str, values: Dict[str, List[Any]]) -> None:
        doc = self.leads.setdefault(lead_id, {})
        for field, items in values.items():
            current = doc.get(field) or []
            for item in items:
                if item not in current:
                    current.append(copy.deepcopy(item))
            doc[field] = current

    async def increment(self, lead_id: str, field: str, amount: int = 1) -> None:
        doc = self.leads.setdefault(lead_id, {})
        doc[field] = doc.get(field, 0) + amount

    async def add_message(self, lead_id: str, record: MessageRecord) -> None:
        self.messages.append((lead_id, record.model_copy()))

    async def find_sequence(self, trigger: str) -> Optional[SequenceDefinition]:
        self.sequence_lookups.append(trigger)
        doc = self.sequences.get(trigger)
        return SequenceDefinition.model_validate(copy.deepcopy(doc)) if doc else None

    async def find_lyric_requests(self, status: str) -> List[LyricRequest]:
        return [
            LyricRequest.model_validate({"id": request_id, **copy.deepcopy(doc)})
            for request_id, doc in self.lyric_requests.items()
            if doc.get("status") == status
        ]

    async def update_lyric_request(self, request_id: str, fields: Dict[str, Any]) -> None:
        self.lyric_requests.setdefault(request_id, {}).update(copy.deepcopy(fields))

    async def get_app_config(self) -> AppConfig:
        return AppConfig.model_validate(self.app_config)


class RecordingHandle:
    """Channel handle that records sends; `fail_on` makes chosen calls raise."""

    def __init__(self):
        self.sent: List[Tuple[str, dict]] = []
        self.errors: Dict[int, Exception] = {}
        self.fail_always: Optional[Exception] = None
        self._calls = 0

    def fail_on(self, call_number: int, error: Exception):
        self.errors[call_number] = error

    async def send(self, jid: str, payload: dict) -> None:
        self._calls += 1
        if self.fail_always is not None:
            raise self.fail_always
        if self._calls in self.errors:
            raise self.errors[self._calls]
        self.sent.append((jid, payload))


class FakeConnection:
    """Stands in for ConnectionManager; `handle=None` simulates a closed session."""

    def __init__(self, handle: Optional[RecordingHandle]):
        self.handle = handle
        self.status = ConnectionStatus.CONNECTED if handle else ConnectionStatus.DISCONNECTED
        self.latest_qr = None
        self.session_phone = "5215500000000" if handle else None

    def current_handle(self):
        return self.handle


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def now():
    return datetime(2025, 5, 1, 18, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return FrozenClock(now)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def handle():
    return RecordingHandle()


@pytest.fixture
def connection(handle):
    return FakeConnection(handle)


@pytest.fixture
def make_lead():
    """Factory fixture: builds a Lead schema with sensible defaults."""
    def _make(**overrides):
        data = {
            "id": "lead-1",
            "telefono": "5215512345678",
            "nombre": "Ana María",
            "etiquetas": [],
        }
        data.update(overrides)
        return Lead.model_validate(data)
    return _make


@pytest.fixture
def closed_connection():
    """A connection whose WhatsApp session is not open."""
    return FakeConnection(None)
