import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.db.store import DocumentStore
from app.models.app_config import AppConfigModel, APP_CONFIG_ID
from app.models.lead import LeadModel
from app.models.lead_message import LeadMessage
from app.models.lyric_request import LyricRequestModel
from app.models.sequence import SequenceModel
from app.schemas.app_config import AppConfig
from app.schemas.lead import Lead
from app.schemas.lyric_request import LyricRequest
from app.schemas.message import MessageRecord
from app.schemas.sequence import SequenceDefinition

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

# Beanie bookkeeping that should not leak into templates or schemas.
_INTERNAL_FIELDS = {"revision_id"}


def _from_raw(schema: Type[SchemaT], raw: Dict[str, Any]) -> SchemaT:
    data = {key: value for key, value in raw.items() if key not in _INTERNAL_FIELDS}
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    return schema.model_validate(data)


class MongoStore(DocumentStore):
    """
    DocumentStore backed by the Beanie documents. Requires `init_db()` first.

    Reads go through the raw collections: documents written by the CRM frontend
    do not always fit the Beanie models, and each one is validated into its
    schema on its own so a single bad document is skipped instead of failing
    the whole query.
    """

    async def _read_many(self, document: Type, schema: Type[SchemaT], query: Dict[str, Any], label: str) -> List[SchemaT]:
        items = []
        async for raw in document.get_motor_collection().find(query):
            try:
                items.append(_from_raw(schema, raw))
            except ValidationError as e:
                logger.warning(f"[STORE] Skipping unreadable {label} {raw.get('_id')}: {e}")
        return items

    async def _read_one(self, document: Type, schema: Type[SchemaT], query: Dict[str, Any]) -> Optional[SchemaT]:
        raw = await document.get_motor_collection().find_one(query)
        return _from_raw(schema, raw) if raw else None

    # Leads

    async def find_leads_with_sequences(self) -> List[Lead]:
        return await self._read_many(LeadModel, Lead, {"secuenciasActivas": {"$ne": None}}, "lead")

    async def get_lead(self, lead_id: str) -> Optional[Lead]:
        return await self._read_one(LeadModel, Lead, {"_id": lead_id})

    async def find_lead_by_phone(self, phone: str) -> Optional[Lead]:
        return await self._read_one(LeadModel, Lead, {"telefono": phone})

    async def create_lead(self, fields: Dict[str, Any]) -> Lead:
        doc = LeadModel(**fields)
        await doc.insert()
        logger.info(f"[STORE] Lead {doc.id} created for {doc.telefono}")
        return Lead.model_validate(doc.model_dump(exclude=_INTERNAL_FIELDS))

    async def update_lead(self, lead_id: str, fields: Dict[str, Any]) -> None:
        await LeadModel.find_one(LeadModel.id == lead_id).update({"$set": fields})

    async def array_union(self, lead_id: str, values: Dict[str, List[Any]]) -> None:
        # $addToSet refuses to touch an explicit null, so reset those to an empty array first.
        for field in values:
            await LeadModel.find_one({"_id": lead_id, field: None}).update({"$set": {field: []}})
        await LeadModel.find_one(LeadModel.id == lead_id).update(
            {"$addToSet": {field: {"$each": items} for field, items in values.items()}}
        )

    async def increment(self, lead_id: str, field: str, amount: int = 1) -> None:
        await LeadModel.find_one(LeadModel.id == lead_id).update({"$inc": {field: amount}})

    async def add_message(self, lead_id: str, record: MessageRecord) -> None:
        await LeadMessage(lead_id=lead_id, **record.to_document()).insert()

    # Sequences

    async def find_sequence(self, trigger: str) -> Optional[SequenceDefinition]:
        return await self._read_one(SequenceModel, SequenceDefinition, {"trigger": trigger})

    # Lyric requests

    async def find_lyric_requests(self, status: str) -> List[LyricRequest]:
        return await self._read_many(LyricRequestModel, LyricRequest, {"status": status}, "lyric request")

    async def update_lyric_request(self, request_id: str, fields: Dict[str, Any]) -> None:
        await LyricRequestModel.find_one(LyricRequestModel.id == request_id).update({"$set": fields})

    # Settings

    async def get_app_config(self) -> AppConfig:
        config = await self._read_one(AppConfigModel, AppConfig, {"_id": APP_CONFIG_ID})
        return config or AppConfig()
