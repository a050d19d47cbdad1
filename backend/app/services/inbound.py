import logging
from datetime import datetime
from typing import Callable, Optional

from app.db.store import DocumentStore
from app.schemas.app_config import AppConfig
from app.schemas.lead import Enrollment, Lead
from app.schemas.message import MessageRecord, Sender
from app.schemas.whatsapp import InboundEvent
from app.utils.clock import utcnow
from app.utils.phone import is_group_jid, phone_from_jid

logger = logging.getLogger(__name__)


class InboundMessageHandler:
    """
    Stores messages arriving from WhatsApp and keeps the lead's counters current.

    Unknown numbers become leads only when `autoSaveLeads` is on; new leads are
    labelled with the default trigger and enrolled in its sequence if one exists.
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self._clock = clock

    async def handle(self, event: InboundEvent) -> Optional[str]:
        """Returns the id of the lead the message was stored under, or None when ignored."""
        jid = event.from_address
        if not jid:
            logger.debug("[INBOUND] Event without sender address ignored")
            return None
        if event.is_group or is_group_jid(jid):
            return None

        phone = phone_from_jid(jid)
        sender = Sender.BUSINESS if event.from_me else Sender.LEAD
        now = self._clock()

        lead = await self.store.find_lead_by_phone(phone)
        if lead is None:
            config = await self.store.get_app_config()
            if not config.auto_save_leads:
                logger.info(f"[INBOUND] Message from unknown number {phone} dropped, auto-save disabled")
                return None
            lead = await self._create_lead(phone, event.push_name, config, now)

        if event.media_type:
            record = MessageRecord(
                content="", media_type=event.media_type, media_url=event.media_url, sender=sender, timestamp=now
            )
        else:
            record = MessageRecord(content=event.text or "", sender=sender, timestamp=now)
        await self.store.add_message(lead.id, record)

        await self.store.update_lead(lead.id, {"lastMessageAt": now})
        if sender == Sender.LEAD:
            await self.store.increment(lead.id, "unreadCount", 1)

        logger.info(f"[INBOUND] Stored {event.media_type or 'text'} message from {sender.value} for lead {lead.id}")
        return lead.id

    async def _create_lead(self, phone: str, push_name: Optional[str], config: AppConfig, now: datetime) -> Lead:
        trigger = config.new_lead_trigger
        enrollments = []
        if await self.store.find_sequence(trigger) is not None:
            enrollments.append(Enrollment(trigger=trigger, start_time=now, index=0).to_document())

        lead = await self.store.create_lead(
            {
                "telefono": phone,
                "nombre": push_name or "",
                "source": "WhatsApp",
                "fecha_creacion": now,
                "estado": "nuevo",
                "etiquetas": [trigger],
                "secuenciasActivas": enrollments,
                "unreadCount": 0,
                "lastMessageAt": now,
            }
        )
        logger.info(f"[INBOUND] New lead {lead.id} created for {phone} with trigger '{trigger}'")
        return lead
