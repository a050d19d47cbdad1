import logging
from datetime import datetime
from typing import Callable

from app.db.store import DocumentStore
from app.schemas.message import MessageRecord, Sender
from app.services.whatsapp import ChannelUnavailableError, ConnectionManager
from app.utils.clock import utcnow
from app.utils.phone import normalize_direct_phone, to_jid

logger = logging.getLogger(__name__)


class LeadNotFoundError(LookupError):
    pass


async def send_message_to_lead(
    store: DocumentStore,
    connection: ConnectionManager,
    lead_id: str,
    text: str,
    clock: Callable[[], datetime] = utcnow,
) -> dict:
    """
    Send a free-text message typed by an agent and log it on the lead.

    Unlike sequence sends, ten-digit numbers get the country code prepended.
    Channel errors propagate to the caller.
    """
    lead = await store.get_lead(lead_id)
    if lead is None:
        raise LeadNotFoundError(f"Lead {lead_id} not found")
    if not lead.phone:
        raise ValueError(f"Lead {lead_id} has no phone number")

    handle = connection.current_handle()
    if handle is None:
        raise ChannelUnavailableError("No active WhatsApp session")

    jid = to_jid(normalize_direct_phone(lead.phone))
    await handle.send(jid, {"text": text})
    logger.info(f"[WHATSAPP] Message sent to {jid}")

    now = clock()
    await store.add_message(lead.id, MessageRecord(content=text, sender=Sender.BUSINESS, timestamp=now))
    await store.update_lead(lead.id, {"lastMessageAt": now})
    return {"success": True}
