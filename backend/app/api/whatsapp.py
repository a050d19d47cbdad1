import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_connection, get_store
from app.db.store import DocumentStore
from app.schemas.whatsapp import InboundEvent, MarkReadRequest, SendMessageRequest
from app.services.inbound import InboundMessageHandler
from app.services.outbound import LeadNotFoundError, send_message_to_lead
from app.services.whatsapp import ChannelError, ChannelUnavailableError, ConnectionManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/whatsapp/status")
async def whatsapp_status(connection: ConnectionManager = Depends(get_connection)):
    """Session state and, while pairing, the latest QR string."""
    return {"status": connection.status.value, "qr": connection.latest_qr}


@router.get("/whatsapp/number")
async def whatsapp_number(connection: ConnectionManager = Depends(get_connection)):
    if not connection.session_phone:
        raise HTTPException(status_code=503, detail="WhatsApp not connected")
    return {"phone": connection.session_phone}


@router.post("/whatsapp/send-message")
async def send_message(
    body: SendMessageRequest,
    store: DocumentStore = Depends(get_store),
    connection: ConnectionManager = Depends(get_connection),
):
    try:
        return await send_message_to_lead(store, connection, body.lead_id, body.message)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChannelUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ChannelError as e:
        logger.error(f"[WHATSAPP] Send to lead {body.lead_id} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/whatsapp/mark-read")
async def mark_read(body: MarkReadRequest, store: DocumentStore = Depends(get_store)):
    try:
        await store.update_lead(body.lead_id, {"unreadCount": 0})
    except Exception as e:
        logger.error(f"[WHATSAPP] Failed to mark lead {body.lead_id} as read: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
    return {"success": True}


@router.post("/whatsapp/webhook")
async def inbound_webhook(event: InboundEvent, store: DocumentStore = Depends(get_store)):
    """Receives message events pushed by the WhatsApp gateway."""
    try:
        lead_id = await InboundMessageHandler(store).handle(event)
    except Exception as e:
        logger.error(f"[INBOUND] Failed to store message from {event.from_address}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to store message")
    return {"stored": lead_id is not None, "lead_id": lead_id}
