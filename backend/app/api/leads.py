import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_connection, get_store
from app.db.store import DocumentStore
from app.schemas.sequence import Step
from app.schemas.whatsapp import DispatchStepRequest
from app.services.dispatcher import MessageDispatcher
from app.services.whatsapp import ConnectionManager

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/leads/{lead_id}/dispatch")
async def dispatch_step(
    lead_id: str,
    body: DispatchStepRequest,
    store: DocumentStore = Depends(get_store),
    connection: ConnectionManager = Depends(get_connection),
):
    """
    Send a single sequence-style step to a lead right away, outside the scheduler.
    Uses the same rendering and addressing as sequence sends.
    """
    lead = await store.get_lead(lead_id)
    if lead is None:
        raise HTTPException(status_code=404, detail="Lead not found")

    step = Step(type=body.type, content=body.content)
    result = await MessageDispatcher(connection).dispatch(lead, step)
    logger.info(f"[DISPATCH] Direct {body.type} for lead {lead_id}: {result.value}")
    return {"lead_id": lead_id, "result": result.value, "confirmed": result.confirmed}
