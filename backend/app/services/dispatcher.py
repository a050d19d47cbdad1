import logging
import re
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote

from app.schemas.lead import Lead
from app.schemas.sequence import Step, StepType
from app.services.templating import render_placeholders
from app.services.whatsapp import ChannelError, ConnectionManager
from app.utils.phone import digits_only, to_jid

logger = logging.getLogger(__name__)


class DispatchResult(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"  # nothing to send (empty text, unknown type); counts as delivered
    FAILED = "failed"

    @property
    def confirmed(self) -> bool:
        return self is not DispatchResult.FAILED


def render_form(template: str, phone: str, name: Optional[str]) -> str:
    # Only the first occurrence of each token is replaced; the form URL carries them once.
    text = (template or "").replace("{{telefono}}", phone, 1)
    text = text.replace("{{nombre}}", quote(name or "", safe="!~*'()"), 1)
    return re.sub(r"\r?\n", " ", text).strip()


def build_payload(lead: Lead, step: Step, step_type: StepType, phone: str) -> Optional[Dict[str, Any]]:
    """Channel payload for a step, or None when there is nothing to send."""
    fields = lead.template_fields()

    if step_type == StepType.TEXT:
        text = render_placeholders(step.content, fields).strip()
        return {"text": text} if text else None

    if step_type == StepType.FORM:
        text = render_form(step.content, phone, lead.name)
        return {"text": text} if text else None

    url = render_placeholders(step.content, fields)
    if step_type == StepType.AUDIO:
        return {"audio": {"url": url}, "ptt": True}
    if step_type == StepType.IMAGE:
        return {"image": {"url": url}}
    return {"video": {"url": url}}


class MessageDispatcher:
    """
    Sends one sequence step to one lead. Never raises; the result tells the caller
    whether the step may be considered delivered.
    """

    def __init__(self, connection: ConnectionManager):
        self.connection = connection

    async def dispatch(self, lead: Lead, step: Step) -> DispatchResult:
        step_type = step.step_type
        if step_type is None:
            logger.warning(f"[DISPATCH] Unknown step type '{step.type}' for lead {lead.id}, nothing sent")
            return DispatchResult.SKIPPED

        # Sequence sends use the stored number verbatim, no country code is added.
        phone = digits_only(lead.phone)
        if not phone:
            logger.warning(f"[DISPATCH] Lead {lead.id} has no phone number")
            return DispatchResult.FAILED

        payload = build_payload(lead, step, step_type, phone)
        if payload is None:
            logger.info(f"[DISPATCH] Empty {step_type.value} for lead {lead.id}, skipping send")
            return DispatchResult.SKIPPED

        handle = self.connection.current_handle()
        if handle is None:
            logger.warning(f"[DISPATCH] No active WhatsApp session, {step_type.value} for lead {lead.id} not sent")
            return DispatchResult.FAILED

        jid = to_jid(phone)
        try:
            await handle.send(jid, payload)
        except ChannelError as e:
            logger.error(f"[DISPATCH] Failed to send {step_type.value} to {jid}: {e}")
            return DispatchResult.FAILED
        except Exception as e:
            logger.error(f"[DISPATCH] Unexpected error sending {step_type.value} to {jid}: {e}", exc_info=True)
            return DispatchResult.FAILED

        logger.info(f"[DISPATCH] Sent {step_type.value} to {jid}")
        return DispatchResult.SENT
