import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from app.db.store import DocumentStore
from app.schemas.lead import Enrollment, Lead
from app.schemas.message import MessageRecord, Sender
from app.services.dispatcher import MessageDispatcher
from app.utils.clock import utcnow

logger = logging.getLogger(__name__)


class SequenceEngine:
    """
    Advances every lead through its active sequences, one due step per enrollment per tick.

    Sequence definitions are looked up by trigger on every evaluation, so edits to a
    definition apply to enrollments already in progress. An enrollment's index only
    moves after the dispatcher confirms the step; a failed send is retried on the
    next tick (at-least-once delivery).
    """

    def __init__(
        self,
        store: DocumentStore,
        dispatcher: MessageDispatcher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self._clock = clock

    async def tick(self) -> Dict[str, int]:
        logger.info("=== SEQUENCE TICK STARTED ===")
        stats = {"leads": 0, "sent": 0, "failed": 0, "completed": 0, "errors": 0}

        try:
            leads = await self.store.find_leads_with_sequences()
        except Exception as e:
            logger.error(f"[SEQUENCE] Could not load leads with active sequences: {e}", exc_info=True)
            stats["errors"] += 1
            return stats

        for lead in leads:
            stats["leads"] += 1
            try:
                await self._process_lead(lead, stats)
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"[SEQUENCE] Failed to process lead {lead.id}: {e}", exc_info=True)

        logger.info(f"=== SEQUENCE TICK COMPLETED === {stats}")
        return stats

    async def _process_lead(self, lead: Lead, stats: Dict[str, int]):
        entries = lead.active_sequences
        if not isinstance(entries, list) or not entries:
            return

        dirty = False
        remaining = []
        for raw in entries:
            enrollment = self._parse_enrollment(lead.id, raw)
            if enrollment is None:
                # Left as found; it is not ours to repair.
                remaining.append(raw)
                continue

            try:
                changed = await self._evaluate(lead, enrollment, stats)
            except Exception as e:
                stats["errors"] += 1
                logger.error(
                    f"[SEQUENCE] Error evaluating '{enrollment.trigger}' for lead {lead.id}: {e}",
                    exc_info=True,
                )
                changed = False

            if changed:
                dirty = True
                if not enrollment.completed:
                    remaining.append(enrollment.to_document())
            else:
                remaining.append(raw)

        if dirty:
            await self.store.update_lead(lead.id, {"secuenciasActivas": remaining})
            logger.info(f"[SEQUENCE] Lead {lead.id} now has {len(remaining)} active sequence(s)")

    @staticmethod
    def _parse_enrollment(lead_id: str, raw: Any) -> Optional[Enrollment]:
        if not isinstance(raw, dict):
            logger.warning(f"[SEQUENCE] Malformed enrollment on lead {lead_id}: {raw!r}")
            return None
        try:
            return Enrollment.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"[SEQUENCE] Malformed enrollment on lead {lead_id}: {e}")
            return None

    async def _evaluate(self, lead: Lead, enrollment: Enrollment, stats: Dict[str, int]) -> bool:
        """Run one evaluation step. Returns True when the enrollment changed."""
        if enrollment.completed:
            return True

        definition = await self.store.find_sequence(enrollment.trigger)
        if definition is None:
            logger.debug(f"[SEQUENCE] No sequence defined for trigger '{enrollment.trigger}'")
            return False

        steps = definition.steps
        if enrollment.index >= len(steps):
            enrollment.completed = True
            stats["completed"] += 1
            logger.info(f"[SEQUENCE] Lead {lead.id} completed sequence '{enrollment.trigger}'")
            return True

        step = steps[enrollment.index]
        due_at = enrollment.start_time + timedelta(minutes=step.delay_minutes)
        if self._clock() < due_at:
            return False

        result = await self.dispatcher.dispatch(lead, step)
        if not result.confirmed:
            stats["failed"] += 1
            logger.warning(
                f"[SEQUENCE] Step {enrollment.index} of '{enrollment.trigger}' not confirmed for lead {lead.id}, "
                f"will retry next tick"
            )
            return False

        await self.store.add_message(
            lead.id,
            MessageRecord(
                content=f"Se envió el {step.type} de la secuencia {enrollment.trigger}",
                sender=Sender.SYSTEM,
                timestamp=self._clock(),
            ),
        )
        enrollment.index += 1
        stats["sent"] += 1
        logger.info(f"[SEQUENCE] Lead {lead.id} advanced to step {enrollment.index} of '{enrollment.trigger}'")
        return True
