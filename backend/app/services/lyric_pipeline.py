import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from app.core.config import LYRIC_COOLDOWN_MINUTES
from app.db.store import DocumentStore
from app.schemas.lead import Enrollment
from app.schemas.lyric_request import LyricRequest, LyricStatus
from app.schemas.message import MessageRecord, Sender
from app.services.lyric_generator import LyricGenerator
from app.services.templating import first_name
from app.services.whatsapp import ChannelHandle, ConnectionManager
from app.utils.clock import utcnow
from app.utils.phone import digits_only, to_jid

logger = logging.getLogger(__name__)

LYRIC_SENT_TRIGGER = "LetraEnviada"

LYRIC_SYSTEM_PROMPT = "Eres un compositor creativo."

LYRIC_PROMPT_TEMPLATE = (
    "Escribe una letra de canción con lenguaje simple que su estructura sea verso 1, verso 2, coro, "
    "verso 3, verso 4 y coro. Agrega titulo de la canción en negritas. No pongas datos personales que "
    "no se puedan confirmar. Agrega un coro cantable y memorable. Solo responde con la letra de la "
    "canción sin texto adicional. Propósito: {purpose}. Nombre: {include_name}. "
    "Anecdotas o fraces: {anecdotes}"
)

PROMO_VIDEO_URL = "https://cantalab.com/wp-content/uploads/2025/04/WhatsApp-Video-2025-04-23-at-8.01.51-PM.mp4"

PRICING_TEMPLATE = (
    "{first_name} el costo normal es de $1997 MXN pero tenemos la promocional esta semana de $897 MXN.\n\n"
    "Puedes pagar en esta cuenta:\n\n🏦 Transferencia bancaria:\n"
    "Cuenta: 4152 3143 2669 0826\nBanco: BBVA\nTitular: Iván Martínez Jiménez\n\n"
    "🧾 Para facturar a esta:\n\nCLABE: 012814001155051514\nBanco: BBVA\nTitular: UDEL UNIVERSIDAD SAPI DE CV\n\n"
    "🌐 Pago en línea o en dolares 🇺🇸 (45 USD):\n"
    "https://cantalab.com/carrito-cantalab/?billing_id={{R}}"
)


def _prompt_value(value) -> str:
    return "" if value is None else str(value)


def build_lyric_prompt(request: LyricRequest) -> str:
    return LYRIC_PROMPT_TEMPLATE.format(
        purpose=_prompt_value(request.purpose),
        include_name=_prompt_value(request.include_name),
        anecdotes=_prompt_value(request.anecdotes),
    )


def build_delivery_messages(request: LyricRequest) -> List[Tuple[dict, MessageRecord]]:
    """The four messages of a lyric delivery, as (channel payload, log record) pairs."""
    name = first_name(request.requester_name)
    greeting = f"Listo {name}, ya terminé la letra para tu canción. *Léela y dime si te gusta.*"
    # {{R}} in the payment link is sent verbatim.
    pricing = PRICING_TEMPLATE.replace("{first_name}", name)
    return [
        ({"text": greeting}, MessageRecord(content=greeting, sender=Sender.BUSINESS)),
        ({"text": request.letra}, MessageRecord(content=request.letra, sender=Sender.BUSINESS)),
        (
            {"video": {"url": PROMO_VIDEO_URL}},
            MessageRecord(media_type="video", media_url=PROMO_VIDEO_URL, sender=Sender.BUSINESS),
        ),
        ({"text": pricing}, MessageRecord(content=pricing, sender=Sender.BUSINESS)),
    ]


class LyricPipeline:
    """
    Two passes over the `letras` collection: write lyrics for pending requests, then
    deliver them once the review cool-down has passed.
    """

    def __init__(
        self,
        store: DocumentStore,
        connection: Optional[ConnectionManager] = None,
        generator: Optional[LyricGenerator] = None,
        clock: Callable[[], datetime] = utcnow,
        cooldown: timedelta = timedelta(minutes=LYRIC_COOLDOWN_MINUTES),
    ):
        self.store = store
        self.connection = connection
        self.generator = generator
        self.cooldown = cooldown
        self._clock = clock

    async def generate_tick(self) -> Dict[str, int]:
        logger.info("=== LYRIC GENERATION STARTED ===")
        stats = {"pending": 0, "generated": 0, "errors": 0}
        try:
            requests = await self.store.find_lyric_requests(LyricStatus.PENDING.value)
        except Exception as e:
            logger.error(f"[LYRICS] Could not load pending lyric requests: {e}", exc_info=True)
            stats["errors"] += 1
            return stats

        stats["pending"] = len(requests)
        logger.info(f"[LYRICS] Found {len(requests)} pending lyric request(s)")
        for request in requests:
            try:
                if await self._generate(request):
                    stats["generated"] += 1
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"[LYRICS] Generation failed for request {request.id}: {e}", exc_info=True)

        logger.info(f"=== LYRIC GENERATION COMPLETED === {stats}")
        return stats

    async def _generate(self, request: LyricRequest) -> bool:
        prompt = build_lyric_prompt(request)
        logger.debug(f"[LYRICS] Prompt for {request.id}:\n{prompt}")
        letra = await self.generator.generate(LYRIC_SYSTEM_PROMPT, prompt)
        if not letra:
            logger.warning(f"[LYRICS] Empty lyric returned for request {request.id}, will retry")
            return False

        await self.store.update_lyric_request(
            request.id,
            {
                "letra": letra,
                "status": LyricStatus.GENERATED.value,
                "letraGeneratedAt": self._clock(),
            },
        )
        logger.info(f"[LYRICS] Lyric generated for request {request.id}")
        return True

    async def send_tick(self) -> Dict[str, int]:
        logger.info("=== LYRIC DELIVERY STARTED ===")
        stats = {"ready": 0, "sent": 0, "waiting": 0, "skipped": 0, "errors": 0}
        try:
            requests = await self.store.find_lyric_requests(LyricStatus.GENERATED.value)
        except Exception as e:
            logger.error(f"[LYRICS] Could not load generated lyric requests: {e}", exc_info=True)
            stats["errors"] += 1
            return stats

        stats["ready"] = len(requests)
        for request in requests:
            if not request.lead_phone or not request.letra or not request.letra_generated_at:
                stats["skipped"] += 1
                logger.warning(f"[LYRICS] Request {request.id} is missing phone, lyric or generation time")
                continue

            # Review window before the lyric leaves.
            if self._clock() - request.letra_generated_at < self.cooldown:
                stats["waiting"] += 1
                continue

            handle = self.connection.current_handle() if self.connection else None
            if handle is None:
                stats["skipped"] += 1
                logger.warning(f"[LYRICS] No active WhatsApp session, request {request.id} stays queued")
                continue

            try:
                await self._deliver(request, handle)
                stats["sent"] += 1
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"[LYRICS] Delivery failed for request {request.id}, will retry: {e}", exc_info=True)

        logger.info(f"=== LYRIC DELIVERY COMPLETED === {stats}")
        return stats

    async def _deliver(self, request: LyricRequest, handle: ChannelHandle):
        jid = to_jid(digits_only(request.lead_phone))

        # No per-message progress is kept: a failure here resends all four next tick.
        for payload, record in build_delivery_messages(request):
            await handle.send(jid, payload)
            if request.lead_id:
                record.timestamp = self._clock()
                await self.store.add_message(request.lead_id, record)

        if request.lead_id:
            enrollment = Enrollment(trigger=LYRIC_SENT_TRIGGER, start_time=self._clock(), index=0)
            await self.store.array_union(
                request.lead_id,
                {
                    "etiquetas": [LYRIC_SENT_TRIGGER],
                    "secuenciasActivas": [enrollment.to_document()],
                },
            )

        await self.store.update_lyric_request(request.id, {"status": LyricStatus.SENT.value})
        logger.info(f"[LYRICS] Lyric for request {request.id} delivered to {jid}")
