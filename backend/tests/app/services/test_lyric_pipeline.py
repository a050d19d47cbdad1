"""Tests for app.services.lyric_pipeline -- generation and delayed delivery of lyrics."""
from datetime import timedelta

import pytest

from app.schemas.lyric_request import LyricRequest, LyricStatus
from app.services.lyric_generator import GenerationError
from app.services.lyric_pipeline import (
    LYRIC_SENT_TRIGGER,
    PROMO_VIDEO_URL,
    LyricPipeline,
    build_delivery_messages,
    build_lyric_prompt,
)
from app.services.whatsapp import ChannelSendError


class FakeGenerator:
    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.calls = []

    async def generate(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        answer = self.answers.pop(0) if self.answers else "**Canción**\nVerso uno"
        if isinstance(answer, Exception):
            raise answer
        return answer


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def pipeline(store, connection, generator, clock):
    return LyricPipeline(store, connection=connection, generator=generator, clock=clock)


def generated_request(store, generated_at, **fields):
    data = {
        "status": LyricStatus.GENERATED.value,
        "leadId": "lead-1",
        "leadPhone": "5215512345678",
        "requesterName": "Ana María",
        "letra": "**Nuestra canción**\nVerso uno",
        "letraGeneratedAt": generated_at,
    }
    data.update(fields)
    return store.add_lyric_request(**data)


# ── Prompt / message building ────────────────────────────────────────────────

class TestMessageBuilding:

    def test_prompt_includes_request_fields(self):
        request = LyricRequest(id="r1", purpose="Aniversario", includeName="Luis", anecdotes="Nos conocimos en 2010")

        prompt = build_lyric_prompt(request)

        assert "Propósito: Aniversario." in prompt
        assert "Nombre: Luis." in prompt
        assert prompt.endswith("Anecdotas o fraces: Nos conocimos en 2010")

    def test_prompt_renders_missing_fields_empty(self):
        prompt = build_lyric_prompt(LyricRequest(id="r1"))

        assert "Propósito: ." in prompt
        assert "None" not in prompt

    def test_delivery_is_four_messages_in_order(self):
        request = LyricRequest(id="r1", requesterName="Ana María", letra="La letra")

        messages = build_delivery_messages(request)

        payloads = [payload for payload, _ in messages]
        assert payloads[0] == {"text": "Listo Ana, ya terminé la letra para tu canción. *Léela y dime si te gusta.*"}
        assert payloads[1] == {"text": "La letra"}
        assert payloads[2] == {"video": {"url": PROMO_VIDEO_URL}}
        assert payloads[3]["text"].startswith("Ana el costo normal es de $1997 MXN")

    def test_payment_link_placeholder_sent_verbatim(self):
        request = LyricRequest(id="r1", requesterName="Ana", letra="La letra")

        pricing = build_delivery_messages(request)[3][0]["text"]

        assert pricing.endswith("billing_id={{R}}")

    def test_video_record_carries_media_fields(self):
        request = LyricRequest(id="r1", requesterName="Ana", letra="La letra")

        record = build_delivery_messages(request)[2][1]

        assert record.media_type == "video"
        assert record.media_url == PROMO_VIDEO_URL
        assert record.sender == "business"


# ── Generation pass ──────────────────────────────────────────────────────────

class TestGeneratePass:

    async def test_pending_request_gets_lyric(self, pipeline, store, generator, now):
        request_id = store.add_lyric_request(status="Sin letra", purpose="Boda")

        stats = await pipeline.generate_tick()

        assert stats == {"pending": 1, "generated": 1, "errors": 0}
        doc = store.lyric_requests[request_id]
        assert doc["status"] == "enviarLetra"
        assert doc["letra"] == "**Canción**\nVerso uno"
        assert doc["letraGeneratedAt"] == now
        assert generator.calls[0][0] == "Eres un compositor creativo."

    async def test_only_pending_requests_are_generated(self, pipeline, store, generator, now):
        store.add_lyric_request(status="enviada", letra="ya enviada")
        generated_request(store, now)

        stats = await pipeline.generate_tick()

        assert stats["pending"] == 0
        assert generator.calls == []

    async def test_empty_answer_leaves_request_pending(self, store, connection, clock):
        pipeline = LyricPipeline(store, connection=connection, generator=FakeGenerator([""]), clock=clock)
        request_id = store.add_lyric_request(status="Sin letra")

        stats = await pipeline.generate_tick()

        assert stats["generated"] == 0
        assert store.lyric_requests[request_id] == {"status": "Sin letra"}

    async def test_model_failure_leaves_request_pending(self, store, connection, clock):
        generator = FakeGenerator([GenerationError("rate limited"), "Segunda letra"])
        pipeline = LyricPipeline(store, connection=connection, generator=generator, clock=clock)
        failing = store.add_lyric_request(status="Sin letra", purpose="Uno")
        working = store.add_lyric_request(status="Sin letra", purpose="Dos")

        stats = await pipeline.generate_tick()

        assert stats["errors"] == 1
        assert store.lyric_requests[failing]["status"] == "Sin letra"
        assert store.lyric_requests[working]["letra"] == "Segunda letra"

    async def test_failed_request_retried_next_pass(self, store, connection, clock):
        generator = FakeGenerator([GenerationError("timeout"), "Letra"])
        pipeline = LyricPipeline(store, connection=connection, generator=generator, clock=clock)
        request_id = store.add_lyric_request(status="Sin letra")

        await pipeline.generate_tick()
        await pipeline.generate_tick()

        assert store.lyric_requests[request_id]["status"] == "enviarLetra"


# ── Delivery pass ────────────────────────────────────────────────────────────

class TestSendPass:

    async def test_request_inside_cooldown_is_not_sent(self, pipeline, store, handle, now):
        request_id = generated_request(store, now - timedelta(minutes=10))

        stats = await pipeline.send_tick()

        assert stats["waiting"] == 1
        assert handle.sent == []
        assert store.lyric_requests[request_id]["status"] == "enviarLetra"

    async def test_cooldown_boundary_is_inclusive(self, pipeline, store, handle, now):
        generated_request(store, now - timedelta(minutes=15))

        stats = await pipeline.send_tick()

        assert stats["sent"] == 1

    async def test_delivery_sends_four_messages_and_enrolls_lead(self, pipeline, store, handle, now):
        store.add_lead("lead-1", etiquetas=["NuevoLead"], secuenciasActivas=[])
        request_id = generated_request(store, now - timedelta(minutes=20))

        await pipeline.send_tick()

        assert len(handle.sent) == 4
        assert {jid for jid, _ in handle.sent} == {"5215512345678@s.whatsapp.net"}
        lead = store.leads["lead-1"]
        assert lead["etiquetas"] == ["NuevoLead", LYRIC_SENT_TRIGGER]
        assert lead["secuenciasActivas"] == [
            {"trigger": LYRIC_SENT_TRIGGER, "startTime": now, "index": 0, "completed": False}
        ]
        assert len(store.messages_for("lead-1")) == 4
        assert store.lyric_requests[request_id]["status"] == "enviada"

    async def test_label_and_enrollment_not_duplicated(self, pipeline, store, now):
        existing = {"trigger": LYRIC_SENT_TRIGGER, "startTime": now, "index": 0, "completed": False}
        store.add_lead("lead-1", etiquetas=[LYRIC_SENT_TRIGGER], secuenciasActivas=[existing])
        generated_request(store, now - timedelta(minutes=20))

        await pipeline.send_tick()

        assert store.leads["lead-1"]["etiquetas"] == [LYRIC_SENT_TRIGGER]
        assert store.leads["lead-1"]["secuenciasActivas"] == [existing]

    async def test_null_sequence_field_becomes_list(self, pipeline, store, now):
        store.add_lead("lead-1", secuenciasActivas=None)
        generated_request(store, now - timedelta(minutes=20))

        await pipeline.send_tick()

        assert len(store.leads["lead-1"]["secuenciasActivas"]) == 1

    async def test_request_without_lead_is_sent_but_not_logged(self, pipeline, store, handle, now):
        request_id = generated_request(store, now - timedelta(minutes=20), leadId=None)

        await pipeline.send_tick()

        assert len(handle.sent) == 4
        assert store.messages == []
        assert store.lyric_requests[request_id]["status"] == "enviada"

    async def test_mid_delivery_failure_keeps_request_and_resends(self, pipeline, store, handle, clock, now):
        store.add_lead("lead-1", secuenciasActivas=[])
        request_id = generated_request(store, now - timedelta(minutes=20))
        handle.fail_on(3, ChannelSendError("gateway returned 500"))

        first = await pipeline.send_tick()

        assert first["errors"] == 1
        assert len(handle.sent) == 2
        assert store.lyric_requests[request_id]["status"] == "enviarLetra"
        assert store.leads["lead-1"]["secuenciasActivas"] == []

        clock.advance(minutes=1)
        await pipeline.send_tick()

        assert len(handle.sent) == 6
        assert store.lyric_requests[request_id]["status"] == "enviada"

    @pytest.mark.parametrize("missing", ["leadPhone", "letra", "letraGeneratedAt"])
    async def test_incomplete_request_is_skipped(self, pipeline, store, handle, now, missing):
        request_id = generated_request(store, now - timedelta(hours=1), **{missing: None})

        stats = await pipeline.send_tick()

        assert stats["skipped"] == 1
        assert handle.sent == []
        assert store.lyric_requests[request_id]["status"] == "enviarLetra"

    async def test_closed_session_leaves_request_queued(self, store, generator, clock, closed_connection, now):
        pipeline = LyricPipeline(store, connection=closed_connection, generator=generator, clock=clock)
        request_id = generated_request(store, now - timedelta(minutes=20))

        stats = await pipeline.send_tick()

        assert stats["skipped"] == 1
        assert store.lyric_requests[request_id]["status"] == "enviarLetra"

    async def test_naive_generation_time_is_utc(self, pipeline, store, now):
        generated_request(store, (now - timedelta(minutes=20)).replace(tzinfo=None))

        stats = await pipeline.send_tick()

        assert stats["sent"] == 1
