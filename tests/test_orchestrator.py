"""
End-to-end tests for the purchase pipeline with stub collaborators.

Run with: pytest tests/test_orchestrator.py -v
"""

import asyncio
import json
import time

import httpx
import pytest

from config import ARTWORK_QUERIES
from schemas.event_definitions import InboundEvent, PipelineOutcome, PipelineStage
from tests.conftest import FIXED_NOW
from tests.helpers import (
    BASIC_METADATA,
    EVENT_ID,
    SESSION_ID,
    WEBHOOK_SECRET,
    StubDelivery,
    StubEnrichment,
    make_event_body,
    make_session,
    sign_payload,
)


def signed_event(body: bytes, **kwargs) -> InboundEvent:
    return InboundEvent(payload=body, signature=sign_payload(body, **kwargs))


def completed_event(metadata=None, session_id: str = SESSION_ID, event_id: str = EVENT_ID) -> InboundEvent:
    session = make_session(metadata=metadata, session_id=session_id)
    return signed_event(make_event_body(data_object=session, event_id=event_id))


# =============================================================================
# HAPPY PATH
# =============================================================================

@pytest.mark.asyncio
async def test_completed_checkout_is_delivered(pipeline, enrichment, delivery, reporter):
    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.DELIVERED
    assert result.http_status == 200
    assert result.to_response() == {"success": True}
    assert result.event_id == EVENT_ID
    assert result.session_id == SESSION_ID

    assert enrichment.calls == [ARTWORK_QUERIES["basic"]]
    assert delivery.calls == 1

    record = delivery.records[0]
    assert record == result.record
    assert record.customer_email == "buyer@example.com"
    assert record.tier.id == "basic"
    assert record.tier.price == 999
    assert record.tip_amount == 100
    assert record.total_amount == 1099
    assert record.stripe_session_id == SESSION_ID
    assert record.image.id == enrichment.image.id
    assert record.purchase_date == FIXED_NOW

    assert reporter.stages == [
        PipelineStage.VERIFIED,
        PipelineStage.CLASSIFIED,
        PipelineStage.RECONSTRUCTED,
        PipelineStage.ENRICHED,
        PipelineStage.DELIVERED,
    ]


@pytest.mark.asyncio
async def test_premium_tier_uses_its_own_category(make_pipeline):
    enrichment = StubEnrichment()
    pipeline = make_pipeline(enrichment=enrichment)
    metadata = {"tier_id": "premium", "tier_name": "Premium Surprise",
                "tier_price": "1999", "tip_amount": "0", "total_amount": "1999"}

    result = await pipeline.process(completed_event(metadata))

    assert result.outcome is PipelineOutcome.DELIVERED
    assert enrichment.calls == [ARTWORK_QUERIES["premium"]]


@pytest.mark.asyncio
async def test_unknown_tier_falls_back_to_default_category(make_pipeline):
    enrichment = StubEnrichment()
    pipeline = make_pipeline(enrichment=enrichment)
    metadata = {"tier_id": "mystery", "tier_name": "Mystery Box",
                "tier_price": "500", "total_amount": "500"}

    result = await pipeline.process(completed_event(metadata))

    assert result.outcome is PipelineOutcome.DELIVERED
    assert enrichment.calls == [ARTWORK_QUERIES["basic"]]
    assert result.record.tier.id == "mystery"
    assert result.record.tip_amount == 0


# =============================================================================
# DELIVERY IS LENIENT
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "delivery",
    [
        StubDelivery(success=False),
        StubDelivery(error=httpx.ConnectError("connection refused")),
        StubDelivery(error=RuntimeError("boom")),
    ],
    ids=["rejected_by_webhook", "transport_error", "unexpected_error"],
)
async def test_delivery_failure_is_degraded_not_failed(make_pipeline, reporter, delivery):
    enrichment = StubEnrichment()
    pipeline = make_pipeline(enrichment=enrichment, delivery=delivery)

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.DELIVERED_DEGRADED
    assert result.http_status == 200
    assert result.to_response() == {"success": True, "delivered": False}
    assert result.error_code == "delivery_failed"
    assert result.record is not None
    assert result.record.total_amount == 1099
    assert len(enrichment.calls) == 1
    assert delivery.calls == 1

    degraded = reporter.last(PipelineStage.DEGRADED)
    assert degraded is not None
    assert degraded.context["session_id"] == SESSION_ID
    assert PipelineStage.DELIVERED not in reporter.stages


@pytest.mark.asyncio
async def test_delivery_timeout_is_degraded(make_pipeline):
    delivery = StubDelivery(delay=1.0)
    pipeline = make_pipeline(delivery=delivery, delivery_timeout=0.01)

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.DELIVERED_DEGRADED
    assert "timed out" in result.error_message


# =============================================================================
# STRICT FAILURES
# =============================================================================

@pytest.mark.asyncio
async def test_amount_mismatch_fails_before_any_side_effect(pipeline, enrichment, delivery, reporter):
    metadata = dict(BASIC_METADATA, total_amount="2000")

    result = await pipeline.process(completed_event(metadata))

    assert result.outcome is PipelineOutcome.FAILED
    assert result.http_status == 500
    assert result.error_code == "amount_mismatch"
    assert result.session_id == SESSION_ID
    assert enrichment.calls == []
    assert delivery.calls == 0
    assert reporter.last(PipelineStage.FAILED).context["error_code"] == "amount_mismatch"


@pytest.mark.asyncio
async def test_missing_metadata_fails(pipeline, enrichment, delivery):
    result = await pipeline.process(completed_event(metadata={}))

    assert result.outcome is PipelineOutcome.FAILED
    assert result.error_code == "metadata_missing"
    assert result.to_response() == {"error": "Processing failed"}
    assert enrichment.calls == []
    assert delivery.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "enrichment",
    [
        StubEnrichment(empty=True),
        StubEnrichment(error=httpx.ReadTimeout("slow")),
        StubEnrichment(error=ValueError("bad json")),
    ],
    ids=["no_results", "transport_error", "unexpected_error"],
)
async def test_enrichment_failure_fails_without_delivery(make_pipeline, enrichment):
    delivery = StubDelivery()
    pipeline = make_pipeline(enrichment=enrichment, delivery=delivery)

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.FAILED
    assert result.http_status == 500
    assert result.error_code == "enrichment_unavailable"
    assert result.to_response() == {"error": "Failed to fetch artwork"}
    assert len(enrichment.calls) == 1
    assert delivery.calls == 0


@pytest.mark.asyncio
async def test_enrichment_timeout_fails(make_pipeline):
    delivery = StubDelivery()
    pipeline = make_pipeline(
        enrichment=StubEnrichment(delay=1.0),
        delivery=delivery,
        enrichment_timeout=0.01,
    )

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.FAILED
    assert result.error_code == "enrichment_unavailable"
    assert delivery.calls == 0


# =============================================================================
# IGNORED + REJECTED
# =============================================================================

@pytest.mark.asyncio
async def test_other_event_types_are_acknowledged_and_ignored(pipeline, enrichment, delivery, reporter):
    result = await pipeline.process(signed_event(make_event_body("payment_intent.created")))

    assert result.outcome is PipelineOutcome.IGNORED
    assert result.http_status == 200
    assert result.to_response() == {"success": True}
    assert result.event_type == "payment_intent.created"
    assert enrichment.calls == []
    assert delivery.calls == 0
    assert reporter.stages[-1] == PipelineStage.IGNORED


@pytest.mark.asyncio
async def test_tampered_body_is_rejected(pipeline, enrichment, delivery):
    body = make_event_body()
    header = sign_payload(body)
    tampered = body.replace(b'"tier_price": "999"', b'"tier_price": "099"')

    result = await pipeline.process(InboundEvent(payload=tampered, signature=header))

    assert result.outcome is PipelineOutcome.REJECTED
    assert result.http_status == 400
    assert result.error_code == "signature_invalid"
    assert result.to_response() == {"error": "Invalid signature"}
    assert enrichment.calls == []
    assert delivery.calls == 0


@pytest.mark.asyncio
async def test_stale_signature_is_rejected(pipeline):
    stale = signed_event(make_event_body(), timestamp=int(time.time()) - 3600)

    result = await pipeline.process(stale)

    assert result.outcome is PipelineOutcome.REJECTED
    assert result.error_code == "signature_invalid"


@pytest.mark.asyncio
async def test_missing_signature_is_rejected(pipeline, reporter):
    result = await pipeline.process(InboundEvent(payload=make_event_body()))

    assert result.outcome is PipelineOutcome.REJECTED
    assert result.error_code == "missing_signature"
    assert result.to_response() == {"error": "No signature provided"}
    assert reporter.stages == [PipelineStage.REJECTED]


@pytest.mark.asyncio
async def test_reports_never_contain_secrets(pipeline, reporter):
    inbound = completed_event()
    await pipeline.process(inbound)
    await pipeline.process(InboundEvent(payload=b"{}", signature="t=1,v1=deadbeef"))

    for entry in reporter.entries:
        rendered = repr(entry.context)
        assert WEBHOOK_SECRET not in rendered
        assert inbound.signature not in rendered
        assert "deadbeef" not in rendered


# =============================================================================
# CONCURRENCY + REDELIVERY
# =============================================================================

@pytest.mark.asyncio
async def test_concurrent_events_are_independent(make_pipeline):
    enrichment = StubEnrichment(delay=0.01)
    delivery = StubDelivery(delay=0.01)
    pipeline = make_pipeline(enrichment=enrichment, delivery=delivery)

    events = [
        completed_event(session_id=f"cs_test_{n}", event_id=f"evt_test_{n}")
        for n in range(5)
    ]
    bad = completed_event(dict(BASIC_METADATA, total_amount="1"), session_id="cs_test_bad")

    results = await asyncio.gather(*(pipeline.process(e) for e in events + [bad]))

    delivered = results[:5]
    assert all(r.outcome is PipelineOutcome.DELIVERED for r in delivered)
    assert sorted(r.session_id for r in delivered) == sorted(f"cs_test_{n}" for n in range(5))
    assert all(r.record.stripe_session_id == r.session_id for r in delivered)
    assert results[5].outcome is PipelineOutcome.FAILED
    assert len(enrichment.calls) == 5
    assert delivery.calls == 5


@pytest.mark.asyncio
async def test_redelivery_after_failure_reprocesses(make_pipeline):
    enrichment = StubEnrichment(empty=True)
    pipeline = make_pipeline(enrichment=enrichment)
    event = completed_event()

    first = await pipeline.process(event)
    assert first.outcome is PipelineOutcome.FAILED

    enrichment.empty = False
    second = await pipeline.process(event)
    assert second.outcome is PipelineOutcome.DELIVERED
    assert len(enrichment.calls) == 2


# =============================================================================
# UNFAMILIAR SHAPES
# =============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize(
    "envelope",
    [
        {
            "id": "evt_thin_1",
            "object": "v2.core.event",
            "type": "v1.billing.meter.error_report_triggered",
            "created": "2025-01-01T00:00:00.000Z",
            "related_object": {"id": "mtr_123", "type": "billing.meter"},
        },
        {"id": "evt_list", "type": "invoice.paid", "data": {"object": ["in_1"]}},
        {"type": "customer.created", "data": {"object": {"id": "cus_1"}}},
    ],
    ids=["thin_event", "list_object", "no_event_id"],
)
async def test_unfamiliar_event_shapes_are_ignored(pipeline, enrichment, delivery, envelope):
    result = await pipeline.process(signed_event(json.dumps(envelope).encode()))

    assert result.outcome is PipelineOutcome.IGNORED
    assert result.http_status == 200
    assert enrichment.calls == []
    assert delivery.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "session_changes, error_code",
    [
        ({"metadata": "tier_id=basic"}, "metadata_malformed"),
        ({"customer_details": "buyer@example.com"}, "metadata_malformed"),
        ({"id": None}, "metadata_missing"),
    ],
    ids=["string_metadata", "string_customer_details", "no_session_id"],
)
async def test_badly_shaped_session_fails_for_redelivery(pipeline, enrichment, delivery, session_changes, error_code):
    session = make_session()
    for key, value in session_changes.items():
        if value is None:
            session.pop(key)
        else:
            session[key] = value

    result = await pipeline.process(signed_event(make_event_body(data_object=session)))

    assert result.outcome is PipelineOutcome.FAILED
    assert result.http_status == 500
    assert result.error_code == error_code
    assert enrichment.calls == []
    assert delivery.calls == 0


@pytest.mark.asyncio
async def test_completed_event_without_session_object_fails(pipeline, enrichment):
    body = json.dumps({"id": EVENT_ID, "type": "checkout.session.completed"}).encode()

    result = await pipeline.process(signed_event(body))

    assert result.outcome is PipelineOutcome.FAILED
    assert result.error_code == "metadata_missing"
    assert result.session_id is None
    assert enrichment.calls == []


class _NoneDelivery(StubDelivery):
    async def deliver(self, record):
        self.records.append(record)
        return None


class _WrongTypeEnrichment(StubEnrichment):
    async def fetch(self, category):
        self.calls.append(category)
        return {"id": 1}


@pytest.mark.asyncio
async def test_delivery_client_returning_nothing_is_degraded(make_pipeline):
    delivery = _NoneDelivery()
    pipeline = make_pipeline(delivery=delivery)

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.DELIVERED_DEGRADED
    assert result.error_code == "delivery_failed"
    assert "NoneType" in result.error_message
    assert delivery.calls == 1


@pytest.mark.asyncio
async def test_enrichment_client_returning_wrong_type_fails(make_pipeline):
    delivery = StubDelivery()
    pipeline = make_pipeline(enrichment=_WrongTypeEnrichment(), delivery=delivery)

    result = await pipeline.process(completed_event())

    assert result.outcome is PipelineOutcome.FAILED
    assert result.error_code == "enrichment_unavailable"
    assert delivery.calls == 0
