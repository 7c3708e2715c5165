"""
Purchase Pipeline - Webhook Orchestrator
========================================
Turns one inbound Stripe webhook into exactly one terminal outcome:

    Received -> Rejected | Ignored | Failed | Delivered | DeliveredDegraded

Failure policy:
- Anything that goes wrong before artwork is in hand is strict: the request
  fails and Stripe redelivers the event.
- Delivery to the automation webhook is lenient: a failed hand-off is
  reported as DeliveredDegraded and acknowledged, so a redelivery can never
  fetch a second artwork or send a duplicate hand-off.

Each invocation keeps its state in locals; concurrent webhooks share nothing
but the injected collaborators.

pip install pydantic structlog
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from schemas.event_definitions import (
    ArtworkImage,
    DeliveryResult,
    IgnoreDecision,
    InboundEvent,
    PipelineOutcome,
    PipelineResult,
    PipelineStage,
    PurchaseRecord,
)
from pipeline.errors import (
    DataIntegrityError,
    DeliveryFailedError,
    EnrichmentUnavailableError,
    PipelineError,
    WebhookSecurityError,
)
from pipeline.event_classifier import classify_event
from pipeline.purchase_reconstructor import reconstruct_purchase
from pipeline.reporting import PipelineReporter, StructlogReporter
from pipeline.signature_verifier import SignatureVerifier


# =============================================================================
# COLLABORATOR INTERFACES
# =============================================================================

class IEnrichmentClient(ABC):
    """Supplies one piece of artwork for a search category."""

    @abstractmethod
    async def fetch(self, category: str) -> Optional[ArtworkImage]:
        """May return different content on every call; None when nothing was found."""
        pass


class IDeliveryClient(ABC):
    """Hands a finished purchase to the downstream automation."""

    @abstractmethod
    async def deliver(self, record: PurchaseRecord) -> DeliveryResult:
        pass


# =============================================================================
# ORCHESTRATOR
# =============================================================================

DEFAULT_ENRICHMENT_TIMEOUT_SECONDS = 10.0
DEFAULT_DELIVERY_TIMEOUT_SECONDS = 10.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurchasePipeline:
    """
    Sequences verification, classification, reconstruction, enrichment and
    delivery for one webhook at a time.

    Example:
        pipeline = PurchasePipeline(
            verifier=SignatureVerifier(settings.stripe_webhook_secret),
            enrichment=PexelsService(settings.pexels_api_key),
            delivery=ZapierService(settings.zapier_webhook_url, settings.zapier_secret_key),
            categories=ARTWORK_QUERIES,
            default_category=ARTWORK_QUERIES["basic"],
        )
        result = await pipeline.process(InboundEvent(payload=body, signature=header))
        return JSONResponse(result.to_response(), status_code=result.http_status)
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        enrichment: IEnrichmentClient,
        delivery: IDeliveryClient,
        categories: Mapping[str, str],
        default_category: str,
        reporter: Optional[PipelineReporter] = None,
        enrichment_timeout: float = DEFAULT_ENRICHMENT_TIMEOUT_SECONDS,
        delivery_timeout: float = DEFAULT_DELIVERY_TIMEOUT_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.verifier = verifier
        self.enrichment = enrichment
        self.delivery = delivery
        self.categories = dict(categories)
        self.default_category = default_category
        self.reporter = reporter or StructlogReporter()
        self.enrichment_timeout = enrichment_timeout
        self.delivery_timeout = delivery_timeout
        self._clock = clock

    def resolve_category(self, tier_id: str) -> str:
        """Unknown tiers fall back to the default category."""
        return self.categories.get(tier_id, self.default_category)

    async def process(self, inbound: InboundEvent) -> PipelineResult:
        # 1. Verify
        try:
            event = self.verifier.verify(inbound)
        except WebhookSecurityError as e:
            self.reporter.report(PipelineStage.REJECTED, **e.to_log_context())
            return PipelineResult(
                outcome=PipelineOutcome.REJECTED,
                event_id=e.event_id,
                error_code=e.code,
                error_message=e.message,
            )

        ctx: Dict[str, Any] = {"event_id": event.event_id, "event_type": event.event_type}
        self.reporter.report(PipelineStage.VERIFIED, **ctx)

        # 2. Classify
        decision = classify_event(event)
        self.reporter.report(PipelineStage.CLASSIFIED, decision=decision.kind, **ctx)
        if isinstance(decision, IgnoreDecision):
            self.reporter.report(PipelineStage.IGNORED, **ctx)
            return PipelineResult(outcome=PipelineOutcome.IGNORED, **ctx)

        ctx["session_id"] = decision.session_id

        # 3-4. Reconstruct, then enrich. Any error here is strict.
        try:
            purchase = reconstruct_purchase(decision.session)
            self.reporter.report(
                PipelineStage.RECONSTRUCTED,
                tier_id=purchase.tier.id,
                tip_amount=purchase.tip_amount,
                total_amount=purchase.total_amount,
                **ctx,
            )
            category = self.resolve_category(purchase.tier.id)
            image = await self._fetch_artwork(category)
        except PipelineError as e:
            return self._failed(e, ctx)

        self.reporter.report(PipelineStage.ENRICHED, image_id=image.id, category=category, **ctx)

        # 5. Assemble and hand off
        try:
            record = PurchaseRecord(
                customer_email=purchase.customer_email,
                tier=purchase.tier,
                tip_amount=purchase.tip_amount,
                total_amount=purchase.total_amount,
                stripe_session_id=purchase.session_id,
                image=image,
                purchase_date=self._clock(),
            )
        except ValidationError as e:
            return self._failed(
                DataIntegrityError(f"Purchase record is invalid ({e.error_count()} errors)"), ctx
            )

        # 6. Delivery failure is not a request failure
        try:
            await self._deliver(record)
        except DeliveryFailedError as e:
            e.with_context(event_id=event.event_id, session_id=purchase.session_id)
            self.reporter.report(PipelineStage.DEGRADED, **e.to_log_context())
            return PipelineResult(
                outcome=PipelineOutcome.DELIVERED_DEGRADED,
                record=record,
                error_code=e.code,
                error_message=e.message,
                **ctx,
            )

        self.reporter.report(
            PipelineStage.DELIVERED,
            image_id=image.id,
            total_amount=record.total_amount,
            **ctx,
        )
        return PipelineResult(outcome=PipelineOutcome.DELIVERED, record=record, **ctx)

    async def _fetch_artwork(self, category: str) -> ArtworkImage:
        """Exactly one enrichment call per event."""
        try:
            async with asyncio.timeout(self.enrichment_timeout):
                image = await self.enrichment.fetch(category)
        except TimeoutError as e:
            raise EnrichmentUnavailableError(
                f"Artwork fetch timed out after {self.enrichment_timeout}s"
            ) from e
        except Exception as e:
            raise EnrichmentUnavailableError(f"Artwork fetch failed: {e}") from e

        if image is None:
            raise EnrichmentUnavailableError(f"No artwork found for category {category!r}")
        if not isinstance(image, ArtworkImage):
            raise EnrichmentUnavailableError(
                f"Artwork client returned {type(image).__name__}, not an ArtworkImage"
            )
        return image

    async def _deliver(self, record: PurchaseRecord) -> None:
        try:
            async with asyncio.timeout(self.delivery_timeout):
                result = await self.delivery.deliver(record)
        except TimeoutError as e:
            raise DeliveryFailedError(
                f"Delivery timed out after {self.delivery_timeout}s"
            ) from e
        except Exception as e:
            raise DeliveryFailedError(f"Delivery failed: {e}") from e

        if not isinstance(result, DeliveryResult):
            raise DeliveryFailedError(
                f"Delivery client returned {type(result).__name__}, not a DeliveryResult"
            )
        if not result.success:
            raise DeliveryFailedError(result.error or "Delivery was not accepted")

    def _failed(self, error: PipelineError, ctx: Dict[str, Any]) -> PipelineResult:
        error.with_context(event_id=ctx.get("event_id"), session_id=ctx.get("session_id"))
        self.reporter.report(
            PipelineStage.FAILED, event_type=ctx.get("event_type"), **error.to_log_context()
        )
        return PipelineResult(
            outcome=PipelineOutcome.FAILED,
            error_code=error.code,
            error_message=error.message,
            **ctx,
        )
