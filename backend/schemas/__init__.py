# schemas/__init__.py
from schemas.event_definitions import (
    COMPLETED_EVENT_TYPE,
    PipelineOutcome,
    PipelineStage,
    InboundEvent,
    CustomerDetails,
    CheckoutSession,
    CheckoutSessionPayload,
    OpaquePayload,
    EventPayload,
    VerifiedEvent,
    ActionableDecision,
    IgnoreDecision,
    EventDecision,
    PricingTier,
    TierReference,
    PhotoSource,
    ArtworkImage,
    PurchaseRecord,
    DeliveryResult,
    PipelineResult,
)

__all__ = [
    "COMPLETED_EVENT_TYPE",
    # Enums
    "PipelineOutcome",
    "PipelineStage",
    # Provider events
    "InboundEvent",
    "CustomerDetails",
    "CheckoutSession",
    "CheckoutSessionPayload",
    "OpaquePayload",
    "EventPayload",
    "VerifiedEvent",
    # Classification
    "ActionableDecision",
    "IgnoreDecision",
    "EventDecision",
    # Catalog + artwork
    "PricingTier",
    "TierReference",
    "PhotoSource",
    "ArtworkImage",
    # Purchase + delivery
    "PurchaseRecord",
    "DeliveryResult",
    "PipelineResult",
]
