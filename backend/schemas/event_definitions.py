# schemas/event_definitions.py
# ============================================================================
# SURPRISE ARTWORK SHOP — EVENT + PURCHASE SCHEMAS
# ============================================================================
# Purpose: Type-safe models for the payment webhook pipeline
#
# - Inbound / verified provider events
# - Variant payloads as tagged unions (checkout session vs. opaque object)
# - Purchase records delivered to the downstream automation
# - Pipeline outcomes and their HTTP mapping
# ============================================================================

from typing import Annotated, Dict, Any, List, Optional, Literal, Union
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


COMPLETED_EVENT_TYPE = "checkout.session.completed"


# ============================================================================
# SECTION 1: ENUMS
# ============================================================================

class PipelineOutcome(str, Enum):
    """Terminal states of one webhook invocation."""
    IGNORED = "ignored"
    DELIVERED = "delivered"
    DELIVERED_DEGRADED = "delivered_degraded"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def http_status(self) -> int:
        # Failed asks the provider to redeliver; everything else is final.
        if self is PipelineOutcome.REJECTED:
            return 400
        if self is PipelineOutcome.FAILED:
            return 500
        return 200


class PipelineStage(str, Enum):
    """Transition points reported by the orchestrator."""
    VERIFIED = "verified"
    REJECTED = "rejected"
    CLASSIFIED = "classified"
    IGNORED = "ignored"
    RECONSTRUCTED = "reconstructed"
    ENRICHED = "enriched"
    DELIVERED = "delivered"
    DEGRADED = "degraded"
    FAILED = "failed"


# ============================================================================
# SECTION 2: PROVIDER EVENTS
# ============================================================================

class InboundEvent(BaseModel):
    """Raw webhook request: unparsed body plus the claimed signature."""
    model_config = ConfigDict(frozen=True)

    payload: bytes
    signature: Optional[str] = Field(default=None, repr=False)
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CustomerDetails(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None


class CheckoutSession(BaseModel):
    """The subset of a Stripe Checkout Session the pipeline reads."""
    model_config = ConfigDict(frozen=True)

    id: str
    metadata: Optional[Dict[str, Any]] = None
    customer_details: Optional[CustomerDetails] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    payment_status: Optional[str] = None


class CheckoutSessionPayload(BaseModel):
    """
    The raw session object, as signed. Its shape is checked during
    reconstruction, where a bad shape is a data-integrity failure.
    """
    kind: Literal["checkout_session"] = "checkout_session"
    session: Optional[Dict[str, Any]] = None


class OpaquePayload(BaseModel):
    """Whatever a non-actionable event carried; never inspected."""
    kind: Literal["opaque"] = "opaque"
    data: Any = None


EventPayload = Annotated[
    Union[CheckoutSessionPayload, OpaquePayload],
    Field(discriminator="kind"),
]


class VerifiedEvent(BaseModel):
    """
    An event whose signature has been confirmed.
    Only produced by pipeline.signature_verifier.SignatureVerifier.
    """
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None
    event_type: str
    created: Optional[datetime] = None
    payload: EventPayload


# ============================================================================
# SECTION 3: CLASSIFICATION DECISIONS
# ============================================================================

class ActionableDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["actionable"] = "actionable"
    session: Optional[Dict[str, Any]] = None

    @property
    def session_id(self) -> Optional[str]:
        raw_id = (self.session or {}).get("id")
        return raw_id if isinstance(raw_id, str) else None


class IgnoreDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ignore"] = "ignore"
    event_type: str


EventDecision = Annotated[
    Union[ActionableDecision, IgnoreDecision],
    Field(discriminator="kind"),
]


# ============================================================================
# SECTION 4: CATALOG + ARTWORK
# ============================================================================

class PricingTier(BaseModel):
    """Full catalog entry (served to the storefront)."""
    id: str
    name: str
    price: int = Field(ge=0, description="Price in cents")
    description: str = ""
    features: List[str] = Field(default_factory=list)


class TierReference(BaseModel):
    """What was purchased, as far as the event metadata can tell."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: int = Field(ge=0)


class PhotoSource(BaseModel):
    original: Optional[str] = None
    large2x: Optional[str] = None
    large: Optional[str] = None
    medium: Optional[str] = None
    small: Optional[str] = None
    portrait: Optional[str] = None
    landscape: Optional[str] = None
    tiny: Optional[str] = None


class ArtworkImage(BaseModel):
    """A Pexels photo used as the purchased artwork."""
    id: int
    width: int = 0
    height: int = 0
    url: str
    photographer: str = ""
    photographer_url: str = ""
    photographer_id: Optional[int] = None
    avg_color: Optional[str] = None
    alt: Optional[str] = None
    src: PhotoSource = Field(default_factory=PhotoSource)


# ============================================================================
# SECTION 5: PURCHASE RECORD + DELIVERY
# ============================================================================

class PurchaseRecord(BaseModel):
    """The unit handed to the downstream automation."""
    model_config = ConfigDict(frozen=True)

    customer_email: str = ""
    tier: TierReference
    tip_amount: int = Field(ge=0)
    total_amount: int = Field(ge=0)
    stripe_session_id: str
    image: ArtworkImage
    purchase_date: datetime

    @model_validator(mode="after")
    def _check_total(self) -> "PurchaseRecord":
        if self.total_amount != self.tier.price + self.tip_amount:
            raise ValueError("total_amount must equal tier.price + tip_amount")
        return self


class DeliveryResult(BaseModel):
    success: bool
    error: Optional[str] = None


# ============================================================================
# SECTION 6: PIPELINE RESULT
# ============================================================================

_PUBLIC_ERRORS = {
    "missing_signature": "No signature provided",
    "signature_invalid": "Invalid signature",
    "event_malformed": "Invalid payload",
    "enrichment_unavailable": "Failed to fetch artwork",
}


class PipelineResult(BaseModel):
    """Outcome of one webhook invocation, ready for the HTTP layer."""
    outcome: PipelineOutcome
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    session_id: Optional[str] = None
    record: Optional[PurchaseRecord] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def http_status(self) -> int:
        return self.outcome.http_status

    def to_response(self) -> Dict[str, Any]:
        """Provider-facing body. Internal error detail stays in the logs."""
        if self.outcome is PipelineOutcome.REJECTED:
            return {"error": _PUBLIC_ERRORS.get(self.error_code, "Invalid signature")}
        if self.outcome is PipelineOutcome.FAILED:
            return {"error": _PUBLIC_ERRORS.get(self.error_code, "Processing failed")}
        body: Dict[str, Any] = {"success": True}
        if self.outcome is PipelineOutcome.DELIVERED_DEGRADED:
            body["delivered"] = False
        return body
