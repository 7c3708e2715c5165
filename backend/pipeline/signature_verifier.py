"""
Signature Verifier
==================
Authenticates an inbound Stripe webhook against the endpoint signing secret.

The HMAC check runs over the raw request bytes, before any JSON parsing.
Only after the signature matches is the body decoded into a VerifiedEvent.

After that point only the event `type` is required. Event ids, timestamps
and payload objects are taken as they come.

pip install stripe pydantic
"""

from typing import Any, Optional

import stripe
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from datetime import datetime

from schemas.event_definitions import (
    COMPLETED_EVENT_TYPE,
    CheckoutSessionPayload,
    InboundEvent,
    OpaquePayload,
    VerifiedEvent,
)
from pipeline.errors import (
    EventMalformedError,
    MissingSignatureError,
    SignatureInvalidError,
)


SIGNATURE_HEADER = "stripe-signature"
DEFAULT_TOLERANCE_SECONDS = 300

_TIMESTAMP = TypeAdapter(datetime)


class _ProviderEvent(BaseModel):
    """Wire shape of a Stripe event envelope. Only `type` is enforced."""
    model_config = ConfigDict(extra="allow")

    type: str
    id: Any = None
    created: Any = None
    data: Any = None


def _event_id(envelope: _ProviderEvent) -> Optional[str]:
    return envelope.id if isinstance(envelope.id, str) else None


def _created_at(envelope: _ProviderEvent) -> Optional[datetime]:
    if envelope.created is None or isinstance(envelope.created, bool):
        return None
    try:
        return _TIMESTAMP.validate_python(envelope.created)
    except ValidationError:
        return None


def _data_object(envelope: _ProviderEvent) -> Any:
    if isinstance(envelope.data, dict):
        return envelope.data.get("object")
    return None


def verify_event(
    payload: bytes,
    signature: Optional[str],
    secret: str,
    tolerance: Optional[int] = DEFAULT_TOLERANCE_SECONDS,
) -> VerifiedEvent:
    """
    Verify `signature` over `payload` and decode the event.

    Raises:
        MissingSignatureError: no signature header was sent
        SignatureInvalidError: the signature does not match the raw bytes
        EventMalformedError: authentic bytes that are not a JSON event with a type
    """
    if signature is None:
        raise MissingSignatureError("No signature provided")
    if not secret:
        raise SignatureInvalidError("Webhook signing secret is not configured")

    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SignatureInvalidError("Payload is not valid UTF-8") from e

    try:
        stripe.WebhookSignature.verify_header(text, signature, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        # str(e) is Stripe's reason only; the header itself is not included.
        raise SignatureInvalidError(f"Signature verification failed: {e}") from e

    try:
        envelope = _ProviderEvent.model_validate_json(payload)
    except ValidationError as e:
        raise EventMalformedError(
            f"Payload is not a valid event ({e.error_count()} errors)"
        ) from e

    obj = _data_object(envelope)
    if envelope.type == COMPLETED_EVENT_TYPE:
        # Session shape problems surface during reconstruction.
        variant = CheckoutSessionPayload(session=obj if isinstance(obj, dict) else None)
    else:
        # Thin events carry no data.object; keep the whole envelope.
        variant = OpaquePayload(data=envelope.model_dump() if obj is None else obj)

    return VerifiedEvent(
        event_id=_event_id(envelope),
        event_type=envelope.type,
        created=_created_at(envelope),
        payload=variant,
    )


class SignatureVerifier:
    """Holds the signing secret so callers only pass the inbound request."""

    def __init__(self, secret: str, tolerance: Optional[int] = DEFAULT_TOLERANCE_SECONDS):
        if not secret:
            raise ValueError("Webhook signing secret is not configured")
        self._secret = secret
        self._tolerance = tolerance

    def verify(self, inbound: InboundEvent) -> VerifiedEvent:
        return verify_event(inbound.payload, inbound.signature, self._secret, self._tolerance)

    def __repr__(self) -> str:
        return f"SignatureVerifier(tolerance={self._tolerance})"
