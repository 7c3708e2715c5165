# pipeline/errors.py
# ============================================================================
# SURPRISE ARTWORK SHOP — PIPELINE ERROR TAXONOMY
# ============================================================================
# Security errors      -> Rejected (400)
# Data-integrity errors -> Failed   (500, provider redelivers)
# Enrichment errors    -> Failed   (500, provider redelivers)
# Delivery errors      -> recovered into DeliveredDegraded (200)
#
# Messages never carry the raw signature header or any secret.
# ============================================================================

from typing import Any, Dict, Optional, Sequence


class PipelineError(Exception):
    """Base class for webhook pipeline failures."""

    code = "pipeline_error"

    def __init__(
        self,
        message: str,
        *,
        event_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.event_id = event_id
        self.session_id = session_id

    def with_context(
        self,
        event_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> "PipelineError":
        """Fill in correlation ids that were unknown where the error was raised."""
        if self.event_id is None:
            self.event_id = event_id
        if self.session_id is None:
            self.session_id = session_id
        return self

    def to_log_context(self) -> Dict[str, Any]:
        return {
            "error_code": self.code,
            "error": self.message,
            "event_id": self.event_id,
            "session_id": self.session_id,
        }


# =============================================================================
# SECURITY
# =============================================================================

class WebhookSecurityError(PipelineError):
    code = "security_error"


class MissingSignatureError(WebhookSecurityError):
    """No signature header at all."""
    code = "missing_signature"


class SignatureInvalidError(WebhookSecurityError):
    """A signature was supplied but does not match the payload."""
    code = "signature_invalid"


class EventMalformedError(WebhookSecurityError):
    """Authentic bytes that do not decode into a provider event."""
    code = "event_malformed"


# =============================================================================
# DATA INTEGRITY
# =============================================================================

class DataIntegrityError(PipelineError):
    code = "data_integrity_error"


class MetadataMissingError(DataIntegrityError):
    code = "metadata_missing"

    def __init__(self, missing_keys: Sequence[str], **kwargs):
        self.missing_keys = list(missing_keys)
        super().__init__(
            f"Missing metadata keys: {', '.join(self.missing_keys)}", **kwargs
        )


class MetadataMalformedError(DataIntegrityError):
    code = "metadata_malformed"

    def __init__(self, key: str, value: Any, expected: str = "a non-negative integer", **kwargs):
        self.key = key
        super().__init__(f"Field {key!r} is not {expected}: {value!r}", **kwargs)


class AmountMismatchError(DataIntegrityError):
    code = "amount_mismatch"

    def __init__(self, tier_price: int, tip_amount: int, total_amount: int, **kwargs):
        self.tier_price = tier_price
        self.tip_amount = tip_amount
        self.total_amount = total_amount
        super().__init__(
            f"total_amount {total_amount} != tier_price {tier_price} + tip_amount {tip_amount}",
            **kwargs,
        )


# =============================================================================
# EXTERNAL DEPENDENCIES
# =============================================================================

class EnrichmentUnavailableError(PipelineError):
    code = "enrichment_unavailable"


class DeliveryFailedError(PipelineError):
    """Non-fatal: the purchase is processed, only the hand-off failed."""
    code = "delivery_failed"
