# Webhook Pipeline
# ================
# Stripe checkout.session.completed -> artwork enrichment -> automation hand-off

from pipeline.errors import (
    PipelineError,
    WebhookSecurityError,
    MissingSignatureError,
    SignatureInvalidError,
    EventMalformedError,
    DataIntegrityError,
    MetadataMissingError,
    MetadataMalformedError,
    AmountMismatchError,
    EnrichmentUnavailableError,
    DeliveryFailedError,
)
from pipeline.signature_verifier import (
    SIGNATURE_HEADER,
    SignatureVerifier,
    verify_event,
)
from pipeline.event_classifier import classify_event
from pipeline.purchase_reconstructor import (
    ReconstructedPurchase,
    reconstruct_purchase,
)
from pipeline.reporting import (
    PipelineReporter,
    InMemoryReporter,
    StructlogReporter,
)
from pipeline.orchestrator import (
    IEnrichmentClient,
    IDeliveryClient,
    PurchasePipeline,
)

__all__ = [
    # Errors
    "PipelineError",
    "WebhookSecurityError",
    "MissingSignatureError",
    "SignatureInvalidError",
    "EventMalformedError",
    "DataIntegrityError",
    "MetadataMissingError",
    "MetadataMalformedError",
    "AmountMismatchError",
    "EnrichmentUnavailableError",
    "DeliveryFailedError",
    # Stages
    "SIGNATURE_HEADER",
    "SignatureVerifier",
    "verify_event",
    "classify_event",
    "ReconstructedPurchase",
    "reconstruct_purchase",
    # Reporting
    "PipelineReporter",
    "InMemoryReporter",
    "StructlogReporter",
    # Orchestrator
    "IEnrichmentClient",
    "IDeliveryClient",
    "PurchasePipeline",
]
