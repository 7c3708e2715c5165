"""Builders and stub collaborators shared by the webhook tests."""

import asyncio
import hashlib
import hmac
import json
import time
from typing import Any, Dict, List, Optional

from schemas.event_definitions import ArtworkImage, DeliveryResult, PurchaseRecord
from pipeline import IDeliveryClient, IEnrichmentClient

WEBHOOK_SECRET = "whsec_test_secret_key"
SESSION_ID = "cs_test_a1b2c3"
EVENT_ID = "evt_test_123"

BASIC_METADATA: Dict[str, str] = {
    "tier_id": "basic",
    "tier_name": "Basic Surprise",
    "tier_price": "999",
    "tip_amount": "100",
    "total_amount": "1099",
}


def sign_payload(
    payload: bytes,
    secret: str = WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_session(
    metadata: Optional[Dict[str, Any]] = None,
    session_id: str = SESSION_ID,
    email: Optional[str] = "buyer@example.com",
) -> Dict[str, Any]:
    return {
        "id": session_id,
        "object": "checkout.session",
        "amount_total": 1099,
        "currency": "usd",
        "payment_status": "paid",
        "customer_details": {"email": email, "name": "Ada Buyer"},
        "metadata": dict(BASIC_METADATA) if metadata is None else metadata,
    }


def make_event_body(
    event_type: str = "checkout.session.completed",
    data_object: Optional[Dict[str, Any]] = None,
    event_id: str = EVENT_ID,
) -> bytes:
    if data_object is None:
        data_object = make_session() if event_type == "checkout.session.completed" else {
            "id": "pi_test_456",
            "object": "payment_intent",
            "amount": 1099,
        }
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": 1735689600,
        "livemode": False,
        "data": {"object": data_object},
    }).encode()


def make_artwork(photo_id: int = 417074) -> ArtworkImage:
    return ArtworkImage.model_validate({
        "id": photo_id,
        "width": 1920,
        "height": 1080,
        "url": f"https://www.pexels.com/photo/{photo_id}/",
        "photographer": "Jane Lens",
        "photographer_url": "https://www.pexels.com/@jane",
        "photographer_id": 42,
        "avg_color": "#7A8B6C",
        "src": {
            "original": f"https://images.pexels.com/photos/{photo_id}/pexels-photo-{photo_id}.jpeg",
            "large": f"https://images.pexels.com/photos/{photo_id}/large.jpeg",
        },
    })


def pexels_photo_json(photo_id: int) -> Dict[str, Any]:
    return make_artwork(photo_id).model_dump(mode="json")


class StubEnrichment(IEnrichmentClient):
    """Counts calls; returns a fixed artwork, nothing, or raises."""

    def __init__(
        self,
        image: Optional[ArtworkImage] = None,
        empty: bool = False,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.image = image or make_artwork()
        self.empty = empty
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def fetch(self, category: str) -> Optional[ArtworkImage]:
        self.calls.append(category)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return None if self.empty else self.image


class StubDelivery(IDeliveryClient):
    """Counts calls; accepts, rejects, or raises."""

    def __init__(
        self,
        success: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.success = success
        self.error = error
        self.delay = delay
        self.records: List[PurchaseRecord] = []

    @property
    def calls(self) -> int:
        return len(self.records)

    async def deliver(self, record: PurchaseRecord) -> DeliveryResult:
        self.records.append(record)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.success:
            return DeliveryResult(success=True)
        return DeliveryResult(success=False, error="HTTP 503: zap paused")
