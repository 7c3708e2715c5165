# services/zapier_service.py
# ============================================================================
# SURPRISE ARTWORK SHOP — ZAPIER HAND-OFF CLIENT
# ============================================================================
# Purpose: POST finished purchases to the Zapier catch hook
#
# Never raises for delivery problems: every failure becomes a
# DeliveryResult(success=False) the pipeline can downgrade on.
# ============================================================================

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog

from schemas.event_definitions import DeliveryResult, PurchaseRecord
from pipeline.orchestrator import IDeliveryClient

SOURCE = "surprise-artwork-shop"
TEST_SOURCE = "surprise-artwork-shop-test"
USER_AGENT = "SurpriseArtworkShop/1.0"


class ZapierService(IDeliveryClient):
    """Delivery client for the Zapier automation webhook."""

    def __init__(
        self,
        webhook_url: str,
        secret_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
    ):
        self.webhook_url = webhook_url
        self._secret_key = secret_key
        self._logger = structlog.get_logger().bind(component="zapier_service")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._secret_key}",
            "User-Agent": USER_AGENT,
        }

    async def _post(self, body: Dict[str, Any]) -> DeliveryResult:
        if not self.webhook_url:
            return DeliveryResult(success=False, error="Zapier webhook URL is not configured")

        try:
            response = await self._client.post(self.webhook_url, json=body, headers=self._headers())
        except httpx.HTTPError as e:
            self._logger.error("zapier_request_failed", error=str(e), error_type=type(e).__name__)
            return DeliveryResult(success=False, error=str(e) or type(e).__name__)

        if response.is_error:
            error = f"HTTP {response.status_code}: {response.text[:200]}"
            self._logger.error("zapier_rejected", status_code=response.status_code)
            return DeliveryResult(success=False, error=error)

        return DeliveryResult(success=True)

    async def send_purchase_data(self, record: PurchaseRecord) -> DeliveryResult:
        body = record.model_dump(mode="json")
        body["timestamp"] = datetime.now(timezone.utc).isoformat()
        body["source"] = SOURCE

        result = await self._post(body)
        if result.success:
            self._logger.info("zapier_purchase_sent",
                              stripe_session_id=record.stripe_session_id,
                              tier=record.tier.id,
                              total_amount=record.total_amount)
        return result

    async def deliver(self, record: PurchaseRecord) -> DeliveryResult:
        return await self.send_purchase_data(record)

    async def test_connection(self) -> DeliveryResult:
        """Send a probe payload so the Zap can be checked end to end."""
        return await self._post({
            "test": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": TEST_SOURCE,
        })
