# services/stripe_service.py
# ============================================================================
# SURPRISE ARTWORK SHOP — STRIPE CHECKOUT
# ============================================================================
# Creates Checkout Sessions and writes the metadata contract the webhook
# pipeline reads back:
#   tier_id, tier_name, tier_price, tip_amount, total_amount
# Amounts are decimal strings of cents.
# ============================================================================

from typing import Any, Dict, List

import stripe
import structlog

from schemas.event_definitions import PricingTier

PRODUCT_IMAGE_URL = "https://images.unsplash.com/photo-1541961017774-22349e4a1262?w=400"
CURRENCY = "usd"


def build_session_metadata(tier: PricingTier, tip_amount: int) -> Dict[str, str]:
    return {
        "tier_id": tier.id,
        "tier_name": tier.name,
        "tier_price": str(tier.price),
        "tip_amount": str(tip_amount),
        "total_amount": str(tier.price + tip_amount),
    }


def build_line_items(tier: PricingTier, tip_amount: int) -> List[Dict[str, Any]]:
    line_items: List[Dict[str, Any]] = [
        {
            "price_data": {
                "currency": CURRENCY,
                "product_data": {
                    "name": tier.name,
                    "description": tier.description,
                    "images": [PRODUCT_IMAGE_URL],
                },
                "unit_amount": tier.price,
            },
            "quantity": 1,
        }
    ]

    # Tip is its own line item
    if tip_amount > 0:
        line_items.append({
            "price_data": {
                "currency": CURRENCY,
                "product_data": {
                    "name": "Tip for Artist",
                    "description": "Support the amazing photographers",
                },
                "unit_amount": tip_amount,
            },
            "quantity": 1,
        })
    return line_items


class StripeService:
    """Thin wrapper over the Stripe Checkout API."""

    def __init__(self, secret_key: str):
        self._secret_key = secret_key
        self._logger = structlog.get_logger().bind(component="stripe_service")

    def create_checkout_session(
        self,
        tier: PricingTier,
        tip_amount: int,
        base_url: str,
    ) -> stripe.checkout.Session:
        if tip_amount < 0:
            raise ValueError("tip_amount must be non-negative")

        base_url = base_url.rstrip("/")
        try:
            session = stripe.checkout.Session.create(
                api_key=self._secret_key,
                payment_method_types=["card"],
                line_items=build_line_items(tier, tip_amount),
                mode="payment",
                success_url=f"{base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=base_url,
                metadata=build_session_metadata(tier, tip_amount),
                billing_address_collection="required",
                automatic_tax={"enabled": False},
            )
        except stripe.StripeError as e:
            self._logger.error("checkout_failed", tier=tier.id, error=str(e), error_type=type(e).__name__)
            raise

        self._logger.info("checkout_created", stripe_session_id=session.id, tier=tier.id,
                          total_amount=tier.price + tip_amount)
        return session
