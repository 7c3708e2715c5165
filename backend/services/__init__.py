# services/__init__.py
# ============================================================================
# SURPRISE ARTWORK SHOP — SERVICES MODULE
# ============================================================================
# Clients for Stripe (checkout), Pexels (artwork) and Zapier (hand-off)
# ============================================================================

from services.pexels_service import PexelsService
from services.zapier_service import ZapierService
from services.stripe_service import (
    StripeService,
    build_line_items,
    build_session_metadata,
)

__all__ = [
    "PexelsService",
    "ZapierService",
    "StripeService",
    "build_line_items",
    "build_session_metadata",
]
