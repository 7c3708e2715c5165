# config.py
# ============================================================================
# SURPRISE ARTWORK SHOP — CONFIGURATION
# ============================================================================
# Environment-driven settings plus the static pricing catalog.
# All money values are integer minor currency units (cents).
# ============================================================================

import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


# ============================================================================
# SECTION 1: SETTINGS
# ============================================================================

def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ShopSettings:
    """Runtime configuration for the shop backend."""
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_publishable_key: str = ""
    pexels_api_key: str = ""
    pexels_api_url: str = "https://api.pexels.com/v1"
    zapier_webhook_url: str = ""
    zapier_secret_key: str = ""
    public_site_url: str = "http://localhost:5173"
    env: str = "production"

    # Webhook processing
    signature_tolerance_seconds: int = 300
    enrichment_timeout_seconds: float = 10.0
    delivery_timeout_seconds: float = 10.0

    # Checkout
    max_tip_amount: int = 10000

    enable_debug_routes: bool = False

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @classmethod
    def from_env(cls) -> "ShopSettings":
        env = os.getenv("ENV", "production")
        return cls(
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY", ""),
            pexels_api_key=os.getenv("PEXELS_KEY", ""),
            pexels_api_url=os.getenv("PEXELS_API_URL", "https://api.pexels.com/v1"),
            zapier_webhook_url=os.getenv("ZAPIER_WEBHOOK_URL", ""),
            zapier_secret_key=os.getenv("ZAPIER_SECRET_KEY", ""),
            public_site_url=os.getenv("PUBLIC_SITE_URL", "http://localhost:5173"),
            env=env,
            signature_tolerance_seconds=int(os.getenv("STRIPE_SIGNATURE_TOLERANCE", "300")),
            enrichment_timeout_seconds=float(os.getenv("ENRICHMENT_TIMEOUT", "10.0")),
            delivery_timeout_seconds=float(os.getenv("DELIVERY_TIMEOUT", "10.0")),
            max_tip_amount=int(os.getenv("MAX_TIP_AMOUNT", "10000")),
            enable_debug_routes=_env_flag("ENABLE_DEBUG_ROUTES", env == "development"),
        )


# ============================================================================
# SECTION 2: PRICING CATALOG
# ============================================================================

PRICING_TIERS: List[Dict[str, Any]] = [
    {
        "id": "basic",
        "name": "Basic Surprise",
        "price": 999,
        "description": "A delightful digital artwork to brighten your day",
        "features": [
            "High-quality digital artwork",
            "Instant download",
            "Commercial usage rights",
            "Email support",
        ],
    },
    {
        "id": "premium",
        "name": "Premium Surprise",
        "price": 1999,
        "description": "Premium curated artwork with exclusive content",
        "features": [
            "Premium high-resolution artwork",
            "Instant download",
            "Extended commercial rights",
            "Artist information included",
            "Priority support",
        ],
    },
    {
        "id": "deluxe",
        "name": "Deluxe Collection",
        "price": 3999,
        "description": "The ultimate surprise package with bonus content",
        "features": [
            "Ultra high-resolution artwork",
            "Multiple format downloads",
            "Full commercial rights",
            "Artist biography & story",
            "Exclusive bonus content",
            "VIP support",
        ],
    },
]

# Suggested tips: $0, $1, $2, $5
TIP_OPTIONS: List[int] = [0, 100, 200, 500]

# Image search category per tier
ARTWORK_QUERIES: Dict[str, str] = {
    "basic": "nature landscape photography",
    "premium": "abstract art modern photography",
    "deluxe": "fine art professional photography",
}

DEFAULT_ARTWORK_TIER = "basic"

APP_CONFIG: Dict[str, str] = {
    "name": "Surprise Artwork Shop",
    "description": "Discover beautiful, high-quality digital artworks curated just for you.",
    "support_email": "support@surpriseartworkshop.com",
    "version": "1.0.0",
}


def get_tier(tier_id: str) -> Optional[Dict[str, Any]]:
    """Look up a catalog tier by id."""
    for tier in PRICING_TIERS:
        if tier["id"] == tier_id:
            return tier
    return None
