# api/server.py
# ============================================================================
# SURPRISE ARTWORK SHOP — FASTAPI SERVER
# ============================================================================
# Checkout creation, Stripe webhook endpoint, health + debug probes
#
# pip install fastapi uvicorn pydantic structlog stripe httpx
# ============================================================================

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import stripe
import structlog
import uvicorn

from config import (
    APP_CONFIG,
    ARTWORK_QUERIES,
    DEFAULT_ARTWORK_TIER,
    PRICING_TIERS,
    TIP_OPTIONS,
    ShopSettings,
    get_tier,
)
from schemas.event_definitions import InboundEvent, PricingTier
from pipeline import SIGNATURE_HEADER, PurchasePipeline, SignatureVerifier
from services import PexelsService, StripeService, ZapierService


# =============================================================================
# LOGGING
# =============================================================================

def configure_logging(env: str = "production") -> None:
    development = env == "development"
    renderer = (
        structlog.dev.ConsoleRenderer(colors=True)
        if development
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if development else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CheckoutRequest(BaseModel):
    tier_id: str = Field(..., min_length=1)
    tip_amount: int = Field(default=0, ge=0, description="Tip in cents")


class CheckoutResponse(BaseModel):
    url: str


class PricingResponse(BaseModel):
    tiers: List[PricingTier]
    tip_options: List[int]


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(
    settings: Optional[ShopSettings] = None,
    pipeline: Optional[PurchasePipeline] = None,
    stripe_service: Optional[StripeService] = None,
    pexels: Optional[PexelsService] = None,
    zapier: Optional[ZapierService] = None,
) -> FastAPI:
    """
    Build the application. Collaborators that are not passed in are created
    from settings when the app starts and closed when it stops.
    """
    settings = settings or ShopSettings.from_env()
    configure_logging(settings.env)
    logger = structlog.get_logger().bind(component="server")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        state = app.state
        owned = []

        # Fails fast on a missing signing secret, before any client is opened.
        verifier = None
        if state.pipeline is None:
            verifier = SignatureVerifier(
                settings.stripe_webhook_secret,
                tolerance=settings.signature_tolerance_seconds,
            )

        if state.pexels is None:
            state.pexels = PexelsService(
                settings.pexels_api_key,
                base_url=settings.pexels_api_url,
                timeout_seconds=settings.enrichment_timeout_seconds,
            )
            owned.append(state.pexels)
        if state.zapier is None:
            state.zapier = ZapierService(
                settings.zapier_webhook_url,
                settings.zapier_secret_key,
                timeout_seconds=settings.delivery_timeout_seconds,
            )
            owned.append(state.zapier)
        if state.stripe_service is None:
            state.stripe_service = StripeService(settings.stripe_secret_key)
        if state.pipeline is None:
            state.pipeline = PurchasePipeline(
                verifier=verifier,
                enrichment=state.pexels,
                delivery=state.zapier,
                categories=ARTWORK_QUERIES,
                default_category=ARTWORK_QUERIES[DEFAULT_ARTWORK_TIER],
                enrichment_timeout=settings.enrichment_timeout_seconds,
                delivery_timeout=settings.delivery_timeout_seconds,
            )

        logger.info("server_started", env=settings.env,
                    debug_routes=settings.enable_debug_routes)
        try:
            yield
        finally:
            for client in owned:
                await client.close()
            logger.info("server_stopped")

    app = FastAPI(
        title=APP_CONFIG["name"],
        description=APP_CONFIG["description"],
        version=APP_CONFIG["version"],
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.stripe_service = stripe_service
    app.state.pexels = pexels
    app.state.zapier = zapier
    app.state.started_at = datetime.now(timezone.utc)

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        uptime = (datetime.now(timezone.utc) - app.state.started_at).total_seconds()
        return HealthResponse(status="healthy", version=APP_CONFIG["version"], uptime_seconds=uptime)

    @app.get("/api/pricing", response_model=PricingResponse)
    async def pricing():
        return PricingResponse(
            tiers=[PricingTier.model_validate(tier) for tier in PRICING_TIERS],
            tip_options=TIP_OPTIONS,
        )

    # Sync handler: the Stripe SDK blocks, FastAPI runs this in its threadpool.
    @app.post("/api/create-checkout-session", response_model=CheckoutResponse)
    def create_checkout_session(body: CheckoutRequest, request: Request):
        tier_data = get_tier(body.tier_id)
        if tier_data is None:
            return JSONResponse(status_code=400, content={"error": "Invalid tier selected"})
        if body.tip_amount > settings.max_tip_amount:
            return JSONResponse(status_code=422, content={"error": "Tip amount too large"})

        try:
            session = request.app.state.stripe_service.create_checkout_session(
                PricingTier.model_validate(tier_data),
                body.tip_amount,
                settings.public_site_url,
            )
        except stripe.StripeError:
            return JSONResponse(status_code=500, content={"error": "Failed to create checkout session"})

        return CheckoutResponse(url=session.url)

    @app.post("/api/webhook")
    async def stripe_webhook(request: Request):
        """
        Stripe webhook endpoint. Status codes tell Stripe whether to redeliver:
        400 rejected, 500 failed (redeliver), 200 everything else.
        """
        payload = await request.body()
        inbound = InboundEvent(payload=payload, signature=request.headers.get(SIGNATURE_HEADER))

        # A client disconnect must not cut a verified event off mid-pipeline.
        result = await asyncio.shield(request.app.state.pipeline.process(inbound))
        return JSONResponse(status_code=result.http_status, content=result.to_response())

    if settings.enable_debug_routes:

        @app.post("/api/debug/test-webhook")
        async def debug_test_webhook(request: Request):
            """Probe the artwork and automation integrations."""
            results: Dict[str, Any] = {}

            image = await request.app.state.pexels.get_random_photo("nature art landscape")
            results["pexels"] = {
                "success": image is not None,
                "message": (
                    f"Successfully fetched image by {image.photographer}"
                    if image else "Failed to fetch image"
                ),
                "image_id": image.id if image else None,
                "photographer": image.photographer if image else None,
            }

            probe = await request.app.state.zapier.test_connection()
            results["zapier"] = {
                "success": probe.success,
                "message": (
                    "Zapier webhook successful"
                    if probe.success else f"Zapier webhook failed: {probe.error}"
                ),
                "error": probe.error,
            }

            overall = results["pexels"]["success"] and results["zapier"]["success"]
            logger.info("debug_probe_completed", pexels=results["pexels"]["success"],
                        zapier=results["zapier"]["success"])
            return {
                "success": overall,
                "message": (
                    "All webhook integrations working correctly!"
                    if overall else "Some integrations have issues - check details below"
                ),
                "results": results,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

    return app


app = create_app()


def main():
    uvicorn.run(
        "api.server:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
