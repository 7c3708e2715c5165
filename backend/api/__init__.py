# api/__init__.py
from api.server import (
    create_app,
    configure_logging,
    CheckoutRequest,
    CheckoutResponse,
)

__all__ = [
    "create_app",
    "configure_logging",
    "CheckoutRequest",
    "CheckoutResponse",
]
