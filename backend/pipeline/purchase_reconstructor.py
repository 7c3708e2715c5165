"""
Purchase Reconstructor
======================
Rebuilds the purchased tier and amounts from the flat metadata map the
checkout-session creator attached to the session.

Metadata contract (all numbers are decimal strings of cents):
    tier_id, tier_name, tier_price, total_amount   required
    tip_amount                                      optional, defaults to 0
"""

import re
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from schemas.event_definitions import CheckoutSession, TierReference
from pipeline.errors import (
    AmountMismatchError,
    MetadataMalformedError,
    MetadataMissingError,
)


REQUIRED_KEYS = ("tier_id", "tier_name", "tier_price", "total_amount")

_DIGITS = re.compile(r"[0-9]+")


class ReconstructedPurchase(BaseModel):
    """Everything the session tells us about the purchase, before enrichment."""
    session_id: str
    customer_email: str = ""
    tier: TierReference
    tip_amount: int
    total_amount: int


def parse_amount(key: str, value: Any, session_id: Optional[str] = None) -> int:
    """Parse a non-negative integer amount; no floats, signs, padding or blanks."""
    if isinstance(value, bool):
        raise MetadataMalformedError(key, value, session_id=session_id)
    if isinstance(value, int):
        if value < 0:
            raise MetadataMalformedError(key, value, session_id=session_id)
        return value
    if isinstance(value, str) and _DIGITS.fullmatch(value):
        return int(value)
    raise MetadataMalformedError(key, value, session_id=session_id)


def parse_session(raw: Optional[Mapping[str, Any]]) -> CheckoutSession:
    """
    Validate the signed session object.

    Raises:
        MetadataMissingError: there is no session object, or it has no id
        MetadataMalformedError: a session field has the wrong type
    """
    if raw is None:
        raise MetadataMissingError(["session"])

    raw_id = raw.get("id")
    session_id = raw_id if isinstance(raw_id, str) else None
    try:
        return CheckoutSession.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first["loc"]) or "session"
        if first["type"] == "missing":
            raise MetadataMissingError([key], session_id=session_id) from e
        raise MetadataMalformedError(
            key, first.get("input"), expected="well-formed", session_id=session_id
        ) from e


def reconstruct_purchase(
    session: Union[CheckoutSession, Mapping[str, Any], None],
) -> ReconstructedPurchase:
    """
    Accepts a validated CheckoutSession or the raw session object.

    Raises:
        MetadataMissingError: a required key, or the session id, is absent
        MetadataMalformedError: a numeric field is not a non-negative integer,
            or a session field has the wrong type
        AmountMismatchError: total_amount != tier_price + tip_amount
    """
    if not isinstance(session, CheckoutSession):
        session = parse_session(session)

    metadata: Mapping[str, Any] = session.metadata or {}

    missing = [key for key in REQUIRED_KEYS if metadata.get(key) in (None, "")]
    if missing:
        raise MetadataMissingError(missing, session_id=session.id)

    tier_price = parse_amount("tier_price", metadata["tier_price"], session.id)
    total_amount = parse_amount("total_amount", metadata["total_amount"], session.id)

    raw_tip = metadata.get("tip_amount")
    tip_amount = 0 if raw_tip in (None, "") else parse_amount("tip_amount", raw_tip, session.id)

    if total_amount != tier_price + tip_amount:
        raise AmountMismatchError(tier_price, tip_amount, total_amount, session_id=session.id)

    details = session.customer_details
    customer_email = (details.email if details else None) or ""

    return ReconstructedPurchase(
        session_id=session.id,
        customer_email=customer_email,
        tier=TierReference(
            id=str(metadata["tier_id"]),
            name=str(metadata["tier_name"]),
            price=tier_price,
        ),
        tip_amount=tip_amount,
        total_amount=total_amount,
    )
