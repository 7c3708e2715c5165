"""
Event Classifier
================
Decides whether a verified event is actionable. Every other event type is
acknowledged without processing so new provider event types never fail the
endpoint.
"""

from typing import Union

from schemas.event_definitions import (
    COMPLETED_EVENT_TYPE,
    ActionableDecision,
    CheckoutSessionPayload,
    IgnoreDecision,
    VerifiedEvent,
)


def classify_event(event: VerifiedEvent) -> Union[ActionableDecision, IgnoreDecision]:
    """Pure function of the event: the same event always gets the same decision."""
    payload = event.payload
    if event.event_type == COMPLETED_EVENT_TYPE and isinstance(payload, CheckoutSessionPayload):
        return ActionableDecision(session=payload.session)
    return IgnoreDecision(event_type=event.event_type)
