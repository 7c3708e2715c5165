from datetime import datetime, timezone
from typing import Callable

import pytest

from config import ARTWORK_QUERIES, DEFAULT_ARTWORK_TIER
from pipeline import InMemoryReporter, PurchasePipeline, SignatureVerifier
from tests.helpers import WEBHOOK_SECRET, StubDelivery, StubEnrichment

FIXED_NOW = datetime(2026, 1, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def reporter() -> InMemoryReporter:
    return InMemoryReporter()


@pytest.fixture
def enrichment() -> StubEnrichment:
    return StubEnrichment()


@pytest.fixture
def delivery() -> StubDelivery:
    return StubDelivery()


@pytest.fixture
def verifier() -> SignatureVerifier:
    return SignatureVerifier(WEBHOOK_SECRET)


@pytest.fixture
def make_pipeline(verifier, reporter) -> Callable[..., PurchasePipeline]:
    """
    Return a factory for pipelines wired to stubs.
    Usage: pipeline = make_pipeline(enrichment=StubEnrichment(empty=True))
    """
    def _make(enrichment=None, delivery=None, **overrides) -> PurchasePipeline:
        options = {
            "categories": ARTWORK_QUERIES,
            "default_category": ARTWORK_QUERIES[DEFAULT_ARTWORK_TIER],
            "reporter": reporter,
            "clock": lambda: FIXED_NOW,
        }
        options.update(overrides)
        return PurchasePipeline(
            verifier=verifier,
            enrichment=enrichment or StubEnrichment(),
            delivery=delivery or StubDelivery(),
            **options,
        )
    return _make


@pytest.fixture
def pipeline(make_pipeline, enrichment, delivery) -> PurchasePipeline:
    return make_pipeline(enrichment=enrichment, delivery=delivery)
