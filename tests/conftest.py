"""Shared test fixtures for reanchor.

Fixtures defined here are available to all tests in the suite without
needing an explicit import. Document builders live in tests/fake_document.py.
"""
from __future__ import annotations

import pytest

from reanchor.core.domain import Anchor, Point
from reanchor.engine.anchoring import AnchoringEngine
from reanchor.service.config import Settings
from reanchor.service.pipeline import AnchorService
from tests.fake_document import FakeDocument, FakeNode, build_storefront

DOCUMENT_KEY = "https://shop.example/item/42"


@pytest.fixture(autouse=True)
def fresh_service():
    """Rebuild the singleton engine for every test."""
    AnchorService.reset()
    yield
    AnchorService.reset()


@pytest.fixture()
def config() -> Settings:
    return Settings()


@pytest.fixture()
def engine(config: Settings) -> AnchoringEngine:
    return AnchoringEngine(config)


@pytest.fixture()
def storefront() -> FakeDocument:
    return build_storefront()


@pytest.fixture()
def buy_button(storefront: FakeDocument) -> FakeNode:
    return storefront.query_by_identifier("buy")[0]


@pytest.fixture()
def buy_anchor(
    engine: AnchoringEngine, storefront: FakeDocument, buy_button: FakeNode
) -> Anchor:
    """Anchor 10 units right of and below the button's top-left corner."""
    return engine.generate_anchor(Point(x=500, y=300), buy_button, storefront, DOCUMENT_KEY)
