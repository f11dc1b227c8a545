"""
Pytest Configuration and Shared Fixtures

Provides a throwaway SQLite database per test, a funded account, sample
fact sheets and candidates, and in-process fakes for the page analyzer and
the AI provider.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

from schemaforge.billing import BillingPolicy, CreditLedger
from schemaforge.database import RecordStore, create_db_engine, create_session_factory, init_db
from schemaforge.integrations import SchemaProvider, UrlCheck
from schemaforge.models import AUTO_TYPE, FactSheet
from schemaforge.pipeline import EventBus, GenerationOrchestrator, PipelineLimits


ARTICLE_URL = "https://example.org/blog/structured-data-guide"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file for one test."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'schemaforge-test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def ledger(session_factory) -> CreditLedger:
    return CreditLedger(session_factory)


@pytest.fixture
def store(session_factory) -> RecordStore:
    return RecordStore(session_factory)


@pytest.fixture
def funded_account(ledger) -> str:
    """Metered account holding 5 credits."""
    return ledger.open_account("acct-funded", email="owner@example.org", initial_balance=5)


@pytest.fixture
def exempt_account(ledger) -> str:
    return ledger.open_account("acct-exempt", billing_policy=BillingPolicy.EXEMPT)


# ============================================================================
# Mock Data Fixtures
# ============================================================================

def make_fact_sheet(url: str = ARTICLE_URL, **overrides) -> FactSheet:
    """Fact sheet for a typical blog article (no FAQ, product or event signals)."""
    values = dict(
        url=url,
        title="A Practical Guide to Structured Data",
        description="Learn how JSON-LD structured data helps search engines understand your pages.",
        word_count=1250,
        has_images=True,
        headings=["A Practical Guide to Structured Data", "Why JSON-LD", "Getting started"],
        images=[{"url": "https://example.org/images/guide.png", "alt": "Guide"}],
        author="Ada Lovelace",
        date_published="2024-03-01",
        language="en",
        site_name="Example Org",
        text_excerpt="Structured data describes page content in a machine-readable way. " * 20,
    )
    values.update(overrides)
    return FactSheet(**values)


@pytest.fixture
def fact_sheet() -> FactSheet:
    return make_fact_sheet()


def make_candidate(schema_type: str = "BlogPosting", url: str = ARTICLE_URL, **extra) -> Dict[str, Any]:
    candidate = {
        "@context": "https://schema.org",
        "@type": schema_type,
        "name": "A Practical Guide to Structured Data",
        "headline": "A Practical Guide to Structured Data",
        "description": "Learn how JSON-LD structured data helps search engines understand your pages.",
        "url": url,
        "image": "https://example.org/images/guide.png",
        "author": {"@type": "Person", "name": "Ada Lovelace"},
        "datePublished": "2024-03-01",
    }
    candidate.update(extra)
    return candidate


@pytest.fixture
def article_candidate() -> Dict[str, Any]:
    return make_candidate()


# ============================================================================
# Collaborator Fakes
# ============================================================================

class FakeAnalyzer:
    """Content analyzer returning a fixed fact sheet."""

    def __init__(self, facts: Optional[FactSheet] = None, error: Optional[Exception] = None, delay: float = 0):
        self.facts = facts
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def validate_url(self, url: str) -> UrlCheck:
        self.calls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return UrlCheck(url=url, final_url=url, status_code=200, html="<html></html>")

    async def analyze(self, url: str, html: Optional[str] = None) -> FactSheet:
        if self.facts is not None:
            return self.facts
        return make_fact_sheet(url=url)

    async def extract_existing_schemas(self, url: str) -> List[Dict[str, Any]]:
        return [make_candidate(url=url)]

    async def close(self):
        pass


class FakeProvider(SchemaProvider):
    """
    In-process AI provider.

    Returns `candidates` when given, otherwise one candidate of the requested
    type (BlogPosting for Auto). Refinement adds keywords and inLanguage.
    """

    name = "fake"

    def __init__(self, candidates: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        super().__init__(model="fake-model")
        self.candidates = candidates
        self.error = error
        self.generate_calls = 0
        self.refine_calls = 0

    async def _complete(self, system: str, prompt: str, temperature: float) -> str:
        raise AssertionError("FakeProvider does not call a model")

    async def generate(self, facts, requested_type, options=None):
        self.generate_calls += 1
        if self.error:
            raise self.error
        if self.candidates is not None:
            return copy.deepcopy(self.candidates)
        schema_type = "BlogPosting" if requested_type == AUTO_TYPE else requested_type
        return [make_candidate(schema_type, url=facts.url)]

    async def refine(self, candidates, url, refinement_count, original_facts=None, options=None):
        self.refine_calls += 1
        if self.error:
            raise self.error
        refined = copy.deepcopy(candidates)
        refined[0]["keywords"] = ["structured data", "json-ld"]
        refined[0]["inLanguage"] = "en"
        return refined, ["Added keywords", "Added inLanguage"]


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def candidate_factory():
    return make_candidate


@pytest.fixture
def fact_sheet_factory():
    return make_fact_sheet


@pytest.fixture
def build_orchestrator(ledger, store):
    """
    Builder for orchestrators wired to fakes.

    Usage:
        orchestrator = build_orchestrator(candidates=[...], provider_error=ProviderError(...))
        orchestrator.provider.generate_calls
    """
    def build(
        candidates=None,
        provider_error=None,
        facts=None,
        analyzer_error=None,
        analyzer_delay: float = 0,
        limits: Optional[PipelineLimits] = None,
        events: Optional[EventBus] = None,
    ) -> GenerationOrchestrator:
        return GenerationOrchestrator(
            analyzer=FakeAnalyzer(facts=facts, error=analyzer_error, delay=analyzer_delay),
            provider=FakeProvider(candidates=candidates, error=provider_error),
            ledger=ledger,
            store=store,
            events=events or EventBus(),
            limits=limits or PipelineLimits(),
        )
    return build


@pytest.fixture
def orchestrator(build_orchestrator) -> GenerationOrchestrator:
    return build_orchestrator()


# ============================================================================
# Test Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
