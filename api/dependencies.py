"""
API Dependencies

Builds the service graph from settings once per process and exposes it to
routes through FastAPI dependencies:

- get_services(): ledger, record store, analyzer, orchestrator, batch runner
- get_account_id(): account identity from the X-Account-Id header

Tests replace get_services through app.dependency_overrides.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from schemaforge.billing import CreditLedger
from schemaforge.database import RecordStore, get_session_factory
from schemaforge.database.session import SessionFactory
from schemaforge.integrations import (
    ContentAnalyzer,
    ProviderError,
    SchemaProvider,
    create_schema_provider,
)
from schemaforge.pipeline import (
    BatchGenerator,
    EventBus,
    GenerationOrchestrator,
    LibraryRecorder,
    PipelineLimits,
)
from schemaforge.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class Services:
    ledger: CreditLedger
    store: RecordStore
    analyzer: ContentAnalyzer
    orchestrator: GenerationOrchestrator
    batch: BatchGenerator


def build_services(
    settings: Settings,
    session_factory: Optional[SessionFactory] = None,
    provider: Optional[SchemaProvider] = None,
    analyzer: Optional[ContentAnalyzer] = None,
) -> Services:
    """Wire the pipeline from explicit configuration."""
    session_factory = session_factory or get_session_factory()
    ledger = CreditLedger(session_factory)
    store = RecordStore(session_factory)

    analyzer = analyzer or ContentAnalyzer(
        user_agent=settings.SCRAPER_USER_AGENT,
        respect_robots=settings.RESPECT_ROBOTS_TXT,
        url_check_timeout=settings.URL_CHECK_TIMEOUT,
        scrape_timeout=settings.SCRAPE_TIMEOUT,
    )
    provider = provider or create_schema_provider(settings)

    events = EventBus()
    events.subscribe(LibraryRecorder(store))

    orchestrator = GenerationOrchestrator(
        analyzer=analyzer,
        provider=provider,
        ledger=ledger,
        store=store,
        events=events,
        limits=PipelineLimits.from_settings(settings),
    )
    batch = BatchGenerator(
        orchestrator,
        max_urls=settings.MAX_BATCH_URLS,
        pacing_seconds=settings.BATCH_PACING_SECONDS,
    )

    logger.info(f"Services ready (AI provider: {provider.name}, model: {provider.model})")
    return Services(ledger, store, analyzer, orchestrator, batch)


@lru_cache
def _default_services() -> Services:
    return build_services(get_settings())


def get_services() -> Services:
    """FastAPI dependency returning the process-wide service graph."""
    try:
        return _default_services()
    except ProviderError as e:
        logger.error(f"AI provider unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "provider_not_configured", "message": "AI provider is not configured"},
        )


def get_account_id(x_account_id: Optional[str] = Header(None)) -> str:
    """Account identity supplied by the upstream gateway."""
    if not x_account_id or not x_account_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "missing_account", "message": "X-Account-Id header is required"},
        )
    return x_account_id.strip()


async def close_services() -> None:
    """Drain pending listeners and close the analyzer's HTTP client."""
    if not _default_services.cache_info().currsize:
        return
    services = _default_services()
    await services.orchestrator.events.drain()
    await services.analyzer.close()
