"""Service wiring for rollcall.

create_services() builds the selection engine and analytics aggregator on
top of one shared repository. Host applications call startup() before
first use and shutdown() on exit to manage the database engine.
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from src.rollcall.analytics.aggregator import AnalyticsAggregator
from src.rollcall.config import Settings, get_settings
from src.rollcall.core.database import SessionFactory, close_db, get_session, init_db
from src.rollcall.core.logging import configure_structlog
from src.rollcall.selection.coordinator import utcnow
from src.rollcall.selection.engine import SelectionEngine
from src.rollcall.selection.repository import SelectionRepository

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    """Wired service instances shared by a host application."""

    settings: Settings
    repository: SelectionRepository
    engine: SelectionEngine
    analytics: AnalyticsAggregator


def create_services(
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
    repository=None,
    rng: random.Random | None = None,
    clock: Callable[[], datetime] | None = None,
) -> Services:
    """Build the service graph.

    Args:
        settings: Application settings (defaults to get_settings()).
        session_factory: Session factory for the default repository.
        repository: Prebuilt repository; takes precedence over
            session_factory.
        rng: Random source for selection strategies.
        clock: Current-time provider shared by engine and analytics.

    Returns:
        Services container.
    """
    settings = settings or get_settings()
    configure_structlog(settings)

    if repository is None:
        repository = SelectionRepository(session_factory or get_session)
    clock = clock or utcnow

    services = Services(
        settings=settings,
        repository=repository,
        engine=SelectionEngine(repository, rng=rng, clock=clock, settings=settings),
        analytics=AnalyticsAggregator(repository, clock=clock, settings=settings),
    )
    logger.info(
        "services.created",
        environment=settings.ENVIRONMENT.value,
        seeded=rng is not None or settings.SELECTION_SEED is not None,
    )
    return services


async def startup() -> None:
    """Create tables if needed."""
    await init_db()
    logger.info("rollcall.started")


async def shutdown() -> None:
    """Dispose of the database engine."""
    await close_db()
    logger.info("rollcall.stopped")
