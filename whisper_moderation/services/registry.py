"""
Service registry.
Builds every service once from a config and a store and hands them out
explicitly; nothing in the package keeps module-level instances.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import httpx

from whisper_moderation.lib.metrics import MetricsExporter
from whisper_moderation.lib.store import InMemoryStore, ModerationStore
from whisper_moderation.models.config import ModerationConfig
from whisper_moderation.services.appeal_service import AppealService
from whisper_moderation.services.attribute_scoring_service import AttributeScoringService
from whisper_moderation.services.category_scoring_service import CategoryScoringService
from whisper_moderation.services.decision_service import DecisionService
from whisper_moderation.services.local_scan_service import LocalScanService
from whisper_moderation.services.moderation_service import ModerationService
from whisper_moderation.services.reputation_service import ReputationService
from whisper_moderation.services.suspension_service import SuspensionService

logger = logging.getLogger(__name__)


@dataclass
class ServiceRegistry:
    config: ModerationConfig
    store: ModerationStore
    metrics: MetricsExporter
    reputation: ReputationService
    moderation: ModerationService
    appeals: AppealService
    suspensions: SuspensionService


def build_registry(
    config: Optional[ModerationConfig] = None,
    store: Optional[ModerationStore] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceRegistry:
    """Wire the services together. Defaults give an in-memory, env-free setup."""
    config = config or ModerationConfig()
    store = store or InMemoryStore()

    reputation = ReputationService(store, config.reputation, clock=clock)
    suspensions = SuspensionService(store, reputation, config.suspensions, clock=clock)
    appeals = AppealService(store, reputation, config.appeals, rng=rng, clock=clock)
    moderation = ModerationService(
        config=config,
        local_scan=LocalScanService(),
        category_scoring=CategoryScoringService(config.category_scorer, transport=transport),
        attribute_scoring=AttributeScoringService(config.attribute_scorer, transport=transport),
        decision_service=DecisionService(config.rank_ceilings),
        reputation_service=reputation,
        suspension_service=suspensions,
        clock=clock,
    )

    return ServiceRegistry(
        config=config,
        store=store,
        metrics=MetricsExporter(port=config.metrics_port),
        reputation=reputation,
        moderation=moderation,
        appeals=appeals,
        suspensions=suspensions,
    )


def registry_from_env() -> ServiceRegistry:
    """Postgres-backed when DATABASE_URL is set, in-memory otherwise."""
    config = ModerationConfig.from_env()
    store: Optional[ModerationStore] = None

    if config.database_url:
        # psycopg2 is only needed for a configured database
        from whisper_moderation.lib.database import DatabaseConnection, PostgresStore

        store = PostgresStore(DatabaseConnection(config.database_url))
        store.ensure_schema()
    else:
        logger.warning("DATABASE_URL not set, using in-memory store")

    return build_registry(config, store)
