# tests/conftest.py
from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

import httpx
import pytest

from whisper_moderation.lib.store import InMemoryStore
from whisper_moderation.models.config import ModerationConfig
from whisper_moderation.models.enums import ReputationLevel, Severity, ViolationType
from whisper_moderation.models.user import UserReputation, ViolationRecord
from whisper_moderation.services.registry import ServiceRegistry, build_registry

START = datetime(2024, 6, 1, 12, 0, 0)

CATEGORY_URL = "https://category.test/v1/moderations"
ATTRIBUTE_URL = "https://attribute.test/v1/comments:analyze"


class FixedClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubRandom:
    """random.Random stand-in returning a fixed draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def category_response(scores: Optional[Dict[str, float]] = None, flagged: bool = False) -> Dict[str, Any]:
    return {"results": [{"flagged": flagged, "category_scores": scores or {}}]}


def attribute_response(scores: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    return {
        "attributeScores": {
            name: {"summaryScore": {"value": value, "type": "PROBABILITY"}}
            for name, value in (scores or {}).items()
        }
    }


def make_transport(
    category: Optional[Dict[str, Any]] = None,
    attribute: Optional[Dict[str, Any]] = None,
    category_status: int = 200,
    attribute_status: int = 200,
    calls: Optional[list] = None,
) -> httpx.MockTransport:
    """Routes requests to canned category/attribute responses by host."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append((request.url.host, json.loads(request.content)))
        if request.url.host == "category.test":
            return httpx.Response(category_status, json=category if category is not None else category_response())
        if request.url.host == "attribute.test":
            return httpx.Response(attribute_status, json=attribute if attribute is not None else attribute_response())
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def make_config(
    category_key: Optional[str] = "cat-key",
    attribute_key: Optional[str] = "attr-key",
    **features: bool,
) -> ModerationConfig:
    config = ModerationConfig()
    config.category_scorer.api_url = CATEGORY_URL
    config.category_scorer.api_key = category_key
    config.attribute_scorer.api_url = ATTRIBUTE_URL
    config.attribute_scorer.api_key = attribute_key
    for name, value in features.items():
        setattr(config.features, name, value)
    return config


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def build(store: InMemoryStore, clock: FixedClock) -> Callable[..., ServiceRegistry]:
    """Registry factory sharing the test store and clock."""

    def _build(
        config: Optional[ModerationConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Any = None,
    ) -> ServiceRegistry:
        return build_registry(
            config or make_config(category_key=None, attribute_key=None),
            store,
            rng=rng or StubRandom(0.99),
            clock=clock,
            transport=transport or make_transport(),
        )

    return _build


@pytest.fixture()
def registry(build: Callable[..., ServiceRegistry]) -> ServiceRegistry:
    """Local-only registry: no classifier keys configured."""
    return build()


@pytest.fixture()
def seed_user(store: InMemoryStore, clock: FixedClock) -> Callable[[str, int], UserReputation]:
    """Insert a reputation record directly."""

    def _seed(user_id: str, score: int) -> UserReputation:
        reputation = UserReputation(
            user_id=user_id,
            score=score,
            level=ReputationLevel.STANDARD,
            created_at=clock(),
            updated_at=clock(),
        )
        store.reputations[user_id] = reputation
        return reputation

    return _seed


@pytest.fixture()
def seed_violation(store: InMemoryStore, clock: FixedClock) -> Callable[..., ViolationRecord]:
    """Insert a violation record directly, optionally backdated."""

    def _seed(
        user_id: str,
        violation_id: str = "violation_1",
        severity: Severity = Severity.MEDIUM,
        days_ago: float = 0,
        whisper_id: str = "whisper_1",
    ) -> ViolationRecord:
        record = ViolationRecord(
            id=violation_id,
            user_id=user_id,
            whisper_id=whisper_id,
            violation_type=ViolationType.HARASSMENT,
            severity=severity,
            timestamp=clock() - timedelta(days=days_ago),
        )
        store.violation_records[violation_id] = record
        return record

    return _seed
