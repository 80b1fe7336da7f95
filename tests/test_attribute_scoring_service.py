# tests/test_attribute_scoring_service.py
"""Tests for the attribute scorer adapter."""

import json

import httpx
import pytest

from tests.conftest import ATTRIBUTE_URL, attribute_response
from whisper_moderation.lib.errors import AdapterError, TextTooLongError, ValidationError
from whisper_moderation.models.config import AdapterConfig
from whisper_moderation.models.enums import Severity, SuggestedAction, ViolationType
from whisper_moderation.models.moderation import AttributeScores
from whisper_moderation.services.attribute_scoring_service import AttributeScoringService


def make_service(handler=None, max_text_length=20480) -> AttributeScoringService:
    config = AdapterConfig(
        api_url=ATTRIBUTE_URL,
        api_key="attr-key",
        max_text_length=max_text_length,
        cost_per_request=0.0002,
    )
    transport = httpx.MockTransport(handler) if handler else None
    return AttributeScoringService(config, transport=transport)


@pytest.mark.asyncio
async def test_analyze_text_parses_summary_scores() -> None:
    """Test request shape and that missing attributes default to zero."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=attribute_response({"TOXICITY": 0.42, "THREAT": 0.1}))

    scores = await make_service(handler).analyze_text("hello there")

    assert scores.toxicity == pytest.approx(0.42)
    assert scores.threat == pytest.approx(0.1)
    assert scores.insult == 0.0

    request = requests[0]
    assert request.url.params["key"] == "attr-key"
    body = json.loads(request.content)
    assert body["comment"] == {"text": "hello there"}
    assert body["languages"] == ["en"]
    assert body["doNotStore"] is True
    assert len(body["requestedAttributes"]) == 16


@pytest.mark.asyncio
async def test_analyze_text_too_long_raises_before_request() -> None:
    """Test that oversize text is a validation error and makes no call."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    service = make_service(handler, max_text_length=10)

    with pytest.raises(TextTooLongError) as excinfo:
        await service.analyze_text("x" * 11)
    assert isinstance(excinfo.value, ValidationError)
    assert excinfo.value.limit == 10


@pytest.mark.asyncio
async def test_analyze_text_non_200_raises() -> None:
    """Test that an API error status becomes an AdapterError."""
    service = make_service(lambda request: httpx.Response(403, json={}))

    with pytest.raises(AdapterError, match="403"):
        await service.analyze_text("text")


@pytest.mark.asyncio
async def test_analyze_text_malformed_body_raises() -> None:
    """Test that a body without attributeScores becomes an AdapterError."""
    service = make_service(lambda request: httpx.Response(200, json={"unexpected": True}))

    with pytest.raises(AdapterError, match="malformed"):
        await service.analyze_text("text")


def test_is_within_limits() -> None:
    """Test the inclusive length limit."""
    service = make_service(max_text_length=5)

    assert service.is_within_limits("12345") is True
    assert service.is_within_limits("123456") is False


def test_convert_to_violations() -> None:
    """Test attribute mapping, severity families and spam action."""
    service = make_service()
    violations = service.convert_to_violations(AttributeScores(
        toxicity=0.75,
        threat=0.95,
        spam=0.95,
        flirtation=0.99,
        profanity=0.8,
    ))

    found = {(v.type, v.severity, v.suggested_action) for v in violations}
    assert found == {
        (ViolationType.HARASSMENT, Severity.MEDIUM, SuggestedAction.REJECT),
        (ViolationType.VIOLENCE, Severity.CRITICAL, SuggestedAction.BAN),
        (ViolationType.SPAM, Severity.MEDIUM, SuggestedAction.FLAG),
    }


@pytest.mark.parametrize("attribute,score,expected", [
    ("severe_toxicity", 0.95, Severity.CRITICAL),
    ("identity_attack", 0.8, Severity.HIGH),
    ("threat", 0.6, Severity.MEDIUM),
    ("insult", 0.85, Severity.HIGH),
    ("insult", 0.65, Severity.MEDIUM),
    ("profanity", 0.55, Severity.LOW),
    ("sexually_explicit", 0.75, Severity.MEDIUM),
    ("sexually_explicit", 0.7, Severity.LOW),
])
def test_determine_severity(attribute, score, expected) -> None:
    """Test the severity bands for each attribute family."""
    assert make_service().determine_severity(attribute, score) == expected


def test_should_reject() -> None:
    """Test the rejection predicate."""
    service = make_service()

    assert service.should_reject(AttributeScores(severe_toxicity=0.81)) is True
    assert service.should_reject(AttributeScores(threat=0.81)) is True
    assert service.should_reject(AttributeScores(identity_attack=0.81)) is True
    assert service.should_reject(AttributeScores(toxicity=0.85)) is False
    assert service.should_reject(AttributeScores(toxicity=0.91)) is True


def test_estimate_cost_is_per_request() -> None:
    """Test that cost does not depend on text length."""
    assert make_service().estimate_cost() == pytest.approx(0.0002)
