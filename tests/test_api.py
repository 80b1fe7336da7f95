# tests/test_api.py
"""Tests for the HTTP endpoints."""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from whisper_moderation.api.main import create_app


@pytest.fixture()
def client(registry) -> TestClient:
    return TestClient(create_app(registry))


def test_health(client) -> None:
    """Test the health endpoint."""
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_moderate_clean_text(client) -> None:
    """Test moderation of clean text."""
    response = client.post("/moderate", json={
        "text": "Hello world, this is a nice whisper",
        "user_id": "user_1",
        "user_age": 25,
    })

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "approved"
    assert data["content_rank"] == "G"
    assert data["is_minor_safe"] is True
    assert "violation_ids" not in data


def test_moderate_underage(client) -> None:
    """Test that underage users get a 403."""
    response = client.post("/moderate", json={"text": "hi", "user_id": "user_1", "user_age": 12})

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert "13" in response.json()["detail"]


def test_moderate_empty_text(client) -> None:
    """Test request validation on empty text."""
    response = client.post("/moderate", json={"text": "", "user_id": "user_1", "user_age": 25})

    assert response.status_code == 422


def test_moderate_with_whisper_persists(client) -> None:
    """Test that a whisper id persists violations and escalation."""
    response = client.post("/moderate", json={
        "text": "you are stupid",
        "user_id": "user_1",
        "user_age": 25,
        "whisper_id": "whisper_1",
    })

    data = response.json()
    assert data["status"] == "rejected"
    assert len(data["violation_ids"]) == 1
    assert data["suspension"]["type"] == "warning"


def test_estimate_cost(client) -> None:
    """Test the cost estimate endpoint."""
    response = client.get("/estimate-cost", params={"text_length": 100})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["textLength"] == 100
    assert data["estimatedCost"] > 0


def test_appeal_flow(client) -> None:
    """Test creating and reviewing an appeal over HTTP."""
    moderated = client.post("/moderate", json={
        "text": "you are stupid",
        "user_id": "user_1",
        "user_age": 25,
        "whisper_id": "whisper_1",
    }).json()

    created = client.post("/appeals", json={
        "user_id": "user_1",
        "whisper_id": "whisper_1",
        "violation_id": moderated["violation_ids"][0],
        "reason": "Joking with a friend",
    })
    assert created.status_code == status.HTTP_200_OK
    appeal = created.json()
    assert appeal["status"] == "pending"

    reviewed = client.post(f"/appeals/{appeal['id']}/review", json={
        "action": "approve",
        "reason": "Context checks out",
        "moderator_id": "mod_1",
    })
    assert reviewed.status_code == status.HTTP_200_OK
    assert reviewed.json()["status"] == "approved"

    again = client.post(f"/appeals/{appeal['id']}/review", json={
        "action": "reject",
        "reason": "Changed my mind",
        "moderator_id": "mod_1",
    })
    assert again.status_code == status.HTTP_409_CONFLICT

    stats = client.get("/appeals/stats").json()
    assert stats["approved"] == 1
    assert stats["approval_rate"] == 100.0

    listed = client.get("/users/user_1/appeals").json()
    assert [a["id"] for a in listed] == [appeal["id"]]


def test_appeal_unknown_violation(client) -> None:
    """Test that a missing violation is a 404."""
    response = client.post("/appeals", json={
        "user_id": "user_1",
        "whisper_id": "whisper_1",
        "violation_id": "violation_missing",
        "reason": "Please",
    })

    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_suspension_flow(client) -> None:
    """Test creating, reviewing and querying suspensions."""
    created = client.post("/suspensions", json={
        "user_id": "user_1",
        "reason": "spam",
        "type": "temporary",
        "duration_hours": 24,
        "moderator_id": "mod_1",
    })
    assert created.status_code == status.HTTP_200_OK
    suspension = created.json()
    assert suspension["ban_type"] == "content_visible"

    status_view = client.get("/users/user_1/suspension-status").json()
    assert status_view["suspended"] is True

    retyped = client.post(f"/suspensions/{suspension['id']}/review", json={
        "action": "make_permanent",
        "reason": "repeat",
        "moderator_id": "mod_1",
    })
    assert retyped.json()["type"] == "permanent"

    refused = client.post(f"/suspensions/{suspension['id']}/review", json={
        "action": "extend",
        "reason": "more",
        "moderator_id": "mod_1",
        "adjustment_hours": 24,
    })
    assert refused.status_code == status.HTTP_409_CONFLICT

    stats = client.get("/suspensions/stats").json()
    assert stats["permanent"] == 1


def test_invalid_suspension_is_400(client) -> None:
    """Test that a temporary suspension without a duration is a 400."""
    response = client.post("/suspensions", json={
        "user_id": "user_1",
        "reason": "spam",
        "type": "temporary",
    })

    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_reputation_stats(client, seed_user) -> None:
    """Test per-level user counts and the mean score."""
    seed_user("user_1", 90)
    seed_user("user_2", 30)

    response = client.get("/reputation/stats")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total_users"] == 2
    assert data["trusted_users"] == 1
    assert data["flagged_users"] == 1
    assert data["average_score"] == 60.0
