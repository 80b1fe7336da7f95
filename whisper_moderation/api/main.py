"""FastAPI app exposing the moderation engine.

Endpoints:
- POST /moderate, GET /estimate-cost
- POST /appeals, POST /appeals/{appeal_id}/review, GET /appeals/stats,
  GET /users/{user_id}/appeals
- POST /suspensions, POST /suspensions/{suspension_id}/review,
  GET /suspensions/stats, GET /users/{user_id}/suspension-status

Services come from a ServiceRegistry passed to create_app; the module-level
app is built from environment configuration.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from whisper_moderation.lib.errors import (
    InvalidTransitionError, NotFoundError, UnderageUserError, ValidationError
)
from whisper_moderation.models.enums import AppealAction, SuspensionAction, SuspensionType
from whisper_moderation.services.registry import ServiceRegistry, registry_from_env


class ModerateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=10000)
    user_id: str
    user_age: int = Field(ge=0)
    # Persist violations, reputation and escalation when given
    whisper_id: Optional[str] = None


class CreateAppealRequest(BaseModel):
    user_id: str
    whisper_id: str
    violation_id: str
    reason: str = Field(min_length=1, max_length=1000)
    evidence: Optional[str] = None


class ReviewAppealRequest(BaseModel):
    action: AppealAction
    reason: str
    moderator_id: str
    reputation_adjustment: Optional[int] = None


class CreateSuspensionRequest(BaseModel):
    user_id: str
    reason: str
    type: SuspensionType
    duration_hours: Optional[float] = Field(default=None, gt=0)
    moderator_id: str = "system"
    appealable: bool = True


class ReviewSuspensionRequest(BaseModel):
    action: SuspensionAction
    reason: str
    moderator_id: str
    adjustment_hours: Optional[float] = Field(default=None, gt=0)


def _hours(value: Optional[float]) -> Optional[timedelta]:
    return timedelta(hours=value) if value is not None else None


def _error(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(registry: Optional[ServiceRegistry] = None) -> FastAPI:
    registry = registry or registry_from_env()
    app = FastAPI(title="Whisper Moderation API", version="0.1.0")
    app.state.registry = registry

    @app.exception_handler(UnderageUserError)
    async def underage(request: Request, exc: UnderageUserError) -> JSONResponse:
        return _error(403, exc)

    @app.exception_handler(ValidationError)
    async def invalid(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc)

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc)

    @app.exception_handler(InvalidTransitionError)
    async def conflict(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(409, exc)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/moderate")
    async def moderate(body: ModerateRequest) -> Dict[str, Any]:
        result = await registry.moderation.moderate_whisper(body.text, body.user_id, body.user_age)
        payload = result.model_dump(mode="json")
        if body.whisper_id:
            persisted = await registry.moderation.persist_result(result, body.user_id, body.whisper_id)
            payload["violation_ids"] = [r.id for r in persisted.records]
            if persisted.suspension is not None:
                payload["suspension"] = persisted.suspension.model_dump(mode="json")
        return payload

    @app.get("/estimate-cost")
    def estimate_cost(text_length: int = Query(ge=0, le=10000)) -> Dict[str, Any]:
        return {
            "textLength": text_length,
            "estimatedCost": registry.moderation.estimate_cost(text_length),
        }

    @app.post("/appeals")
    async def create_appeal(body: CreateAppealRequest) -> Dict[str, Any]:
        appeal = await registry.appeals.create_appeal(
            user_id=body.user_id,
            whisper_id=body.whisper_id,
            violation_id=body.violation_id,
            reason=body.reason,
            evidence=body.evidence,
        )
        return appeal.model_dump(mode="json")

    @app.post("/appeals/{appeal_id}/review")
    async def review_appeal(appeal_id: str, body: ReviewAppealRequest) -> Dict[str, Any]:
        appeal = await registry.appeals.review_appeal(
            appeal_id,
            action=body.action,
            reason=body.reason,
            moderator_id=body.moderator_id,
            reputation_adjustment=body.reputation_adjustment,
        )
        return appeal.model_dump(mode="json")

    @app.get("/appeals/stats")
    async def appeal_stats() -> Dict[str, Any]:
        return (await registry.appeals.get_appeal_stats()).model_dump(mode="json")

    @app.get("/users/{user_id}/appeals")
    async def user_appeals(user_id: str) -> List[Dict[str, Any]]:
        return [a.model_dump(mode="json") for a in await registry.appeals.get_user_appeals(user_id)]

    @app.post("/suspensions")
    async def create_suspension(body: CreateSuspensionRequest) -> Dict[str, Any]:
        suspension = await registry.suspensions.create_suspension(
            user_id=body.user_id,
            reason=body.reason,
            suspension_type=body.type,
            duration=_hours(body.duration_hours),
            moderator_id=body.moderator_id,
            appealable=body.appealable,
        )
        return suspension.model_dump(mode="json")

    @app.post("/suspensions/{suspension_id}/review")
    async def review_suspension(suspension_id: str, body: ReviewSuspensionRequest) -> Dict[str, Any]:
        suspension = await registry.suspensions.review_suspension(
            suspension_id,
            action=body.action,
            reason=body.reason,
            moderator_id=body.moderator_id,
            adjustment=_hours(body.adjustment_hours),
        )
        return suspension.model_dump(mode="json")

    @app.get("/suspensions/stats")
    async def suspension_stats() -> Dict[str, Any]:
        return (await registry.suspensions.get_suspension_stats()).model_dump(mode="json")

    @app.get("/reputation/stats")
    async def reputation_stats() -> Dict[str, Any]:
        return (await registry.reputation.get_reputation_stats()).model_dump(mode="json")

    @app.get("/users/{user_id}/suspension-status")
    async def suspension_status(user_id: str) -> Dict[str, Any]:
        return (await registry.suspensions.is_user_suspended(user_id)).model_dump(mode="json")

    return app


app = create_app()
