"""REST API endpoints for interview scheduling.

Provides endpoints for scheduling interviews (with partial-success
outcomes), listing and reading interviews, lifecycle transitions, and the
per-interviewer scorecard completion view.

All endpoints require a bearer token; the organization comes from its
claims. Services are read from app.state and a missing service is a 503.
Domain errors are mapped to HTTP by register_exception_handlers().
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.app.api.deps import get_current_user, get_organization
from src.app.core.organization import OrganizationContext
from src.app.core.security import CurrentUser
from src.app.interviews.errors import (
    InterviewNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from src.app.interviews.schemas import (
    Actor,
    Interview,
    InterviewStatus,
    ScheduleResult,
    SchedulingRequest,
    ScorecardCompletion,
    TransitionRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/interviews", tags=["interviews"])


# ── Helpers ──────────────────────────────────────────────────────────────────


def _get_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} not initialized",
        )
    return service


def _get_orchestrator(request: Request) -> Any:
    """Retrieve MeetingOrchestrator from app.state, 503 if not available."""
    return _get_state(request, "orchestrator", "Meeting orchestrator")


def _get_lifecycle(request: Request) -> Any:
    """Retrieve InterviewLifecycleManager from app.state, 503 if not available."""
    return _get_state(request, "lifecycle_manager", "Interview lifecycle manager")


def _get_repository(request: Request) -> Any:
    """Retrieve InterviewRepository from app.state, 503 if not available."""
    return _get_state(request, "interview_repository", "Interview repository")


def _actor(user: CurrentUser) -> Actor:
    return Actor(user_id=user.user_id, email=user.email, display_name=user.name)


# ── Exception Handlers ───────────────────────────────────────────────────────


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=jsonable_encoder({"reason": exc.reason, "value": exc.value, "detail": exc.detail}),
    )


async def _invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"from": exc.from_status, "to": exc.to_status, "detail": exc.detail},
    )


async def _not_found_handler(request: Request, exc: InterviewNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(InvalidTransitionError, _invalid_transition_handler)
    app.add_exception_handler(InterviewNotFoundError, _not_found_handler)


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.post("", response_model=ScheduleResult, status_code=status.HTTP_201_CREATED)
async def schedule_interview(
    body: SchedulingRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    org: OrganizationContext = Depends(get_organization),
) -> ScheduleResult:
    """Schedule an interview.

    Returns the persisted interview with a meeting outcome describing any
    integration that degraded (provider, calendar). Only malformed input
    fails the request.
    """
    orchestrator = _get_orchestrator(request)
    return await orchestrator.schedule(org.org_id, body, actor=_actor(user))


@router.get("", response_model=list[Interview])
async def list_interviews(
    request: Request,
    application_id: uuid.UUID | None = Query(default=None),
    status_filter: InterviewStatus | None = Query(default=None, alias="status"),
    org: OrganizationContext = Depends(get_organization),
) -> list[Interview]:
    """List interviews, optionally filtered by application and status."""
    repo = _get_repository(request)
    return await repo.list_interviews(
        org.org_id,
        application_id=str(application_id) if application_id else None,
        status=status_filter,
    )


@router.get("/scorecard-completion/{interviewer_id}", response_model=ScorecardCompletion)
async def scorecard_completion(
    interviewer_id: str,
    request: Request,
    org: OrganizationContext = Depends(get_organization),
) -> ScorecardCompletion:
    """Submitted and pending scorecards for one interviewer, computed on read."""
    lifecycle = _get_lifecycle(request)
    return await lifecycle.scorecard_completion(org.org_id, interviewer_id)


@router.get("/{interview_id}", response_model=Interview)
async def get_interview(
    interview_id: uuid.UUID,
    request: Request,
    org: OrganizationContext = Depends(get_organization),
) -> Interview:
    repo = _get_repository(request)
    interview = await repo.get_interview(org.org_id, str(interview_id))
    if interview is None:
        raise InterviewNotFoundError(str(interview_id))
    return interview


@router.post("/{interview_id}/transition", response_model=Interview)
async def transition_interview(
    interview_id: uuid.UUID,
    body: TransitionRequest,
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    org: OrganizationContext = Depends(get_organization),
) -> Interview:
    """Change an interview's status.

    Returns 409 when the transition is not allowed from the stored status or
    when expected_status no longer matches it.
    """
    lifecycle = _get_lifecycle(request)
    return await lifecycle.transition(
        org.org_id,
        str(interview_id),
        body.target_status,
        expected_status=body.expected_status,
        actor=_actor(user),
    )
