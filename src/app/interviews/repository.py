"""Interview repositories -- async persistence for interviews and their side tables.

Provides, all using the session_factory callable pattern:
- InterviewRepository: interview CRUD, optimistic status updates and the
  scorecard-completion inputs
- ActivityLogRepository: append-only application activity log
- IntegrationRepository: organization provider tokens, refreshed on expiry

All methods take org_id as first argument and filter every query on it.
Attendees are stored as JSON via model_dump(mode="json") and loaded with
model_validate().
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.app.interviews.errors import (
    InterviewNotFoundError,
    InvalidTransitionError,
    TokenRefreshError,
)
from src.app.interviews.models import (
    ApplicationActivityModel,
    InterviewModel,
    InterviewScorecardModel,
    OrganizationIntegrationModel,
)
from src.app.interviews.schemas import (
    Attendee,
    Interview,
    InterviewCreate,
    InterviewStatus,
    InterviewType,
    MeetingProviderId,
)
from src.app.interviews.tokens import TokenRefresher

logger = structlog.get_logger(__name__)

SessionFactory = Callable[..., AsyncGenerator[AsyncSession, None]]

# Scorecard statuses that count as submitted
SUBMITTED_SCORECARD_STATUSES = ("submitted", "locked")

# Columns update_interview may change
UPDATABLE_FIELDS = frozenset({
    "status",
    "completed_at",
    "cancelled_at",
    "meeting_link",
    "calendar_event_id",
    "internal_notes",
})


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_interview(model: InterviewModel) -> Interview:
    """Convert InterviewModel to Interview schema."""
    return Interview(
        id=model.id,
        org_id=str(model.org_id),
        application_id=model.application_id,
        title=model.title,
        interview_type=InterviewType(model.interview_type),
        scheduled_at=model.scheduled_at,
        timezone=model.timezone,
        duration_minutes=model.duration_minutes,
        location=model.location,
        meeting_link=model.meeting_link,
        meeting_provider=MeetingProviderId(model.meeting_provider) if model.meeting_provider else None,
        provider_meeting_id=model.provider_meeting_id,
        calendar_event_id=model.calendar_event_id,
        interviewer_ids=list(model.interviewer_ids or []),
        attendees=[Attendee.model_validate(a) for a in (model.attendees_data or [])],
        status=InterviewStatus(model.status),
        completed_at=model.completed_at,
        cancelled_at=model.cancelled_at,
        internal_notes=model.internal_notes,
        created_by=model.created_by,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _column_values(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update interview fields: {sorted(unknown)}")
    values = {}
    for key, value in fields.items():
        values[key] = value.value if isinstance(value, InterviewStatus) else value
    return values


# ── Interviews ──────────────────────────────────────────────────────────────


class InterviewRepository:
    """Async persistence for interviews.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def create_interview(self, org_id: str, data: InterviewCreate) -> Interview:
        """Insert an interview with status scheduled.

        Args:
            org_id: Organization UUID string.
            data: Fully resolved interview fields.

        Returns:
            The persisted Interview with its generated id.
        """
        async for session in self._session_factory():
            model = InterviewModel(
                org_id=uuid.UUID(org_id),
                application_id=data.application_id,
                title=data.title,
                interview_type=data.interview_type.value,
                scheduled_at=data.scheduled_at,
                timezone=data.timezone,
                duration_minutes=data.duration_minutes,
                location=data.location,
                meeting_link=data.meeting_link,
                meeting_provider=data.meeting_provider.value if data.meeting_provider else None,
                provider_meeting_id=data.provider_meeting_id,
                interviewer_ids=list(data.interviewer_ids),
                attendees_data=[a.model_dump(mode="json") for a in data.attendees],
                status=InterviewStatus.SCHEDULED.value,
                internal_notes=data.internal_notes,
                created_by=data.created_by,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            logger.info("interview.created", org_id=org_id, interview_id=str(model.id))
            return _model_to_interview(model)

    async def get_interview(self, org_id: str, interview_id: str) -> Interview | None:
        async for session in self._session_factory():
            stmt = select(InterviewModel).where(
                InterviewModel.org_id == uuid.UUID(org_id),
                InterviewModel.id == uuid.UUID(interview_id),
            )
            result = await session.execute(stmt)
            model = result.scalar_one_or_none()
            if model is None:
                return None
            return _model_to_interview(model)

    async def list_interviews(
        self,
        org_id: str,
        application_id: str | None = None,
        status: InterviewStatus | None = None,
        limit: int = 200,
    ) -> list[Interview]:
        """List interviews, newest scheduled first.

        Args:
            org_id: Organization UUID string.
            application_id: Optional application filter.
            status: Optional status filter.
            limit: Maximum rows returned.
        """
        async for session in self._session_factory():
            stmt = select(InterviewModel).where(InterviewModel.org_id == uuid.UUID(org_id))
            if application_id:
                stmt = stmt.where(InterviewModel.application_id == uuid.UUID(application_id))
            if status is not None:
                stmt = stmt.where(InterviewModel.status == status.value)
            stmt = stmt.order_by(InterviewModel.scheduled_at.desc()).limit(limit)
            result = await session.execute(stmt)
            return [_model_to_interview(m) for m in result.scalars().all()]

    async def update_interview(
        self,
        org_id: str,
        interview_id: str,
        expected_status: InterviewStatus,
        fields: dict[str, Any],
    ) -> Interview:
        """Update an interview only if its stored status still matches.

        Runs a single UPDATE ... WHERE status = expected RETURNING so two
        concurrent transitions cannot both succeed.

        Raises:
            InterviewNotFoundError: If the interview does not exist.
            InvalidTransitionError: If the stored status differs from
                expected_status.
        """
        values = _column_values(fields)
        async for session in self._session_factory():
            stmt = (
                update(InterviewModel)
                .where(
                    InterviewModel.org_id == uuid.UUID(org_id),
                    InterviewModel.id == uuid.UUID(interview_id),
                    InterviewModel.status == expected_status.value,
                )
                .values(**values, updated_at=func.now())
                .returning(InterviewModel)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            model = result.scalars().first()
            if model is not None:
                await session.commit()
                return _model_to_interview(model)

            await session.rollback()
            current = await session.execute(
                select(InterviewModel.status).where(
                    InterviewModel.org_id == uuid.UUID(org_id),
                    InterviewModel.id == uuid.UUID(interview_id),
                )
            )
            current_status = current.scalar_one_or_none()
            if current_status is None:
                raise InterviewNotFoundError(interview_id)

            target = values.get("status", current_status)
            logger.warning(
                "interview.concurrent_update_rejected",
                org_id=org_id,
                interview_id=interview_id,
                expected_status=expected_status.value,
                current_status=current_status,
            )
            raise InvalidTransitionError(
                current_status,
                target,
                interview_id,
                detail=(
                    f"Interview status is {current_status}, expected {expected_status.value}; "
                    "re-fetch and retry"
                ),
            )

    async def update_meeting_details(
        self,
        org_id: str,
        interview_id: str,
        meeting_link: str | None = None,
        calendar_event_id: str | None = None,
    ) -> Interview | None:
        """Write back a calendar-provided link and/or calendar event id.

        Leaves status untouched. Returns None if the interview is gone.
        """
        values: dict[str, Any] = {}
        if meeting_link is not None:
            values["meeting_link"] = meeting_link
        if calendar_event_id is not None:
            values["calendar_event_id"] = calendar_event_id
        if not values:
            return await self.get_interview(org_id, interview_id)

        async for session in self._session_factory():
            stmt = (
                update(InterviewModel)
                .where(
                    InterviewModel.org_id == uuid.UUID(org_id),
                    InterviewModel.id == uuid.UUID(interview_id),
                )
                .values(**values, updated_at=func.now())
                .returning(InterviewModel)
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(stmt)
            model = result.scalars().first()
            await session.commit()
            return _model_to_interview(model) if model is not None else None

    async def list_completed_by_interviewer(self, org_id: str, interviewer_id: str) -> set[str]:
        """Ids of completed interviews the interviewer was assigned to."""
        async for session in self._session_factory():
            stmt = select(InterviewModel.id).where(
                InterviewModel.org_id == uuid.UUID(org_id),
                InterviewModel.status == InterviewStatus.COMPLETED.value,
                InterviewModel.interviewer_ids.contains([interviewer_id]),
            )
            result = await session.execute(stmt)
            return {str(row) for row in result.scalars().all()}

    async def list_scorecarded_by_interviewer(self, org_id: str, interviewer_id: str) -> set[str]:
        """Ids of interviews the interviewer has submitted a scorecard for."""
        async for session in self._session_factory():
            stmt = select(InterviewScorecardModel.interview_id).where(
                InterviewScorecardModel.org_id == uuid.UUID(org_id),
                InterviewScorecardModel.interviewer_id == interviewer_id,
                InterviewScorecardModel.status.in_(SUBMITTED_SCORECARD_STATUSES),
            )
            result = await session.execute(stmt)
            return {str(row) for row in result.scalars().all()}


# ── Activity Log ────────────────────────────────────────────────────────────


class ActivityLogRepository:
    """Append-only writer for application_activities."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def append(
        self,
        org_id: str,
        application_id: uuid.UUID,
        activity_type: str,
        description: str,
        metadata: dict[str, Any],
        user_id: str | None = None,
    ) -> None:
        async for session in self._session_factory():
            session.add(
                ApplicationActivityModel(
                    org_id=uuid.UUID(org_id),
                    application_id=application_id,
                    user_id=user_id,
                    activity_type=activity_type,
                    description=description,
                    metadata_data=metadata,
                )
            )
            await session.commit()


# ── Integrations ────────────────────────────────────────────────────────────


class IntegrationRepository:
    """Reads organization-level provider connections.

    An expired access token is refreshed when the connection holds a
    refresh token and the provider's OAuth app is configured. The rotated
    tokens and new expiry are written back to provider_metadata.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
        refresher: Token refresher, or None to treat expired tokens as missing.
    """

    def __init__(self, session_factory: SessionFactory, refresher: TokenRefresher | None = None) -> None:
        self._session_factory = session_factory
        self._refresher = refresher

    async def get_access_token(self, org_id: str, provider: str) -> str | None:
        """Return a usable access token for the provider, or None.

        Args:
            org_id: Organization UUID string.
            provider: Provider id ("zoom", "microsoft", "google").
        """
        async for session in self._session_factory():
            stmt = select(OrganizationIntegrationModel).where(
                OrganizationIntegrationModel.org_id == uuid.UUID(org_id),
                OrganizationIntegrationModel.provider == provider,
            )
            result = await session.execute(stmt)
            integration = result.scalar_one_or_none()

            if integration is None or not integration.is_enabled:
                logger.info("integration.not_configured", org_id=org_id, provider=provider)
                return None

            metadata = dict(integration.provider_metadata or {})
            token = metadata.get("access_token")
            if not token:
                return None

            expiry_ms = metadata.get("expiry_date")
            now_ms = datetime.now(timezone.utc).timestamp() * 1000
            if not expiry_ms or float(expiry_ms) > now_ms:
                return token

            refresh_token = metadata.get("refresh_token")
            if not refresh_token or self._refresher is None or not self._refresher.supports(provider):
                logger.info("integration.token_expired", org_id=org_id, provider=provider)
                return None

            try:
                refreshed = await self._refresher.refresh(provider, refresh_token)
            except TokenRefreshError as exc:
                logger.warning(
                    "integration.token_refresh_failed",
                    org_id=org_id,
                    provider=provider,
                    detail=exc.detail,
                )
                return None

            integration.provider_metadata = {
                **metadata,
                "access_token": refreshed.access_token,
                "refresh_token": refreshed.refresh_token or refresh_token,
                "expiry_date": refreshed.expiry_ms(now_ms),
            }
            await session.commit()
            logger.info("integration.token_refreshed", org_id=org_id, provider=provider)
            return refreshed.access_token
