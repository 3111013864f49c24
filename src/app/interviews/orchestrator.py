"""Meeting orchestrator -- schedules an interview end to end.

schedule() runs these steps in order:

1. Resolve attendees. A ValidationError aborts before anything is created.
2. For a video interview with a real provider and no supplied link, call
   the provider gateway once. Failure becomes an outcome warning and the
   interview is created without a link.
3. Persist the interview with status scheduled.
4. If requested, mirror the event into the external calendar. The result
   only sets calendar_sync_status; a hosted video link returned by the
   calendar fills an empty meeting_link.
5. Hand the persisted interview to the side-effect dispatcher.

Only ValidationError reaches the caller. Every integration failure is
recorded in the returned MeetingOutcome.
"""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import structlog

from src.app.core.monitoring import calendar_sync_total, interviews_scheduled_total
from src.app.interviews.attendees import (
    AttendeeResolution,
    CandidateLookup,
    DirectoryLookup,
    resolve_attendees,
)
from src.app.interviews.calendar import CalendarEvent, CalendarMirror, build_event_description
from src.app.interviews.dispatcher import DispatchPayload, InterviewEvent, SideEffectDispatcher
from src.app.interviews.errors import CalendarSyncError, ProviderError
from src.app.interviews.gateway import ProviderGateway
from src.app.interviews.schemas import (
    Actor,
    CalendarSyncStatus,
    Interview,
    InterviewCreate,
    InterviewType,
    MeetingOutcome,
    MeetingProviderId,
    ScheduleResult,
    SchedulingRequest,
)

logger = structlog.get_logger(__name__)


class InterviewStore(Protocol):
    """Persistence operations the orchestrator and lifecycle manager need."""

    async def create_interview(self, org_id: str, data: InterviewCreate) -> Interview: ...

    async def get_interview(self, org_id: str, interview_id: str) -> Interview | None: ...

    async def update_interview(
        self, org_id: str, interview_id: str, expected_status: Any, fields: dict[str, Any]
    ) -> Interview: ...

    async def update_meeting_details(
        self,
        org_id: str,
        interview_id: str,
        meeting_link: str | None = None,
        calendar_event_id: str | None = None,
    ) -> Interview | None: ...

    async def list_completed_by_interviewer(self, org_id: str, interviewer_id: str) -> set[str]: ...

    async def list_scorecarded_by_interviewer(self, org_id: str, interviewer_id: str) -> set[str]: ...


class MeetingOrchestrator:
    """Coordinates attendee resolution, meeting creation, persistence,
    calendar mirroring and side-effect dispatch for one scheduling request.

    Args:
        repository: Interview persistence.
        directory: Interviewer lookup.
        candidates: Candidate lookup.
        gateway: Provider gateway for video meetings.
        dispatcher: Side-effect dispatcher.
        calendar: Calendar mirror, or None when no calendar is configured.
        calendar_timeout: Upper bound in seconds for the mirror call.
    """

    def __init__(
        self,
        repository: InterviewStore,
        directory: DirectoryLookup,
        candidates: CandidateLookup,
        gateway: ProviderGateway,
        dispatcher: SideEffectDispatcher,
        calendar: CalendarMirror | None = None,
        calendar_timeout: float = 15.0,
    ) -> None:
        self._repository = repository
        self._directory = directory
        self._candidates = candidates
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._calendar = calendar
        self._calendar_timeout = calendar_timeout

    async def schedule(
        self,
        org_id: str,
        request: SchedulingRequest,
        actor: Actor | None = None,
    ) -> ScheduleResult:
        """Schedule one interview.

        Args:
            org_id: Organization UUID string.
            request: Validated scheduling request.
            actor: User performing the scheduling, if known.

        Returns:
            ScheduleResult with the persisted Interview and its MeetingOutcome.

        Raises:
            ValidationError: If an external guest email is malformed. Nothing
                is persisted in that case.
        """
        log = logger.bind(org_id=org_id, application_id=str(request.application_id))

        # 1. Attendees
        resolution = await resolve_attendees(org_id, request, self._directory, self._candidates)
        outcome = MeetingOutcome(warnings=list(resolution.warnings))
        start = request.start_instant()
        job_title = resolution.candidate.job_title if resolution.candidate else None
        description = build_event_description(
            job_title,
            resolution.candidate.display_name if resolution.candidate else None,
            resolution.candidate.email if resolution.candidate else None,
        )

        # 2. Provider
        is_video = request.interview_type is InterviewType.VIDEO
        meeting_link = request.meeting_link
        provider_meeting_id: str | None = None
        if is_video and request.meeting_provider is not MeetingProviderId.MANUAL and not meeting_link:
            try:
                meeting = await self._gateway.create_meeting(
                    org_id,
                    request.meeting_provider,
                    title=request.title,
                    start=start,
                    duration_minutes=request.duration_minutes,
                    timezone=request.timezone,
                    attendees=resolution.attendees,
                    agenda=description,
                )
            except ProviderError as exc:
                log.warning(
                    "orchestrator.provider_failed",
                    provider=exc.provider,
                    kind=exc.kind.value,
                    detail=exc.detail,
                )
                outcome.warn(
                    "provider_failed",
                    f"{exc.provider} meeting could not be created ({exc.kind.value}); "
                    "the interview was scheduled without a meeting link",
                )
            else:
                meeting_link = meeting.url
                provider_meeting_id = meeting.provider_meeting_id
                outcome.provider = request.meeting_provider
                outcome.provider_meeting_id = provider_meeting_id

        # 3. Persist
        interview = await self._repository.create_interview(
            org_id,
            InterviewCreate(
                application_id=request.application_id,
                title=request.title,
                interview_type=request.interview_type,
                scheduled_at=start,
                timezone=request.timezone,
                duration_minutes=request.duration_minutes,
                location=request.location,
                meeting_link=meeting_link,
                meeting_provider=request.meeting_provider if is_video else None,
                provider_meeting_id=provider_meeting_id,
                interviewer_ids=[e.id for e in resolution.interviewers],
                attendees=resolution.attendees,
                internal_notes=request.internal_notes,
                created_by=actor.user_id if actor else None,
            ),
        )
        log = log.bind(interview_id=str(interview.id))

        # 4. Calendar
        if request.sync_to_calendar:
            interview = await self._sync_calendar(
                org_id, interview, request, resolution, description, actor, outcome
            )
        calendar_sync_total.labels(status=outcome.calendar_sync_status.value).inc()

        outcome.meeting_link = interview.meeting_link
        outcome.calendar_event_id = interview.calendar_event_id

        # 5. Side effects, strictly after persistence
        self._dispatcher.dispatch(
            InterviewEvent.SCHEDULED,
            DispatchPayload(org_id=org_id, interview=interview, actor=actor, job_title=job_title),
        )

        interviews_scheduled_total.labels(outcome="degraded" if outcome.degraded else "clean").inc()
        log.info(
            "orchestrator.interview_scheduled",
            has_meeting_link=bool(interview.meeting_link),
            calendar_sync_status=outcome.calendar_sync_status.value,
            warnings=[w.code for w in outcome.warnings],
        )
        return ScheduleResult(interview=interview, outcome=outcome)

    async def _sync_calendar(
        self,
        org_id: str,
        interview: Interview,
        request: SchedulingRequest,
        resolution: AttendeeResolution,
        description: str,
        actor: Actor | None,
        outcome: MeetingOutcome,
    ) -> Interview:
        """Mirror the interview to the calendar and write back the results.

        Updates outcome in place and returns the (possibly updated) interview.
        """
        if self._calendar is None:
            outcome.calendar_sync_status = CalendarSyncStatus.FAILED
            outcome.warn("calendar_not_configured", "Calendar sync was requested but no calendar is connected")
            return interview

        wants_video_link = (
            request.add_video_link
            and interview.interview_type is InterviewType.VIDEO
            and not interview.meeting_link
        )
        event = CalendarEvent(
            summary=interview.title,
            description=description,
            start=interview.scheduled_at,
            end=interview.ends_at,
            timezone=interview.timezone,
            attendees=list(resolution.attendees),
            wants_video_link=wants_video_link,
            location=interview.location,
            organizer_email=actor.email if actor else None,
        )

        try:
            mirrored = await asyncio.wait_for(
                self._calendar.create_event(org_id, event), timeout=self._calendar_timeout
            )
        except asyncio.TimeoutError:
            # The API call runs in a worker thread that wait_for cannot stop,
            # so the event may still be created and invitations sent.
            logger.warning(
                "orchestrator.calendar_sync_timed_out",
                org_id=org_id,
                interview_id=str(interview.id),
                timeout=self._calendar_timeout,
                insert_may_complete=True,
            )
            outcome.calendar_sync_status = CalendarSyncStatus.FAILED
            outcome.warn(
                "calendar_sync_timed_out",
                "The calendar did not respond in time. The event may still appear "
                "and send invitations; check the calendar before retrying",
            )
            return interview
        except CalendarSyncError as exc:
            logger.warning(
                "orchestrator.calendar_sync_failed",
                org_id=org_id,
                interview_id=str(interview.id),
                error=str(exc),
            )
            outcome.calendar_sync_status = CalendarSyncStatus.FAILED
            outcome.warn("calendar_sync_failed", "The interview could not be added to the calendar")
            return interview
        except Exception:
            logger.exception(
                "orchestrator.calendar_sync_error",
                org_id=org_id,
                interview_id=str(interview.id),
            )
            outcome.calendar_sync_status = CalendarSyncStatus.FAILED
            outcome.warn("calendar_sync_failed", "The interview could not be added to the calendar")
            return interview

        outcome.calendar_sync_status = CalendarSyncStatus.SUCCEEDED
        new_link = mirrored.video_link if not interview.meeting_link else None

        try:
            updated = await self._repository.update_meeting_details(
                org_id,
                str(interview.id),
                meeting_link=new_link,
                calendar_event_id=mirrored.event_id,
            )
        except Exception:
            logger.exception(
                "orchestrator.calendar_writeback_failed",
                org_id=org_id,
                interview_id=str(interview.id),
            )
            outcome.warn(
                "calendar_writeback_failed",
                "The calendar event was created but its details could not be saved",
            )
            return interview

        return updated or interview
