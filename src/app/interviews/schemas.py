"""Pydantic v2 schemas for the interview scheduling domain.

Defines the data contracts for interviews, scheduling requests, resolved
attendees, meeting outcomes, and the derived scorecard completion view.
The orchestrator, lifecycle manager, dispatcher, repository and API layer
all import from this module.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator

from src.app.config import get_settings


# ── Enums ────────────────────────────────────────────────────────────────────


class InterviewType(str, Enum):
    """How the interview is conducted."""

    VIDEO = "video"
    IN_PERSON = "in_person"


class InterviewStatus(str, Enum):
    """Lifecycle status of an interview. See lifecycle.TRANSITIONS."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class MeetingProviderId(str, Enum):
    """Video meeting backends an organization can connect."""

    ZOOM = "zoom"
    MICROSOFT = "microsoft"
    GOOGLE = "google"
    MANUAL = "manual"


class AttendeeOrigin(str, Enum):
    """Where a resolved attendee came from."""

    INTERVIEWER = "interviewer"
    CANDIDATE = "candidate"
    EXTERNAL = "external"


class CalendarSyncStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def _validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {value}")
    return value


# ── Participants ─────────────────────────────────────────────────────────────


class Attendee(BaseModel):
    """A resolved meeting participant. Unique by email within a list."""

    email: str
    display_name: str | None = None
    origin: AttendeeOrigin


class DirectoryEntry(BaseModel):
    """An organization member as returned by the directory lookup."""

    id: str
    email: str
    display_name: str | None = None


class CandidateContact(BaseModel):
    """The candidate behind an application, with the job they applied to."""

    email: str
    display_name: str | None = None
    job_title: str | None = None


class Actor(BaseModel):
    """The user performing a scheduling or status-change operation."""

    user_id: str
    email: str | None = None
    display_name: str | None = None


# ── Scheduling Request ───────────────────────────────────────────────────────


class SchedulingRequest(BaseModel):
    """Input for scheduling one interview.

    Guest emails are kept as raw strings here; syntax checking happens in
    the attendee resolver so that a malformed guest produces a
    ValidationError carrying the offending value.
    """

    application_id: uuid.UUID
    title: str = Field(min_length=1, max_length=500)
    interview_type: InterviewType = InterviewType.VIDEO
    scheduled_date: date
    scheduled_time: time
    timezone: str = Field(default_factory=lambda: get_settings().DEFAULT_TIMEZONE)
    duration_minutes: int = Field(default=60, gt=0, le=24 * 60)
    location: str | None = None
    meeting_provider: MeetingProviderId = MeetingProviderId.MANUAL
    meeting_link: str | None = None
    interviewer_ids: list[str] = Field(default_factory=list)
    external_guests: list[str] = Field(default_factory=list)
    internal_notes: str | None = None
    sync_to_calendar: bool = False
    add_video_link: bool = Field(
        default=True,
        description="Ask the calendar mirror for a hosted video link when no link exists",
    )

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @field_validator("meeting_link", "location", "internal_notes")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value.strip() if value else value

    def start_instant(self) -> datetime:
        """Combine date, time and timezone into an aware datetime."""
        return datetime.combine(
            self.scheduled_date, self.scheduled_time, tzinfo=ZoneInfo(self.timezone)
        )


# ── Interview ────────────────────────────────────────────────────────────────


class InterviewCreate(BaseModel):
    """Fully resolved interview ready to be persisted."""

    application_id: uuid.UUID
    title: str
    interview_type: InterviewType
    scheduled_at: datetime
    timezone: str
    duration_minutes: int = Field(gt=0)
    location: str | None = None
    meeting_link: str | None = None
    meeting_provider: MeetingProviderId | None = None
    provider_meeting_id: str | None = None
    interviewer_ids: list[str] = Field(default_factory=list)
    attendees: list[Attendee] = Field(default_factory=list)
    internal_notes: str | None = None
    created_by: str | None = None


class Interview(BaseModel):
    """Full interview entity.

    scheduled_at is an aware instant; timezone is the IANA zone it was
    scheduled in. Display conversions go through local_start() and never
    touch the stored instant.
    """

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    org_id: str
    application_id: uuid.UUID
    title: str
    interview_type: InterviewType
    scheduled_at: datetime
    timezone: str
    duration_minutes: int = Field(gt=0)
    location: str | None = None
    meeting_link: str | None = None
    meeting_provider: MeetingProviderId | None = None
    provider_meeting_id: str | None = None
    calendar_event_id: str | None = None
    interviewer_ids: list[str] = Field(default_factory=list)
    attendees: list[Attendee] = Field(default_factory=list)
    status: InterviewStatus = InterviewStatus.SCHEDULED
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    internal_notes: str | None = None
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)

    def local_start(self) -> datetime:
        """The start instant expressed in the interview's own timezone."""
        return self.scheduled_at.astimezone(ZoneInfo(self.timezone))


# ── Outcome ──────────────────────────────────────────────────────────────────


class OutcomeWarning(BaseModel):
    """A non-fatal degradation that happened while scheduling."""

    code: str
    message: str


class MeetingOutcome(BaseModel):
    """What one scheduling attempt achieved beyond persisting the interview."""

    meeting_link: str | None = None
    provider: MeetingProviderId | None = None
    provider_meeting_id: str | None = None
    calendar_sync_status: CalendarSyncStatus = CalendarSyncStatus.SKIPPED
    calendar_event_id: str | None = None
    warnings: list[OutcomeWarning] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)

    def warn(self, code: str, message: str) -> None:
        self.warnings.append(OutcomeWarning(code=code, message=message))


class ScheduleResult(BaseModel):
    interview: Interview
    outcome: MeetingOutcome


# ── Lifecycle / Scorecards ───────────────────────────────────────────────────


class TransitionRequest(BaseModel):
    """Request to move an interview to a new status.

    expected_status is the status the caller last observed; when given, the
    transition is rejected if the stored status differs.
    """

    target_status: InterviewStatus
    expected_status: InterviewStatus | None = None


class ScorecardCompletion(BaseModel):
    """Derived scorecard view for one interviewer. Never persisted."""

    interviewer_id: str
    submitted: int = 0
    pending: int = 0
    rate: float = 0.0
    pending_interview_ids: list[str] = Field(default_factory=list)
