"""Best-effort side-effect dispatcher for interview events.

After an interview is scheduled or changes status, the dispatcher fans out
to two independent collaborators:

- the notification sender (candidate, interviewers, external guests)
- the activity-log writer (scoped to the application)

dispatch() returns immediately with a tracked asyncio task. Inside the
task both targets run concurrently, each under its own timeout. A failure
in one target never prevents the other, is logged with structured context
and counted in Prometheus, and is never re-raised to the caller. There is
no retry.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol

import structlog

from src.app.core.monitoring import dispatch_failures_total
from src.app.interviews.errors import DispatchError
from src.app.interviews.schemas import (
    Actor,
    Attendee,
    Interview,
    InterviewStatus,
    InterviewType,
)

logger = structlog.get_logger(__name__)


class InterviewEvent(str, Enum):
    SCHEDULED = "interview_scheduled"
    STATUS_CHANGED = "interview_status_changed"


class NotificationType(str, Enum):
    """Notification templates the sender understands."""

    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_CANCELLED = "interview_cancelled"


STATUS_LABELS = {
    InterviewStatus.SCHEDULED: "scheduled",
    InterviewStatus.CONFIRMED: "confirmed",
    InterviewStatus.COMPLETED: "completed",
    InterviewStatus.CANCELLED: "cancelled",
    InterviewStatus.NO_SHOW: "no show",
}


@dataclass(frozen=True)
class DispatchPayload:
    """Context for one dispatch. new_status is set for status changes."""

    org_id: str
    interview: Interview
    new_status: InterviewStatus | None = None
    previous_status: InterviewStatus | None = None
    actor: Actor | None = None
    job_title: str | None = None


# ── Collaborator protocols ───────────────────────────────────────────────────


class NotificationSender(Protocol):
    async def send(
        self,
        org_id: str,
        event_type: NotificationType,
        recipients: list[Attendee],
        payload: dict[str, Any],
    ) -> None:
        """Deliver a notification; raise on failure."""
        ...


class ActivityLogWriter(Protocol):
    async def append(
        self,
        org_id: str,
        application_id: uuid.UUID,
        activity_type: str,
        description: str,
        metadata: dict[str, Any],
        user_id: str | None = None,
    ) -> None:
        """Append an application activity; raise on failure."""
        ...


# ── Formatting ───────────────────────────────────────────────────────────────


def format_interview_date(local: datetime) -> str:
    """e.g. "Monday, March 2, 2026"."""
    return f"{local:%A}, {local:%B} {local.day}, {local.year}"


def format_interview_time(local: datetime) -> str:
    """e.g. "10:00 AM"."""
    hour = local.hour % 12 or 12
    return f"{hour}:{local:%M} {'AM' if local.hour < 12 else 'PM'}"


def notification_type_for(event: InterviewEvent, payload: DispatchPayload) -> NotificationType | None:
    """Which notification, if any, an event produces.

    Scheduling always notifies. Of the status changes only a cancellation
    does.
    """
    if event is InterviewEvent.SCHEDULED:
        return NotificationType.INTERVIEW_SCHEDULED
    if payload.new_status is InterviewStatus.CANCELLED:
        return NotificationType.INTERVIEW_CANCELLED
    return None


def build_notification_payload(payload: DispatchPayload) -> dict[str, Any]:
    interview = payload.interview
    local = interview.local_start()
    meeting_link = (
        interview.meeting_link if interview.interview_type is InterviewType.VIDEO else None
    )
    return {
        "interview_id": str(interview.id),
        "application_id": str(interview.application_id),
        "title": interview.title,
        "job_title": payload.job_title,
        "interview_date": format_interview_date(local),
        "interview_time": format_interview_time(local),
        "timezone": interview.timezone,
        "duration_minutes": interview.duration_minutes,
        "interview_type": interview.interview_type.value,
        "location": interview.location,
        "meeting_link": meeting_link,
        "interviewer_ids": list(interview.interviewer_ids),
    }


def build_activity(event: InterviewEvent, payload: DispatchPayload) -> tuple[str, str, dict[str, Any]]:
    """Return (activity_type, description, metadata) for the activity log."""
    interview = payload.interview
    metadata: dict[str, Any] = {"interview_id": str(interview.id)}

    if event is InterviewEvent.SCHEDULED:
        local = interview.local_start()
        description = (
            f"Interview scheduled: {interview.title} on {format_interview_date(local)} "
            f"at {format_interview_time(local)}"
        )
        metadata.update(
            interview_type=interview.interview_type.value,
            scheduled_at=interview.scheduled_at.isoformat(),
            timezone=interview.timezone,
            meeting_provider=interview.meeting_provider.value if interview.meeting_provider else None,
        )
        return InterviewEvent.SCHEDULED.value, description, metadata

    status = payload.new_status or interview.status
    metadata["status"] = status.value
    if payload.previous_status is not None:
        metadata["previous_status"] = payload.previous_status.value
    description = f"Interview marked as {STATUS_LABELS[status]}: {interview.title}"
    return f"interview_{status.value}", description, metadata


# ── Dispatcher ───────────────────────────────────────────────────────────────


class SideEffectDispatcher:
    """Fire-and-forget fan-out of notifications and activity logging.

    Args:
        notifier: Notification sender. None disables notifications.
        activity_log: Activity-log writer. None disables activity logging.
        timeout: Per-target timeout in seconds.
    """

    def __init__(
        self,
        notifier: NotificationSender | None,
        activity_log: ActivityLogWriter | None,
        timeout: float = 10.0,
    ) -> None:
        self._notifier = notifier
        self._activity_log = activity_log
        self._timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, event: InterviewEvent, payload: DispatchPayload) -> asyncio.Task:
        """Start the fan-out in the background and return its task."""
        task = asyncio.create_task(
            self._fan_out(event, payload),
            name=f"dispatch:{event.value}:{payload.interview.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight dispatches, e.g. on shutdown.

        Dispatches still running after timeout are cancelled so that nothing
        touches the database once the caller closes it.
        """
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if not pending:
            return
        logger.warning("dispatch.drain_incomplete", pending=len(pending))
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning("dispatch.cancelled_on_drain", cancelled=len(pending))

    async def _fan_out(self, event: InterviewEvent, payload: DispatchPayload) -> dict[str, bool]:
        targets: dict[str, Any] = {}

        notification_type = notification_type_for(event, payload)
        if self._notifier is not None and notification_type is not None:
            targets["notification"] = self._notifier.send(
                payload.org_id,
                notification_type,
                list(payload.interview.attendees),
                build_notification_payload(payload),
            )

        if self._activity_log is not None:
            activity_type, description, metadata = build_activity(event, payload)
            targets["activity_log"] = self._activity_log.append(
                payload.org_id,
                payload.interview.application_id,
                activity_type,
                description,
                metadata,
                user_id=payload.actor.user_id if payload.actor else None,
            )

        results = await asyncio.gather(
            *(self._run_target(name, coro, event, payload) for name, coro in targets.items())
        )
        return dict(zip(targets, results))

    async def _run_target(
        self,
        target: str,
        coro: Any,
        event: InterviewEvent,
        payload: DispatchPayload,
    ) -> bool:
        try:
            await asyncio.wait_for(coro, timeout=self._timeout)
        except asyncio.TimeoutError:
            error = DispatchError(target, f"timed out after {self._timeout}s")
        except Exception as exc:
            error = exc if isinstance(exc, DispatchError) else DispatchError(target, str(exc))
        else:
            logger.debug(
                "dispatch.delivered",
                target=target,
                event=event.value,
                interview_id=str(payload.interview.id),
            )
            return True

        dispatch_failures_total.labels(target=target).inc()
        logger.warning(
            f"dispatch.{target}_failed",
            event=event.value,
            org_id=payload.org_id,
            interview_id=str(payload.interview.id),
            error=str(error),
        )
        return False
