"""Interview lifecycle state machine and scorecard completion view.

Transitions are all user-triggered:

    scheduled -> confirmed | completed | cancelled | no_show
    confirmed -> completed | cancelled | no_show

completed, cancelled and no_show are terminal. The stored status is
checked by the repository with a conditional update, so a transition
computed from a stale read is rejected rather than overwriting a
concurrent change.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from src.app.core.monitoring import interview_transitions_total
from src.app.interviews.dispatcher import DispatchPayload, InterviewEvent, SideEffectDispatcher
from src.app.interviews.errors import InterviewNotFoundError, InvalidTransitionError
from src.app.interviews.orchestrator import InterviewStore
from src.app.interviews.schemas import (
    Actor,
    Interview,
    InterviewStatus,
    ScorecardCompletion,
)

logger = structlog.get_logger(__name__)


TRANSITIONS: dict[InterviewStatus, frozenset[InterviewStatus]] = {
    InterviewStatus.SCHEDULED: frozenset({
        InterviewStatus.CONFIRMED,
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
        InterviewStatus.NO_SHOW,
    }),
    InterviewStatus.CONFIRMED: frozenset({
        InterviewStatus.COMPLETED,
        InterviewStatus.CANCELLED,
        InterviewStatus.NO_SHOW,
    }),
    InterviewStatus.COMPLETED: frozenset(),
    InterviewStatus.CANCELLED: frozenset(),
    InterviewStatus.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, allowed in TRANSITIONS.items() if not allowed)


def can_transition(from_status: InterviewStatus, to_status: InterviewStatus) -> bool:
    return to_status in TRANSITIONS[from_status]


def validate_transition(from_status: InterviewStatus, to_status: InterviewStatus) -> None:
    """Raise InvalidTransitionError unless from_status -> to_status is allowed."""
    if not can_transition(from_status, to_status):
        allowed = ", ".join(sorted(s.value for s in TRANSITIONS[from_status])) or "none (terminal)"
        raise InvalidTransitionError(
            from_status.value,
            to_status.value,
            detail=(
                f"Invalid status transition: {from_status.value} -> {to_status.value}. "
                f"Allowed from {from_status.value}: {allowed}"
            ),
        )


def transition_fields(to_status: InterviewStatus, now: datetime) -> dict[str, Any]:
    """Column changes for entering to_status."""
    fields: dict[str, Any] = {"status": to_status}
    if to_status is InterviewStatus.COMPLETED:
        fields["completed_at"] = now
    elif to_status is InterviewStatus.CANCELLED:
        fields["cancelled_at"] = now
    return fields


def compute_scorecard_completion(
    interviewer_id: str,
    completed_assigned: Iterable[str],
    scorecarded: Iterable[str],
) -> ScorecardCompletion:
    """Derive the scorecard completion view for one interviewer.

    pending is the set difference completed_assigned minus scorecarded, so a
    scorecard for an interview the interviewer was not assigned to never
    lowers the pending count. rate is the share of completed assigned
    interviews that have a scorecard (0.0 when there are none).
    """
    completed = {str(i) for i in completed_assigned}
    submitted = {str(i) for i in scorecarded}
    pending_ids = completed - submitted
    rate = (len(completed) - len(pending_ids)) / len(completed) if completed else 0.0
    return ScorecardCompletion(
        interviewer_id=interviewer_id,
        submitted=len(submitted),
        pending=len(pending_ids),
        rate=round(rate, 4),
        pending_interview_ids=sorted(pending_ids),
    )


class InterviewLifecycleManager:
    """Applies status transitions and serves the scorecard completion view.

    Args:
        repository: Interview persistence with optimistic updates.
        dispatcher: Side-effect dispatcher for transition activity/notifications.
    """

    def __init__(self, repository: InterviewStore, dispatcher: SideEffectDispatcher) -> None:
        self._repository = repository
        self._dispatcher = dispatcher

    async def transition(
        self,
        org_id: str,
        interview_id: str,
        target: InterviewStatus,
        expected_status: InterviewStatus | None = None,
        actor: Actor | None = None,
    ) -> Interview:
        """Move an interview to a new status.

        Args:
            org_id: Organization UUID string.
            interview_id: Interview UUID string.
            target: Requested status.
            expected_status: Status the caller last observed. Defaults to
                the currently stored status.
            actor: User performing the change.

        Returns:
            The updated Interview.

        Raises:
            InterviewNotFoundError: If the interview does not exist.
            InvalidTransitionError: If the transition is not allowed, or the
                stored status no longer matches the observed one.
        """
        current = await self._repository.get_interview(org_id, interview_id)
        if current is None:
            raise InterviewNotFoundError(interview_id)

        observed = expected_status or current.status
        if observed is not current.status:
            raise InvalidTransitionError(
                current.status.value,
                target.value,
                interview_id,
                detail=(
                    f"Interview status is {current.status.value}, expected {observed.value}; "
                    "re-fetch and retry"
                ),
            )
        try:
            validate_transition(observed, target)
        except InvalidTransitionError as exc:
            exc.interview_id = interview_id
            raise

        updated = await self._repository.update_interview(
            org_id,
            interview_id,
            observed,
            transition_fields(target, datetime.now(timezone.utc)),
        )

        interview_transitions_total.labels(to_status=target.value).inc()
        logger.info(
            "lifecycle.transitioned",
            org_id=org_id,
            interview_id=interview_id,
            from_status=observed.value,
            to_status=target.value,
        )
        self._dispatcher.dispatch(
            InterviewEvent.STATUS_CHANGED,
            DispatchPayload(
                org_id=org_id,
                interview=updated,
                new_status=target,
                previous_status=observed,
                actor=actor,
            ),
        )
        return updated

    async def scorecard_completion(self, org_id: str, interviewer_id: str) -> ScorecardCompletion:
        """Recompute the scorecard completion view; never cached."""
        completed = await self._repository.list_completed_by_interviewer(org_id, interviewer_id)
        scorecarded = await self._repository.list_scorecarded_by_interviewer(org_id, interviewer_id)
        return compute_scorecard_completion(interviewer_id, completed, scorecarded)
