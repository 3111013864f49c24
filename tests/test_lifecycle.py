"""Tests for the interview lifecycle state machine and scorecard view.

Covers the transition table, terminal states, timestamps, optimistic
concurrency (stale expected_status and a concurrent writer), transition
dispatch, and the set-difference scorecard completion computation.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from src.app.interviews.dispatcher import NotificationType
from src.app.interviews.errors import InterviewNotFoundError, InvalidTransitionError
from src.app.interviews.lifecycle import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    can_transition,
    compute_scorecard_completion,
    transition_fields,
    validate_transition,
)
from src.app.interviews.schemas import Actor, InterviewStatus
from tests.doubles import ORG_ID, OTHER_ORG_ID, Harness, make_request

S = InterviewStatus


async def _scheduled(harness: Harness, **overrides):
    result = await harness.orchestrator.schedule(ORG_ID, make_request(**overrides))
    await harness.dispatcher.drain()
    harness.notifier.sent.clear()
    harness.activity_log.entries.clear()
    return result.interview


# ── Transition Table ─────────────────────────────────────────────────────────


class TestTransitionTable:
    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (S.SCHEDULED, S.CONFIRMED),
            (S.SCHEDULED, S.COMPLETED),
            (S.SCHEDULED, S.CANCELLED),
            (S.SCHEDULED, S.NO_SHOW),
            (S.CONFIRMED, S.COMPLETED),
            (S.CONFIRMED, S.CANCELLED),
            (S.CONFIRMED, S.NO_SHOW),
        ],
    )
    def test_allowed(self, from_status, to_status):
        assert can_transition(from_status, to_status)
        validate_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (S.COMPLETED, S.CONFIRMED),
            (S.CANCELLED, S.SCHEDULED),
            (S.NO_SHOW, S.COMPLETED),
            (S.CONFIRMED, S.SCHEDULED),
            (S.SCHEDULED, S.SCHEDULED),
        ],
    )
    def test_rejected(self, from_status, to_status):
        assert not can_transition(from_status, to_status)
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(from_status, to_status)
        assert exc_info.value.from_status == from_status.value
        assert exc_info.value.to_status == to_status.value

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {S.COMPLETED, S.CANCELLED, S.NO_SHOW}

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(InterviewStatus)

    def test_transition_fields_timestamps(self):
        now = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

        assert transition_fields(S.COMPLETED, now) == {"status": S.COMPLETED, "completed_at": now}
        assert transition_fields(S.CANCELLED, now) == {"status": S.CANCELLED, "cancelled_at": now}
        assert transition_fields(S.CONFIRMED, now) == {"status": S.CONFIRMED}


# ── Lifecycle Manager ────────────────────────────────────────────────────────


class TestInterviewLifecycleManager:
    async def test_scheduled_to_cancelled_sets_timestamp(self, harness):
        interview = await _scheduled(harness)

        updated = await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CANCELLED)

        assert updated.status is S.CANCELLED
        assert updated.cancelled_at is not None
        assert updated.completed_at is None

    async def test_confirm_then_complete(self, harness):
        interview = await _scheduled(harness)

        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CONFIRMED)
        done = await harness.lifecycle.transition(ORG_ID, str(interview.id), S.COMPLETED)

        assert done.status is S.COMPLETED
        assert done.completed_at is not None

    async def test_completed_to_confirmed_fails(self, harness):
        interview = await _scheduled(harness)
        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.COMPLETED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CONFIRMED)

        assert exc_info.value.from_status == "completed"
        assert exc_info.value.to_status == "confirmed"
        assert exc_info.value.interview_id == str(interview.id)
        stored = await harness.repository.get_interview(ORG_ID, str(interview.id))
        assert stored.status is S.COMPLETED

    async def test_stale_expected_status_rejected(self, harness):
        interview = await _scheduled(harness)
        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CONFIRMED)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await harness.lifecycle.transition(
                ORG_ID, str(interview.id), S.CANCELLED, expected_status=S.SCHEDULED
            )

        assert exc_info.value.from_status == "confirmed"
        stored = await harness.repository.get_interview(ORG_ID, str(interview.id))
        assert stored.status is S.CONFIRMED

    async def test_concurrent_writer_between_read_and_update(self, harness):
        interview = await _scheduled(harness)
        repository = harness.repository
        original_get = repository.get_interview

        async def _get_then_race(org_id, interview_id):
            current = await original_get(org_id, interview_id)
            repository.force_status(interview_id, S.CANCELLED)
            return current

        repository.get_interview = _get_then_race

        with pytest.raises(InvalidTransitionError):
            await harness.lifecycle.transition(ORG_ID, str(interview.id), S.COMPLETED)

        repository.get_interview = original_get
        stored = await repository.get_interview(ORG_ID, str(interview.id))
        assert stored.status is S.CANCELLED
        await harness.dispatcher.drain()
        assert harness.activity_log.entries == []

    async def test_unknown_interview(self, harness):
        with pytest.raises(InterviewNotFoundError):
            await harness.lifecycle.transition(ORG_ID, "00000000-0000-0000-0000-000000000000", S.CONFIRMED)

    async def test_other_organization_cannot_transition(self, harness):
        interview = await _scheduled(harness)

        with pytest.raises(InterviewNotFoundError):
            await harness.lifecycle.transition(OTHER_ORG_ID, str(interview.id), S.CANCELLED)

    async def test_every_transition_logs_activity(self, harness):
        interview = await _scheduled(harness)
        actor = Actor(user_id="recruiter-1")

        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CONFIRMED, actor=actor)
        await harness.dispatcher.drain()

        assert len(harness.activity_log.entries) == 1
        entry = harness.activity_log.entries[0]
        assert entry["activity_type"] == "interview_confirmed"
        assert entry["description"] == "Interview marked as confirmed: Technical Interview"
        assert entry["metadata"]["status"] == "confirmed"
        assert entry["metadata"]["previous_status"] == "scheduled"
        assert entry["user_id"] == "recruiter-1"
        assert harness.notifier.sent == []

    async def test_cancellation_notifies(self, harness):
        interview = await _scheduled(harness)

        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.CANCELLED)
        await harness.dispatcher.drain()

        assert [n["event_type"] for n in harness.notifier.sent] == [NotificationType.INTERVIEW_CANCELLED]
        assert harness.activity_log.entries[0]["activity_type"] == "interview_cancelled"

    async def test_no_show_label(self, harness):
        interview = await _scheduled(harness)

        await harness.lifecycle.transition(ORG_ID, str(interview.id), S.NO_SHOW)
        await harness.dispatcher.drain()

        assert harness.activity_log.entries[0]["description"] == "Interview marked as no show: Technical Interview"


# ── Scorecard Completion ─────────────────────────────────────────────────────


class TestScorecardCompletion:
    def test_pending_is_set_difference(self):
        view = compute_scorecard_completion("user-a", {"A", "B", "C"}, {"B"})

        assert view.pending == 2
        assert view.pending_interview_ids == ["A", "C"]
        assert view.submitted == 1
        assert view.rate == pytest.approx(1 / 3, abs=1e-4)

    def test_unassigned_scorecard_does_not_reduce_pending(self):
        view = compute_scorecard_completion("user-a", {"A", "B"}, {"B", "Z"})

        assert view.pending == 1
        assert view.pending_interview_ids == ["A"]
        assert view.submitted == 2
        assert view.rate == 0.5

    def test_no_completed_interviews(self):
        view = compute_scorecard_completion("user-a", set(), {"Z"})

        assert view.pending == 0
        assert view.rate == 0.0

    def test_all_scorecarded(self):
        view = compute_scorecard_completion("user-a", {"A", "B"}, {"A", "B"})

        assert view.pending == 0
        assert view.rate == 1.0

    async def test_manager_reads_repository(self, harness):
        first = await _scheduled(harness, interviewer_ids=["user-a"])
        second = await _scheduled(harness, interviewer_ids=["user-a", "user-b"])
        third = await _scheduled(harness, interviewer_ids=["user-b"])
        for interview in (first, second, third):
            await harness.lifecycle.transition(ORG_ID, str(interview.id), S.COMPLETED)
        harness.repository.scorecards[(ORG_ID, "user-a")] = {str(second.id)}

        view = await harness.lifecycle.scorecard_completion(ORG_ID, "user-a")

        assert view.interviewer_id == "user-a"
        assert view.pending == 1
        assert view.pending_interview_ids == [str(first.id)]
        assert view.submitted == 1
        assert view.rate == 0.5
