"""Attendee resolution for interview scheduling.

Builds the ordered, de-duplicated participant list from three sources:
internal interviewers (via the organization directory), ad-hoc external
guests, and the application's candidate.

Rules:
- Every external guest address is syntax-checked before any lookup runs.
  The first malformed address aborts with ValidationError("invalid_email").
- Interviewer ids the directory cannot resolve are dropped and reported as
  warnings; they never block scheduling.
- Emails are compared case-insensitively. The candidate's email is reserved
  for the candidate: an interviewer or guest using it is folded into the
  single candidate entry.
- Order is interviewers, then external guests, then the candidate.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Protocol

import structlog
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.app.interviews.errors import ValidationError
from src.app.interviews.schemas import (
    Attendee,
    AttendeeOrigin,
    CandidateContact,
    DirectoryEntry,
    OutcomeWarning,
    SchedulingRequest,
)

logger = structlog.get_logger(__name__)

_email_adapter = TypeAdapter(EmailStr)


# ── Lookup protocols ─────────────────────────────────────────────────────────


class DirectoryLookup(Protocol):
    """Resolves internal user ids to directory entries within an organization."""

    async def lookup_users(self, org_id: str, user_ids: list[str]) -> list[DirectoryEntry]: ...


class CandidateLookup(Protocol):
    """Resolves an application to its candidate's contact details."""

    async def get_candidate(
        self, org_id: str, application_id: uuid.UUID
    ) -> CandidateContact | None: ...


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass
class AttendeeResolution:
    attendees: list[Attendee]
    warnings: list[OutcomeWarning] = field(default_factory=list)
    candidate: CandidateContact | None = None
    interviewers: list[DirectoryEntry] = field(default_factory=list)


# ── Pure helpers ─────────────────────────────────────────────────────────────


def normalize_email(value: str) -> str:
    return value.strip().lower()


def validate_guest_emails(guests: list[str]) -> list[str]:
    """Syntax-check external guest addresses.

    Args:
        guests: Raw guest addresses as submitted.

    Returns:
        The validated addresses, stripped, in submission order. Blank
        entries are skipped.

    Raises:
        ValidationError: reason "invalid_email" with the first bad value.
    """
    validated: list[str] = []
    for raw in guests:
        if raw is None or not str(raw).strip():
            continue
        candidate = str(raw).strip()
        try:
            validated.append(_email_adapter.validate_python(candidate))
        except PydanticValidationError:
            raise ValidationError("invalid_email", raw, f"Invalid guest email address: {raw}")
    return validated


def build_attendees(
    interviewers: list[DirectoryEntry],
    guests: list[str],
    candidate: CandidateContact | None,
) -> list[Attendee]:
    """Merge the three participant sources into one ordered list.

    No two returned attendees share an email (case-insensitive). The first
    occurrence wins, except that the candidate's email always resolves to
    the candidate entry.
    """
    reserved = normalize_email(candidate.email) if candidate and candidate.email else None
    seen: set[str] = set()
    attendees: list[Attendee] = []

    def _add(email: str, display_name: str | None, origin: AttendeeOrigin) -> None:
        key = normalize_email(email)
        if not key or key in seen or key == reserved:
            return
        seen.add(key)
        attendees.append(Attendee(email=email.strip(), display_name=display_name, origin=origin))

    for entry in interviewers:
        _add(entry.email, entry.display_name, AttendeeOrigin.INTERVIEWER)
    for guest in guests:
        _add(guest, None, AttendeeOrigin.EXTERNAL)

    if reserved:
        attendees.append(
            Attendee(
                email=candidate.email.strip(),
                display_name=candidate.display_name,
                origin=AttendeeOrigin.CANDIDATE,
            )
        )
    return attendees


# ── Resolver ─────────────────────────────────────────────────────────────────


async def resolve_attendees(
    org_id: str,
    request: SchedulingRequest,
    directory: DirectoryLookup,
    candidates: CandidateLookup,
) -> AttendeeResolution:
    """Resolve the full attendee list for a scheduling request.

    Args:
        org_id: Organization the request belongs to.
        request: The scheduling request.
        directory: Directory lookup for interviewer ids.
        candidates: Candidate lookup for the application.

    Returns:
        AttendeeResolution with the attendee list and any warnings.

    Raises:
        ValidationError: If an external guest address is malformed.
    """
    guests = validate_guest_emails(request.external_guests)
    warnings: list[OutcomeWarning] = []

    requested_ids = list(dict.fromkeys(i for i in request.interviewer_ids if i))
    entries: list[DirectoryEntry] = []
    if requested_ids:
        found = await directory.lookup_users(org_id, requested_ids)
        by_id = {entry.id: entry for entry in found}
        for user_id in requested_ids:
            entry = by_id.get(user_id)
            if entry is None or not entry.email:
                warnings.append(
                    OutcomeWarning(
                        code="interviewer_not_found",
                        message=f"Interviewer {user_id} could not be resolved and was skipped",
                    )
                )
                continue
            entries.append(entry)

    candidate = await candidates.get_candidate(org_id, request.application_id)
    if candidate is None or not candidate.email:
        warnings.append(
            OutcomeWarning(
                code="candidate_not_found",
                message="Candidate contact could not be resolved for this application",
            )
        )

    attendees = build_attendees(entries, guests, candidate)
    logger.info(
        "attendees.resolved",
        org_id=org_id,
        application_id=str(request.application_id),
        attendee_count=len(attendees),
        warning_count=len(warnings),
    )
    return AttendeeResolution(
        attendees=attendees,
        warnings=warnings,
        candidate=candidate,
        interviewers=entries,
    )
