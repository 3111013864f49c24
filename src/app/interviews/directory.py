"""SQL-backed directory and candidate lookups for attendee resolution."""

from __future__ import annotations

import uuid

import structlog
from sqlalchemy import select

from src.app.interviews.models import ApplicationModel, CandidateModel, JobModel, ProfileModel
from src.app.interviews.repository import SessionFactory
from src.app.interviews.schemas import CandidateContact, DirectoryEntry

logger = structlog.get_logger(__name__)


def _full_name(first: str | None, last: str | None) -> str | None:
    name = " ".join(part for part in (first, last) if part)
    return name or None


class SqlDirectory:
    """Resolves organization members (profiles) by id."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def lookup_users(self, org_id: str, user_ids: list[str]) -> list[DirectoryEntry]:
        ids: list[uuid.UUID] = []
        for user_id in user_ids:
            try:
                ids.append(uuid.UUID(user_id))
            except ValueError:
                logger.info("directory.invalid_user_id", org_id=org_id, user_id=user_id)
        if not ids:
            return []

        async for session in self._session_factory():
            stmt = select(ProfileModel).where(
                ProfileModel.org_id == uuid.UUID(org_id),
                ProfileModel.id.in_(ids),
            )
            result = await session.execute(stmt)
            return [
                DirectoryEntry(
                    id=str(p.id),
                    email=p.email,
                    display_name=_full_name(p.first_name, p.last_name),
                )
                for p in result.scalars().all()
                if p.email
            ]


class SqlCandidateLookup:
    """Resolves an application to its candidate and job title."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    async def get_candidate(
        self, org_id: str, application_id: uuid.UUID
    ) -> CandidateContact | None:
        async for session in self._session_factory():
            stmt = (
                select(CandidateModel, JobModel.title)
                .join(ApplicationModel, ApplicationModel.candidate_id == CandidateModel.id)
                .outerjoin(JobModel, JobModel.id == ApplicationModel.job_id)
                .where(
                    ApplicationModel.org_id == uuid.UUID(org_id),
                    ApplicationModel.id == application_id,
                )
            )
            result = await session.execute(stmt)
            row = result.first()
            if row is None:
                return None
            candidate, job_title = row
            if not candidate.email:
                return None
            return CandidateContact(
                email=candidate.email,
                display_name=_full_name(candidate.first_name, candidate.last_name),
                job_title=job_title,
            )
