"""
Submission Store
Persistence for research papers and ongoing projects behind one interface
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from researchcell.core.exceptions import ConcurrentUpdateError, SubmissionNotFoundError
from researchcell.core.types import is_valid_uuid, utcnow
from researchcell.models.submission import (
    OnGoingProject,
    ReviewerStatus,
    SubmissionKind,
    model_for,
)
from researchcell.models.user import User
from researchcell.utils.pagination import paginate


@dataclass
class SubmissionFilters:
    """Listing filters; None means "don't filter on this"."""
    status: Optional[str] = None
    reviewer_status: Optional[ReviewerStatus] = None
    reviewer_id: Optional[str] = None
    owner_id: Optional[str] = None
    needs_review: bool = False
    query: Optional[str] = None


class SubmissionStore:
    """Store for one submission kind"""

    def __init__(self, db: AsyncSession, kind: SubmissionKind):
        self.db = db
        self.kind = SubmissionKind(kind)
        self.model = model_for(self.kind)

    # =====================================================
    # TRANSACTIONS
    # =====================================================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SubmissionStore"]:
        """
        Unit of work: commit on success, roll back on any error.

        A version mismatch detected at flush time surfaces as
        ConcurrentUpdateError.
        """
        try:
            yield self
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            raise ConcurrentUpdateError(self.kind.value)
        except Exception:
            await self.db.rollback()
            raise

    # =====================================================
    # READS
    # =====================================================

    async def find(self, submission_id: str, fresh: bool = False):
        """Get a submission or None. `fresh` re-reads the row over the identity map."""
        if not is_valid_uuid(submission_id):
            return None
        stmt = select(self.model).where(self.model.id == submission_id)
        if fresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, submission_id: str, fresh: bool = False):
        submission = await self.find(submission_id, fresh=fresh)
        if submission is None:
            raise SubmissionNotFoundError(self.kind.value, str(submission_id))
        return submission

    async def find_by_ids(self, submission_ids: Sequence[str]) -> List[Any]:
        valid_ids = [sid for sid in submission_ids if is_valid_uuid(sid)]
        if not valid_ids:
            return []
        result = await self.db.execute(
            select(self.model).where(self.model.id.in_(valid_ids))
        )
        return list(result.scalars().all())

    def _filtered_query(self, filters: Optional[SubmissionFilters]):
        model = self.model
        stmt = select(model)
        if filters is None:
            return stmt

        if filters.status is not None:
            stmt = stmt.where(model.status == filters.status)
        if filters.reviewer_status is not None:
            stmt = stmt.where(model.reviewer_status == filters.reviewer_status)
        if filters.reviewer_id is not None:
            stmt = stmt.where(model.reviewer_id == filters.reviewer_id)
        if filters.owner_id is not None:
            owners = model.members if model is OnGoingProject else model.authors
            stmt = stmt.where(owners.any(User.id == filters.owner_id))
        if filters.needs_review:
            stmt = stmt.where(or_(
                model.reviewer_id.is_(None),
                model.reviewer_status == ReviewerStatus.PENDING,
            ))
        if filters.query:
            stmt = stmt.where(model.title.ilike(f"%{filters.query}%"))
        return stmt

    async def find_many(
        self,
        filters: Optional[SubmissionFilters] = None,
        page: int = 1,
        page_size: int = 10,
    ) -> Tuple[List[Any], int]:
        """Page of submissions, newest first, plus the total match count"""
        stmt = self._filtered_query(filters).order_by(self.model.created_at.desc(), self.model.id)
        return await paginate(self.db, stmt, page=page, page_size=page_size)

    async def count(self, filters: Optional[SubmissionFilters] = None) -> int:
        stmt = select(func.count()).select_from(self._filtered_query(filters).subquery())
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def status_breakdown(self) -> List[Dict[str, Any]]:
        """Counts grouped by status x reviewer_status"""
        result = await self.db.execute(
            select(self.model.status, self.model.reviewer_status, func.count())
            .group_by(self.model.status, self.model.reviewer_status)
        )
        return [
            {"status": status.value, "reviewer_status": reviewer_status.value, "count": count}
            for status, reviewer_status, count in result.all()
        ]

    # =====================================================
    # WRITES
    # =====================================================

    async def create(self, **fields):
        submission = self.model(**fields)
        self.db.add(submission)
        await self.db.flush()
        # load the eager relationships so the new row serializes without lazy IO
        await self.db.refresh(submission)
        return submission

    async def update(self, submission, **fields):
        """Apply field changes and flush; the version check runs here"""
        for name, value in fields.items():
            setattr(submission, name, value)
        submission.updated_at = utcnow()
        await self.db.flush()
        return submission

    async def delete_many(self, submission_ids: Sequence[str]) -> int:
        submissions = await self.find_by_ids(submission_ids)
        for submission in submissions:
            await self.db.delete(submission)
        await self.db.flush()
        return len(submissions)

    async def claim_reviewer(self, submission_id: str, reviewer_id: str) -> bool:
        """
        Conditionally assign a reviewer: succeeds only while the submission has
        no reviewer. Returns True for the caller that won the claim.
        """
        model = self.model
        result = await self.db.execute(
            update(model)
            .where(model.id == submission_id, model.reviewer_id.is_(None))
            .values(
                reviewer_id=reviewer_id,
                version=model.version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
