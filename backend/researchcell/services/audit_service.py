"""
Workflow audit trail: one entry per successful transition
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from researchcell.core.logging_config import logger
from researchcell.models.audit_log import WorkflowAuditLog
from researchcell.models.submission import SubmissionKind
from researchcell.modules.auth.role_resolver import Identity


def _value(status) -> Optional[str]:
    if status is None:
        return None
    return getattr(status, "value", str(status))


class AuditService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        actor: Identity,
        action: str,
        kind: SubmissionKind,
        target_id: str,
        from_status=None,
        to_status=None,
        details: Optional[Dict[str, Any]] = None,
    ) -> WorkflowAuditLog:
        """Add an audit entry to the current transaction and log the transition"""
        entry = WorkflowAuditLog(
            actor_id=actor.user_id,
            actor_role=actor.role.value,
            action=action,
            target_type=SubmissionKind(kind).value,
            target_id=target_id,
            from_status=_value(from_status),
            to_status=_value(to_status),
            details=details or {},
        )
        self.db.add(entry)

        logger.log_transition(
            SubmissionKind(kind).value, target_id, action,
            entry.from_status, entry.to_status, actor.user_id,
        )
        return entry

    async def history(self, kind: SubmissionKind, target_id: str) -> List[WorkflowAuditLog]:
        result = await self.db.execute(
            select(WorkflowAuditLog)
            .where(
                WorkflowAuditLog.target_type == SubmissionKind(kind).value,
                WorkflowAuditLog.target_id == target_id,
            )
            .order_by(WorkflowAuditLog.created_at, WorkflowAuditLog.id)
        )
        return list(result.scalars().all())
