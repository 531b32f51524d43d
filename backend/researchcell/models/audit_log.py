from sqlalchemy import Column, String, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship

from researchcell.core.database import Base
from researchcell.core.types import GUID, generate_uuid, utcnow


class WorkflowAuditLog(Base):
    """Audit log for tracking review workflow transitions"""
    __tablename__ = "workflow_audit_logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    actor_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    actor_role = Column(String(20), nullable=False)

    # Action details
    action = Column(String(100), nullable=False)  # e.g., 'decide:approve', 'admin:publish', 'request_updates'
    target_type = Column(String(20), nullable=False)  # 'paper' or 'project'
    target_id = Column(GUID, nullable=False, index=True)

    # State change
    from_status = Column(String(50), nullable=True)
    to_status = Column(String(50), nullable=True)
    details = Column(JSON, nullable=True)

    # Timestamp
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    # Relationships
    actor = relationship("User", foreign_keys=[actor_id], lazy="selectin")

    def __repr__(self):
        return f"<WorkflowAuditLog {self.action} on {self.target_type}:{self.target_id} by {self.actor_id}>"
