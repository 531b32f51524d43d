from sqlalchemy import Column, Integer, DateTime, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from researchcell.core.database import Base
from researchcell.core.types import GUID, generate_uuid, utcnow


class RevisionRound(Base):
    """One request-updates / submit-revision round of a project"""
    __tablename__ = "revision_rounds"
    __table_args__ = (
        UniqueConstraint("project_id", "round_number", name="uq_revision_round"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    project_id = Column(GUID, ForeignKey("ongoing_projects.id", ondelete="CASCADE"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)

    # Reviewer side
    requested_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    request_message = Column(Text, nullable=False)
    deadline = Column(DateTime, nullable=True)
    requested_at = Column(DateTime, default=utcnow, nullable=False)

    # Student side, filled when the revision is submitted
    response_comments = Column(Text, nullable=True)
    responded_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    responded_at = Column(DateTime, nullable=True)

    # Set when a reviewer decision supersedes an unanswered request
    closed_at = Column(DateTime, nullable=True)
    closed_reason = Column(String(50), nullable=True)

    project = relationship("OnGoingProject", back_populates="revisions")

    @property
    def is_open(self) -> bool:
        return self.responded_at is None and self.closed_at is None

    def __repr__(self):
        return f"<RevisionRound {self.project_id}#{self.round_number}>"
